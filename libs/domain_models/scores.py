from typing import Annotated

from pydantic import BeforeValidator


def _clamp(low: float, high: float):
    def clamp(value):
        if value is None:
            return value
        return max(low, min(high, float(value)))
    return BeforeValidator(clamp)


# LLMs drift outside the requested ranges; clamp instead of rejecting.
Score = Annotated[float, _clamp(0.0, 10.0)]
Confidence = Annotated[float, _clamp(0.0, 1.0)]
