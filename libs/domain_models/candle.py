import datetime
from typing import Iterable

from pydantic import BaseModel, ConfigDict


class PriceBar(BaseModel):
    """Single daily OHLCV bar."""
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


def normalize_bars(bars: Iterable[PriceBar]) -> list[PriceBar]:
    """Return bars ordered most-recent-first, whatever order the provider used."""
    return sorted(bars, key=lambda bar: bar.date, reverse=True)
