"""
Tolerant JSON extraction for LLM output.

Models wrap JSON in ```json fences or surround it with prose despite being
told not to. Strip fences first, then fall back to the outermost braces.
"""
import json
import re

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class JSONExtractionError(ValueError):
    pass


def extract_json(text: str) -> dict:
    """Return the JSON object contained in `text`, or raise JSONExtractionError."""
    cleaned = (text or "").strip()
    if not cleaned:
        raise JSONExtractionError("empty response")

    match = _FENCE.search(cleaned)
    if match:
        cleaned = match.group(1).strip()
    elif cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?", "", cleaned)
        cleaned = re.sub(r"```$", "", cleaned).strip()

    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first != -1 and last > first:
        try:
            parsed = json.loads(cleaned[first:last + 1])
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise JSONExtractionError(f"response is not valid JSON: {e.msg}") from e
    if not isinstance(parsed, dict):
        raise JSONExtractionError("response JSON is not an object")
    return parsed
