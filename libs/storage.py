"""
Recent analyses, newest first, one per symbol.

In memory by default; pass `path` to keep the list in a JSON file between runs.
"""
import json
from pathlib import Path
from typing import Optional

from libs.domain_models.recommendation import AnalysisRecord
from libs.log import get_logger

log = get_logger(__name__)

MAX_RECENT = 10


class RecentAnalysesStore:
    def __init__(self, path: Optional[str | Path] = None, limit: int = MAX_RECENT):
        self.path = Path(path) if path else None
        self.limit = limit
        self._records: list[AnalysisRecord] = []
        if self.path and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            raw = json.loads(self.path.read_text())
            self._records = [AnalysisRecord.model_validate(item) for item in raw][: self.limit]
        except (OSError, ValueError) as e:
            log.warning("recent_analyses_unreadable", path=str(self.path), error=str(e))
            self._records = []

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [record.model_dump(mode="json") for record in self._records]
        self.path.write_text(json.dumps(payload, indent=2))

    def save(self, record: AnalysisRecord) -> None:
        others = [r for r in self._records if r.symbol != record.symbol]
        self._records = [record, *others][: self.limit]
        self._flush()

    def recent(self) -> list[AnalysisRecord]:
        return list(self._records)

    def get(self, symbol: str) -> Optional[AnalysisRecord]:
        symbol = symbol.upper()
        return next((r for r in self._records if r.symbol == symbol), None)

    def clear(self) -> None:
        self._records = []
        self._flush()

    def __len__(self) -> int:
        return len(self._records)
