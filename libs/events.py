"""
Synchronous publish/subscribe used for orchestrator observability.
"""
from typing import Callable, Generic, TypeVar

from libs.log import get_logger

T = TypeVar("T")

log = get_logger(__name__)


class EventStream(Generic[T]):
    """Delivers each published value to every subscriber, in subscription order."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, value: T) -> None:
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                # An observer must never break the run it is watching.
                log.exception("subscriber_failed", stream=self.name)

    def clear(self) -> None:
        self._subscribers.clear()

    def __len__(self) -> int:
        return len(self._subscribers)
