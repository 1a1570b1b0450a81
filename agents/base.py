"""
What every pipeline stage shares.

  Stage         → protocol: `name` + `async execute(input, ctx)`
  Reasoner      → protocol for the reasoning collaborator
  StageContext  → per-stage status/thinking/result/error, published to
                  callbacks supplied by the orchestrator
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

from libs.domain_models.analysis import AgentName, AgentStatus
from libs.domain_models.recommendation import LLMUsage
from libs.errors import AgentError, ProviderError
from libs.log import get_logger

TInput = TypeVar("TInput", contravariant=True)
TResult = TypeVar("TResult")

log = get_logger(__name__)

_TRANSITIONS: dict[str, set[str]] = {
    "idle": {"working"},
    "working": {"completed", "error"},
    "completed": set(),
    "error": set(),
}


@dataclass(frozen=True)
class ThinkingEntry:
    thought: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Reasoner(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 500,
        usage: Optional[LLMUsage] = None,
    ) -> str: ...


class Stage(Protocol[TInput]):
    name: AgentName

    async def execute(self, input: TInput, ctx: "StageContext") -> Any: ...


def describe(exc: BaseException) -> str:
    if isinstance(exc, ProviderError):
        return exc.message
    return str(exc) or type(exc).__name__


class StageContext(Generic[TResult]):
    """
    Owned by one stage for one run. The stage mutates it; observers only
    see what it publishes.
    """

    def __init__(
        self,
        name: AgentName,
        usage: Optional[LLMUsage] = None,
        on_status: Optional[Callable[[AgentName, AgentStatus], None]] = None,
        on_thinking: Optional[Callable[[AgentName, ThinkingEntry], None]] = None,
        on_result: Optional[Callable[[AgentName, Any], None]] = None,
        on_error: Optional[Callable[[AgentError], None]] = None,
    ):
        self.name = name
        self.usage = usage if usage is not None else LLMUsage()
        self.status: AgentStatus = "idle"
        self.thinking: list[ThinkingEntry] = []
        self.result: Optional[TResult] = None
        self.error: Optional[AgentError] = None
        self._on_status = on_status
        self._on_thinking = on_thinking
        self._on_result = on_result
        self._on_error = on_error

    def _transition(self, status: AgentStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise ValueError(f"{self.name}: illegal status change {self.status} -> {status}")
        self.status = status
        if self._on_status:
            self._on_status(self.name, status)

    def start(self) -> None:
        self._transition("working")

    def think(self, thought: str) -> None:
        entry = ThinkingEntry(thought)
        self.thinking.append(entry)
        if self._on_thinking:
            self._on_thinking(self.name, entry)

    def complete(self, result: TResult) -> TResult:
        self.result = result
        self._transition("completed")
        if self._on_result:
            self._on_result(self.name, result)
        return result

    def fail(self, code: str, message: str, recoverable: bool = True) -> AgentError:
        """Record a stage failure. The stage decides whether to fall back or raise."""
        error = AgentError(code=code, message=message, recoverable=recoverable, agent_name=self.name)
        self.error = error
        self._transition("error")
        log.warning("stage_error", agent=self.name, code=code, message=message)
        if self._on_error:
            self._on_error(error)
        return error

    def fall_back(self, code: str, exc: BaseException, fallback: TResult) -> TResult:
        """Report `exc` as a recoverable error and keep `fallback` as the result."""
        self.fail(code, describe(exc), recoverable=True)
        self.result = fallback
        return fallback
