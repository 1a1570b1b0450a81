"""
Error types shared by providers, stages and the orchestrator.

ProviderError  — raised by market-data and reasoning collaborators
StageError     — raised out of a stage; carries the AgentError record
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict

from libs.domain_models.analysis import AgentName


class AgentError(BaseModel):
    """One entry in AnalysisState.errors."""
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    recoverable: bool
    agent_name: AgentName


class ProviderError(Exception):
    """Failure reported by an external collaborator, already classified."""

    def __init__(
        self,
        code: str,
        message: str,
        recoverable: bool = True,
        provider: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable
        self.provider = provider
        self.status = status

    @property
    def is_rate_limit(self) -> bool:
        return self.code == "RATE_LIMIT_EXCEEDED"

    def __repr__(self) -> str:
        return f"ProviderError({self.code!r}, {self.message!r}, recoverable={self.recoverable})"


class StageError(Exception):
    """Raised when a stage cannot produce any result."""

    def __init__(self, error: AgentError):
        super().__init__(error.message)
        self.error = error

    @property
    def code(self) -> str:
        return self.error.code
