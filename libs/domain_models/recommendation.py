from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field

from libs.domain_models.scores import Confidence, Score


class TradeSignal(str, Enum):
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"


class AgentConsensus(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    agreement: Literal["low", "medium", "high"] = "medium"
    conflicting_agents: list[str] = Field(default_factory=list)
    consensus: TradeSignal


class ReportPayload(BaseModel):
    """
    Final output from the Synthesis stage.
    This is what the record and the API expose to the user.
    """
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    final_recommendation: TradeSignal
    overall_confidence: Confidence
    composite_score: Score
    executive_summary: str
    agent_consensus: AgentConsensus
    key_insights: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)
    full_report: str = Field(min_length=1)


class LLMUsage(BaseModel):
    """Token and cost accounting for one analysis run."""
    calls: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0

    def record(self, prompt_tokens: int, completion_tokens: int, cost: float = 0.0) -> None:
        self.calls += 1
        self.prompt_tokens += prompt_tokens
        self.completion_tokens += completion_tokens
        self.total_tokens += prompt_tokens + completion_tokens
        self.cost += cost


class AgentScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    technical: Optional[float] = None
    fundamental: Optional[float] = None
    sentiment: Optional[float] = None
    risk: Optional[float] = None


class AnalysisRecord(BaseModel):
    """Persisted summary of a completed run."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    symbol: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    final_recommendation: TradeSignal
    overall_confidence: float
    composite_score: float
    agent_scores: AgentScores
    full_data: dict = Field(default_factory=dict)
    usage: LLMUsage = Field(default_factory=LLMUsage)
