from datetime import datetime
from typing import Any, Literal, Optional, TypedDict

from pydantic import BaseModel, ConfigDict, Field

from libs.domain_models.analysis import (
    AgentName,
    AgentStatus,
    FundamentalAnalysis,
    RiskAnalysis,
    SentimentAnalysis,
    TechnicalAnalysis,
)
from libs.domain_models.market import MarketDataPayload
from libs.domain_models.recommendation import ReportPayload
from libs.errors import AgentError

Phase = Literal["idle", "initializing", "data", "analysis", "risk", "report", "completed", "error"]


class AnalysisState(BaseModel):
    """
    Observable progress of one run. Frozen: every update replaces the whole
    snapshot, so subscribers can keep the value they were given.
    """
    model_config = ConfigDict(frozen=True)

    phase: Phase = "idle"
    progress: float = 0.0
    active_agent: Optional[AgentName] = None
    agent_statuses: dict[str, AgentStatus] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    results: dict[str, Any] = Field(default_factory=dict)
    errors: list[AgentError] = Field(default_factory=list)


class GraphState(TypedDict, total=False):
    """Values passed between graph nodes. Each node writes only its own key."""
    symbol: str
    market_data: MarketDataPayload
    technical: TechnicalAnalysis
    fundamental: FundamentalAnalysis
    sentiment: SentimentAnalysis
    risk: RiskAnalysis
    report: ReportPayload
