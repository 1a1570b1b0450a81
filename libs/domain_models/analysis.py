from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from libs.domain_models.recommendation import TradeSignal
from libs.domain_models.scores import Confidence, Score


AgentName = Literal["marketData", "technical", "fundamental", "sentiment", "risk", "reporter"]
AgentStatus = Literal["idle", "working", "completed", "error"]


class MACDValues(BaseModel):
    model_config = ConfigDict(frozen=True)

    macd: float
    signal: float
    histogram: float


class BollingerBands(BaseModel):
    model_config = ConfigDict(frozen=True)

    upper: float
    middle: float
    lower: float


class TechnicalIndicators(BaseModel):
    """Locally computed indicators; None means not enough history."""
    model_config = ConfigDict(frozen=True)

    rsi: Optional[float] = None
    macd: Optional[MACDValues] = None
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    bollinger_bands: Optional[BollingerBands] = None


class TechnicalAnalysis(BaseModel):
    """Output from the Technical Analyst stage."""
    model_config = ConfigDict(frozen=True)

    indicators: TechnicalIndicators
    trend: Literal["bullish", "bearish", "neutral"]
    trend_strength: Literal["weak", "moderate", "strong"]
    signals: list[str] = Field(default_factory=list)
    support: list[float] = Field(default_factory=list)
    resistance: list[float] = Field(default_factory=list)
    recommendation: TradeSignal
    confidence: Confidence = 0.5
    reasoning: str = ""
    score: Score


class FundamentalAnalysis(BaseModel):
    """Output from the Fundamental Analyst stage."""
    model_config = ConfigDict(frozen=True)

    metrics: dict[str, Optional[float]] = Field(default_factory=dict)
    sector_comparison: dict[str, str | float] = Field(default_factory=dict)
    valuation: str
    growth_potential: Literal["low", "medium", "high"]
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    recommendation: TradeSignal
    confidence: Confidence = 0.5
    reasoning: str = ""
    score: Score


class SentimentAnalysis(BaseModel):
    """Output from the Sentiment Watchdog stage."""
    model_config = ConfigDict(frozen=True)

    overall_sentiment: Literal["positive", "negative", "neutral"]
    sentiment_score: Score
    key_themes: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)
    catalysts: list[str] = Field(default_factory=list)
    market_mood: Literal["fearful", "cautious", "neutral", "optimistic", "greedy"] = "neutral"
    news_count: int = 0
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    reasoning: str = ""
    score: Score


class RiskAnalysis(BaseModel):
    """Output from the Risk Assessor stage. `score` is 10 - risk_score."""
    model_config = ConfigDict(frozen=True)

    risk_score: Score
    risk_level: Literal["low", "medium", "high"]
    volatility: float
    beta: Optional[float] = None
    max_drawdown_estimate: str
    recommended_position_size: str
    stop_loss_level: Optional[float] = None
    key_risks: list[str] = Field(default_factory=list)
    mitigation_strategies: list[str] = Field(default_factory=list)
    reasoning: str = ""
    score: Score
