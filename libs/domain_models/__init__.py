from .candle import PriceBar, normalize_bars
from .market import FundamentalsSnapshot, MarketDataPayload, NewsHeadline, PriceSnapshot
from .analysis import (
    AgentName,
    AgentStatus,
    BollingerBands,
    FundamentalAnalysis,
    MACDValues,
    RiskAnalysis,
    SentimentAnalysis,
    TechnicalAnalysis,
    TechnicalIndicators,
)
from .recommendation import (
    AgentConsensus,
    AgentScores,
    AnalysisRecord,
    LLMUsage,
    ReportPayload,
    TradeSignal,
)

__all__ = [
    "PriceBar",
    "normalize_bars",
    "FundamentalsSnapshot",
    "MarketDataPayload",
    "NewsHeadline",
    "PriceSnapshot",
    "AgentName",
    "AgentStatus",
    "BollingerBands",
    "FundamentalAnalysis",
    "MACDValues",
    "RiskAnalysis",
    "SentimentAnalysis",
    "TechnicalAnalysis",
    "TechnicalIndicators",
    "AgentConsensus",
    "AgentScores",
    "AnalysisRecord",
    "LLMUsage",
    "ReportPayload",
    "TradeSignal",
]
