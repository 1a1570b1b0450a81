"""
Technical Analyst Agent.

Steps:
  compute indicators  → SMA20/50/200, RSI, MACD, Bollinger (libs.indicators)
  llm interpret       → Gemini classifies trend/levels from the indicator values
  build result        → strict TechnicalAnalysis schema
Falls back to an SMA50 heuristic when the LLM call or the parse fails.
"""
import json

from agents.base import Reasoner, StageContext
from libs.domain_models.analysis import TechnicalAnalysis, TechnicalIndicators
from libs.domain_models.market import MarketDataPayload
from libs.domain_models.recommendation import TradeSignal
from libs.indicators import (
    calculate_bollinger_bands,
    calculate_macd,
    calculate_rsi,
    calculate_sma,
)
from libs.json_utils import extract_json
from libs.log import get_logger

log = get_logger(__name__)

_SYSTEM_PROMPT = """
You are a senior technical analysis expert for US equities.
You interpret price action and indicators, respond with concise, data-backed insights,
and never invent values that are not in the provided data.
"""

_RESPONSE_SCHEMA = """
Respond ONLY with valid JSON (no markdown, no backticks):
{
  "trend": "bullish" | "bearish" | "neutral",
  "trend_strength": "weak" | "moderate" | "strong",
  "signals": ["identified signals"],
  "support": [price levels],
  "resistance": [price levels],
  "recommendation": "BUY" | "HOLD" | "SELL",
  "confidence": float 0.0-1.0,
  "reasoning": "brief explanation",
  "score": number 0-10
}
"""


def build_indicators(data: MarketDataPayload) -> TechnicalIndicators:
    bars = data.historical_prices
    return TechnicalIndicators(
        rsi=calculate_rsi(bars),
        macd=calculate_macd(bars),
        sma20=calculate_sma(bars, 20),
        sma50=calculate_sma(bars, 50),
        sma200=calculate_sma(bars, 200),
        bollinger_bands=calculate_bollinger_bands(bars),
    )


def _fmt(value) -> str:
    return "n/a" if value is None else str(value)


def build_prompt(data: MarketDataPayload, indicators: TechnicalIndicators) -> str:
    recent = "\n".join(
        f"{bar.date.isoformat()}: close={bar.close}" for bar in data.historical_prices[:30]
    )
    macd = indicators.macd.model_dump() if indicators.macd else {}
    bands = indicators.bollinger_bands.model_dump() if indicators.bollinger_bands else {}
    return f"""
Stock: {data.symbol}
Current Price: ${data.current_price:.2f}

Technical Indicators:
- RSI(14): {_fmt(indicators.rsi)}
- MACD: {json.dumps(macd)}
- SMA(20): {_fmt(indicators.sma20)}, SMA(50): {_fmt(indicators.sma50)}, SMA(200): {_fmt(indicators.sma200)}
- Bollinger Bands: {json.dumps(bands)}

Recent Price Action (last 30 sessions, newest first):
{recent}
{_RESPONSE_SCHEMA}"""


def build_fallback(data: MarketDataPayload, indicators: TechnicalIndicators) -> TechnicalAnalysis:
    """Heuristic: above SMA50 is bullish, anything else (including no SMA50) holds."""
    price = data.current_price
    above = indicators.sma50 is not None and price > indicators.sma50
    latest_close = data.historical_prices[0].close if data.historical_prices else price
    return TechnicalAnalysis(
        indicators=indicators,
        trend="bullish" if above else "neutral",
        trend_strength="moderate",
        signals=["Price trading above SMA50" if above else "Price consolidating near SMA50"],
        support=[latest_close],
        resistance=[round(price * 1.05, 2)],
        recommendation=TradeSignal.BUY if above else TradeSignal.HOLD,
        confidence=0.6,
        reasoning="Fallback heuristic based on moving averages",
        score=7 if above else 5,
    )


class TechnicalAnalystAgent:
    name = "technical"

    def __init__(self, reasoner: Reasoner, max_tokens: int = 500):
        self.reasoner = reasoner
        self.max_tokens = max_tokens

    async def execute(self, data: MarketDataPayload, ctx: StageContext) -> TechnicalAnalysis:
        ctx.start()
        ctx.think("Crunching indicators for technical outlook")
        indicators = build_indicators(data)
        try:
            ctx.think("Consulting the reasoning model on trend and levels")
            raw = await self.reasoner.complete(
                _SYSTEM_PROMPT, build_prompt(data, indicators), self.max_tokens, ctx.usage
            )
            parsed = extract_json(raw)
            parsed["indicators"] = indicators
            result = TechnicalAnalysis.model_validate(parsed)
        except Exception as e:
            return ctx.fall_back("TECH_ANALYSIS_FALLBACK", e, build_fallback(data, indicators))
        return ctx.complete(result)
