"""
Risk Assessor Agent.

Instrument-level risk from price history and prior stage outputs. Purely local,
no LLM call: volatility + drawdown + sentiment penalty → risk score, position
size and stop-loss.
"""
from dataclasses import dataclass
from typing import Optional

from agents.base import StageContext
from libs.domain_models.analysis import RiskAnalysis, SentimentAnalysis, TechnicalAnalysis
from libs.domain_models.market import MarketDataPayload
from libs.indicators import calculate_max_drawdown, calculate_volatility


class InsufficientDataError(ValueError):
    """Price history too short to measure risk."""
    code = "INSUFFICIENT_DATA"


_POSITION_SIZE = {
    "high": "2% of portfolio",
    "medium": "5% of portfolio",
    "low": "8% of portfolio",
}


@dataclass(frozen=True)
class RiskPolicy:
    """Weights for the risk score. risk = vol*w_vol + drawdown%*w_dd + penalty."""
    volatility_weight: float = 10.0
    drawdown_weight: float = 0.5
    negative_sentiment_penalty: float = 1.0
    default_stop_loss_ratio: float = 0.90
    fallback_stop_loss_ratio: float = 0.95


@dataclass(frozen=True)
class RiskInput:
    market_data: MarketDataPayload
    technical: Optional[TechnicalAnalysis] = None
    sentiment: Optional[SentimentAnalysis] = None


def risk_level(score: float) -> str:
    if score > 7:
        return "high"
    if score > 4:
        return "medium"
    return "low"


def stop_loss(price: float, support: list[float], default_ratio: float) -> float:
    if not support:
        return round(price * default_ratio, 2)
    below = [level for level in support if level <= price]
    if below:
        return round(max(below), 2)
    return round(min(support, key=lambda level: abs(level - price)), 2)


def build_fallback(data: MarketDataPayload, policy: RiskPolicy) -> RiskAnalysis:
    return RiskAnalysis(
        risk_score=5,
        risk_level="medium",
        volatility=0.0,
        beta=data.fundamentals.beta,
        max_drawdown_estimate="unknown",
        recommended_position_size=_POSITION_SIZE["medium"],
        stop_loss_level=round(data.current_price * policy.fallback_stop_loss_ratio, 2),
        key_risks=["Risk model unavailable"],
        mitigation_strategies=["Use conservative position sizing"],
        reasoning="Fallback risk estimate",
        score=5,
    )


class RiskAssessorAgent:
    name = "risk"

    def __init__(self, policy: Optional[RiskPolicy] = None):
        self.policy = policy or RiskPolicy()

    def assess(self, inputs: RiskInput) -> RiskAnalysis:
        data = inputs.market_data
        bars = data.historical_prices
        if len(bars) < 2:
            raise InsufficientDataError("Not enough price history for risk assessment")

        volatility = calculate_volatility(bars)
        drawdown = calculate_max_drawdown(bars)
        negative = inputs.sentiment is not None and inputs.sentiment.overall_sentiment == "negative"
        penalty = self.policy.negative_sentiment_penalty if negative else 0.0

        score = min(
            10.0,
            volatility * self.policy.volatility_weight
            + drawdown * self.policy.drawdown_weight
            + penalty,
        )
        level = risk_level(score)
        support = inputs.technical.support if inputs.technical else []

        key_risks = [f"Volatility at {volatility * 100:.1f}% annualised",
                     f"Historical max drawdown of {drawdown:.1f}%"]
        if negative:
            key_risks.append("Negative news sentiment")

        return RiskAnalysis(
            risk_score=round(score, 2),
            risk_level=level,
            volatility=round(volatility, 4),
            beta=data.fundamentals.beta,
            max_drawdown_estimate=f"{drawdown:.2f}%",
            recommended_position_size=_POSITION_SIZE[level],
            stop_loss_level=stop_loss(data.current_price, support, self.policy.default_stop_loss_ratio),
            key_risks=key_risks,
            mitigation_strategies=["Use stop-loss orders", "Size positions to the risk level"],
            reasoning=f"Risk score {score:.2f} from volatility, drawdown and sentiment",
            score=round(10 - score, 2),
        )

    async def execute(self, inputs: RiskInput, ctx: StageContext) -> RiskAnalysis:
        ctx.start()
        ctx.think("Assessing volatility, drawdown and position sizing")
        try:
            result = self.assess(inputs)
        except Exception as e:
            code = e.code if isinstance(e, InsufficientDataError) else "RISK_FALLBACK"
            return ctx.fall_back(code, e, build_fallback(inputs.market_data, self.policy))
        return ctx.complete(result)
