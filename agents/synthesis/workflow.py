"""
Report Generator Agent.
Aggregates market data + technical + fundamental + sentiment + risk → ReportPayload.
"""
from dataclasses import dataclass
from statistics import mean

from agents.base import Reasoner, StageContext
from libs.domain_models.analysis import (
    FundamentalAnalysis,
    RiskAnalysis,
    SentimentAnalysis,
    TechnicalAnalysis,
)
from libs.domain_models.market import MarketDataPayload
from libs.domain_models.recommendation import AgentConsensus, ReportPayload, TradeSignal
from libs.json_utils import extract_json


_SYSTEM_PROMPT = """
You are a senior equity analyst. Synthesize the stage outputs you are given into one
investment report.

Rules:
  - Confidence > 0.75 only when multiple dimensions agree
  - Never invent data, only reference what is provided
  - If data is insufficient, return HOLD with low confidence
"""


@dataclass(frozen=True)
class ReportInput:
    market_data: MarketDataPayload
    technical: TechnicalAnalysis
    fundamental: FundamentalAnalysis
    sentiment: SentimentAnalysis
    risk: RiskAnalysis


def build_prompt(inputs: ReportInput) -> str:
    data, ta, fa, sa, ra = (inputs.market_data, inputs.technical, inputs.fundamental,
                            inputs.sentiment, inputs.risk)
    change = (f" ({data.price_change_percent:+.2f}%)"
              if data.price_change_percent is not None else "")
    return f"""
Stock: {data.symbol}
Price: ${data.current_price:.2f}{change}

=== Technical Analysis ===
Trend:          {ta.trend} ({ta.trend_strength})
Recommendation: {ta.recommendation.value}
Score:          {ta.score}/10
Signals:        {', '.join(ta.signals) or 'None'}

=== Fundamental Analysis ===
Valuation:      {fa.valuation}
Growth:         {fa.growth_potential}
Recommendation: {fa.recommendation.value}
Score:          {fa.score}/10

=== Sentiment Analysis ===
Overall:        {sa.overall_sentiment} ({sa.market_mood})
Score:          {sa.score}/10
Themes:         {', '.join(sa.key_themes) or 'None'}

=== Risk Assessment ===
Risk:           {ra.risk_level} ({ra.risk_score}/10)
Position size:  {ra.recommended_position_size}
Stop-loss:      {ra.stop_loss_level}

Respond ONLY with valid JSON:
{{
  "final_recommendation": "BUY" | "HOLD" | "SELL",
  "overall_confidence": float 0.0-1.0,
  "composite_score": number 0-10,
  "executive_summary": "2-3 sentences",
  "agent_consensus": {{"agreement": "low" | "medium" | "high", "conflicting_agents": [], "consensus": "BUY" | "HOLD" | "SELL"}},
  "key_insights": ["..."],
  "action_items": ["..."],
  "full_report": "markdown report"
}}
"""


def recommendation_for(composite: float) -> TradeSignal:
    if composite > 6.5:
        return TradeSignal.BUY
    if composite > 5:
        return TradeSignal.HOLD
    return TradeSignal.SELL


def build_fallback(inputs: ReportInput) -> ReportPayload:
    scores = {
        "Technical": inputs.technical.score,
        "Fundamental": inputs.fundamental.score,
        "Sentiment": inputs.sentiment.score,
        "Risk": inputs.risk.score,
    }
    composite = round(mean(scores.values()), 2)
    signal = recommendation_for(composite)
    insights = [f"{name} score: {score:.1f}/10" for name, score in scores.items()]
    symbol = inputs.market_data.symbol
    summary = f"{symbol} composite score {composite:.1f}/10 suggests {signal.value}."
    full_report = "\n".join([
        f"# Investment Analysis: {symbol}",
        "",
        "## Summary",
        summary,
        "",
        "## Scores",
        *[f"- {line}" for line in insights],
        "",
        "## Risk",
        f"- Level: {inputs.risk.risk_level}",
        f"- Position size: {inputs.risk.recommended_position_size}",
        f"- Stop-loss: {inputs.risk.stop_loss_level}",
    ])
    return ReportPayload(
        final_recommendation=signal,
        overall_confidence=0.6,
        composite_score=composite,
        executive_summary=summary,
        agent_consensus=AgentConsensus(agreement="medium", consensus=signal),
        key_insights=insights,
        action_items=["Review the individual stage results before acting"],
        full_report=full_report,
    )


class ReportGeneratorAgent:
    name = "reporter"

    def __init__(self, reasoner: Reasoner, max_tokens: int = 600):
        self.reasoner = reasoner
        self.max_tokens = max_tokens

    async def execute(self, inputs: ReportInput, ctx: StageContext) -> ReportPayload:
        ctx.start()
        ctx.think("Synthesizing stage outputs into the final report")
        try:
            raw = await self.reasoner.complete(
                _SYSTEM_PROMPT, build_prompt(inputs), self.max_tokens, ctx.usage
            )
            result = ReportPayload.model_validate(extract_json(raw))
        except Exception as e:
            return ctx.fall_back("REPORT_FALLBACK", e, build_fallback(inputs))
        return ctx.complete(result)
