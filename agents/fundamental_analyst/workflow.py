"""
Fundamental Analyst Agent.

Sends the fundamentals snapshot to Gemini for a valuation / growth read
against sector norms. Falls back to P/E thresholds when the LLM is unavailable.
"""
import json

from agents.base import Reasoner, StageContext
from libs.domain_models.analysis import FundamentalAnalysis
from libs.domain_models.market import FundamentalsSnapshot, MarketDataPayload
from libs.domain_models.recommendation import TradeSignal
from libs.json_utils import extract_json

SECTOR_AVERAGE_PE = 20.0

_SYSTEM_PROMPT = """
You are a CFA charterholder performing fundamental analysis.
Evaluate financial health objectively and benchmark against sector norms.
Only cite figures that appear in the provided data.
"""


def build_prompt(symbol: str, fundamentals: FundamentalsSnapshot) -> str:
    metrics = fundamentals.model_dump(exclude_none=True)
    return f"""
Stock: {symbol}
Metrics: {json.dumps(metrics, indent=2)}

Respond ONLY with valid JSON:
{{
  "metrics": {{"metric_name": number}},
  "sector_comparison": {{"pe_sector_avg": number, "pe_relative": "text"}},
  "valuation": "cheap" | "fairly valued" | "expensive",
  "growth_potential": "low" | "medium" | "high",
  "strengths": ["..."],
  "weaknesses": ["..."],
  "recommendation": "BUY" | "HOLD" | "SELL",
  "confidence": float 0.0-1.0,
  "reasoning": "2-4 sentences citing specific numbers",
  "score": number 0-10
}}
"""


def build_fallback(fundamentals: FundamentalsSnapshot) -> FundamentalAnalysis:
    metrics = fundamentals.model_dump(exclude={"sector", "industry"})
    # A missing P/E counts as 0, which lands in the cheap band
    pe = fundamentals.pe_ratio or 0
    valuation = "cheap" if pe < 15 else "fairly valued" if pe < 30 else "expensive"
    if pe == 0:
        relative = "n/a"
    else:
        relative = "below sector average" if pe < SECTOR_AVERAGE_PE else "above sector average"
    cheap = valuation == "cheap"
    return FundamentalAnalysis(
        metrics=metrics,
        sector_comparison={"pe_sector_avg": SECTOR_AVERAGE_PE, "pe_relative": relative},
        valuation=valuation,
        growth_potential="high" if (fundamentals.revenue_per_share or 0) > 0 else "medium",
        strengths=["Automated fallback insights"],
        weaknesses=["LLM unavailable"],
        recommendation=TradeSignal.BUY if cheap else TradeSignal.HOLD,
        confidence=0.55,
        reasoning="Fallback heuristic using P/E relative to sector average",
        score=7 if cheap else 6,
    )


class FundamentalAnalystAgent:
    name = "fundamental"

    def __init__(self, reasoner: Reasoner, max_tokens: int = 500):
        self.reasoner = reasoner
        self.max_tokens = max_tokens

    async def execute(self, data: MarketDataPayload, ctx: StageContext) -> FundamentalAnalysis:
        ctx.start()
        ctx.think("Interpreting key financial ratios")
        try:
            raw = await self.reasoner.complete(
                _SYSTEM_PROMPT, build_prompt(data.symbol, data.fundamentals),
                self.max_tokens, ctx.usage,
            )
            result = FundamentalAnalysis.model_validate(extract_json(raw))
        except Exception as e:
            return ctx.fall_back("FUNDAMENTAL_FALLBACK", e, build_fallback(data.fundamentals))
        return ctx.complete(result)
