"""
Sentiment Watchdog Agent.

Scores the recent headlines in the market data payload with Gemini and
extracts themes, risks and catalysts.
"""
from agents.base import Reasoner, StageContext
from libs.domain_models.analysis import SentimentAnalysis
from libs.domain_models.market import MarketDataPayload, NewsHeadline
from libs.json_utils import extract_json

MAX_HEADLINES = 20

_SYSTEM_PROMPT = """
You evaluate financial news sentiment for a single stock.
Stay objective, score consistently, and identify catalysts and risks.
Base the score purely on the provided headlines; score 5 if news is mixed or irrelevant.
"""


def build_prompt(symbol: str, news: list[NewsHeadline]) -> str:
    formatted = "\n".join(
        f"- {item.title} ({item.source}, {item.published_at or 'date unknown'})"
        for item in news[:MAX_HEADLINES]
    )
    return f"""
Stock: {symbol}

News Headlines (most recent first):
{formatted}

Respond ONLY with valid JSON (no markdown):
{{
  "overall_sentiment": "positive" | "negative" | "neutral",
  "sentiment_score": number 0-10,
  "key_themes": ["..."],
  "risks": ["..."],
  "catalysts": ["..."],
  "market_mood": "fearful" | "cautious" | "neutral" | "optimistic" | "greedy",
  "news_count": number,
  "positive_count": number,
  "negative_count": number,
  "neutral_count": number,
  "reasoning": "one or two sentences",
  "score": number 0-10
}}
"""


def build_fallback(news: list[NewsHeadline]) -> SentimentAnalysis:
    count = len(news)
    positive = int(count * 0.3)
    negative = int(count * 0.2)
    return SentimentAnalysis(
        overall_sentiment="neutral",
        sentiment_score=5,
        key_themes=["Insufficient sentiment data"],
        risks=["Awaiting LLM insights"],
        catalysts=[],
        market_mood="neutral",
        news_count=count,
        positive_count=positive,
        negative_count=negative,
        neutral_count=count - positive - negative,
        reasoning="Fallback heuristic used",
        score=5,
    )


class SentimentWatchdogAgent:
    name = "sentiment"

    def __init__(self, reasoner: Reasoner, max_tokens: int = 400):
        self.reasoner = reasoner
        self.max_tokens = max_tokens

    async def execute(self, data: MarketDataPayload, ctx: StageContext) -> SentimentAnalysis:
        ctx.start()
        ctx.think("Reviewing latest news for sentiment signals")

        if not data.news:
            return ctx.complete(SentimentAnalysis(
                overall_sentiment="neutral",
                sentiment_score=5,
                key_themes=[],
                market_mood="neutral",
                reasoning=f"No recent news found for {data.symbol}.",
                score=5,
            ))

        try:
            raw = await self.reasoner.complete(
                _SYSTEM_PROMPT, build_prompt(data.symbol, data.news), self.max_tokens, ctx.usage
            )
            result = SentimentAnalysis.model_validate(extract_json(raw))
        except Exception as e:
            return ctx.fall_back("SENTIMENT_FALLBACK", e, build_fallback(data.news))
        return ctx.complete(result)
