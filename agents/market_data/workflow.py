"""
Market Data Agent.

Fetches price history, fundamentals and news concurrently and assembles the
MarketDataPayload every later stage reads. Any failed sub-fetch fails the
stage; there is no fallback because nothing downstream has valid input.
"""
import asyncio

from agents.base import StageContext, describe
from data_sources import MarketDataProvider
from libs.domain_models.market import MarketDataPayload
from libs.errors import ProviderError, StageError
from libs.log import get_logger

log = get_logger(__name__)


class MarketDataAgent:
    name = "marketData"

    def __init__(self, provider: MarketDataProvider, news_days: int = 7):
        self.provider = provider
        self.news_days = news_days

    async def execute(self, symbol: str, ctx: StageContext) -> MarketDataPayload:
        ctx.start()
        symbol = symbol.upper().strip()
        ctx.think(f"Collecting price, fundamentals, and news for {symbol}")

        price, fundamentals, news = await asyncio.gather(
            self.provider.fetch_price(symbol),
            self.provider.fetch_fundamentals(symbol),
            self.provider.fetch_news(symbol, self.news_days),
            return_exceptions=True,
        )
        for outcome in (price, fundamentals, news):
            if isinstance(outcome, BaseException):
                classified = isinstance(outcome, ProviderError)
                code = outcome.code if classified else "MARKET_DATA_ERROR"
                # Fatal for this run; recoverable only tells the caller a retry may work
                recoverable = outcome.recoverable if classified else True
                error = ctx.fail(code, describe(outcome), recoverable=recoverable)
                raise StageError(error) from outcome

        payload = MarketDataPayload(
            symbol=symbol,
            current_price=price.current_price,
            previous_close=price.previous_close,
            price_change=price.price_change,
            price_change_percent=price.price_change_percent,
            historical_prices=price.historical_prices,
            fundamentals=fundamentals,
            news=news,
        )
        log.info("market_data_ready", symbol=symbol,
                 bars=len(payload.historical_prices), headlines=len(payload.news))
        return ctx.complete(payload)
