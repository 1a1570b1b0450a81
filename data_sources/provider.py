"""
Market data collaborators as seen by the Market Data stage.
"""
import asyncio
from typing import Optional, Protocol

from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from data_sources import rss_scraper, yfinance_client
from libs.config import Settings, get_settings
from libs.domain_models.market import FundamentalsSnapshot, NewsHeadline, PriceSnapshot
from libs.errors import ProviderError
from libs.log import get_logger

log = get_logger(__name__)

# Retrying these would only repeat the same answer
_PERMANENT = {"SYMBOL_NOT_FOUND", "DATA_UNAVAILABLE", "MISSING_API_KEY"}


class MarketDataProvider(Protocol):
    async def fetch_price(self, symbol: str) -> PriceSnapshot: ...

    async def fetch_fundamentals(self, symbol: str) -> FundamentalsSnapshot: ...

    async def fetch_news(self, symbol: str, days: int = 7) -> list[NewsHeadline]: ...


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.recoverable and exc.code not in _PERMANENT


def _log_retry(state) -> None:
    log.warning("market_data_retry", attempt=state.attempt_number,
                error=repr(state.outcome.exception()))


_provider_retry = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
    before_sleep=_log_retry,
    reraise=True,
)


class YahooMarketData:
    """Yahoo Finance prices/fundamentals + Yahoo RSS headlines."""

    def __init__(self, history_days: int = 180):
        self.history_days = history_days

    @_provider_retry
    async def fetch_price(self, symbol: str) -> PriceSnapshot:
        return await asyncio.to_thread(yfinance_client.get_price_snapshot, symbol, self.history_days)

    @_provider_retry
    async def fetch_fundamentals(self, symbol: str) -> FundamentalsSnapshot:
        return await asyncio.to_thread(yfinance_client.get_fundamentals, symbol)

    @_provider_retry
    async def fetch_news(self, symbol: str, days: int = 7) -> list[NewsHeadline]:
        return await asyncio.to_thread(rss_scraper.fetch_headlines, symbol, days)


def get_market_data_provider(settings: Optional[Settings] = None) -> MarketDataProvider:
    settings = settings or get_settings()
    if settings.mock_market_data:
        from data_sources.mock import MockMarketData
        return MockMarketData()
    return YahooMarketData(history_days=settings.history_days)
