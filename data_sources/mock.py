"""
Deterministic offline market data (MOCK_MARKET_DATA=true).
Values are derived from the symbol so repeated runs agree.
"""
import math
from datetime import date, datetime, timedelta, timezone

from libs.domain_models.candle import PriceBar
from libs.domain_models.market import FundamentalsSnapshot, NewsHeadline, PriceSnapshot


def _seed(symbol: str) -> int:
    return sum(ord(c) for c in symbol.upper())


class MockMarketData:

    def __init__(self, bars: int = 30):
        self.bars = bars

    async def fetch_price(self, symbol: str) -> PriceSnapshot:
        seed = _seed(symbol)
        base = 100 + seed % 200
        change = seed % 10 - 5
        today = date.today()
        history = []
        for i in range(self.bars):
            swing = math.sin(i + seed) * 5
            close = base + swing - i * 0.5
            open_ = close - swing * 0.2
            history.append(PriceBar(
                date=today - timedelta(days=i),
                open=round(open_, 2),
                high=round(max(open_, close) + 1, 2),
                low=round(min(open_, close) - 1, 2),
                close=round(close, 2),
                volume=1_000_000 + seed * 1000 + i * 5000,
            ))
        return PriceSnapshot(
            symbol=symbol.upper(),
            current_price=float(base),
            previous_close=float(base - change),
            price_change=float(change),
            price_change_percent=change / base * 100,
            historical_prices=history,
        )

    async def fetch_fundamentals(self, symbol: str) -> FundamentalsSnapshot:
        return FundamentalsSnapshot(
            market_cap=2.5e12, pe_ratio=28.5, eps=6.4, beta=1.2,
            sector="Technology", industry="Consumer Electronics",
        )

    async def fetch_news(self, symbol: str, days: int = 7) -> list[NewsHeadline]:
        now = datetime.now(timezone.utc)
        sym = symbol.upper()
        return [
            NewsHeadline(title=f"{sym} Reports Strong Quarterly Earnings",
                         source="Mock Financial News", published_at=now.isoformat()),
            NewsHeadline(title=f"Analysts Upgrade {sym} to Buy",
                         source="Market Watcher", published_at=(now - timedelta(days=1)).isoformat()),
            NewsHeadline(title=f"New Product Launch Expected from {sym}",
                         source="Tech Daily", published_at=(now - timedelta(days=2)).isoformat()),
        ]
