from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from libs.domain_models.candle import PriceBar, normalize_bars


class NewsHeadline(BaseModel):
    """A single news article headline."""
    model_config = ConfigDict(frozen=True)

    title: str
    source: str
    published_at: Optional[str] = None
    url: Optional[str] = None
    sentiment: Optional[Literal["positive", "neutral", "negative"]] = None


class FundamentalsSnapshot(BaseModel):
    """Ratios and company profile, every field optional (providers are patchy)."""
    model_config = ConfigDict(frozen=True)

    market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None
    eps: Optional[float] = None
    pb_ratio: Optional[float] = None
    dividend_yield: Optional[float] = None
    revenue_per_share: Optional[float] = None
    profit_margin: Optional[float] = None
    sector: Optional[str] = None
    industry: Optional[str] = None
    roe: Optional[float] = None
    debt_to_equity: Optional[float] = None
    beta: Optional[float] = None


class PriceSnapshot(BaseModel):
    """Quote plus daily history as returned by a price provider."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    current_price: float
    previous_close: Optional[float] = None
    price_change: Optional[float] = None
    price_change_percent: Optional[float] = None
    historical_prices: list[PriceBar] = Field(default_factory=list)


class MarketDataPayload(BaseModel):
    """
    Shared input for every downstream stage.

    Built once per run by the Market Data stage. Bars are always stored
    most-recent-first.
    """
    model_config = ConfigDict(frozen=True)

    symbol: str
    current_price: float
    previous_close: Optional[float] = None
    price_change: Optional[float] = None
    price_change_percent: Optional[float] = None
    historical_prices: list[PriceBar] = Field(default_factory=list)
    fundamentals: FundamentalsSnapshot = Field(default_factory=FundamentalsSnapshot)
    news: list[NewsHeadline] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("historical_prices")
    @classmethod
    def _most_recent_first(cls, bars: list[PriceBar]) -> list[PriceBar]:
        return normalize_bars(bars)
