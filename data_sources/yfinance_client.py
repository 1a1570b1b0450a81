"""
yfinance wrapper — price history and fundamentals snapshot.
Blocking calls; the async provider runs them in a worker thread.
"""
import warnings
warnings.filterwarnings("ignore")

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from libs.domain_models.candle import PriceBar
from libs.domain_models.market import FundamentalsSnapshot, PriceSnapshot
from libs.errors import ProviderError

PROVIDER = "yfinance"

US_INDICES = {
    "SPX": "^GSPC",
    "SP500": "^GSPC",
    "NASDAQ": "^IXIC",
    "DOW": "^DJI",
    "VIX": "^VIX",
}


def _to_yf_symbol(symbol: str) -> str:
    u = symbol.upper().strip()
    return US_INDICES.get(u, u)


def _rate_limited(e: Exception) -> ProviderError:
    return ProviderError(
        "RATE_LIMIT_EXCEEDED", f"Yahoo Finance rate limit reached: {e}",
        recoverable=True, provider=PROVIDER, status=429,
    )


def _optional(value):
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(number) else number


def get_price_snapshot(symbol: str, days: int = 180) -> PriceSnapshot:
    """Latest close, previous close and daily bars (returned oldest→newest by Yahoo)."""
    try:
        hist = yf.Ticker(_to_yf_symbol(symbol)).history(
            period=f"{days}d", interval="1d", auto_adjust=True
        )
    except YFRateLimitError as e:
        raise _rate_limited(e) from e
    except Exception as e:
        raise ProviderError("PRICE_FETCH_ERROR", str(e), recoverable=True, provider=PROVIDER) from e

    bars = [
        PriceBar(
            date=ts.date(),
            open=float(row["Open"]),
            high=float(row["High"]),
            low=float(row["Low"]),
            close=float(row["Close"]),
            volume=int(row.get("Volume", 0) or 0),
        )
        for ts, row in hist.iterrows()
        if not pd.isna(row["Close"])
    ]
    if not bars:
        raise ProviderError(
            "SYMBOL_NOT_FOUND", f"Unable to resolve symbol {symbol.upper()}",
            recoverable=True, provider=PROVIDER, status=404,
        )

    current = bars[-1].close
    previous = bars[-2].close if len(bars) > 1 else None
    change = current - previous if previous else None
    return PriceSnapshot(
        symbol=symbol.upper(),
        current_price=current,
        previous_close=previous,
        price_change=round(change, 4) if change is not None else None,
        price_change_percent=round(change / previous * 100, 4) if change is not None else None,
        historical_prices=bars,
    )


def get_fundamentals(symbol: str) -> FundamentalsSnapshot:
    """Key ratios + company profile."""
    try:
        info = yf.Ticker(_to_yf_symbol(symbol)).info or {}
    except YFRateLimitError as e:
        raise _rate_limited(e) from e
    except Exception as e:
        raise ProviderError("FUNDAMENTALS_FETCH_ERROR", str(e), recoverable=True, provider=PROVIDER) from e

    if len(info) <= 1:
        raise ProviderError(
            "DATA_UNAVAILABLE", f"Unable to load fundamentals for {symbol.upper()}",
            recoverable=True, provider=PROVIDER, status=404,
        )
    return FundamentalsSnapshot(
        market_cap=_optional(info.get("marketCap")),
        pe_ratio=_optional(info.get("trailingPE")),
        eps=_optional(info.get("trailingEps")),
        pb_ratio=_optional(info.get("priceToBook")),
        dividend_yield=_optional(info.get("dividendYield")),
        revenue_per_share=_optional(info.get("revenuePerShare")),
        profit_margin=_optional(info.get("profitMargins")),
        sector=info.get("sector"),
        industry=info.get("industry"),
        roe=_optional(info.get("returnOnEquity")),
        debt_to_equity=_optional(info.get("debtToEquity")),
        beta=_optional(info.get("beta")),
    )
