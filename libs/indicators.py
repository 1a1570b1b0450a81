"""
Technical indicator calculations — pure numpy over PriceBar sequences.

Conventions:
  - Input bars are most-recent-first (MarketDataPayload guarantees this).
  - "Not enough history" is returned as None, never as a sentinel number.
  - Price-like outputs are rounded to 2 dp.

Indicators:
  - SMA(period)
  - RSI(14)
  - MACD(12, 26, 9) — line, signal, histogram
  - Bollinger Bands(20, 2σ)
  - Annualised volatility of log returns
  - Max drawdown (percent)
"""
from __future__ import annotations

import math
from typing import Optional, Sequence

import numpy as np

from libs.domain_models.analysis import BollingerBands, MACDValues
from libs.domain_models.candle import PriceBar

TRADING_DAYS = 252
MACD_MIN_BARS = 35


def _closes(bars: Sequence[PriceBar]) -> np.ndarray:
    return np.array([bar.close for bar in bars], dtype=float)


def _ema(values: np.ndarray, period: int) -> np.ndarray:
    """EMA seeded by the first value: ema[i] = v*k + ema[i-1]*(1-k)."""
    k = 2.0 / (period + 1)
    out = np.empty_like(values)
    out[0] = values[0]
    for i in range(1, len(values)):
        out[i] = values[i] * k + out[i - 1] * (1 - k)
    return out


def calculate_sma(bars: Sequence[PriceBar], period: int) -> Optional[float]:
    if period <= 0 or len(bars) < period:
        return None
    return round(float(np.mean(_closes(bars)[:period])), 2)


def calculate_rsi(bars: Sequence[PriceBar], period: int = 14) -> Optional[float]:
    if len(bars) <= period:
        return None
    closes = _closes(bars)
    # closes[i-1] is the later bar, so a positive change is a gain
    changes = closes[:period] - closes[1:period + 1]
    avg_gain = changes[changes > 0].sum() / period
    avg_loss = -changes[changes < 0].sum() / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return round(float(100 - 100 / (1 + rs)), 2)


def calculate_macd(bars: Sequence[PriceBar]) -> Optional[MACDValues]:
    if len(bars) < MACD_MIN_BARS:
        return None
    chronological = _closes(bars)[::-1]
    macd_line = _ema(chronological, 12) - _ema(chronological, 26)
    signal_line = _ema(macd_line, min(9, len(macd_line)))
    return MACDValues(
        macd=round(float(macd_line[-1]), 2),
        signal=round(float(signal_line[-1]), 2),
        histogram=round(float(macd_line[-1] - signal_line[-1]), 2),
    )


def calculate_bollinger_bands(
    bars: Sequence[PriceBar],
    period: int = 20,
    multiplier: float = 2,
) -> Optional[BollingerBands]:
    if period <= 0 or len(bars) < period:
        return None
    window = _closes(bars)[:period]
    mean = float(np.mean(window))
    std = float(np.std(window))  # population std
    return BollingerBands(
        upper=round(mean + multiplier * std, 2),
        middle=round(mean, 2),
        lower=round(mean - multiplier * std, 2),
    )


def calculate_volatility(bars: Sequence[PriceBar]) -> float:
    """Annualised sample std of log returns. 0.0 when it cannot be estimated."""
    if len(bars) < 2:
        return 0.0
    closes = _closes(bars)
    if np.any(closes <= 0):
        raise ValueError("closes must be positive to compute log returns")
    returns = np.diff(np.log(closes[::-1]))
    if len(returns) < 2:
        return 0.0
    return float(np.std(returns, ddof=1) * math.sqrt(TRADING_DAYS))


def calculate_max_drawdown(bars: Sequence[PriceBar]) -> float:
    """Largest peak-to-trough decline, in percent. Independent of input order."""
    chronological = sorted(bars, key=lambda bar: bar.date)
    peak = -math.inf
    max_drawdown = 0.0
    for bar in chronological:
        if bar.close > peak:
            peak = bar.close
        if peak > 0:
            drawdown = (bar.close - peak) / peak
            if drawdown < max_drawdown:
                max_drawdown = drawdown
    return round(abs(max_drawdown) * 100, 2)
