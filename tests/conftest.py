"""
pytest configuration for the stock analysis test suite.

Marks:
  @pytest.mark.unit    — fast, no network, no LLM
  @pytest.mark.llm     — requires a working GEMINI_API_KEY
  @pytest.mark.slow    — spins the full server; takes 1-3 min

Run subsets:
  pytest tests/ -m unit              # fast unit tests only (~5s)
  pytest tests/ -m "unit or slow"    # all tests including server tests
  pytest tests/ -m llm               # LLM-dependent tests only

Shared stubs live here: canned / failing reasoners and an in-memory
market data provider.
"""
import asyncio
import os
import sys
from datetime import date, timedelta

import pytest
from langchain_core.messages import SystemMessage

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from libs.config import Settings
from libs.domain_models.candle import PriceBar
from libs.domain_models.market import (
    FundamentalsSnapshot,
    MarketDataPayload,
    NewsHeadline,
    PriceSnapshot,
)
from libs.errors import ProviderError
from libs.llm import FakeLLM


def pytest_addoption(parser):
    parser.addoption(
        "--skip-llm", action="store_true", default=False,
        help="Skip tests that require a Gemini API key"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast unit tests, no network or LLM")
    config.addinivalue_line("markers", "llm: requires GEMINI_API_KEY with available quota")
    config.addinivalue_line("markers", "slow: starts the full FastAPI server")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--skip-llm"):
        skip_llm = pytest.mark.skip(reason="--skip-llm passed")
        for item in items:
            if "llm" in item.keywords:
                item.add_marker(skip_llm)


# ─── Builders ─────────────────────────────────────────────────────────────

def make_bars(closes: list[float], end: date = date(2024, 6, 28)) -> list[PriceBar]:
    """Bars from chronological closes; the last close is the most recent bar."""
    n = len(closes)
    return [
        PriceBar(date=end - timedelta(days=n - 1 - i), open=c, high=c + 1, low=c - 1, close=c,
                 volume=1_000_000)
        for i, c in enumerate(closes)
    ]


def rising_closes(n: int = 30, start: float = 100.0, step: float = 1.0) -> list[float]:
    return [start + i * step for i in range(n)]


def make_headlines(n: int) -> list[NewsHeadline]:
    return [NewsHeadline(title=f"Headline {i}", source="Test Wire") for i in range(n)]


def make_payload(
    closes: list[float] | None = None,
    fundamentals: FundamentalsSnapshot | None = None,
    news: list[NewsHeadline] | None = None,
    symbol: str = "TEST",
) -> MarketDataPayload:
    closes = rising_closes() if closes is None else closes
    return MarketDataPayload(
        symbol=symbol,
        current_price=closes[-1] if closes else 100.0,
        previous_close=closes[-2] if len(closes) > 1 else None,
        historical_prices=make_bars(closes),
        fundamentals=fundamentals or FundamentalsSnapshot(),
        news=news if news is not None else make_headlines(5),
    )


def build_settings(**overrides) -> Settings:
    values = dict(
        mock_llm=True,
        mock_market_data=True,
        llm_min_interval_seconds=0.0,
        llm_rate_limit_cooldown_seconds=0.0,
        llm_retry_delay_seconds=0.0,
        llm_max_retries=2,
    )
    values.update(overrides)
    return Settings(**values)


# ─── Stubs ────────────────────────────────────────────────────────────────

_MARKERS = ("synthesize", "technical", "fundamental", "sentiment")


def stage_of(system_prompt: str) -> str:
    lowered = system_prompt.lower()
    return next((m for m in _MARKERS if m in lowered), "unknown")


class CannedReasoner:
    """Answers with FakeLLM payloads; optional per-stage delays and failures."""

    def __init__(self, delays: dict | None = None, fail: set | None = None):
        self.delays = delays or {}
        self.fail = fail or set()
        self.calls: list[str] = []

    async def complete(self, system_prompt, user_prompt, max_tokens=500, usage=None):
        stage = stage_of(system_prompt)
        self.calls.append(stage)
        await asyncio.sleep(self.delays.get(stage, 0))
        if stage in self.fail:
            raise ProviderError("LLM_PROVIDER_ERROR", f"{stage} unavailable")
        response = await FakeLLM().ainvoke([SystemMessage(content=system_prompt)])
        if usage is not None:
            usage.record(100, 50)
        return response.content


class FailingReasoner:
    def __init__(self, code: str = "LLM_PROVIDER_ERROR"):
        self.code = code
        self.calls = 0

    async def complete(self, system_prompt, user_prompt, max_tokens=500, usage=None):
        self.calls += 1
        raise ProviderError(self.code, "reasoning provider unavailable")


class TextReasoner:
    """Returns the same raw text for every call."""

    def __init__(self, text: str):
        self.text = text
        self.calls = 0

    async def complete(self, system_prompt, user_prompt, max_tokens=500, usage=None):
        self.calls += 1
        return self.text


class InMemoryProvider:
    def __init__(
        self,
        closes: list[float] | None = None,
        fundamentals: FundamentalsSnapshot | None = None,
        news: list[NewsHeadline] | None = None,
        errors: dict | None = None,
    ):
        self.closes = rising_closes() if closes is None else closes
        self.fundamentals = fundamentals or FundamentalsSnapshot(pe_ratio=12.0, beta=1.1)
        self.news = make_headlines(5) if news is None else news
        self.errors = errors or {}
        self.calls: list[str] = []

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]

    async def fetch_price(self, symbol):
        self._maybe_fail("price")
        return PriceSnapshot(
            symbol=symbol,
            current_price=self.closes[-1],
            previous_close=self.closes[-2] if len(self.closes) > 1 else None,
            historical_prices=make_bars(self.closes),
        )

    async def fetch_fundamentals(self, symbol):
        self._maybe_fail("fundamentals")
        return self.fundamentals

    async def fetch_news(self, symbol, days=7):
        self._maybe_fail("news")
        return list(self.news)


@pytest.fixture
def settings():
    return build_settings()


@pytest.fixture
def payload():
    return make_payload()
