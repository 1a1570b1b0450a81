"""
Reasoning collaborator: Gemini via langchain, behind an admission queue.

  get_llm()         → chat model (FakeLLM when MOCK_LLM=true)
  AdmissionQueue    → one request in flight, FIFO, min spacing, bounded depth
  ReasoningClient   → complete(system, user, max_tokens, usage) -> text
                      with rate-limit cooldown retries and per-run accounting
"""
from __future__ import annotations

import asyncio
import json
import time
from typing import Awaitable, Callable, Optional, TypeVar

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
    wait_incrementing,
)

from libs.config import Settings, get_settings
from libs.domain_models.recommendation import LLMUsage
from libs.errors import ProviderError
from libs.log import get_logger

T = TypeVar("T")

log = get_logger(__name__)

PROVIDER = "gemini"

# USD per 1M tokens (input, output), approximate list prices
_PRICING = {
    "gemini-2.0-flash-lite": (0.075, 0.30),
    "gemini-2.0-flash": (0.10, 0.40),
    "gemini-2.5-flash": (0.30, 2.50),
}


class MockResponse:
    def __init__(self, content: str, usage_metadata: Optional[dict] = None):
        self.content = content
        self.usage_metadata = usage_metadata


class FakeLLM:
    """Offline stand-in for the chat model. Answers by recognising the stage prompt."""

    _RESPONSES = {
        "synthesize": {
            "final_recommendation": "BUY",
            "overall_confidence": 0.8,
            "composite_score": 7.6,
            "executive_summary": "Mock report: constructive technical and fundamental picture.",
            "agent_consensus": {"agreement": "high", "conflicting_agents": [], "consensus": "BUY"},
            "key_insights": ["Strong technical momentum", "Reasonable valuation", "Positive news flow"],
            "action_items": ["Scale into a position", "Respect the stop-loss"],
            "full_report": "# Investment Analysis Report\n\n## Summary\nMock report generated offline.",
        },
        "technical": {
            "trend": "bullish",
            "trend_strength": "strong",
            "signals": ["Price above SMA20", "MACD above signal"],
            "support": [145.5, 142.0],
            "resistance": [155.0, 160.0],
            "recommendation": "BUY",
            "confidence": 0.8,
            "reasoning": "Mock technical analysis: momentum is positive.",
            "score": 8,
        },
        "fundamental": {
            "metrics": {"pe_ratio": 15.5, "pb_ratio": 2.1},
            "sector_comparison": {"pe_sector_avg": 18.0, "pe_relative": "below sector average"},
            "valuation": "fairly valued",
            "growth_potential": "high",
            "strengths": ["Healthy margins"],
            "weaknesses": ["Competitive market"],
            "recommendation": "BUY",
            "confidence": 0.75,
            "reasoning": "Mock fundamental analysis.",
            "score": 7.5,
        },
        "sentiment": {
            "overall_sentiment": "positive",
            "sentiment_score": 7.5,
            "key_themes": ["Growth"],
            "risks": ["Regulation"],
            "catalysts": ["Product launch"],
            "market_mood": "optimistic",
            "news_count": 3,
            "positive_count": 2,
            "negative_count": 0,
            "neutral_count": 1,
            "reasoning": "Mock sentiment analysis.",
            "score": 7.5,
        },
    }

    async def ainvoke(self, messages, **kwargs) -> MockResponse:
        system = str(messages[0].content).lower() if messages else ""
        for marker, payload in self._RESPONSES.items():
            if marker in system:
                content = json.dumps(payload)
                break
        else:
            content = json.dumps({"analysis": "Generic mock response."})
        return MockResponse(
            content,
            usage_metadata={"input_tokens": 100, "output_tokens": 50, "total_tokens": 150},
        )


def get_llm(
    temperature: float = 0.2,
    max_tokens: int = 500,
    settings: Optional[Settings] = None,
):
    """
    Return the chat model used for reasoning calls.
    Override the model with GEMINI_MODEL; MOCK_LLM=true returns FakeLLM.
    """
    settings = settings or get_settings()
    if settings.mock_llm:
        return FakeLLM()
    if not settings.gemini_api_key:
        raise ProviderError(
            "MISSING_API_KEY", "GEMINI_API_KEY is not configured.",
            recoverable=False, provider=PROVIDER,
        )
    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        temperature=temperature,
        max_output_tokens=max_tokens,
        google_api_key=settings.gemini_api_key,
        max_retries=2,
    )


_RATE_LIMIT_TYPES = {"ResourceExhausted", "TooManyRequests", "RateLimitError"}
_RATE_LIMIT_TEXT = ("resource_exhausted", "rate limit exceeded", "too many requests")


def _is_rate_limit(exc: Exception) -> bool:
    if any(cls.__name__ in _RATE_LIMIT_TYPES for cls in type(exc).__mro__):
        return True
    for attr in ("code", "status_code", "status"):
        value = getattr(exc, attr, None)
        if value is not None and str(getattr(value, "value", value)) in ("429", "RESOURCE_EXHAUSTED"):
            return True
    # Last resort for wrapped errors that lost their status
    text = str(exc).lower()
    return any(marker in text for marker in _RATE_LIMIT_TEXT)


def _classify(exc: Exception) -> ProviderError:
    if _is_rate_limit(exc):
        return ProviderError(
            "RATE_LIMIT_EXCEEDED", str(exc) or "Rate limit reached",
            recoverable=True, provider=PROVIDER, status=429,
        )
    return ProviderError(
        "LLM_PROVIDER_ERROR", str(exc) or type(exc).__name__,
        recoverable=True, provider=PROVIDER,
    )


def _message_text(message) -> str:
    content = getattr(message, "content", "")
    if isinstance(content, list):
        # Multi-part responses: keep the text parts only
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        content = "".join(parts)
    return str(content or "").strip()


class AdmissionQueue:
    """
    Admission control for the reasoning provider.

    One ticket in flight at a time, granted in FIFO order, with at least
    `min_interval` seconds between requests. At most `max_queue` callers may be
    waiting or running; the next one is rejected with LLM_QUEUE_FULL.
    """

    def __init__(self, min_interval: float = 0.0, max_queue: int = 8):
        self.min_interval = min_interval
        self.max_queue = max_queue
        self._pending = 0
        self._last_request_at: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def pending(self) -> int:
        return self._pending

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        return self._lock

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        if self._pending >= self.max_queue:
            raise ProviderError(
                "LLM_QUEUE_FULL", "Too many AI requests running. Please try again shortly.",
                recoverable=True, provider=PROVIDER, status=429,
            )
        self._pending += 1
        try:
            async with self._get_lock():
                if self._last_request_at is not None:
                    wait = self.min_interval - (time.monotonic() - self._last_request_at)
                    if wait > 0:
                        await asyncio.sleep(wait)
                try:
                    return await task()
                finally:
                    self._last_request_at = time.monotonic()
        finally:
            self._pending -= 1


class ReasoningClient:
    """The only path from stages to the language model."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        llm_factory: Optional[Callable[[int], object]] = None,
        queue: Optional[AdmissionQueue] = None,
    ):
        self.settings = settings or get_settings()
        self._llm_factory = llm_factory or (
            lambda max_tokens: get_llm(self.settings.llm_temperature, max_tokens, self.settings)
        )
        self.queue = queue or AdmissionQueue(
            min_interval=self.settings.llm_min_interval_seconds,
            max_queue=self.settings.llm_max_queue,
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 500,
        usage: Optional[LLMUsage] = None,
    ) -> str:
        llm = self._llm_factory(max_tokens)
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        async def invoke():
            log.debug("llm_dispatch", max_tokens=max_tokens, pending=self.queue.pending)
            try:
                return await llm.ainvoke(messages)
            except ProviderError:
                raise
            except Exception as e:
                raise _classify(e) from e

        started = time.monotonic()
        retrying = AsyncRetrying(
            retry=retry_if_exception(lambda e: isinstance(e, ProviderError) and e.is_rate_limit),
            wait=wait_incrementing(
                start=self.settings.llm_retry_delay_seconds,
                increment=self.settings.llm_retry_delay_seconds,
            ) + wait_fixed(self.settings.llm_rate_limit_cooldown_seconds),
            stop=stop_after_attempt(self.settings.llm_max_retries + 1),
            before_sleep=lambda state: log.warning(
                "llm_rate_limited", attempt=state.attempt_number,
            ),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self.queue.run(invoke)

        if usage is not None:
            self._record_usage(usage, response)
        log.info("llm_success", duration_ms=int((time.monotonic() - started) * 1000))
        return _message_text(response)

    def _record_usage(self, usage: LLMUsage, response) -> None:
        meta = getattr(response, "usage_metadata", None) or {}
        prompt_tokens = int(meta.get("input_tokens", 0))
        completion_tokens = int(meta.get("output_tokens", 0))
        price_in, price_out = _PRICING.get(self.settings.gemini_model, (0.0, 0.0))
        cost = (prompt_tokens * price_in + completion_tokens * price_out) / 1_000_000
        usage.record(prompt_tokens, completion_tokens, cost)
