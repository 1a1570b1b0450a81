"""
Stage-level tests. Each stage is run with stub reasoners, no network.
Run with:  pytest tests/test_agents.py -v
"""
import asyncio

import pytest

from conftest import (
    CannedReasoner,
    FailingReasoner,
    TextReasoner,
    InMemoryProvider,
    make_headlines,
    make_payload,
    rising_closes,
)

pytestmark = pytest.mark.unit


def run_stage(agent, value):
    from agents.base import StageContext
    ctx = StageContext(agent.name)
    result = asyncio.run(agent.execute(value, ctx))
    return result, ctx


# ─── Market Data ──────────────────────────────────────────────────────────

class TestMarketDataAgent:

    def test_assembles_payload(self):
        from agents.market_data.workflow import MarketDataAgent
        provider = InMemoryProvider()
        result, ctx = run_stage(MarketDataAgent(provider), " test ")
        assert ctx.status == "completed"
        assert result.symbol == "TEST"
        assert result.current_price == provider.closes[-1]
        assert result.historical_prices[0].close == provider.closes[-1]
        assert len(result.news) == 5
        assert sorted(provider.calls) == ["fundamentals", "news", "price"]

    @pytest.mark.parametrize("failing", ["price", "fundamentals", "news"])
    def test_any_failed_fetch_fails_the_stage(self, failing):
        from agents.market_data.workflow import MarketDataAgent
        from libs.errors import ProviderError, StageError
        provider = InMemoryProvider(errors={failing: ProviderError("DATA_UNAVAILABLE", "gone")})
        with pytest.raises(StageError) as exc:
            run_stage(MarketDataAgent(provider), "TEST")
        assert exc.value.code == "DATA_UNAVAILABLE"
        assert exc.value.error.agent_name == "marketData"

    def test_unclassified_error_gets_generic_code(self):
        from agents.market_data.workflow import MarketDataAgent
        from libs.errors import StageError
        provider = InMemoryProvider(errors={"price": RuntimeError("socket closed")})
        with pytest.raises(StageError) as exc:
            run_stage(MarketDataAgent(provider), "TEST")
        assert exc.value.code == "MARKET_DATA_ERROR"
        assert "socket closed" in exc.value.error.message


# ─── Technical ────────────────────────────────────────────────────────────

class TestTechnicalAnalyst:

    def test_llm_result_keeps_local_indicators(self):
        from agents.technical_analyst.workflow import TechnicalAnalystAgent
        payload = make_payload(closes=rising_closes(60))
        result, ctx = run_stage(TechnicalAnalystAgent(CannedReasoner()), payload)
        assert ctx.status == "completed"
        assert result.trend == "bullish"
        assert result.score == 8
        assert result.indicators.sma50 is not None
        assert result.indicators.sma200 is None

    def test_fallback_without_sma50_holds(self, payload):
        from agents.technical_analyst.workflow import TechnicalAnalystAgent
        result, ctx = run_stage(TechnicalAnalystAgent(FailingReasoner()), payload)
        assert ctx.status == "error"
        assert ctx.error.code == "TECH_ANALYSIS_FALLBACK"
        assert ctx.error.recoverable
        assert result.recommendation == "HOLD"
        assert result.trend == "neutral"
        assert result.score == 5
        assert result.confidence == 0.6
        assert result.support == [payload.historical_prices[0].close]
        assert result.resistance == [round(payload.current_price * 1.05, 2)]

    def test_fallback_above_sma50_buys(self):
        from agents.technical_analyst.workflow import TechnicalAnalystAgent
        payload = make_payload(closes=rising_closes(60))
        result, _ = run_stage(TechnicalAnalystAgent(FailingReasoner()), payload)
        assert result.recommendation == "BUY"
        assert result.trend == "bullish"
        assert result.score == 7

    def test_unparseable_response_falls_back(self, payload):
        from agents.technical_analyst.workflow import TechnicalAnalystAgent
        result, ctx = run_stage(TechnicalAnalystAgent(TextReasoner("The trend looks fine.")), payload)
        assert ctx.status == "error"
        assert result.score == 5

    def test_schema_violation_falls_back(self, payload):
        from agents.technical_analyst.workflow import TechnicalAnalystAgent
        reasoner = TextReasoner('{"trend": "sideways", "trend_strength": "weak", '
                                '"recommendation": "BUY", "score": 6}')
        result, ctx = run_stage(TechnicalAnalystAgent(reasoner), payload)
        assert ctx.status == "error"
        assert result.trend == "neutral"


# ─── Fundamental ──────────────────────────────────────────────────────────

class TestFundamentalAnalyst:

    def _payload(self, **fundamentals):
        from libs.domain_models.market import FundamentalsSnapshot
        return make_payload(fundamentals=FundamentalsSnapshot(**fundamentals))

    def test_llm_result(self):
        from agents.fundamental_analyst.workflow import FundamentalAnalystAgent
        result, ctx = run_stage(FundamentalAnalystAgent(CannedReasoner()), self._payload(pe_ratio=15.5))
        assert ctx.status == "completed"
        assert result.score == 7.5
        assert result.growth_potential == "high"

    @pytest.mark.parametrize("pe, valuation, signal, score, relative", [
        (12.0, "cheap", "BUY", 7, "below sector average"),
        (25.0, "fairly valued", "HOLD", 6, "above sector average"),
        (45.0, "expensive", "HOLD", 6, "above sector average"),
        (None, "cheap", "BUY", 7, "n/a"),
        (0.0, "cheap", "BUY", 7, "n/a"),
        (-8.0, "cheap", "BUY", 7, "below sector average"),
    ])
    def test_fallback_pe_thresholds(self, pe, valuation, signal, score, relative):
        from agents.fundamental_analyst.workflow import FundamentalAnalystAgent
        result, ctx = run_stage(FundamentalAnalystAgent(FailingReasoner()), self._payload(pe_ratio=pe))
        assert ctx.error.code == "FUNDAMENTAL_FALLBACK"
        assert result.valuation == valuation
        assert result.recommendation == signal
        assert result.score == score
        assert result.confidence == 0.55
        assert result.sector_comparison["pe_sector_avg"] == 20
        assert result.sector_comparison["pe_relative"] == relative

    def test_fallback_growth_from_revenue(self):
        from agents.fundamental_analyst.workflow import FundamentalAnalystAgent
        agent = FundamentalAnalystAgent(FailingReasoner())
        with_revenue, _ = run_stage(agent, self._payload(revenue_per_share=12.0))
        without, _ = run_stage(agent, self._payload())
        assert with_revenue.growth_potential == "high"
        assert without.growth_potential == "medium"


# ─── Sentiment ────────────────────────────────────────────────────────────

class TestSentimentWatchdog:

    def test_llm_result(self, payload):
        from agents.sentiment_watchdog.workflow import SentimentWatchdogAgent
        result, ctx = run_stage(SentimentWatchdogAgent(CannedReasoner()), payload)
        assert ctx.status == "completed"
        assert result.overall_sentiment == "positive"

    def test_no_news_skips_llm(self):
        from agents.sentiment_watchdog.workflow import SentimentWatchdogAgent
        reasoner = FailingReasoner()
        result, ctx = run_stage(SentimentWatchdogAgent(reasoner), make_payload(news=[]))
        assert reasoner.calls == 0
        assert ctx.status == "completed"
        assert result.overall_sentiment == "neutral"
        assert result.news_count == 0

    @pytest.mark.parametrize("n, positive, negative, neutral", [
        (10, 3, 2, 5),
        (7, 2, 1, 4),
        (1, 0, 0, 1),
    ])
    def test_fallback_counts(self, n, positive, negative, neutral):
        from agents.sentiment_watchdog.workflow import SentimentWatchdogAgent
        result, ctx = run_stage(SentimentWatchdogAgent(FailingReasoner()),
                                make_payload(news=make_headlines(n)))
        assert ctx.error.code == "SENTIMENT_FALLBACK"
        assert (result.positive_count, result.negative_count, result.neutral_count) == \
            (positive, negative, neutral)
        assert result.news_count == n
        assert result.sentiment_score == 5
        assert result.score == 5

    def test_prompt_caps_headlines(self):
        from agents.sentiment_watchdog.workflow import MAX_HEADLINES, build_prompt
        prompt = build_prompt("TEST", make_headlines(30))
        assert "Headline 19" in prompt
        assert "Headline 20" not in prompt
        assert MAX_HEADLINES == 20


# ─── Risk ─────────────────────────────────────────────────────────────────

def _sentiment(overall="neutral"):
    from libs.domain_models.analysis import SentimentAnalysis
    return SentimentAnalysis(overall_sentiment=overall, sentiment_score=5, score=5)


class TestRiskAssessor:

    def test_calm_uptrend_is_low_risk(self, payload):
        from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput
        result, ctx = run_stage(RiskAssessorAgent(), RiskInput(payload, None, _sentiment()))
        assert ctx.status == "completed"
        assert result.risk_level == "low"
        assert result.recommended_position_size == "8% of portfolio"
        assert result.score == pytest.approx(10 - result.risk_score, abs=0.01)
        assert result.stop_loss_level == pytest.approx(payload.current_price * 0.9, abs=0.01)

    def test_negative_sentiment_adds_penalty(self, payload):
        from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput
        agent = RiskAssessorAgent()
        calm = agent.assess(RiskInput(payload, None, _sentiment("neutral")))
        worried = agent.assess(RiskInput(payload, None, _sentiment("negative")))
        assert worried.risk_score == pytest.approx(calm.risk_score + 1.0, abs=0.01)
        assert "Negative news sentiment" in worried.key_risks

    def test_volatile_series_is_high_risk_and_capped(self):
        from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput
        closes = [100 if i % 2 else 60 for i in range(30)]
        result = RiskAssessorAgent().assess(RiskInput(make_payload(closes=closes)))
        assert result.risk_score == 10
        assert result.risk_level == "high"
        assert result.recommended_position_size == "2% of portfolio"
        assert result.score == 0

    def test_policy_weights_are_tunable(self, payload):
        from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput, RiskPolicy
        policy = RiskPolicy(volatility_weight=0, drawdown_weight=0, negative_sentiment_penalty=5)
        result = RiskAssessorAgent(policy).assess(RiskInput(payload, None, _sentiment("negative")))
        assert result.risk_score == 5
        assert result.risk_level == "medium"

    @pytest.mark.parametrize("price, support, expected", [
        (110, [95, 105, 120], 105),
        (110, [120, 130], 120),
        (110, [], 99),
    ])
    def test_stop_loss(self, price, support, expected):
        from agents.risk_assessor.workflow import stop_loss
        assert stop_loss(price, support, 0.9) == expected

    @pytest.mark.parametrize("score, level", [(7.5, "high"), (7, "medium"), (4.1, "medium"), (4, "low")])
    def test_levels(self, score, level):
        from agents.risk_assessor.workflow import risk_level
        assert risk_level(score) == level

    def test_single_bar_falls_back(self):
        from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput
        payload = make_payload(closes=[100.0])
        result, ctx = run_stage(RiskAssessorAgent(), RiskInput(payload))
        assert ctx.status == "error"
        assert ctx.error.code == "INSUFFICIENT_DATA"
        assert result.risk_score == 5
        assert result.risk_level == "medium"
        assert result.stop_loss_level == 95.0
        assert result.score == 5

    def test_short_history_is_a_value_error(self):
        from agents.risk_assessor.workflow import InsufficientDataError, RiskAssessorAgent, RiskInput
        from libs.errors import ProviderError
        with pytest.raises(InsufficientDataError) as exc:
            RiskAssessorAgent().assess(RiskInput(make_payload(closes=[100.0])))
        assert isinstance(exc.value, ValueError)
        assert not isinstance(exc.value, ProviderError)
        assert exc.value.code == "INSUFFICIENT_DATA"


# ─── Report ───────────────────────────────────────────────────────────────

def _report_input(payload, technical=5, fundamental=6, sentiment=5, risk=None):
    from agents.fundamental_analyst.workflow import build_fallback as fundamental_fallback
    from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput
    from agents.synthesis.workflow import ReportInput
    from agents.technical_analyst.workflow import build_fallback as technical_fallback
    from agents.technical_analyst.workflow import build_indicators

    tech = technical_fallback(payload, build_indicators(payload)).model_copy(update={"score": technical})
    fund = fundamental_fallback(payload.fundamentals).model_copy(update={"score": fundamental})
    sent = _sentiment().model_copy(update={"score": sentiment})
    risk_result = RiskAssessorAgent().assess(RiskInput(payload, tech, sent))
    if risk is not None:
        risk_result = risk_result.model_copy(update={"score": risk})
    return ReportInput(payload, tech, fund, sent, risk_result)


class TestReportGenerator:

    def test_llm_result(self, payload):
        from agents.synthesis.workflow import ReportGeneratorAgent
        result, ctx = run_stage(ReportGeneratorAgent(CannedReasoner()), _report_input(payload))
        assert ctx.status == "completed"
        assert result.final_recommendation == "BUY"
        assert result.full_report

    @pytest.mark.parametrize("scores, expected", [
        ((8, 8, 8, 8), "BUY"),
        ((6.5, 6.5, 6.5, 6.5), "HOLD"),
        ((6, 6, 5, 5), "HOLD"),
        ((5, 5, 5, 5), "SELL"),
        ((2, 3, 4, 5), "SELL"),
    ])
    def test_fallback_mean_rule(self, payload, scores, expected):
        from agents.synthesis.workflow import ReportGeneratorAgent
        inputs = _report_input(payload, *scores)
        result, ctx = run_stage(ReportGeneratorAgent(FailingReasoner()), inputs)
        assert ctx.error.code == "REPORT_FALLBACK"
        assert result.final_recommendation == expected
        assert result.composite_score == pytest.approx(sum(scores) / 4, abs=0.01)
        assert result.overall_confidence == 0.6
        assert result.full_report.startswith("# Investment Analysis: TEST")
        assert len(result.key_insights) == 4

    def test_fallback_insights_cover_every_score(self, payload):
        from agents.synthesis.workflow import build_fallback
        report = build_fallback(_report_input(payload, 7, 6, 5, 4))
        assert report.key_insights == [
            "Technical score: 7.0/10",
            "Fundamental score: 6.0/10",
            "Sentiment score: 5.0/10",
            "Risk score: 4.0/10",
        ]

    def test_malformed_report_falls_back(self, payload):
        from agents.synthesis.workflow import ReportGeneratorAgent
        reasoner = TextReasoner('{"final_recommendation": "BUY", "full_report": ""}')
        result, ctx = run_stage(ReportGeneratorAgent(reasoner), _report_input(payload))
        assert ctx.status == "error"
        assert result.full_report
