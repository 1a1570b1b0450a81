"""
Root Orchestrator LangGraph graph.

Nodes:
  market_data   → Market Data Agent (price history, fundamentals, news)
  technical     ┐
  fundamental   ├ run concurrently once market data is in
  sentiment     ┘
  risk          → joins the three analysts, Risk Assessor
  report        → Report Generator → ReportPayload

Market data failure ends the run. Every other stage falls back and the run
continues. Progress is published through EventStreams as it happens.
"""
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from langgraph.graph import END, START, StateGraph

from agents.base import Reasoner, StageContext, ThinkingEntry
from agents.fundamental_analyst.workflow import FundamentalAnalystAgent
from agents.market_data.workflow import MarketDataAgent
from agents.orchestrator.state import AnalysisState, GraphState
from agents.risk_assessor.workflow import RiskAssessorAgent, RiskInput, RiskPolicy
from agents.sentiment_watchdog.workflow import SentimentWatchdogAgent
from agents.synthesis.workflow import ReportGeneratorAgent, ReportInput
from agents.technical_analyst.workflow import TechnicalAnalystAgent
from data_sources import MarketDataProvider, get_market_data_provider
from libs.config import Settings, get_settings
from libs.domain_models.analysis import AgentName, AgentStatus
from libs.domain_models.recommendation import AgentScores, AnalysisRecord, LLMUsage, ReportPayload
from libs.errors import AgentError, StageError
from libs.events import EventStream
from libs.llm import ReasoningClient
from libs.log import get_logger

log = get_logger(__name__)


class AnalysisSink(Protocol):
    def save(self, record: AnalysisRecord) -> Any: ...


class FinancialOrchestrator:
    """
    Runs the full analysis pipeline for one symbol at a time.

    Subscribe to `state_events`, `agent_events`, `thinking_events` and
    `error_events` to follow a run; `state` always holds the latest snapshot.
    """

    def __init__(
        self,
        provider: Optional[MarketDataProvider] = None,
        reasoner: Optional[Reasoner] = None,
        settings: Optional[Settings] = None,
        store: Optional[AnalysisSink] = None,
        risk_policy: Optional[RiskPolicy] = None,
    ):
        settings = settings or get_settings()
        reasoner = reasoner or ReasoningClient(settings)
        self.market_data_agent = MarketDataAgent(
            provider or get_market_data_provider(settings), news_days=settings.news_days
        )
        self.technical_agent = TechnicalAnalystAgent(reasoner)
        self.fundamental_agent = FundamentalAnalystAgent(reasoner)
        self.sentiment_agent = SentimentWatchdogAgent(reasoner)
        self.risk_agent = RiskAssessorAgent(risk_policy)
        self.report_agent = ReportGeneratorAgent(reasoner)
        self.store = store

        self.state_events: EventStream[AnalysisState] = EventStream("state")
        self.agent_events: EventStream[tuple[AgentName, AgentStatus]] = EventStream("agent")
        self.thinking_events: EventStream[tuple[AgentName, ThinkingEntry]] = EventStream("thinking")
        self.error_events: EventStream[AgentError] = EventStream("error")

        self.state = AnalysisState()
        self._usage = LLMUsage()
        self._graph = self._build_graph()

    # ── State ────────────────────────────────────────────────────────

    def _update(self, **changes) -> None:
        self.state = self.state.model_copy(update=changes)
        self.state_events.publish(self.state)

    def _merge_results(self, **results) -> dict:
        return {**self.state.results, **results}

    def _on_status(self, name: AgentName, status: AgentStatus) -> None:
        self._update(agent_statuses={**self.state.agent_statuses, name: status})
        self.agent_events.publish((name, status))

    def _on_thinking(self, name: AgentName, entry: ThinkingEntry) -> None:
        self.thinking_events.publish((name, entry))

    def _record_error(self, error: AgentError) -> None:
        self._update(errors=[*self.state.errors, error])
        self.error_events.publish(error)

    def _context(self, name: AgentName) -> StageContext:
        return StageContext(
            name,
            usage=self._usage,
            on_status=self._on_status,
            on_thinking=self._on_thinking,
            on_error=self._record_error,
        )

    # ── Nodes ────────────────────────────────────────────────────────

    async def _market_data_node(self, state: GraphState) -> dict:
        self._update(phase="data", active_agent="marketData", progress=0.15)
        market_data = await self.market_data_agent.execute(state["symbol"], self._context("marketData"))
        self._update(results=self._merge_results(marketData=market_data), progress=0.25)
        self._update(phase="analysis", active_agent=None)
        return {"market_data": market_data}

    async def _technical_node(self, state: GraphState) -> dict:
        self._update(active_agent="technical")
        return {"technical": await self.technical_agent.execute(
            state["market_data"], self._context("technical"))}

    async def _fundamental_node(self, state: GraphState) -> dict:
        self._update(active_agent="fundamental")
        return {"fundamental": await self.fundamental_agent.execute(
            state["market_data"], self._context("fundamental"))}

    async def _sentiment_node(self, state: GraphState) -> dict:
        self._update(active_agent="sentiment")
        return {"sentiment": await self.sentiment_agent.execute(
            state["market_data"], self._context("sentiment"))}

    async def _risk_node(self, state: GraphState) -> dict:
        self._update(
            results=self._merge_results(
                technical=state["technical"],
                fundamental=state["fundamental"],
                sentiment=state["sentiment"],
            ),
            progress=0.65,
        )
        self._update(phase="risk", active_agent="risk", progress=0.75)
        risk = await self.risk_agent.execute(
            RiskInput(state["market_data"], state["technical"], state["sentiment"]),
            self._context("risk"),
        )
        self._update(results=self._merge_results(risk=risk), progress=0.85)
        return {"risk": risk}

    async def _report_node(self, state: GraphState) -> dict:
        self._update(phase="report", active_agent="reporter")
        report = await self.report_agent.execute(
            ReportInput(
                market_data=state["market_data"],
                technical=state["technical"],
                fundamental=state["fundamental"],
                sentiment=state["sentiment"],
                risk=state["risk"],
            ),
            self._context("reporter"),
        )
        self._update(
            results=self._merge_results(reporter=report),
            phase="completed",
            progress=1.0,
            active_agent=None,
            completed_at=datetime.now(timezone.utc),
        )
        return {"report": report}

    def _build_graph(self):
        g = StateGraph(GraphState)
        g.add_node("market_data", self._market_data_node)
        g.add_node("technical", self._technical_node)
        g.add_node("fundamental", self._fundamental_node)
        g.add_node("sentiment", self._sentiment_node)
        g.add_node("risk", self._risk_node)
        g.add_node("report", self._report_node)

        g.add_edge(START, "market_data")
        for analyst in ("technical", "fundamental", "sentiment"):
            g.add_edge("market_data", analyst)
        # Join barrier: risk waits for all three analysts
        g.add_edge(["technical", "fundamental", "sentiment"], "risk")
        g.add_edge("risk", "report")
        g.add_edge("report", END)
        return g.compile()

    # ── Entry point ──────────────────────────────────────────────────

    async def run(self, symbol: str) -> AnalysisRecord:
        """Analyse `symbol` end to end and return the persisted record."""
        symbol = symbol.upper().strip()
        self._usage = LLMUsage()
        self.state = AnalysisState()
        self._update(phase="initializing", active_agent=None, started_at=datetime.now(timezone.utc))
        log.info("analysis_started", symbol=symbol)

        try:
            final = await self._graph.ainvoke({"symbol": symbol})
        except StageError as e:
            if e.error not in self.state.errors:
                self._record_error(e.error)
            self._update(phase="error", active_agent=None)
            log.error("analysis_failed", symbol=symbol, code=e.code)
            raise
        except Exception as e:
            error = AgentError(
                code="ORCHESTRATOR_ERROR",
                message=str(e) or "Analysis failed",
                recoverable=False,
                agent_name=self.state.active_agent or "marketData",
            )
            self._update(phase="error", active_agent=None)
            self._record_error(error)
            log.exception("analysis_crashed", symbol=symbol)
            raise

        record = self._build_record(symbol, final["report"])
        log.info(
            "analysis_completed",
            symbol=symbol,
            recommendation=record.final_recommendation,
            composite=record.composite_score,
            llm_calls=self._usage.calls,
            cost=round(self._usage.cost, 6),
        )
        if self.store is not None:
            self.store.save(record)
        return record

    analyze_stock = run

    def _build_record(self, symbol: str, report: ReportPayload) -> AnalysisRecord:
        results = self.state.results
        return AnalysisRecord(
            symbol=symbol,
            final_recommendation=report.final_recommendation,
            overall_confidence=report.overall_confidence,
            composite_score=report.composite_score,
            agent_scores=AgentScores(
                technical=results["technical"].score,
                fundamental=results["fundamental"].score,
                sentiment=results["sentiment"].score,
                risk=results["risk"].score,
            ),
            full_data={name: value.model_dump(mode="json") for name, value in results.items()},
            usage=self._usage.model_copy(),
        )
