"""
FastAPI gateway for the stock analysis orchestrator.

Endpoints:
  GET  /health     — liveness check
  POST /analyze    — run a full analysis for one symbol
  GET  /analyses   — most recent analyses, newest first
  GET  /docs       — Swagger UI (auto-generated)
"""
from contextlib import asynccontextmanager
from functools import lru_cache

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from agents.orchestrator.workflow import FinancialOrchestrator
from api.schemas import AnalyzeRequest, HealthResponse
from data_sources import get_market_data_provider
from libs.config import Settings, get_settings
from libs.domain_models.recommendation import AnalysisRecord
from libs.errors import StageError
from libs.llm import ReasoningClient
from libs.log import configure_logging, get_logger
from libs.storage import RecentAnalysesStore

VERSION = "0.1.0"

log = get_logger(__name__)

_STATUS_BY_CODE = {
    "SYMBOL_NOT_FOUND": 404,
    "RATE_LIMIT_EXCEEDED": 429,
    "LLM_QUEUE_FULL": 429,
}

# ── Dependencies ─────────────────────────────────────────────────


@lru_cache
def get_app_settings() -> Settings:
    return get_settings()


@lru_cache
def get_store() -> RecentAnalysesStore:
    return RecentAnalysesStore()


@lru_cache
def get_reasoner() -> ReasoningClient:
    # One client per process so every request shares the admission queue
    return ReasoningClient(get_app_settings())


def get_orchestrator(
    settings: Settings = Depends(get_app_settings),
    store: RecentAnalysesStore = Depends(get_store),
) -> FinancialOrchestrator:
    return FinancialOrchestrator(
        provider=get_market_data_provider(settings),
        reasoner=get_reasoner(),
        settings=settings,
        store=store,
    )


# ── App ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_app_settings()
    configure_logging(settings.log_level, settings.log_json)
    log.info("api_started", mock_llm=settings.mock_llm, mock_market_data=settings.mock_market_data)
    yield


app = FastAPI(
    title="Stock Analysis Orchestrator",
    description=(
        "Multi-agent analysis for a single stock ticker: market data, technical, "
        "fundamental and sentiment analysis, risk assessment and a synthesized "
        "report. Decision support only, no trade execution."
    ),
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Routes ───────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health(settings: Settings = Depends(get_app_settings)):
    """Liveness check — returns service status."""
    if settings.mock_llm:
        llm = "mock"
    else:
        llm = "configured" if settings.gemini_api_key else "missing_key"
    return HealthResponse(
        status="ok",
        version=VERSION,
        services={
            "gemini": llm,
            "market_data": "mock" if settings.mock_market_data else "yfinance",
        },
    )


@app.post("/analyze", response_model=AnalysisRecord, tags=["Analysis"])
async def analyze(
    request: AnalyzeRequest,
    orchestrator: FinancialOrchestrator = Depends(get_orchestrator),
):
    """
    Analyze a stock ticker and return the analysis record.

    The system will:
    1. Fetch price history, fundamentals and recent news
    2. Run Technical, Fundamental and Sentiment analysts concurrently
    3. Assess volatility, drawdown, position size and stop-loss
    4. Synthesize a final BUY / HOLD / SELL report
    """
    try:
        return await orchestrator.run(request.symbol)
    except StageError as e:
        status = _STATUS_BY_CODE.get(e.code, 502)
        log.warning("analyze_rejected", symbol=request.symbol, code=e.code, status=status)
        raise HTTPException(
            status_code=status,
            detail={"code": e.code, "message": e.error.message, "agent_name": e.error.agent_name},
        )


@app.get("/analyses", response_model=list[AnalysisRecord], tags=["Analysis"])
async def recent_analyses(store: RecentAnalysesStore = Depends(get_store)):
    """Most recent analyses, newest first, one per symbol."""
    return store.recent()


# ── Dev runner ───────────────────────────────────────────────────

if __name__ == "__main__":
    settings = get_app_settings()
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
