"""
ARBSCOPE - FastAPI Application
Assessment API with /healthz, /metrics, opportunity scoring and profit tools.
"""
import uuid
from typing import Dict, Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from arbscope.config.settings import get_settings
from arbscope.utils.logger import get_logger, setup_logging
from arbscope.utils.helpers import utc_timestamp
from arbscope.data.models import ArbitrageOpportunity, OrderBook, Ticker, TradeSide, VolatilityLevel
from arbscope.coordinator.assessment import get_coordinator
from arbscope.risk.engine import RISK_BANDS, MINIMAL_RISK

logger = get_logger("api")

SNAPSHOT_FIELDS = {
    "buy_ticker", "sell_ticker", "buy_order_book", "sell_order_book",
    "buy_candles", "sell_candles", "risk_assessment",
}

# Application state
app_state: Dict[str, Any] = {
    "instance_id": str(uuid.uuid4())[:8],
    "started_at": None,
    "assessments_served": 0,
    "last_assessment_time": None,
    "errors": 0,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: start and stop the cache sweeper."""
    setup_logging()
    settings = get_settings()
    app_state["started_at"] = utc_timestamp()

    logger.info("arbscope_starting",
                version=settings.version,
                instance=app_state["instance_id"])

    coordinator = get_coordinator()
    coordinator.start_sweeper()

    logger.info("arbscope_ready")

    yield

    logger.info("arbscope_shutting_down")
    await coordinator.stop_sweeper()


app = FastAPI(
    title="ARBSCOPE",
    description="Risk and profit scoring for cross-exchange crypto arbitrage",
    version="1.0.0",
    lifespan=lifespan,
)


# ─── Health & Metrics ───────────────────────────────────────────

@app.get("/healthz", tags=["System"])
async def health_check():
    """Fast health check endpoint for load balancers and monitoring."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "instance": app_state["instance_id"],
            "uptime_since": app_state["started_at"],
            "timestamp": utc_timestamp(),
        },
    )


@app.get("/metrics", tags=["System"])
async def metrics():
    settings = get_settings()
    coordinator = get_coordinator()

    return {
        "app": {
            "name": settings.app_name,
            "version": settings.version,
            "instance_id": app_state["instance_id"],
            "started_at": app_state["started_at"],
        },
        "assessments": {
            "total_served": app_state["assessments_served"],
            "last_assessment_time": app_state["last_assessment_time"],
            "errors": app_state["errors"],
        },
        "coordinator": coordinator.stats,
        "timestamp": utc_timestamp(),
    }


# ─── Assessment ─────────────────────────────────────────────────

class AssessRequest(BaseModel):
    opportunity: ArbitrageOpportunity
    force_recalculate: bool = False


class WaterfallRequest(BaseModel):
    initial_amount: float = Field(gt=0)
    buy_price: float = Field(gt=0)
    sell_price: float = Field(gt=0)
    buy_fee: float = 0.001
    sell_fee: float = 0.001
    asset: Optional[str] = None
    buy_exchange: Optional[str] = None
    sell_exchange: Optional[str] = None
    withdrawal_fee: Optional[float] = None
    network_fee: Optional[float] = None
    deposit_fee: Optional[float] = None


class SlippageRequest(BaseModel):
    order_book: OrderBook
    trade_size: float = Field(gt=0)
    side: TradeSide
    ticker: Optional[Ticker] = None
    volatility: Optional[VolatilityLevel] = None


@app.post("/api/v1/assess", tags=["Assessment"])
async def assess_opportunity(request: AssessRequest):
    """Score an opportunity; snapshots on the request are reused instead of fetched."""
    try:
        coordinator = get_coordinator()
        opportunity = request.opportunity
        assessment = await coordinator.assess(opportunity, request.force_recalculate)

        app_state["assessments_served"] += 1
        app_state["last_assessment_time"] = utc_timestamp()

        return {
            "assessment": assessment.to_dict(),
            "report": coordinator.risk_engine.report(assessment),
            "opportunity": opportunity.model_dump(mode="json", exclude=SNAPSHOT_FIELDS),
        }
    except Exception as e:
        app_state["errors"] += 1
        logger.error("assess_endpoint_error", symbol=request.opportunity.symbol, error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/v1/risk-levels", tags=["Assessment"])
async def risk_levels():
    """The shared risk-band vocabulary, lowest score first."""
    bands = []
    lower = 0.0
    for upper, label in RISK_BANDS:
        bands.append({"label": label, "min_score": lower, "max_score": upper})
        lower = upper
    bands.append({"label": MINIMAL_RISK, "min_score": lower, "max_score": 1.0})
    return {"bands": bands}


# ─── Profit & Slippage Tools ────────────────────────────────────

@app.post("/api/v1/profit/waterfall", tags=["Profit"])
async def profit_waterfall(request: WaterfallRequest):
    """Fee waterfall with explicit fees, or fee-table lookups when asset and venues are given."""
    pe = get_coordinator().profit_engine
    fees = {"withdrawal_fee": 0.0, "network_fee": 0.0, "deposit_fee": 0.0}
    if request.asset:
        fees = pe.transfer_fees_for(request.asset, request.buy_exchange or "", request.sell_exchange or "")
    for name in fees:
        explicit = getattr(request, name)
        if explicit is not None:
            fees[name] = explicit

    waterfall = pe.fee_waterfall(
        request.initial_amount, request.buy_price, request.sell_price,
        request.buy_fee, request.sell_fee, **fees,
    )
    response = waterfall.model_dump(mode="json")
    response["fees"] = fees
    response["basic_profit_pct"] = pe.basic_profit_pct(
        request.buy_price, request.sell_price, request.buy_fee, request.sell_fee)
    if request.asset:
        response["transfer_cost_pct"] = pe.transfer_cost_pct(
            request.asset, request.initial_amount / request.buy_price)
    return response


@app.post("/api/v1/slippage/estimate", tags=["Slippage"])
async def slippage_estimate(request: SlippageRequest):
    """Estimate slippage against a supplied book without recording an observation."""
    engine = get_coordinator().slippage_engine
    estimate = engine.estimate(
        request.order_book, request.trade_size, request.side,
        ticker=request.ticker, volatility=request.volatility, record=False,
    )
    return estimate.model_dump(mode="json")
