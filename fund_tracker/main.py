from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fund_tracker.api.routes import router
from fund_tracker.config.settings import get_settings
from fund_tracker.integrations.confirmed_source import ConfirmedQuoteSource
from fund_tracker.integrations.estimate_source import EstimateQuoteSource
from fund_tracker.integrations.fund_catalog import FundCatalogClient
from fund_tracker.integrations.http_client import SourceHttpClient
from fund_tracker.integrations.realtime_source import RealtimeQuoteSource
from fund_tracker.services.broadcast_hub import BroadcastHub
from fund_tracker.services.market_hours import WallClock
from fund_tracker.services.portfolio_store import PortfolioStore
from fund_tracker.services.reconciler import QuoteReconciler
from fund_tracker.services.refresh import RefreshOrchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    hub = app.state.broadcast_hub
    await hub.start()
    try:
        yield
    finally:
        await hub.stop()
        orchestrator = app.state.refresh_orchestrator
        orchestrator.wait_for_persistence(timeout=1.0)
        orchestrator.shutdown()


def configure(app: FastAPI, *, http: SourceHttpClient | None = None, clock=None) -> None:
    """Wire quote services onto ``app.state``; tests pass a fake HTTP session/clock."""
    settings = app.state.get_settings()
    http = http or SourceHttpClient(timeout_sec=settings.FUND_HTTP_TIMEOUT_SEC)
    clock = clock or WallClock(settings.FUND_TIMEZONE)

    reconciler = QuoteReconciler(
        realtime_source=RealtimeQuoteSource(http, clock=clock),
        estimate_source=EstimateQuoteSource(http),
        confirmed_source=ConfirmedQuoteSource(http),
        clock=clock,
    )
    store = PortfolioStore()
    previous = getattr(app.state, "refresh_orchestrator", None)
    if previous is not None:
        previous.shutdown()

    app.state.portfolio_store = store
    app.state.reconciler = reconciler
    app.state.refresh_orchestrator = RefreshOrchestrator(
        reconciler=reconciler,
        store=store,
        max_concurrency=settings.FUND_REFRESH_CONCURRENCY,
    )
    app.state.fund_catalog = FundCatalogClient(http)
    app.state.broadcast_hub = BroadcastHub(
        heartbeat_interval_sec=settings.FUND_WS_HEARTBEAT_SEC,
        write_timeout_sec=settings.FUND_WS_WRITE_TIMEOUT_SEC,
    )


app = FastAPI(title="Fund Tracker", version="0.1.0", lifespan=lifespan)
app.include_router(router, prefix="/v1")

# NOTE: lazy-loaded so tests can patch the environment before configure().
app.state.get_settings = get_settings
configure(app)
