"""Build Monitor FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from build_monitor.alerts.notifier import LoggingNotifier
from build_monitor.alerts.routes import router as alerts_router
from build_monitor.auth.credentials import AuthorizationFlow
from build_monitor.auth.routes import router as auth_router
from build_monitor.config.settings import get_settings
from build_monitor.db.store import LocalStore
from build_monitor.middleware.error_handler import register_error_handlers
from build_monitor.refresh.messages import MessageDispatcher, MessageId
from build_monitor.refresh.orchestrator import RefreshOrchestrator
from build_monitor.refresh.routes import router as refresh_router
from build_monitor.refresh.scheduler import PeriodicRefresher
from build_monitor.sites.routes import router as sites_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # One store handle for the whole process, handed to every component
    store = await LocalStore.open(settings.DATABASE_PATH)
    notifier = LoggingNotifier()
    orchestrator = RefreshOrchestrator(store, notifier, settings=settings)
    await orchestrator.reset_stale_flag()
    authorization = AuthorizationFlow(store)
    dispatcher = MessageDispatcher(orchestrator, authorization)

    app.state.store = store
    app.state.notifier = notifier
    app.state.orchestrator = orchestrator
    app.state.authorization = authorization
    app.state.dispatcher = dispatcher

    scheduler = PeriodicRefresher(
        lambda: dispatcher.dispatch(MessageId.REQUEST_REFRESH),
        settings.REFRESH_INTERVAL_SECONDS,
        run_immediately=settings.REFRESH_ON_STARTUP,
    )
    app.state.scheduler = scheduler
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
        logger.info("Refreshing every %.0f seconds", settings.REFRESH_INTERVAL_SECONDS)

    try:
        yield
    finally:
        await scheduler.stop()
        await store.bus.drain()
        await store.close()


app = FastAPI(
    title="Build Monitor",
    description=(
        "Keeps a local copy of your sites and their latest builds in sync with the build host, "
        "and raises an alert when a build newly fails.\n\n"
        "## Features\n"
        "- Periodic, single-flight refresh of sites and builds\n"
        "- Rate-limit-safe build polling in batches with cooldowns\n"
        "- One-shot failed build alerts with optional notifications\n"
        "- Live site list updates via SSE\n"
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Auth", "description": "Access token hand-off from the authorization flow"},
        {"name": "Refresh", "description": "Refresh and clear-all requests"},
        {"name": "Sites", "description": "Sites with their latest build, status and live updates"},
        {"name": "Alerts", "description": "Notification preference and attention badge"},
    ],
)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Error handlers ---
register_error_handlers(app)

# --- Routes ---
app.include_router(auth_router)
app.include_router(refresh_router)
app.include_router(sites_router)
app.include_router(alerts_router)


@app.get("/health", tags=["Health"], summary="Health check", description="Returns OK if the service is running.")
async def health_check():
    return {"status": "ok"}
