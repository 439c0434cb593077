"""
Call Ingest - Main Application Entry Point

Low-latency ingestion of voice platform events for the Drain Fortin
call center: synchronous tool-call answers from an in-process cache,
acknowledge-then-persist writes to the backend store, and a small read
API for the dashboard.
"""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from call_ingest.core.config import Settings, settings as default_settings
from call_ingest.core.logging import setup_logging, get_logger
from call_ingest.core.exceptions import IngestException, RateLimitError
from call_ingest.api.middleware.rate_limit import RateLimiter
from call_ingest.api.middleware.webhook_security import VapiWebhookValidator
from call_ingest.api.routes import calls, webhooks, health
from call_ingest.db.adapters import MemoryStoreAdapter, SupabaseAdapter
from call_ingest.db.base import StoreAdapter
from call_ingest.db.gateway import PersistenceGateway
from call_ingest.db.repository import CallEventRepository
from call_ingest.services.background import BackgroundTaskRunner
from call_ingest.services.cache_service import CacheService
from call_ingest.services.metrics import QueryMetrics
from call_ingest.services.notification_service import NotificationService
from call_ingest.services.tool_responses import ToolResponseBuilder
from call_ingest.services.webhook_router import WebhookRouter

VERSION = "1.0.0"

# Setup logging
setup_logging()
logger = get_logger(__name__)


def build_store(app_settings: Settings) -> StoreAdapter:
    """Supabase when configured, otherwise the in-memory store"""
    if app_settings.supabase_configured:
        return SupabaseAdapter(app_settings.supabase_url, app_settings.supabase_service_role_key)
    logger.warning("SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY not set, events will not be persisted")
    return MemoryStoreAdapter()


def create_app(app_settings: Optional[Settings] = None, store: Optional[StoreAdapter] = None) -> FastAPI:
    """
    Build the application

    Args:
        app_settings: Settings to use (defaults to the environment)
        store: Store adapter to use (defaults to build_store())
    """
    app_settings = app_settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler for startup and shutdown events
        """
        # Startup
        logger.info("=" * 60)
        logger.info("Starting Call Ingest")
        logger.info(f"Version: {VERSION}")
        logger.info(f"Environment: {app_settings.environment}")
        logger.info(f"Webhook path: {app_settings.webhook_path}")
        logger.info("=" * 60)

        cache = CacheService(
            max_size=app_settings.cache_max_size,
            default_ttl=app_settings.cache_default_ttl_seconds,
            sweep_interval=app_settings.cache_sweep_interval_seconds,
        )
        metrics = QueryMetrics(
            max_entries=app_settings.metrics_buffer_size,
            slow_threshold_ms=app_settings.slow_query_ms,
        )

        app_store = store or build_store(app_settings)
        if not await app_store.connect():
            logger.error("Backend store unavailable, writes will fail until it recovers")

        gateway = PersistenceGateway(
            app_store,
            cache,
            metrics,
            cache_ttl=app_settings.gateway_cache_ttl_seconds,
            aggregate_ttl=app_settings.aggregate_cache_ttl_seconds,
            aggregate_max_rows=app_settings.aggregate_max_rows,
            default_page_size=app_settings.default_page_size,
        )
        repository = CallEventRepository(gateway, app_settings)
        tool_builder = ToolResponseBuilder(
            cache,
            ttl=app_settings.tool_cache_ttl_seconds,
            surcharge_keyword=app_settings.surcharge_zone_keyword,
            surcharge_amount=app_settings.surcharge_amount,
        )
        background = BackgroundTaskRunner()
        notifier = NotificationService(repository, app_settings)
        if notifier.simulated:
            logger.info("Twilio not configured, SMS alerts run in simulation mode")

        app.state.settings = app_settings
        app.state.cache = cache
        app.state.metrics = metrics
        app.state.store = app_store
        app.state.gateway = gateway
        app.state.repository = repository
        app.state.tool_builder = tool_builder
        app.state.background = background
        app.state.notifier = notifier
        app.state.rate_limiter = RateLimiter(app_settings.webhook_rate_limit_per_minute)
        app.state.webhook_validator = VapiWebhookValidator.from_settings(app_settings)
        app.state.webhook_router = WebhookRouter(
            tool_builder,
            repository,
            background,
            cache,
            notifier=notifier,
            debug=app_settings.debug,
        )

        cache.start_sweeper()
        logger.info(f"Cache warmed with {tool_builder.warm()} quotes")
        logger.info("All services initialized successfully")

        yield

        # Shutdown
        logger.info("Shutting down Call Ingest")

        cancelled = await background.drain(app_settings.background_drain_timeout_seconds)
        if cancelled:
            logger.warning(f"{cancelled} background write(s) did not finish before shutdown")

        await cache.stop_sweeper()
        cache.clear()

        await app_store.disconnect()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Call Ingest API",
        description="""
        ## Voice platform event ingestion

        - **Webhook**: one JSON event per request (health-check, tool-calls,
          call-started, transcript, call-ended)
        - **Tool calls**: answered synchronously from an in-process cache
        - **Persistence**: acknowledged first, written in the background
        - **Dashboard API**: paginated, batched and aggregated call reads
        """,
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom Exception Handlers
    @app.exception_handler(RateLimitError)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitError):
        """Handle rate limit errors"""
        logger.warning(f"RateLimitError: {exc.message}")
        retry_after = exc.details.get("retry_after_seconds", 60)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"Retry-After": str(retry_after)}
        )

    @app.exception_handler(IngestException)
    async def ingest_exception_handler(request: Request, exc: IngestException):
        """Handle custom ingestion exceptions"""
        logger.warning(f"IngestException: {exc.error_code} - {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all unhandled exceptions"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {"exception": str(exc)} if app_settings.debug else {}
            }
        )

    # Include routers
    app.include_router(health.router)
    app.include_router(webhooks.build_router(app_settings.webhook_path))
    app.include_router(calls.router, prefix="/api/v1")

    @app.get("/api")
    async def api_info():
        """API information endpoint"""
        return {
            "service": "Call Ingest API",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "webhook": app_settings.webhook_path,
                "calls": "/api/v1/calls",
                "dashboard": "/api/v1/dashboard",
                "leads_import": "/api/v1/leads/import"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "call_ingest.main:app",
        host=default_settings.server_host,
        port=default_settings.server_port,
        reload=default_settings.debug
    )
