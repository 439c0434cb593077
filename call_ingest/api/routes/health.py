"""
Health check and status endpoints
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Request

from call_ingest.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request):
    """
    Basic health check endpoint
    """
    state = request.app.state
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": state.settings.environment,
        "uptime_seconds": state.webhook_router.uptime_seconds,
        "cache_size": len(state.cache),
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check - verifies the backend store is reachable
    """
    state = request.app.state
    checks = {
        "store": state.store.is_connected(),
        "twilio": state.settings.twilio_configured,
    }

    return {
        "status": "ready" if checks["store"] else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "store": type(state.store).__name__,
        "checks": checks,
    }


@router.get("/stats")
async def get_statistics(request: Request):
    """
    Get cache, query and background task statistics
    """
    state = request.app.state
    return {
        "uptime_seconds": state.webhook_router.uptime_seconds,
        "cache": state.cache.stats(),
        "queries": state.metrics.summary(),
        "background": state.background.stats(),
    }
