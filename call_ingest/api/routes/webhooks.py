"""
Voice platform webhook endpoint
Receives one JSON event per request and hands it to the WebhookRouter
"""

import json
import time
from typing import Dict
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from call_ingest.core.exceptions import RateLimitError, WebhookValidationError
from call_ingest.core.logging import get_logger
from call_ingest.api.middleware.rate_limit import client_key
from call_ingest.api.middleware.webhook_security import SIGNATURE_HEADER
from call_ingest.services.webhook_router import WebhookRouter, elapsed_ms

logger = get_logger(__name__)

WEBHOOK_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": f"authorization, x-client-info, apikey, content-type, {SIGNATURE_HEADER}",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "X-Content-Type-Options": "nosniff",
}


def webhook_headers(start: float) -> Dict[str, str]:
    return {**WEBHOOK_HEADERS, "X-Response-Time": f"{elapsed_ms(start)}ms"}


async def webhook_preflight():
    """CORS pre-flight"""
    return PlainTextResponse("ok", headers=webhook_headers(time.perf_counter()))


async def receive_event(request: Request):
    """
    Handle one voice platform event

    Event types: health-check, tool-calls, call-started, transcript,
    call-ended. Tool calls are answered synchronously; other events are
    acknowledged and persisted in the background.
    """
    start = time.perf_counter()

    try:
        request.app.state.rate_limiter.check(client_key(request))
        body = await request.body()
        request.app.state.webhook_validator.verify(body, request.headers.get(SIGNATURE_HEADER))
    except (RateLimitError, WebhookValidationError) as e:
        logger.warning(f"Webhook rejected: {e.error_code} - {e.message}")
        headers = webhook_headers(start)
        if isinstance(e, RateLimitError):
            headers["Retry-After"] = str(e.details.get("retry_after_seconds", 60))
        return JSONResponse(status_code=e.status_code, content=e.to_dict(), headers=headers)

    try:
        payload = json.loads(body)
    except ValueError as e:
        logger.error(f"Unparseable webhook body: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Invalid JSON body", "latency": elapsed_ms(start)},
            headers=webhook_headers(start)
        )

    event_router: WebhookRouter = request.app.state.webhook_router
    result = await event_router.handle(payload)
    return JSONResponse(
        status_code=result.status_code,
        content=result.body,
        headers=webhook_headers(start)
    )


def build_router(webhook_path: str) -> APIRouter:
    """Webhook routes mounted on the configured path"""
    router = APIRouter(tags=["webhooks"])
    router.add_api_route(webhook_path, webhook_preflight, methods=["OPTIONS"], include_in_schema=False)
    router.add_api_route(webhook_path, receive_event, methods=["POST"])
    return router
