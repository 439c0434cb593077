"""
Webhook event dispatch

Classifies one inbound voice platform event by its type and answers
it. Tool calls and health checks are answered synchronously; lifecycle
events are acknowledged at once and persisted by detached tasks.
"""

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from call_ingest.core.exceptions import ValidationError
from call_ingest.core.logging import get_logger
from call_ingest.db.repository import CallEventRepository
from call_ingest.models.events import CallRef, EventType, InboundEvent
from call_ingest.services.background import BackgroundTaskRunner
from call_ingest.services.cache_service import CacheService
from call_ingest.services.notification_service import NotificationService
from call_ingest.services.tool_responses import ToolResponseBuilder

logger = get_logger(__name__)


@dataclass
class RouterResponse:
    """Status code and JSON body for one handled event"""
    status_code: int
    body: Dict[str, Any]


def elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class WebhookRouter:
    """
    Flat dispatch over the event type

    Every event gets exactly one response. Store failures on the
    acknowledge-then-persist paths only reach the log.
    """

    def __init__(
        self,
        tool_builder: ToolResponseBuilder,
        repository: CallEventRepository,
        background: BackgroundTaskRunner,
        cache: CacheService,
        notifier: Optional[NotificationService] = None,
        debug: bool = False
    ):
        self.tool_builder = tool_builder
        self.repository = repository
        self.background = background
        self.cache = cache
        self.notifier = notifier
        self.debug = debug
        self.started_at = time.monotonic()
        self._handlers = {
            EventType.HEALTH_CHECK.value: self._health_check,
            EventType.TOOL_CALLS.value: self._tool_calls,
            EventType.CALL_STARTED.value: self._call_started,
            EventType.TRANSCRIPT.value: self._transcript,
            EventType.CALL_ENDED.value: self._call_ended,
        }

    @property
    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self.started_at, 3)

    async def handle(self, payload: Any) -> RouterResponse:
        """
        Parse and dispatch one event

        Never raises: malformed tool calls give 400, anything unexpected
        gives 500 with only an error message and the elapsed time.
        """
        start = time.perf_counter()
        event_type = "unknown"
        call_id = None
        try:
            if not isinstance(payload, dict):
                raise ValueError("Event body must be a JSON object")
            event = InboundEvent.model_validate(payload)
            event_type = event.type or "unknown"
            call_id = event.call_id

            handler = self._handlers.get(event.type, self._unrecognized)
            response = await handler(event, start)
        except ValidationError as e:
            response = RouterResponse(400, {"error": e.message, "latency": elapsed_ms(start)})
        except Exception as e:
            logger.error(f"Webhook dispatch failed for [{event_type}]: {e}", exc_info=True)
            message = str(e) if self.debug else "Internal server error"
            response = RouterResponse(500, {"error": message, "latency": elapsed_ms(start)})

        logger.info(f"[{event_type}] {call_id or 'no-id'} - {elapsed_ms(start)}ms")
        return response

    # ==================== Handlers ====================

    async def _health_check(self, event: InboundEvent, start: float) -> RouterResponse:
        return RouterResponse(200, {
            "status": "healthy",
            "latency": elapsed_ms(start),
            "cache_size": len(self.cache),
            "uptime_seconds": self.uptime_seconds,
        })

    async def _tool_calls(self, event: InboundEvent, start: float) -> RouterResponse:
        requests = event.tool_calls
        if not requests:
            raise ValidationError("Missing or empty toolCalls array", field="toolCalls")

        results = self.tool_builder.build_all(requests)
        response = RouterResponse(200, {"results": [result.to_response() for result in results]})

        call_id = event.call_id
        self.background.spawn(
            lambda: self.repository.record_tool_calls(call_id, requests, results),
            name=f"tool-calls:{call_id or 'no-id'}",
        )
        if self.notifier is not None:
            for request in requests:
                if request.function_name == "sendSMSAlert":
                    self.background.spawn(
                        lambda arguments=request.arguments: self.notifier.send_alert(arguments),
                        name=f"sms-alert:{request.id}",
                    )
        return response

    async def _call_started(self, event: InboundEvent, start: float) -> RouterResponse:
        call = (event.call or CallRef()).with_id()
        try:
            await self.repository.record_call_started(call)
        except Exception as e:
            # The call id is ours, so the caller still gets it
            logger.error(f"Persisting call start {call.id} failed: {e}")
        return RouterResponse(200, {"success": True, "call_id": call.id})

    async def _transcript(self, event: InboundEvent, start: float) -> RouterResponse:
        if event.transcript is not None:
            call_id = event.call_id
            fragment = event.transcript
            self.background.spawn(
                lambda: self.repository.record_transcript(call_id, fragment),
                name=f"transcript:{call_id or 'no-id'}",
            )
        return RouterResponse(200, {"success": True})

    async def _call_ended(self, event: InboundEvent, start: float) -> RouterResponse:
        if event.call_id:
            call = event.call
            self.background.spawn(
                lambda: self.repository.record_call_ended(call),
                name=f"call-ended:{call.id}",
            )
        return RouterResponse(200, {"success": True})

    async def _unrecognized(self, event: InboundEvent, start: float) -> RouterResponse:
        return RouterResponse(200, {
            "success": True,
            "type": event.type,
            "latency": elapsed_ms(start),
        })
