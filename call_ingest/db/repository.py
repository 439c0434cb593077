"""
Call Event Repository

Table-level writes for voice platform events and the reads the
dashboard needs, all going through the PersistenceGateway.
"""

from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from call_ingest.core.config import Settings, settings as default_settings
from call_ingest.core.logging import get_logger
from call_ingest.db.base import Row
from call_ingest.db.gateway import PersistenceGateway
from call_ingest.models.events import CallRef, ToolCallRequest, ToolCallResult, TranscriptFragment
from call_ingest.models.records import (
    CallClosure,
    CallRow,
    LeadRow,
    SmsLogRow,
    ToolCallRow,
    TranscriptRow,
)

logger = get_logger(__name__)


class CallEventRepository:
    """
    Repository for call events.

    Knows the table names and row shapes; the gateway handles caching,
    batching and metrics.
    """

    def __init__(self, gateway: PersistenceGateway, settings: Optional[Settings] = None):
        self.gateway = gateway
        self.settings = settings or default_settings

    @property
    def calls_table(self) -> str:
        return self.settings.calls_table

    @property
    def leads_table(self) -> str:
        return self.settings.leads_table

    # ==================== Event writes ====================

    async def record_call_started(self, call: CallRef) -> List[Any]:
        """
        Insert the call row and, when the caller's number is known, upsert
        the lead keyed by phone. Both writes run together.

        Returns:
            Per-write outcomes (rows or {"error": ...})
        """
        row = CallRow(
            call_id=call.id,
            phone_number=call.phone_number or "unknown",
            assistant_id=call.assistant_id,
            type=call.call_type or "inbound",
            **({"started_at": call.started_at} if call.started_at else {}),
        )
        operations = [self.gateway.insert(self.calls_table, [row.model_dump()])]
        if call.phone_number:
            lead = LeadRow(phone=call.phone_number)
            operations.append(
                self.gateway.bulk_upsert(self.leads_table, [lead.model_dump(exclude_none=True)], conflict_key="phone")
            )

        outcomes = await self.gateway.execute_batch(operations)
        for outcome in outcomes:
            if isinstance(outcome, dict) and "error" in outcome:
                logger.error(f"Call start write failed for {call.id}: {outcome['error']}")
        return outcomes

    async def record_transcript(self, call_id: Optional[str], fragment: TranscriptFragment) -> List[Row]:
        """Append one fragment; a fragment with no call gets its own id"""
        row = TranscriptRow(
            call_id=call_id or str(uuid4()),
            role=fragment.role,
            message=fragment.message,
            **({"timestamp": fragment.timestamp} if fragment.timestamp else {}),
        )
        return await self.gateway.insert(self.settings.transcripts_table, [row.model_dump()])

    async def record_tool_calls(
        self,
        call_id: Optional[str],
        requests: Sequence[ToolCallRequest],
        results: Sequence[ToolCallResult]
    ) -> List[Row]:
        """One invocation row per tool call, with the result that was returned"""
        call_id = call_id or str(uuid4())
        rows = [
            ToolCallRow(
                call_id=call_id,
                tool_name=request.function_name,
                tool_call_id=request.id,
                arguments=request.arguments,
                result=result.result,
            ).model_dump()
            for request, result in zip(requests, results)
        ]
        return await self.gateway.insert(self.settings.tool_calls_table, rows)

    async def record_call_ended(self, call: CallRef) -> List[Row]:
        """Close the call row; last write wins"""
        closure = CallClosure(
            duration=call.duration_seconds,
            ended_reason=call.end_reason,
            **({"ended_at": call.ended_at} if call.ended_at else {}),
        )
        return await self.gateway.update(
            self.calls_table,
            closure.model_dump(exclude_none=True),
            {"call_id": call.id},
        )

    async def record_sms_alert(self, log: SmsLogRow) -> List[Row]:
        return await self.gateway.insert(self.settings.sms_logs_table, [log.model_dump()])

    # ==================== Dashboard reads ====================

    async def recent_calls(
        self,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
        status: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.gateway.paginated_query(
            self.calls_table,
            order_by="started_at",
            ascending=False,
            page_size=page_size,
            cursor=cursor,
            filters={"status": status},
        )

    async def calls_by_ids(self, call_ids: Sequence[str]) -> List[Row]:
        return await self.gateway.batch_fetch_by_ids(self.calls_table, call_ids, id_column="call_id")

    async def call_transcript(self, call_id: str, limit: int = 500) -> List[Row]:
        """Transcript fragments of a call in platform timestamp order"""
        page = await self.gateway.paginated_query(
            self.settings.transcripts_table,
            order_by="timestamp",
            ascending=True,
            page_size=limit,
            filters={"call_id": call_id},
        )
        return page["data"]

    async def call_stats(self) -> List[Row]:
        """Call count and duration figures per status"""
        return await self.gateway.aggregate(
            self.calls_table,
            group_by=["status"],
            aggregates=[
                {"column": "*", "function": "count", "as": "calls"},
                {"column": "duration", "function": "sum", "as": "total_duration"},
                {"column": "duration", "function": "avg", "as": "avg_duration"},
                {"column": "duration", "function": "min", "as": "min_duration"},
                {"column": "duration", "function": "max", "as": "max_duration"},
            ],
        )

    async def recent_leads(self, limit: int = 10) -> List[Row]:
        page = await self.gateway.paginated_query(
            self.leads_table,
            order_by="last_contact",
            ascending=False,
            page_size=limit,
        )
        return page["data"]

    async def dashboard_snapshot(self) -> Dict[str, Any]:
        """Recent calls, stats and recent leads, fetched concurrently"""
        return await self.gateway.parallel_queries({
            "recent_calls": lambda: self.recent_calls(page_size=10),
            "stats": self.call_stats,
            "recent_leads": self.recent_leads,
        })

    async def import_leads(self, leads: Sequence[LeadRow]) -> List[Row]:
        """Bulk upsert leads keyed by phone"""
        records = [lead.model_dump(exclude_none=True) for lead in leads]
        rows = await self.gateway.bulk_upsert(self.leads_table, records, conflict_key="phone")
        logger.info(f"Imported {len(records)} leads")
        return rows
