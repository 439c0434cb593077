"""
Dashboard read API and lead import
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from call_ingest.core.exceptions import ValidationError
from call_ingest.core.logging import get_logger
from call_ingest.db.repository import CallEventRepository
from call_ingest.models.records import LeadRow

logger = get_logger(__name__)

router = APIRouter(tags=["calls"])


class LeadImportRequest(BaseModel):
    """Leads to upsert, keyed by phone"""
    leads: List[LeadRow] = Field(..., min_length=1)


def get_repository(request: Request) -> CallEventRepository:
    """Dependency to get the call event repository"""
    return request.app.state.repository


# Static routes MUST come before dynamic routes with path parameters

@router.get("/calls")
async def list_calls(
    cursor: Optional[str] = Query(None, description="Ordering value of the last row of the previous page"),
    page_size: Optional[int] = Query(None, ge=1, le=200, description="Rows per page"),
    status: Optional[str] = Query(None, description="Filter by call status"),
    repository: CallEventRepository = Depends(get_repository)
):
    """
    Page through calls, most recent first

    Pass back `next_cursor` as `cursor` to get the next page; a null
    `next_cursor` means this was the last page.
    """
    return await repository.recent_calls(cursor=cursor, page_size=page_size, status=status)


@router.get("/calls/by-ids")
async def get_calls_by_ids(
    ids: str = Query(..., description="Comma-separated call ids"),
    repository: CallEventRepository = Depends(get_repository)
):
    """Fetch several calls at once"""
    call_ids = [call_id.strip() for call_id in ids.split(",") if call_id.strip()]
    if not call_ids:
        raise ValidationError("At least one call id is required", field="ids")
    calls = await repository.calls_by_ids(call_ids)
    return {"data": calls, "count": len(calls)}


@router.get("/calls/stats")
async def get_call_stats(repository: CallEventRepository = Depends(get_repository)):
    """Call count and duration figures grouped by status"""
    return {"data": await repository.call_stats()}


@router.get("/calls/{call_id}/transcript")
async def get_call_transcript(
    call_id: str,
    repository: CallEventRepository = Depends(get_repository)
):
    """Transcript fragments of one call in timestamp order"""
    fragments = await repository.call_transcript(call_id)
    return {"call_id": call_id, "data": fragments}


@router.get("/dashboard")
async def get_dashboard(repository: CallEventRepository = Depends(get_repository)):
    """
    Dashboard snapshot

    Parts are fetched concurrently; a part that failed is null.
    """
    return await repository.dashboard_snapshot()


@router.post("/leads/import")
async def import_leads(
    body: LeadImportRequest,
    repository: CallEventRepository = Depends(get_repository)
):
    """Bulk upsert leads by phone number"""
    rows = await repository.import_leads(body.leads)
    return {"imported": len(body.leads), "data": rows}
