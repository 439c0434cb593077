"""
Row models

These models represent the rows written to the backend store tables
and are shared by all store adapters.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from call_ingest.models.events import utc_now_iso


class CallStatus:
    ACTIVE = "active"
    COMPLETED = "completed"


class CallRow(BaseModel):
    """Row in the calls table"""
    call_id: str
    phone_number: str = "unknown"
    status: str = CallStatus.ACTIVE
    started_at: str = Field(default_factory=utc_now_iso)
    type: str = "inbound"
    assistant_id: Optional[str] = None


class CallClosure(BaseModel):
    """Update applied to a call row when the call ends"""
    status: str = CallStatus.COMPLETED
    ended_at: str = Field(default_factory=utc_now_iso)
    duration: Optional[float] = None
    ended_reason: Optional[str] = None


class LeadRow(BaseModel):
    """Row in the leads table, unique by phone"""
    phone: str
    source: str = "VAPI Call"
    status: str = "new"
    last_contact: str = Field(default_factory=utc_now_iso)
    name: Optional[str] = None


class TranscriptRow(BaseModel):
    """Append-only transcript fragment row"""
    call_id: str
    role: Optional[str] = None
    message: Optional[str] = None
    timestamp: str = Field(default_factory=utc_now_iso)


class ToolCallRow(BaseModel):
    """Invocation log of a single tool call"""
    call_id: str
    tool_name: str
    tool_call_id: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    result: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=utc_now_iso)


class SmsRecipientResult(BaseModel):
    recipient: str
    phone: str
    success: bool


class SmsLogRow(BaseModel):
    """Audit row for an SMS alert"""
    priority: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    service_type: Optional[str] = None
    message: str
    recipients: List[SmsRecipientResult] = Field(default_factory=list)
    sent_at: str = Field(default_factory=utc_now_iso)
