"""Data models for the call ingestion service"""

from .events import (
    EventType,
    CallRef,
    ToolCallRequest,
    ToolCallResult,
    TranscriptFragment,
    InboundEvent,
)

from .records import (
    CallStatus,
    CallRow,
    CallClosure,
    LeadRow,
    TranscriptRow,
    ToolCallRow,
    SmsRecipientResult,
    SmsLogRow,
)

__all__ = [
    # Event models
    "EventType",
    "CallRef",
    "ToolCallRequest",
    "ToolCallResult",
    "TranscriptFragment",
    "InboundEvent",
    # Row models
    "CallStatus",
    "CallRow",
    "CallClosure",
    "LeadRow",
    "TranscriptRow",
    "ToolCallRow",
    "SmsRecipientResult",
    "SmsLogRow",
]
