"""
Data models for inbound voice platform events
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EventType(str, Enum):
    """Event types the router dispatches on"""
    HEALTH_CHECK = "health-check"
    TOOL_CALLS = "tool-calls"
    CALL_STARTED = "call-started"
    TRANSCRIPT = "transcript"
    CALL_ENDED = "call-ended"


class CallRef(BaseModel):
    """Transient copy of the call an event belongs to"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(default=None, description="External call identifier")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    started_at: Optional[str] = Field(default=None, alias="startedAt")
    ended_at: Optional[str] = Field(default=None, alias="endedAt")
    duration_seconds: Optional[float] = Field(default=None, alias="durationSeconds")
    end_reason: Optional[str] = Field(default=None, alias="endedReason")
    call_type: Optional[str] = Field(default=None, alias="type")
    assistant_id: Optional[str] = Field(default=None, alias="assistantId")

    @model_validator(mode="before")
    @classmethod
    def _flatten_platform_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        customer = data.get("customer")
        if not data.get("phoneNumber") and isinstance(customer, dict):
            data["phoneNumber"] = customer.get("number")
        if data.get("durationSeconds") is None and data.get("duration") is not None:
            data["durationSeconds"] = data["duration"]
        return data

    def with_id(self) -> "CallRef":
        """Return this reference with an identifier, generating one if absent"""
        if self.id:
            return self
        return self.model_copy(update={"id": str(uuid4())})


class ToolCallRequest(BaseModel):
    """A single function-call request emitted mid-conversation"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    function_name: str = Field(alias="functionName")
    arguments: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _from_platform_shape(cls, data: Any) -> Any:
        """
        Accept both {id, function: {name, arguments}} and {id, name, arguments}.

        Arguments may arrive as a JSON string; anything unparseable becomes an
        empty map.
        """
        if not isinstance(data, dict):
            return data
        function = data.get("function")
        if isinstance(function, dict):
            name = function.get("name")
            arguments = function.get("arguments")
        else:
            name = data.get("functionName") or data.get("function_name") or data.get("name")
            arguments = data.get("arguments")

        if isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except ValueError:
                arguments = {}
        if not isinstance(arguments, dict):
            arguments = {}

        return {
            "id": data.get("id") or str(uuid4()),
            "functionName": name or "",
            "arguments": arguments,
        }


class ToolCallResult(BaseModel):
    """Answer for one tool call, correlated by the request id"""
    model_config = ConfigDict(populate_by_name=True)

    tool_call_id: str = Field(alias="toolCallId")
    result: Dict[str, Any]

    def to_response(self) -> Dict[str, Any]:
        return {"toolCallId": self.tool_call_id, "result": self.result}


class TranscriptFragment(BaseModel):
    """A live transcript fragment"""
    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    message: Optional[str] = None
    timestamp: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_text(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("message") is None:
            text = data.get("text") or data.get("transcript")
            if text is not None:
                data = {**data, "message": text}
        return data


class InboundEvent(BaseModel):
    """One webhook event, consumed exactly once by the router"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    type: str = ""
    call: Optional[CallRef] = None
    tool_calls: Optional[List[ToolCallRequest]] = Field(default=None, alias="toolCalls")
    transcript: Optional[TranscriptFragment] = None

    @model_validator(mode="before")
    @classmethod
    def _unwrap_message(cls, data: Any) -> Any:
        """The platform may wrap the event as {"message": {...}}"""
        if not isinstance(data, dict):
            return data
        if "type" not in data and isinstance(data.get("message"), dict):
            data = data["message"]
        if data.get("toolCalls") is None and isinstance(data.get("toolCallList"), list):
            data = {**data, "toolCalls": data["toolCallList"]}
        if "toolCalls" in data and not isinstance(data["toolCalls"], list):
            data = {**data, "toolCalls": None}
        if isinstance(data.get("transcript"), str):
            data = {
                **data,
                "transcript": {
                    "role": data.get("role"),
                    "message": data["transcript"],
                    "timestamp": data.get("timestamp"),
                },
            }
        return data

    @property
    def call_id(self) -> Optional[str]:
        return self.call.id if self.call else None
