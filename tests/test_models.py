"""
Tests for inbound event parsing
"""

from call_ingest.models.events import CallRef, InboundEvent, ToolCallRequest


class TestInboundEvent:
    """Tests for event envelope handling"""

    def test_flat_event(self):
        """Test an event without envelope"""
        event = InboundEvent.model_validate({"type": "call-started", "call": {"id": "c1"}})

        assert event.type == "call-started"
        assert event.call_id == "c1"

    def test_message_envelope_is_unwrapped(self):
        """Test the message envelope is unwrapped"""
        event = InboundEvent.model_validate({"message": {"type": "call-ended", "call": {"id": "c2"}}})

        assert event.type == "call-ended"
        assert event.call_id == "c2"

    def test_tool_call_list_alias(self):
        """Test toolCallList is read as the tool calls"""
        event = InboundEvent.model_validate({
            "type": "tool-calls",
            "toolCallList": [{"id": "t1", "name": "checkAvailability", "arguments": {}}],
        })

        assert event.tool_calls[0].function_name == "checkAvailability"

    def test_string_transcript(self):
        """Test a plain string transcript with a sibling role"""
        event = InboundEvent.model_validate({
            "type": "transcript",
            "role": "user",
            "transcript": "Allô",
        })

        assert event.transcript.role == "user"
        assert event.transcript.message == "Allô"

    def test_missing_call(self):
        """Test events without a call"""
        event = InboundEvent.model_validate({"type": "health-check"})
        assert event.call_id is None


class TestToolCallRequest:
    """Tests for tool call shapes"""

    def test_platform_shape_with_json_arguments(self):
        """Test function arguments given as a JSON string"""
        request = ToolCallRequest.model_validate({
            "id": "t1",
            "type": "function",
            "function": {"name": "getQuote", "arguments": '{"serviceType": "inspection"}'},
        })

        assert request.function_name == "getQuote"
        assert request.arguments == {"serviceType": "inspection"}

    def test_unparseable_arguments_become_empty(self):
        """Test broken JSON arguments become empty"""
        request = ToolCallRequest.model_validate({"id": "t1", "function": {"name": "getQuote", "arguments": "{oops"}})
        assert request.arguments == {}

    def test_missing_id_is_generated(self):
        """Test a tool call without id gets one"""
        request = ToolCallRequest.model_validate({"name": "checkAvailability"})
        assert request.id


class TestCallRef:
    """Tests for call reference flattening"""

    def test_customer_number_and_duration(self):
        """Test customer and closure fields are flattened"""
        call = CallRef.model_validate({
            "id": "c1",
            "customer": {"number": "+15145551234"},
            "duration": 42,
            "endedReason": "hangup",
        })

        assert call.phone_number == "+15145551234"
        assert call.duration_seconds == 42
        assert call.end_reason == "hangup"

    def test_with_id_generates_once(self):
        """Test an id is generated only when missing"""
        call = CallRef().with_id()

        assert call.id
        assert call.with_id().id == call.id
