"""
Vapi.ai Webhook Payload Schemas

Vapi has posted "the caller wants to place an order" in several shapes over
time. Each recognized shape is one variant below; ``classify_payload`` in
``vapi_handler`` picks the variant with an ordered cascade of shape checks.

Recognized shapes:

    Batched tool calls (current):
        {
            "message": {
                "type": "tool-calls",
                "toolCallList": [
                    {
                        "id": "call_abc123",
                        "function": {
                            "name": "submit_order",
                            "arguments": "{\"customerName\": \"Jo\", \"items\": [...]}"
                        }
                    }
                ]
            }
        }

    Legacy single function call:
        {
            "message": {
                "type": "function-call",
                "functionCall": {"name": "submit_order", "parameters": {...}}
            }
        }

    Direct creation (testing, no envelope):
        {"customerName": "Jo", "items": [{"name": "Pizza", "quantity": 2}]}

Everything else (status-update, transcript, end-of-call-report, ...) is
acknowledged and ignored.

Reference:
    https://docs.vapi.ai/server-url/events
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from orderdesk.schemas import Order


SUBMIT_ORDER_TOOL_NAME = "submit_order"
UNKNOWN_CUSTOMER = "Unknown Customer"


class VapiMessageType(str, Enum):
    """Types of messages Vapi sends to webhooks."""
    TOOL_CALLS = "tool-calls"
    FUNCTION_CALL = "function-call"
    END_OF_CALL_REPORT = "end-of-call-report"
    STATUS_UPDATE = "status-update"
    TRANSCRIPT = "transcript"
    HANG = "hang"
    SPEECH_UPDATE = "speech-update"
    CONVERSATION_UPDATE = "conversation-update"


# =============================================================================
# REQUEST VARIANTS
# =============================================================================

@dataclass
class ToolCall:
    """One entry of a tool-calls batch, parameters already decoded."""
    id: Any
    name: Optional[str]
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolCallsRequest:
    calls: list[ToolCall] = field(default_factory=list)


@dataclass
class FunctionCallRequest:
    name: Optional[str]
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class DirectOrderRequest:
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass
class OtherEvent:
    event_type: Optional[str] = None


WebhookRequest = Union[ToolCallsRequest, FunctionCallRequest, DirectOrderRequest, OtherEvent]


# =============================================================================
# RESPONSES
# =============================================================================

class ToolCallResult(BaseModel):
    """
    Result entry correlated 1:1 with a tool call.

    ``result`` is a JSON-encoded string, as Vapi expects.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[Any] = None
    tool_call_id: Optional[Any] = Field(None, alias="toolCallId")
    result: str


@dataclass
class WebhookOutcome:
    """HTTP response for one webhook call plus the orders it created."""
    body: Any
    status_code: int = 200
    orders: list[Order] = field(default_factory=list)
