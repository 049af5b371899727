"""
Vapi.ai Webhook Handler

Turns one inbound webhook call into zero or more new orders:

- classify_payload: ordered cascade of shape checks -> request variant
- synthesize_order: parameters of any variant -> fresh Order in state ``new``
- VapiWebhookHandler: persists the orders and builds the response each
  variant's caller expects

The cascade is permissive on purpose: unknown fields are ignored, missing
fields get defaults, and a tool call whose argument string does not decode
still produces an order (with default fields) instead of failing the batch.
"""

import json
import logging
from typing import Any

from orderdesk.core.exceptions import MalformedPayloadError
from orderdesk.schemas import Order, OrderItem
from orderdesk.services.order_lifecycle import OrderService, start_order
from orderdesk.services.voice.vapi_schemas import (
    SUBMIT_ORDER_TOOL_NAME,
    UNKNOWN_CUSTOMER,
    VapiMessageType,
    ToolCall,
    ToolCallsRequest,
    FunctionCallRequest,
    DirectOrderRequest,
    OtherEvent,
    WebhookRequest,
    ToolCallResult,
    WebhookOutcome,
)

logger = logging.getLogger(__name__)


# =============================================================================
# SHAPE RECOGNITION
# =============================================================================

def parse_arguments(raw: Any) -> dict[str, Any]:
    """Tool arguments arrive as an object or as a JSON-encoded string."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse tool arguments: {e}")
            return {}
    return raw if isinstance(raw, dict) else {}


def _tool_call(raw: Any) -> ToolCall:
    if not isinstance(raw, dict):
        return ToolCall(id=None, name=None)

    function = raw.get("function")
    if not isinstance(function, dict):
        function = {}

    return ToolCall(
        id=raw.get("id"),
        name=function.get("name") or raw.get("name"),
        parameters=parse_arguments(function.get("arguments") or raw.get("parameters") or {}),
    )


def _is_direct_order(body: dict[str, Any]) -> bool:
    return (
        not body.get("message")
        and bool(body.get("customerName"))
        and body.get("items") not in (None, "", 0, False)
    )


def classify_payload(body: Any) -> WebhookRequest:
    """
    Recognize which historical shape a webhook body has.

    Raises:
        MalformedPayloadError: body is not a JSON object
    """
    if not isinstance(body, dict):
        raise MalformedPayloadError("Webhook payload must be a JSON object")

    message = body.get("message")
    if isinstance(message, dict):
        kind = message.get("type")

        if kind == VapiMessageType.TOOL_CALLS.value:
            calls = (
                message.get("toolCallList")
                or message.get("toolCalls")
                or message.get("tool_calls")
                or []
            )
            if not isinstance(calls, list):
                calls = []
            return ToolCallsRequest(calls=[_tool_call(c) for c in calls])

        if kind == VapiMessageType.FUNCTION_CALL.value:
            function_call = message.get("functionCall")
            if not isinstance(function_call, dict):
                function_call = {}
            return FunctionCallRequest(
                name=function_call.get("name"),
                parameters=parse_arguments(function_call.get("parameters") or {}),
            )

        return OtherEvent(event_type=kind)

    if _is_direct_order(body):
        return DirectOrderRequest(parameters=body)

    return OtherEvent()


# =============================================================================
# ORDER SYNTHESIS
# =============================================================================

def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _quantity(value: Any) -> int:
    if isinstance(value, bool):
        return 1
    try:
        quantity = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 1
    return quantity if quantity >= 1 else 1


def coerce_items(raw: Any) -> list[OrderItem]:
    """Line items in submission order; entries that are not objects are dropped."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Failed to parse items string")
            return []
    if not isinstance(raw, list):
        return []

    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        notes = entry.get("notes")
        items.append(OrderItem(
            name=_text(entry.get("name")),
            quantity=_quantity(entry.get("quantity", 1)),
            notes=_text(notes) if notes not in (None, "") else None,
        ))
    return items


def synthesize_order(params: dict[str, Any]) -> Order:
    """Fresh ``new`` order from submit_order parameters, with defaults."""
    return start_order(
        customer_name=_text(params.get("customerName")) or UNKNOWN_CUSTOMER,
        customer_phone=_text(params.get("customerPhone")),
        customer_address=_text(params.get("customerAddress")),
        items=coerce_items(params.get("items")),
        special_instructions=_text(params.get("specialInstructions")),
    )


# =============================================================================
# HANDLER
# =============================================================================

class VapiWebhookHandler:
    """
    Handles Vapi.ai webhook events for order submission.

    Supported Functions:
        - submit_order: create a new order for the dashboard
    """

    def __init__(self, orders: OrderService):
        self.orders = orders

    async def handle_webhook(self, body: Any) -> WebhookOutcome:
        """Main entry point for processing Vapi webhooks."""
        request = classify_payload(body)
        logger.info(f"Processing Vapi webhook: {type(request).__name__}")

        if isinstance(request, ToolCallsRequest):
            return await self._handle_tool_calls(request)

        elif isinstance(request, FunctionCallRequest):
            return await self._handle_function_call(request)

        elif isinstance(request, DirectOrderRequest):
            return await self._handle_direct_order(request)

        else:
            logger.debug(f"Unhandled webhook type: {request.event_type}")
            return WebhookOutcome(body={"received": True})

    async def _handle_tool_calls(self, request: ToolCallsRequest) -> WebhookOutcome:
        results: list[ToolCallResult] = []
        created: list[Order] = []

        for call in request.calls:
            if call.name == SUBMIT_ORDER_TOOL_NAME:
                order = await self.orders.create_order(synthesize_order(call.parameters))
                created.append(order)
                result = {
                    "success": True,
                    "orderId": order.id,
                    "message": (
                        f"Order placed successfully. Order ID: {order.id}. "
                        f"The restaurant will review your order shortly."
                    ),
                }
            else:
                logger.warning(f"Unknown tool: {call.name}")
                result = {"error": "Unknown tool", "receivedName": call.name}

            results.append(ToolCallResult(
                name=call.name,
                tool_call_id=call.id,
                result=json.dumps(result),
            ))

        return WebhookOutcome(
            body={"results": [r.model_dump(by_alias=True) for r in results]},
            orders=created,
        )

    async def _handle_function_call(self, request: FunctionCallRequest) -> WebhookOutcome:
        if request.name != SUBMIT_ORDER_TOOL_NAME:
            logger.debug(f"Ignoring legacy function call: {request.name}")
            return WebhookOutcome(body={"received": True})

        order = await self.orders.create_order(synthesize_order(request.parameters))
        result = {
            "success": True,
            "orderId": order.id,
            "message": f"Order placed successfully. Order ID: {order.id}.",
        }
        return WebhookOutcome(body={"result": json.dumps(result)}, orders=[order])

    async def _handle_direct_order(self, request: DirectOrderRequest) -> WebhookOutcome:
        order = await self.orders.create_order(synthesize_order(request.parameters))
        return WebhookOutcome(
            body=order.model_dump(mode="json", by_alias=True),
            status_code=201,
            orders=[order],
        )
