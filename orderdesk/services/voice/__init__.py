"""
Voice Service Module

Vapi.ai integration: inbound webhook ingestion and outbound assistant sync.

Usage:
    from orderdesk.services.voice import VapiWebhookHandler

    handler = VapiWebhookHandler(order_service)
    outcome = await handler.handle_webhook(body)
"""

from orderdesk.services.voice.vapi_handler import (
    VapiWebhookHandler,
    classify_payload,
    synthesize_order,
)
from orderdesk.services.voice.vapi_schemas import (
    SUBMIT_ORDER_TOOL_NAME,
    VapiMessageType,
    ToolCallResult,
    WebhookOutcome,
)
from orderdesk.services.voice.assistant_sync import (
    AssistantSyncService,
    get_assistant_sync_service,
    render_menu_text,
    build_system_prompt,
)

__all__ = [
    # Handler
    "VapiWebhookHandler",
    "classify_payload",
    "synthesize_order",
    # Schemas
    "SUBMIT_ORDER_TOOL_NAME",
    "VapiMessageType",
    "ToolCallResult",
    "WebhookOutcome",
    # Sync
    "AssistantSyncService",
    "get_assistant_sync_service",
    "render_menu_text",
    "build_system_prompt",
]
