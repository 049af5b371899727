"""
Vapi Assistant Sync

Pushes the current menu to the voice assistant:

1. render the available menu items as text and embed them in the system prompt
2. update the registered ``submit_order`` tool, or register it if missing
3. point the assistant at the prompt, the tool and this service's webhook

The sequence is not transactional. A tool registered in step 2 is saved
immediately, so a failure in step 3 does not cause a duplicate registration
on the next attempt.
"""

import logging
from functools import lru_cache
from typing import Any, Optional, Sequence

import httpx

from orderdesk.core.config import get_settings
from orderdesk.core.exceptions import ExternalServiceError, ValidationError
from orderdesk.repository import OrderDeskStore, utcnow
from orderdesk.schemas import MenuItem, SyncResponse, VapiSettings
from orderdesk.services.voice.vapi_schemas import SUBMIT_ORDER_TOOL_NAME

logger = logging.getLogger(__name__)


EMPTY_MENU_TEXT = "(No menu items configured yet)"

SYSTEM_PROMPT_TEMPLATE = """You are a friendly and efficient AI phone ordering assistant for a restaurant. Your job is to take customer orders over the phone.

## Restaurant Menu
Here are the items currently available:

{menu_text}

## Your Instructions
1. Greet the customer warmly.
2. Ask what they would like to order.
3. If they request an item NOT on the menu, politely let them know it's unavailable and suggest similar items from the menu.
4. Confirm each item, including quantity and any special requests (e.g., "extra cheese", "no onions").
5. Ask for the customer's name, phone number, and delivery address.
6. Repeat the full order back to the customer for confirmation.
7. Once confirmed, use the {tool_name} tool to place the order.
8. Let the customer know their order has been placed and the restaurant will review it shortly.

## Important Rules
- Only accept items that are on the menu above.
- Be patient and helpful.
- If the customer wants to modify or cancel during the call, accommodate them before submitting.
- Always collect: customer name, phone number, delivery address, and order items with quantities."""

SUBMIT_ORDER_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": SUBMIT_ORDER_TOOL_NAME,
        "description": (
            "Submit a customer order to the restaurant dashboard. "
            "Call this after confirming the complete order with the customer."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "customerName": {"type": "string", "description": "Full name of the customer"},
                "customerPhone": {"type": "string", "description": "Customer phone number"},
                "customerAddress": {"type": "string", "description": "Delivery address"},
                "items": {
                    "type": "array",
                    "description": "List of ordered items",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string", "description": "Menu item name"},
                            "quantity": {"type": "number", "description": "Quantity ordered"},
                            "notes": {"type": "string", "description": "Special notes for this item"},
                        },
                        "required": ["name", "quantity"],
                    },
                },
                "specialInstructions": {
                    "type": "string",
                    "description": "Overall special instructions for the order",
                },
            },
            "required": ["customerName", "customerPhone", "customerAddress", "items"],
        },
    },
}


def render_menu_text(items: Sequence[MenuItem]) -> str:
    """One line per available item: ``- Name (Category) - $12.50: description``."""
    lines = []
    for item in items:
        if not item.available:
            continue
        line = f"- {item.name} ({item.category}) - ${item.price:.2f}"
        if item.description:
            line += f": {item.description}"
        lines.append(line)
    return "\n".join(lines) if lines else EMPTY_MENU_TEXT


def build_system_prompt(menu_text: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(menu_text=menu_text, tool_name=SUBMIT_ORDER_TOOL_NAME)


class AssistantSyncService:
    """Client for the Vapi configuration API."""

    def __init__(
        self,
        base_url: str,
        model_provider: str = "openai",
        model: str = "gpt-4o",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model_provider = model_provider
        self.model = model
        self.timeout = timeout
        self.transport = transport

    def _client(self, api_key: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def sync(self, store: OrderDeskStore, default_server_url: str) -> SyncResponse:
        """
        Push menu, tool and webhook URL to the configured assistant.

        Raises:
            ValidationError: API key or assistant id not configured
            ExternalServiceError: any Vapi request failed
        """
        settings = await store.get_settings()
        if not settings.api_key or not settings.assistant_id:
            raise ValidationError(
                "VAPI API Key and Assistant ID are required. Configure them first."
            )

        menu = await store.get_menu()
        available = [m for m in menu if m.available]
        system_prompt = build_system_prompt(render_menu_text(available))
        server_url = settings.server_url or default_server_url

        async with self._client(settings.api_key) as client:
            tool_id = await self._upsert_tool(client, store, settings)
            await self._update_assistant(client, settings.assistant_id, system_prompt, tool_id, server_url)

        settings.last_sync_at = utcnow().isoformat()
        await store.save_settings(settings)

        logger.info(f"Assistant {settings.assistant_id} synced ({len(available)} menu items, tool {tool_id})")

        return SyncResponse(
            message="VAPI assistant synced successfully",
            menu_items_synced=len(available),
            tool_id=tool_id,
            last_sync_at=settings.last_sync_at,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        step: str,
        method: str,
        url: str,
        payload: dict[str, Any],
    ) -> httpx.Response:
        try:
            return await client.request(method, url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Vapi request failed ({step}): {e}")
            raise ExternalServiceError(step, str(e)) from e

    async def _upsert_tool(
        self,
        client: httpx.AsyncClient,
        store: OrderDeskStore,
        settings: VapiSettings,
    ) -> str:
        tool_id = settings.tool_id

        if tool_id:
            response = await self._request(client, "update tool", "PATCH", f"/tool/{tool_id}", SUBMIT_ORDER_TOOL)
            if response.status_code == 404:
                logger.warning(f"Tool {tool_id} no longer exists, registering a new one")
                tool_id = None
            elif response.is_error:
                raise ExternalServiceError("update tool", response.text)

        if not tool_id:
            response = await self._request(client, "create tool", "POST", "/tool", SUBMIT_ORDER_TOOL)
            if response.is_error:
                raise ExternalServiceError("create tool", response.text)

            try:
                tool_id = response.json().get("id")
            except (ValueError, AttributeError):
                tool_id = None
            if not tool_id:
                raise ExternalServiceError("create tool", response.text)

            settings.tool_id = tool_id
            await store.save_settings(settings)
            logger.info(f"Registered tool {tool_id}")

        return tool_id

    async def _update_assistant(
        self,
        client: httpx.AsyncClient,
        assistant_id: str,
        system_prompt: str,
        tool_id: str,
        server_url: str,
    ) -> None:
        payload = {
            "model": {
                "provider": self.model_provider,
                "model": self.model,
                "messages": [{"role": "system", "content": system_prompt}],
                "toolIds": [tool_id],
            },
            "serverUrl": server_url,
        }
        response = await self._request(client, "update assistant", "PATCH", f"/assistant/{assistant_id}", payload)
        if response.is_error:
            raise ExternalServiceError("update assistant", response.text)


@lru_cache()
def get_assistant_sync_service() -> AssistantSyncService:
    """Get the configured assistant sync service."""
    settings = get_settings()
    return AssistantSyncService(
        base_url=settings.vapi_base_url,
        model_provider=settings.vapi_model_provider,
        model=settings.vapi_model,
        timeout=settings.vapi_timeout_seconds,
    )
