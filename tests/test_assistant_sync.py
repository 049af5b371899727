"""
Tests for pushing the menu to the Vapi assistant
"""

import json

import httpx
import pytest

from orderdesk.core.exceptions import ExternalServiceError, ValidationError
from orderdesk.schemas import MenuItem, VapiSettings
from orderdesk.services.voice import AssistantSyncService, build_system_prompt, render_menu_text
from orderdesk.services.voice.assistant_sync import EMPTY_MENU_TEXT

WEBHOOK = "http://desk.example.com/api/vapi/webhook"


class VapiStub:
    """Records requests and answers from a (method, path) -> (status, body) table."""

    def __init__(self, routes: dict[tuple[str, str], tuple[int, dict]]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.routes.get((request.method, request.url.path), (404, {"message": "Not Found"}))
        return httpx.Response(status, json=body)

    def calls(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


def sync_service(stub: VapiStub) -> AssistantSyncService:
    return AssistantSyncService("https://api.vapi.test", transport=httpx.MockTransport(stub))


async def seed(store, settings: VapiSettings, *items: MenuItem):
    await store.save_settings(settings)
    await store.save_menu(items)


def test_render_menu_text():
    items = [
        MenuItem(id="1", name="Pizza", category="Mains", price=12.5, description="Cheesy"),
        MenuItem(id="2", name="Soda", category="Drinks", price=2),
        MenuItem(id="3", name="Secret", available=False),
    ]

    assert render_menu_text(items) == "- Pizza (Mains) - $12.50: Cheesy\n- Soda (Drinks) - $2.00"
    assert render_menu_text([]) == EMPTY_MENU_TEXT
    assert "submit_order" in build_system_prompt("- Pizza")


async def test_missing_credentials_makes_no_calls(store):
    stub = VapiStub({})
    await store.save_settings(VapiSettings(api_key="sk_live_abcdefgh1234"))

    with pytest.raises(ValidationError):
        await sync_service(stub).sync(store, WEBHOOK)

    assert stub.requests == []


async def test_first_sync_registers_tool(store):
    stub = VapiStub({
        ("POST", "/tool"): (201, {"id": "tool_1"}),
        ("PATCH", "/assistant/asst_1"): (200, {"id": "asst_1"}),
    })
    await seed(
        store,
        VapiSettings(api_key="sk_live_abcdefgh1234", assistant_id="asst_1"),
        MenuItem(id="m1", name="Pizza", category="Mains", price=12.5),
        MenuItem(id="m2", name="Ghost", available=False),
    )

    result = await sync_service(stub).sync(store, WEBHOOK)

    assert stub.calls() == [("POST", "/tool"), ("PATCH", "/assistant/asst_1")]
    assert stub.requests[0].headers["Authorization"] == "Bearer sk_live_abcdefgh1234"
    assert result.menu_items_synced == 1
    assert result.tool_id == "tool_1"

    assistant = stub.body(1)
    assert assistant["serverUrl"] == WEBHOOK
    assert assistant["model"]["toolIds"] == ["tool_1"]
    prompt = assistant["model"]["messages"][0]["content"]
    assert "- Pizza (Mains) - $12.50" in prompt
    assert "Ghost" not in prompt

    saved = await store.get_settings()
    assert saved.tool_id == "tool_1"
    assert saved.last_sync_at == result.last_sync_at


async def test_existing_tool_is_updated_and_server_url_kept(store):
    stub = VapiStub({
        ("PATCH", "/tool/tool_1"): (200, {"id": "tool_1"}),
        ("PATCH", "/assistant/asst_1"): (200, {"id": "asst_1"}),
    })
    await seed(store, VapiSettings(
        api_key="sk_live_abcdefgh1234",
        assistant_id="asst_1",
        tool_id="tool_1",
        server_url="https://custom.example.com/hook",
    ))

    result = await sync_service(stub).sync(store, WEBHOOK)

    assert stub.calls() == [("PATCH", "/tool/tool_1"), ("PATCH", "/assistant/asst_1")]
    assert stub.body(1)["serverUrl"] == "https://custom.example.com/hook"
    assert EMPTY_MENU_TEXT in stub.body(1)["model"]["messages"][0]["content"]
    assert result.menu_items_synced == 0


async def test_stale_tool_replaced_and_kept_when_assistant_update_fails(store):
    stub = VapiStub({
        ("PATCH", "/tool/tool_old"): (404, {"message": "Not Found"}),
        ("POST", "/tool"): (201, {"id": "tool_new"}),
        ("PATCH", "/assistant/asst_1"): (500, {"message": "boom"}),
    })
    await seed(store, VapiSettings(api_key="sk_live_abcdefgh1234", assistant_id="asst_1", tool_id="tool_old"))

    with pytest.raises(ExternalServiceError) as exc_info:
        await sync_service(stub).sync(store, WEBHOOK)

    assert exc_info.value.message.startswith("Failed to update assistant")
    saved = await store.get_settings()
    assert saved.tool_id == "tool_new"
    assert saved.last_sync_at is None


async def test_tool_update_failure_other_than_missing(store):
    stub = VapiStub({("PATCH", "/tool/tool_1"): (401, {"message": "Unauthorized"})})
    await seed(store, VapiSettings(api_key="sk_live_abcdefgh1234", assistant_id="asst_1", tool_id="tool_1"))

    with pytest.raises(ExternalServiceError) as exc_info:
        await sync_service(stub).sync(store, WEBHOOK)

    assert exc_info.value.step == "update tool"
    assert stub.calls() == [("PATCH", "/tool/tool_1")]


async def test_unreachable_provider(store):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    await seed(store, VapiSettings(api_key="sk_live_abcdefgh1234", assistant_id="asst_1"))
    service = AssistantSyncService("https://api.vapi.test", transport=httpx.MockTransport(refuse))

    with pytest.raises(ExternalServiceError) as exc_info:
        await service.sync(store, WEBHOOK)

    assert exc_info.value.step == "create tool"
