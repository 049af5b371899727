"""
Tests for the change feed: broker delivery, dashboard session merge and
the websocket feed.
"""

import asyncio
from datetime import datetime, timedelta

from starlette.websockets import WebSocketDisconnect

from orderdesk.models import OrderStatus
from orderdesk.services.realtime import (
    ChangeType,
    DashboardSession,
    InMemoryOrderBroker,
    OrderChangeEvent,
    get_order_broker,
    reset_order_broker,
)
from orderdesk.services.realtime.feed import serve_dashboard
from tests.conftest import wait_until


def event(change: ChangeType, order) -> OrderChangeEvent:
    row = {
        "id": order.id,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_address": order.customer_address,
        "items": [i.model_dump(exclude_none=True) for i in order.items],
        "special_instructions": order.special_instructions,
        "status": order.status.value,
        "created_at": order.created_at.isoformat(),
        "updated_at": order.updated_at.isoformat(),
    }
    return OrderChangeEvent(event_type=change, new=row)


class FakeWebSocket:
    """Stands in for a connected dashboard."""

    def __init__(self):
        self.sent: list[dict] = []
        self.incoming: asyncio.Queue = asyncio.Queue()

    async def send_json(self, data):
        self.sent.append(data)

    async def receive(self):
        return await self.incoming.get()

    def disconnect(self):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": 1000})


class TestDashboardSession:

    def test_insert_prepends_and_notifies(self, make_order):
        older = make_order("Ann")
        session = DashboardSession([older])
        order = make_order("Jo", ("Pizza", 2), ("Salad", 1))

        update = session.apply(event(ChangeType.INSERT, order))

        assert [o.id for o in session.orders] == [order.id, older.id]
        assert update.new_count == 2
        assert update.notification.title == "New Order!"
        assert update.notification.description == "Jo - 2x Pizza, 1x Salad"
        assert update.to_message()["notification"]["durationMs"] == 8000

    def test_duplicate_insert_is_idempotent(self, make_order):
        session = DashboardSession()
        order = make_order()

        first = session.apply(event(ChangeType.INSERT, order))
        second = session.apply(event(ChangeType.INSERT, order))

        assert first is not None and first.notification is not None
        assert second is None
        assert len(session.orders) == 1
        assert session.new_count == 1

    def test_update_recounts(self, make_order):
        order = make_order()
        session = DashboardSession([order])
        preparing = order.model_copy(update={
            "status": OrderStatus.PREPARING,
            "updated_at": order.updated_at + timedelta(seconds=1),
        })

        update = session.apply(event(ChangeType.UPDATE, preparing))

        assert update.kind == "order_updated"
        assert update.notification is None
        assert session.new_count == 0
        assert session.orders[0].status == OrderStatus.PREPARING

    def test_stale_update_ignored(self, make_order):
        order = make_order()
        newer = order.model_copy(update={
            "status": OrderStatus.DELIVERED,
            "updated_at": order.updated_at + timedelta(seconds=5),
        })
        session = DashboardSession([newer])

        assert session.apply(event(ChangeType.UPDATE, order)) is None
        assert session.orders[0].status == OrderStatus.DELIVERED

    def test_update_for_unknown_order_is_added(self, make_order):
        session = DashboardSession()
        order = make_order().model_copy(update={"status": OrderStatus.PREPARING})

        update = session.apply(event(ChangeType.UPDATE, order))

        assert update is not None
        assert [o.id for o in session.orders] == [order.id]
        assert session.new_count == 0


class TestInMemoryOrderBroker:

    async def test_delivers_to_every_subscriber(self, make_order):
        broker = InMemoryOrderBroker()
        published = event(ChangeType.INSERT, make_order())

        async with broker.subscribe() as first, broker.subscribe() as second:
            assert broker.subscriber_count == 2
            await broker.publish(published)
            assert await asyncio.wait_for(first.get(), 1) == published
            assert await asyncio.wait_for(second.get(), 1) == published

        assert broker.subscriber_count == 0

    async def test_publish_without_subscribers(self, make_order):
        await InMemoryOrderBroker().publish(event(ChangeType.INSERT, make_order()))

    async def test_health(self):
        assert await InMemoryOrderBroker().health_check() is True


class TestStorePublishes:

    async def test_insert_then_update(self, broker, orders, make_order):
        async with broker.subscribe() as subscription:
            order = await orders.create_order(make_order("Jo"))
            await orders.update_status(order.id, "preparing")

            inserted = await asyncio.wait_for(subscription.get(), 1)
            updated = await asyncio.wait_for(subscription.get(), 1)

        assert inserted.event_type == ChangeType.INSERT
        assert inserted.new["customer_name"] == "Jo"
        assert inserted.new["status"] == "new"
        assert updated.event_type == ChangeType.UPDATE
        assert updated.new["status"] == "preparing"
        assert datetime.fromisoformat(updated.new["updated_at"]) > datetime.fromisoformat(inserted.new["updated_at"])


class TestServeDashboard:

    async def test_snapshot_then_live_changes(self, broker, store, orders, make_order):
        existing = await orders.create_order(make_order("Ann"))
        websocket = FakeWebSocket()

        feed = asyncio.create_task(serve_dashboard(websocket, broker, store.get_orders))
        await wait_until(lambda: len(websocket.sent) == 1)

        snapshot = websocket.sent[0]
        assert snapshot["type"] == "snapshot"
        assert [o["id"] for o in snapshot["orders"]] == [existing.id]
        assert snapshot["newCount"] == 1

        created = await orders.create_order(make_order("Jo"))
        await wait_until(lambda: len(websocket.sent) == 2)
        assert websocket.sent[1]["type"] == "order_created"
        assert websocket.sent[1]["order"]["id"] == created.id
        assert websocket.sent[1]["newCount"] == 2

        await orders.update_status(existing.id, "rejected")
        await wait_until(lambda: len(websocket.sent) == 3)
        assert websocket.sent[2]["type"] == "order_updated"
        assert websocket.sent[2]["newCount"] == 1

        websocket.disconnect()
        session = await asyncio.wait_for(feed, 1)

        assert session.new_count == 1
        assert broker.subscriber_count == 0

    async def test_send_failure_after_disconnect_ends_quietly(self, broker, make_order):
        class ClosedWebSocket(FakeWebSocket):
            async def send_json(self, data):
                if self.sent:
                    raise WebSocketDisconnect(code=1001)
                self.sent.append(data)

        websocket = ClosedWebSocket()

        async def no_orders():
            return []

        feed = asyncio.create_task(serve_dashboard(websocket, broker, no_orders))
        await wait_until(lambda: len(websocket.sent) == 1)

        await broker.publish(event(ChangeType.INSERT, make_order()))
        await asyncio.wait_for(feed, 1)

        assert broker.subscriber_count == 0


def test_development_mode_uses_in_memory_broker():
    reset_order_broker()
    try:
        broker = get_order_broker()
        assert isinstance(broker, InMemoryOrderBroker)
        assert get_order_broker() is broker
    finally:
        reset_order_broker()
