"""
Dashboard Session

Per-viewer in-memory view of the orders table, kept current by change events.

Delivery is at-least-once and unordered relative to the viewer's own HTTP
requests (a reconnect or an overlapping fetch-then-push can deliver the same
row twice), so every event is merged by order id:

- an identical snapshot applied twice changes nothing
- a snapshot older than the one held (by ``updated_at``) is ignored
- an INSERT for an order already held is treated as an update
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from orderdesk.models import OrderStatus
from orderdesk.schemas import Order
from orderdesk.services.realtime.events import ChangeType, OrderChangeEvent, order_from_row


@dataclass
class Notification:
    """Audible + visual alert for staff."""
    title: str
    description: str
    sound: bool = True
    duration_ms: int = 8000

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "sound": self.sound,
            "durationMs": self.duration_ms,
        }


@dataclass
class SessionUpdate:
    """What a viewer must re-render after an event."""
    kind: str
    order: Order
    new_count: int
    notification: Optional[Notification] = field(default=None)

    def to_message(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "order": self.order.model_dump(mode="json", by_alias=True),
            "newCount": self.new_count,
            "notification": self.notification.to_dict() if self.notification else None,
        }


class DashboardSession:
    """In-memory order list and ``new`` counter for one connected dashboard."""

    def __init__(self, orders: Iterable[Order] = ()):
        self.orders: list[Order] = []
        self.new_count = 0
        self.load(orders)

    def load(self, orders: Iterable[Order]) -> None:
        """Replace the view with a freshly fetched list (newest first)."""
        self.orders = list(orders)
        self._recount()

    def apply(self, event: OrderChangeEvent) -> Optional[SessionUpdate]:
        """Merge one change event. Returns None when nothing changed."""
        order = order_from_row(event.new)
        if event.event_type == ChangeType.INSERT:
            return self.apply_insert(order)
        return self.apply_update(order)

    def apply_insert(self, order: Order) -> Optional[SessionUpdate]:
        if self._index_of(order.id) is not None:
            return self.apply_update(order)

        self.orders.insert(0, order)
        if order.status == OrderStatus.NEW:
            self.new_count += 1

        notification = Notification(
            title="New Order!",
            description=f"{order.customer_name} - {order.summary()}",
        )
        return SessionUpdate("order_created", order, self.new_count, notification)

    def apply_update(self, order: Order) -> Optional[SessionUpdate]:
        index = self._index_of(order.id)
        if index is None:
            self.orders.insert(0, order)
        else:
            current = self.orders[index]
            if current == order or current.updated_at > order.updated_at:
                return None
            self.orders[index] = order

        # Recount from the list so a missed event cannot skew the badge
        self._recount()
        return SessionUpdate("order_updated", order, self.new_count)

    def snapshot_message(self) -> dict[str, Any]:
        return {
            "type": "snapshot",
            "orders": [o.model_dump(mode="json", by_alias=True) for o in self.orders],
            "newCount": self.new_count,
        }

    def _index_of(self, order_id: str) -> Optional[int]:
        for index, held in enumerate(self.orders):
            if held.id == order_id:
                return index
        return None

    def _recount(self) -> None:
        self.new_count = sum(1 for o in self.orders if o.status == OrderStatus.NEW)
