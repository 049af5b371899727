"""
Order Lifecycle

State machine for an order from creation to terminal disposition:

    new ──► preparing ──► delivered
     │
     └────► rejected

``delivered`` and ``rejected`` are terminal. Nothing moves backward and
nothing skips ``preparing`` on the way to ``delivered``.

Staff may only request the targets ``preparing``, ``delivered`` and
``rejected``; any other value is a validation error. By default a target in
that set is accepted whatever the current status (the dashboard relies on
this to correct mis-clicks). Setting ``STRICT_TRANSITIONS=true`` enforces the
table above and rejects other pairs with ``TransitionError``.
"""

import logging
from typing import Any, Optional

from orderdesk.core.exceptions import NotFoundError, TransitionError, ValidationError
from orderdesk.models import OrderStatus
from orderdesk.repository import OrderDeskStore, new_id, utcnow
from orderdesk.schemas import Order, OrderItem

logger = logging.getLogger(__name__)


INITIAL_STATUS = OrderStatus.NEW

ALLOWED_TARGETS = (
    OrderStatus.PREPARING,
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
)

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({OrderStatus.PREPARING, OrderStatus.REJECTED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def parse_target(value: Any) -> OrderStatus:
    """Validate a requested target status."""
    allowed = [s.value for s in ALLOWED_TARGETS]
    if not isinstance(value, str) or value not in allowed:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(allowed)}")
    return OrderStatus(value)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in TRANSITIONS[current]


def start_order(
    customer_name: str,
    customer_phone: str = "",
    customer_address: str = "",
    items: Optional[list[OrderItem]] = None,
    special_instructions: str = "",
) -> Order:
    """A fresh order in the initial state, ``created_at == updated_at``."""
    now = utcnow()
    return Order(
        id=new_id("ord_"),
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_address=customer_address,
        items=items or [],
        special_instructions=special_instructions,
        status=INITIAL_STATUS,
        created_at=now,
        updated_at=now,
    )


class OrderService:
    """Order reads and staff status changes."""

    def __init__(self, store: OrderDeskStore, strict_transitions: bool = False):
        self.store = store
        self.strict_transitions = strict_transitions

    async def list_orders(self, status_filter: Optional[str] = None) -> list[Order]:
        """Newest first; ``status_filter`` is a comma-separated status list."""
        statuses = status_filter.split(",") if status_filter else None
        return await self.store.get_orders(statuses)

    async def get_order(self, order_id: str) -> Order:
        order = await self.store.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def create_order(self, order: Order) -> Order:
        saved = await self.store.save_order(order)
        logger.info(f"Order {saved.id} created for {saved.customer_name} ({saved.summary() or 'no items'})")
        return saved

    async def update_status(self, order_id: str, status: Any) -> Order:
        """
        Move an order to a new status.

        Raises:
            NotFoundError: unknown order id
            ValidationError: target outside preparing/delivered/rejected
            TransitionError: pair not in the table (strict mode only)
        """
        order = await self.get_order(order_id)
        target = parse_target(status)

        if self.strict_transitions and not can_transition(order.status, target):
            raise TransitionError(
                f"Cannot move order from {order.status.value} to {target.value}"
            )

        saved = await self.store.save_order(order.model_copy(update={"status": target}))
        logger.info(f"Order {order_id}: {order.status.value} -> {target.value}")
        return saved
