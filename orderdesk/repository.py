"""
Persistence Adapter

Translates between the domain models in ``orderdesk.schemas`` and the rows in
``orderdesk.models``:

- camelCase API fields <-> snake_case columns
- upsert-by-id writes; ``updated_at`` is stamped here, on every order write
- "not found" is ``None``, every other database failure is ``StorageError``
- committed order writes are published to the order broker as row changes

Usage:
    store = OrderDeskStore(session, broker)
    order = await store.get_order("ord_4f1c2a9b0d3e5f67")
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Optional, Sequence

from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from orderdesk.core.exceptions import StorageError
from orderdesk.models import OrderRecord, MenuItemRecord, SettingRecord
from orderdesk.schemas import Order, MenuItem, VapiSettings
from orderdesk.services.realtime import BaseOrderBroker, ChangeType, OrderChangeEvent

logger = logging.getLogger(__name__)

SETTINGS_KEY = "vapi_settings"


# =============================================================================
# HELPERS
# =============================================================================

def new_id(prefix: str = "") -> str:
    """Opaque unique identifier, e.g. ``ord_4f1c2a9b0d3e5f67``."""
    return f"{prefix}{uuid.uuid4().hex[:16]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def order_to_row(record: OrderRecord) -> dict[str, Any]:
    """Raw snake_case row, JSON-ready, as carried by change events."""
    return {
        "id": record.id,
        "customer_name": record.customer_name,
        "customer_phone": record.customer_phone,
        "customer_address": record.customer_address,
        "items": record.items or [],
        "special_instructions": record.special_instructions,
        "status": record.status,
        "created_at": as_utc(record.created_at).isoformat(),
        "updated_at": as_utc(record.updated_at).isoformat(),
    }


def order_from_record(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        customer_name=record.customer_name or "",
        customer_phone=record.customer_phone or "",
        customer_address=record.customer_address or "",
        items=record.items or [],
        special_instructions=record.special_instructions or "",
        status=(record.status or "new").lower(),
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


def menu_item_from_record(record: MenuItemRecord) -> MenuItem:
    return MenuItem(
        id=record.id,
        name=record.name,
        category=record.category,
        price=record.price,
        description=record.description or "",
        available=record.available,
    )


def menu_item_to_record(item: MenuItem) -> MenuItemRecord:
    return MenuItemRecord(
        id=item.id,
        name=item.name,
        category=item.category,
        price=item.price,
        description=item.description,
        available=item.available,
    )


# =============================================================================
# STORE
# =============================================================================

class OrderDeskStore:
    """Data access for orders, the menu and the settings singleton."""

    def __init__(self, session: AsyncSession, broker: Optional[BaseOrderBroker] = None):
        self.session = session
        self.broker = broker

    @asynccontextmanager
    async def _storage(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Storage error during {operation}: {e}")
            await self.session.rollback()
            raise StorageError(f"Storage error during {operation}") from e

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def get_orders(self, statuses: Optional[Sequence[str]] = None) -> list[Order]:
        """All orders, newest first, optionally limited to some statuses."""
        query = select(OrderRecord).order_by(OrderRecord.created_at.desc())
        if statuses:
            wanted = [s.strip().lower() for s in statuses if s.strip()]
            query = query.where(func.lower(OrderRecord.status).in_(wanted))

        async with self._storage("list orders"):
            result = await self.session.execute(query)
            records = result.scalars().all()

        return [order_from_record(r) for r in records]

    async def get_order(self, order_id: str) -> Optional[Order]:
        """Order by id, or None if there is no such order."""
        async with self._storage("get order"):
            record = await self.session.get(OrderRecord, order_id)
        return order_from_record(record) if record else None

    async def save_order(self, order: Order) -> Order:
        """
        Upsert an order keyed by id.

        A new row gets one server timestamp for both ``created_at`` and
        ``updated_at``. An existing row keeps its ``created_at`` and gets an
        ``updated_at`` of now, strictly after the previously stored value.
        Returns the order as stored.
        """
        async with self._storage("save order"):
            record = await self.session.get(OrderRecord, order.id)
            now = utcnow()

            if record is None:
                change = ChangeType.INSERT
                record = OrderRecord(id=order.id, created_at=now)
                self.session.add(record)
                stamp = now
            else:
                change = ChangeType.UPDATE
                stamp = max(now, as_utc(record.updated_at) + timedelta(microseconds=1))

            record.customer_name = order.customer_name
            record.customer_phone = order.customer_phone
            record.customer_address = order.customer_address
            record.items = [item.model_dump(exclude_none=True) for item in order.items]
            record.special_instructions = order.special_instructions
            record.status = order.status.value
            record.updated_at = stamp

            await self.session.commit()

        await self._publish(change, record)
        return order_from_record(record)

    async def _publish(self, change: ChangeType, record: OrderRecord) -> None:
        if self.broker is None:
            return
        event = OrderChangeEvent(event_type=change, new=order_to_row(record))
        try:
            await self.broker.publish(event)
        except Exception as e:
            # The write is durable; viewers recover on their next fetch
            logger.exception(f"Failed to publish {change.value} for order {record.id}: {e}")

    # =========================================================================
    # MENU
    # =========================================================================

    async def get_menu(self, category: Optional[str] = None) -> list[MenuItem]:
        query = select(MenuItemRecord).order_by(MenuItemRecord.name)
        if category:
            query = query.where(MenuItemRecord.category == category)

        async with self._storage("list menu"):
            result = await self.session.execute(query)
            records = result.scalars().all()

        return [menu_item_from_record(r) for r in records]

    async def get_menu_item(self, item_id: str) -> Optional[MenuItem]:
        async with self._storage("get menu item"):
            record = await self.session.get(MenuItemRecord, item_id)
        return menu_item_from_record(record) if record else None

    async def save_menu_item(self, item: MenuItem) -> MenuItem:
        async with self._storage("save menu item"):
            await self.session.merge(menu_item_to_record(item))
            await self.session.commit()
        return item

    async def save_menu(self, items: Sequence[MenuItem]) -> None:
        """
        Bulk upsert, committed item by item.

        Not transactional across items: on StorageError some items may
        already be saved. Callers re-fetch the menu.
        """
        for item in items:
            await self.save_menu_item(item)
        logger.info(f"Saved {len(items)} menu item(s)")

    async def delete_menu_item(self, item_id: str) -> bool:
        """Delete permanently. Returns False if the item did not exist."""
        async with self._storage("delete menu item"):
            result = await self.session.execute(
                delete(MenuItemRecord).where(MenuItemRecord.id == item_id)
            )
            await self.session.commit()
        return result.rowcount > 0

    # =========================================================================
    # SETTINGS
    # =========================================================================

    async def get_settings(self) -> VapiSettings:
        """The settings singleton; a missing record reads as empty settings."""
        async with self._storage("get settings"):
            record = await self.session.get(SettingRecord, SETTINGS_KEY)
        return VapiSettings.model_validate(record.value if record and record.value else {})

    async def save_settings(self, settings: VapiSettings) -> VapiSettings:
        async with self._storage("save settings"):
            await self.session.merge(
                SettingRecord(
                    key=SETTINGS_KEY,
                    value=settings.model_dump(by_alias=True, exclude_none=True),
                )
            )
            await self.session.commit()
        return settings
