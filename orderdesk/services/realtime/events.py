"""
Order Change Events

The shape that travels over the broker mirrors a database change feed:
an event type plus the raw snake_case row as stored.

Example event:
    {
        "eventType": "INSERT",
        "table": "orders",
        "new": {
            "id": "ord_4f1c2a9b0d3e5f67",
            "customer_name": "Jo",
            "customer_phone": "",
            "customer_address": "",
            "items": [{"name": "Pizza", "quantity": 2}],
            "special_instructions": "",
            "status": "new",
            "created_at": "2026-01-01T12:00:00+00:00",
            "updated_at": "2026-01-01T12:00:00+00:00"
        }
    }
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from orderdesk.schemas import Order


class ChangeType(str, Enum):
    """Row-level change kinds carried by the feed."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class OrderChangeEvent(BaseModel):
    """One row change on the orders table."""

    model_config = ConfigDict(populate_by_name=True)

    event_type: ChangeType = Field(..., alias="eventType")
    table: str = "orders"
    new: dict[str, Any]


def order_from_row(row: dict[str, Any]) -> Order:
    """Synthesize the canonical Order from a raw snake_case row."""
    return Order(
        id=row["id"],
        customer_name=row.get("customer_name") or "",
        customer_phone=row.get("customer_phone") or "",
        customer_address=row.get("customer_address") or "",
        items=row.get("items") or [],
        special_instructions=row.get("special_instructions") or "",
        status=(row.get("status") or "new").lower(),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
