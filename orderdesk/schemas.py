"""
Pydantic Schemas for Request/Response Validation

The dashboard and the voice assistant speak camelCase JSON
(``customerName``, ``updatedAt``); Python code uses snake_case attribute
names. Every model accepts both spellings and serializes by alias.
"""

from datetime import datetime
from typing import Any, Optional, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from orderdesk.models import OrderStatus


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# DOMAIN MODELS
# =============================================================================

class OrderItem(CamelModel):
    """Single line of an order."""
    name: str = Field(..., examples=["Pizza Margherita"])
    quantity: int = Field(1, ge=1, examples=[2])
    notes: Optional[str] = Field(None, examples=["extra cheese"])


class Order(CamelModel):
    """One customer's request, as shown on the dashboard."""
    id: str
    customer_name: str = ""
    customer_phone: str = ""
    customer_address: str = ""
    items: List[OrderItem] = Field(default_factory=list)
    special_instructions: str = ""
    status: OrderStatus = OrderStatus.NEW
    created_at: datetime
    updated_at: datetime

    def summary(self) -> str:
        """Short item listing, e.g. ``2x Pizza, 1x Salad``."""
        return ", ".join(f"{item.quantity}x {item.name}" for item in self.items)


class MenuItem(CamelModel):
    """One orderable product."""
    id: str
    name: str = Field(..., min_length=1)
    category: str = "Uncategorized"
    price: float = Field(0.0, ge=0)
    description: str = ""
    available: bool = True


class VapiSettings(CamelModel):
    """Singleton voice-assistant configuration record."""
    api_key: Optional[str] = None
    assistant_id: Optional[str] = None
    server_url: Optional[str] = None
    tool_id: Optional[str] = None
    last_sync_at: Optional[str] = None

    def masked(self) -> "VapiSettings":
        """Copy with the credential masked for display."""
        return self.model_copy(update={"api_key": mask_secret(self.api_key)})


def mask_secret(value: Optional[str]) -> Optional[str]:
    """
    Mask a credential: first 8 and last 4 characters stay visible.

    Values too short to keep anything hidden are masked entirely.
    """
    if not value:
        return value
    if len(value) <= 12:
        return "****"
    return f"{value[:8]}...{value[-4:]}"


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderStatusUpdate(BaseModel):
    """Body of PATCH /api/orders/{id}. The target is checked by the state machine."""
    status: Optional[Any] = Field(None, examples=["preparing"])


class MenuItemCreate(CamelModel):
    """Body of POST /api/menu (JSON). Only ``name`` is required."""
    name: Optional[str] = Field(None, examples=["Pizza Margherita"])
    category: Optional[str] = Field(None, examples=["Mains"])
    price: Optional[Any] = Field(None, examples=[12.5, "$12.50"])
    description: Optional[str] = None


class MenuItemUpdate(CamelModel):
    """Body of PATCH /api/menu/{id}; only the fields sent are changed."""
    name: Optional[Any] = None
    category: Optional[Any] = None
    price: Optional[Any] = None
    description: Optional[Any] = None
    available: Optional[Any] = None


class SettingsUpdate(CamelModel):
    """Body of POST /api/vapi/settings; only the fields sent are changed."""
    api_key: Optional[str] = None
    assistant_id: Optional[str] = None
    server_url: Optional[str] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class MenuImportResponse(BaseModel):
    """Result of a spreadsheet import."""
    imported: int
    total: int
    items: List[MenuItem]


class SyncResponse(CamelModel):
    """Result of pushing the menu to the voice assistant."""
    success: bool = True
    message: str
    menu_items_synced: int
    tool_id: str
    last_sync_at: str


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    broker: str
    timestamp: datetime
