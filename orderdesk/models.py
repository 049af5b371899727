"""
SQLAlchemy Database Models

Row-oriented storage for the dashboard:
- orders: phone orders submitted by the voice assistant
- menu_items: the orderable menu
- settings: key/value records (the Vapi settings singleton)

Column names are snake_case; the API speaks camelCase. Translation between
the two lives in ``orderdesk.repository``.
"""

import enum

from sqlalchemy import Column, String, Float, DateTime, Text, Boolean, JSON
from sqlalchemy.sql import func

from orderdesk.database import Base


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    NEW = "new"
    PREPARING = "preparing"
    DELIVERED = "delivered"
    REJECTED = "rejected"


class OrderRecord(Base):
    """
    Main Order table - stores all phone orders.

    Orders are never deleted; the status column tracks the lifecycle.
    """
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(200), nullable=False, default="")
    customer_phone = Column(String(50), nullable=False, default="")
    customer_address = Column(Text, nullable=False, default="")

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(JSON, nullable=False, default=list)
    special_instructions = Column(Text, nullable=False, default="")

    # Stored as plain text so legacy rows with other casing still load
    status = Column(String(20), nullable=False, default=OrderStatus.NEW.value, index=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Order {self.id} - {self.customer_name} - {self.status}>"


class MenuItemRecord(Base):
    """One orderable menu item."""
    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default="Uncategorized", index=True)
    price = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=False, default="")
    available = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<MenuItem {self.id} - {self.name} - {self.price:.2f}>"


class SettingRecord(Base):
    """Key/value configuration record."""
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(JSON, nullable=False, default=dict)

    def __repr__(self):
        return f"<Setting {self.key}>"
