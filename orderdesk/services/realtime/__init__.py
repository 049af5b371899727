"""
Real-Time Order Broker Factory

Returns the in-memory or Redis broker based on ENV_MODE.

Usage:
    from orderdesk.services.realtime import get_order_broker

    broker = get_order_broker()
    async with broker.subscribe() as subscription:
        event = await subscription.get()
"""

import logging
from functools import lru_cache

from orderdesk.core.config import get_settings
from orderdesk.services.realtime.base import BaseOrderBroker, Subscription
from orderdesk.services.realtime.events import ChangeType, OrderChangeEvent, order_from_row
from orderdesk.services.realtime.memory import InMemoryOrderBroker
from orderdesk.services.realtime.redis_broker import RedisOrderBroker
from orderdesk.services.realtime.session import DashboardSession, Notification, SessionUpdate

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_broker() -> BaseOrderBroker:
    """Get the configured order broker."""
    settings = get_settings()

    if settings.use_shared_broker:
        logger.info(f"Order Broker: Using RedisOrderBroker ({settings.env_mode.value} mode)")
        return RedisOrderBroker(settings.redis_url, settings.realtime_channel)
    else:
        logger.info("Order Broker: Using InMemoryOrderBroker (development mode)")
        return InMemoryOrderBroker()


def reset_order_broker() -> None:
    """Clear the cached broker instance."""
    get_order_broker.cache_clear()


__all__ = [
    "get_order_broker",
    "reset_order_broker",
    "BaseOrderBroker",
    "Subscription",
    "InMemoryOrderBroker",
    "RedisOrderBroker",
    "ChangeType",
    "OrderChangeEvent",
    "order_from_row",
    "DashboardSession",
    "Notification",
    "SessionUpdate",
]
