"""
In-Memory Order Broker

Fans events out to subscribers inside a single process. Each subscriber owns
an asyncio queue bound to the event loop it subscribed from; publishing from
another thread or loop hands the event over with ``call_soon_threadsafe``.
"""

import asyncio
import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator

from orderdesk.services.realtime.base import BaseOrderBroker, Subscription
from orderdesk.services.realtime.events import OrderChangeEvent

logger = logging.getLogger(__name__)


class _QueueSubscription(Subscription):

    def __init__(self):
        self.loop = asyncio.get_running_loop()
        self.queue: asyncio.Queue[OrderChangeEvent] = asyncio.Queue()

    def deliver(self, event: OrderChangeEvent) -> None:
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        if current is self.loop:
            self.queue.put_nowait(event)
        elif not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self.queue.put_nowait, event)

    async def get(self) -> OrderChangeEvent:
        return await self.queue.get()


class InMemoryOrderBroker(BaseOrderBroker):
    """Process-local broker for development and tests."""

    def __init__(self):
        self._subscribers: set[_QueueSubscription] = set()
        self._lock = threading.Lock()
        logger.info("InMemoryOrderBroker initialized")

    @property
    def provider_name(self) -> str:
        return "memory"

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    async def publish(self, event: OrderChangeEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            subscriber.deliver(event)

        logger.debug(
            f"Published {event.event_type.value} for {event.new.get('id')} "
            f"to {len(subscribers)} subscriber(s)"
        )

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        subscription = _QueueSubscription()
        with self._lock:
            self._subscribers.add(subscription)
        try:
            yield subscription
        finally:
            with self._lock:
                self._subscribers.discard(subscription)

    async def health_check(self) -> bool:
        """In-process broker is always reachable."""
        return True
