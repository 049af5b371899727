"""
Order Broker Abstract Base Class

Defines the publish/subscribe interface between the persistence layer
(publisher of row changes) and dashboard sessions (subscribers).
Supports both in-process (development) and Redis (production)
implementations.
"""

from abc import ABC, abstractmethod
from typing import AsyncContextManager

from orderdesk.services.realtime.events import OrderChangeEvent


class Subscription(ABC):
    """A single subscriber's view of the event stream."""

    @abstractmethod
    async def get(self) -> OrderChangeEvent:
        """Wait for the next event."""
        pass

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> OrderChangeEvent:
        return await self.get()


class BaseOrderBroker(ABC):
    """Abstract base class for order event brokers."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def publish(self, event: OrderChangeEvent) -> None:
        """Deliver an event to every current subscriber."""
        pass

    @abstractmethod
    def subscribe(self) -> AsyncContextManager[Subscription]:
        """
        Register a subscriber for the lifetime of the context.

        Events published after entry are delivered in publish order;
        nothing published before entry is replayed.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check broker connectivity."""
        pass

    async def close(self) -> None:
        """Release connections."""
        return None
