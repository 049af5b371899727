"""
Redis Order Broker

Production broker using Redis pub/sub, so an order written through any server
instance reaches dashboards connected to every other instance.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import pydantic
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from orderdesk.services.realtime.base import BaseOrderBroker, Subscription
from orderdesk.services.realtime.events import OrderChangeEvent

logger = logging.getLogger(__name__)


class _RedisSubscription(Subscription):

    def __init__(self, pubsub: aioredis.client.PubSub):
        self._pubsub = pubsub

    async def get(self) -> OrderChangeEvent:
        while True:
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True,
                timeout=None,
            )
            if message is None:
                continue
            try:
                return OrderChangeEvent.model_validate_json(message["data"])
            except pydantic.ValidationError as e:
                logger.warning(f"Dropping malformed order event: {e}")


class RedisOrderBroker(BaseOrderBroker):
    """Broker backed by a Redis pub/sub channel."""

    def __init__(self, redis_url: str, channel: str):
        self.channel = channel
        self._redis = aioredis.from_url(redis_url, decode_responses=True)
        logger.info(f"RedisOrderBroker initialized (channel={channel})")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def publish(self, event: OrderChangeEvent) -> None:
        receivers = await self._redis.publish(
            self.channel,
            event.model_dump_json(by_alias=True),
        )
        logger.debug(
            f"Published {event.event_type.value} for {event.new.get('id')} "
            f"to {receivers} subscriber(s)"
        )

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[Subscription]:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self.channel)
        try:
            yield _RedisSubscription(pubsub)
        finally:
            await pubsub.unsubscribe(self.channel)
            await pubsub.aclose()

    async def health_check(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self) -> None:
        await self._redis.aclose()
