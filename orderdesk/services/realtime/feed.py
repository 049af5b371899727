"""
Websocket feed for dashboard viewers.

Subscribes before fetching the initial snapshot so no change is lost in
between; anything delivered twice as a result is absorbed by the session's
merge-by-id.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from starlette.websockets import WebSocket, WebSocketDisconnect

from orderdesk.schemas import Order
from orderdesk.services.realtime.base import BaseOrderBroker, Subscription
from orderdesk.services.realtime.session import DashboardSession

logger = logging.getLogger(__name__)


async def serve_dashboard(
    websocket: WebSocket,
    broker: BaseOrderBroker,
    load_orders: Callable[[], Awaitable[list[Order]]],
) -> DashboardSession:
    """Stream order changes to one viewer until it disconnects."""
    async with broker.subscribe() as subscription:
        session = DashboardSession(await load_orders())
        await websocket.send_json(session.snapshot_message())
        logger.info(f"Dashboard connected ({len(session.orders)} orders, {session.new_count} new)")

        forward = asyncio.create_task(_forward(websocket, subscription, session))
        disconnect = asyncio.create_task(_wait_for_disconnect(websocket))

        done, pending = await asyncio.wait(
            {forward, disconnect},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc

    logger.info("Dashboard disconnected")
    return session


async def _forward(
    websocket: WebSocket,
    subscription: Subscription,
    session: DashboardSession,
) -> None:
    async for event in subscription:
        update = session.apply(event)
        if update is not None:
            await websocket.send_json(update.to_message())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
