"""
Test configuration and fixtures for the Restaurant Order Desk
"""

import os

# Must be set before orderdesk is imported: the engine and settings are
# module-level singletons.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENV_MODE"] = "development"
os.environ["STRICT_TRANSITIONS"] = "false"

import asyncio
from typing import Any, AsyncIterator, Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orderdesk.database import get_db, get_session_factory, init_db
from orderdesk.main import app
from orderdesk.repository import OrderDeskStore
from orderdesk.schemas import OrderItem
from orderdesk.services.order_lifecycle import OrderService, start_order
from orderdesk.services.realtime import InMemoryOrderBroker, get_order_broker


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def broker() -> InMemoryOrderBroker:
    return InMemoryOrderBroker()


@pytest.fixture
def store(db, broker) -> OrderDeskStore:
    return OrderDeskStore(db, broker)


@pytest.fixture
def orders(store) -> OrderService:
    return OrderService(store)


@pytest.fixture
def make_order():
    """Build a fresh ``new`` order."""
    def _make(name: str = "Jo", *items: tuple[str, int], **fields: Any):
        lines = [OrderItem(name=n, quantity=q) for n, q in items] or [OrderItem(name="Pizza", quantity=2)]
        return start_order(customer_name=name, items=lines, **fields)
    return _make


@pytest.fixture
async def client(session_factory, broker) -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client against the app, wired to the test database and broker."""

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_order_broker] = lambda: broker
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until ``predicate`` holds."""
    async def poll():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(poll(), timeout)
