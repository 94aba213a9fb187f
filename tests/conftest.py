"""
Pytest fixtures for ClaimGate tests.
"""

import os

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure test config is set before importing claimgate modules.
os.environ.setdefault("CLAIMGATE_ALLOW_INSECURE_DEV", "true")
os.environ.setdefault("CLAIMGATE_ENV", "development")
os.environ.setdefault("CLAIMGATE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from claimgate.db.base import Base
import claimgate.db.tables  # noqa: F401
from claimgate.engine import TaskService
from claimgate.integrations import NotificationDispatcher
from claimgate.observability.metrics import metrics

from tests.fakes import (
    FakePaymentGateway,
    FrozenClock,
    InMemoryProviderStore,
    InMemoryRecordStore,
    RecordingNotificationGateway,
)

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


# ============================================================================
# Engine fixtures (in-memory conditional-write store)
# ============================================================================


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def orders():
    return InMemoryRecordStore()


@pytest.fixture
def charges():
    return InMemoryRecordStore()


@pytest.fixture
def providers():
    return InMemoryProviderStore()


@pytest.fixture
def notification_gateway():
    return RecordingNotificationGateway()


@pytest.fixture
def dispatcher(notification_gateway):
    return NotificationDispatcher(notification_gateway)


@pytest.fixture
def payments():
    return FakePaymentGateway()


@pytest.fixture
def service(orders, charges, providers, dispatcher, payments, clock):
    return TaskService(
        orders=orders,
        charges=charges,
        providers=providers,
        notifier=dispatcher,
        payments=payments,
        clock=clock,
        max_claims_per_provider=2,
        claim_duration_seconds=3600,
        currency="usd",
    )


# ============================================================================
# SQL fixtures (SQLite via aiosqlite)
# ============================================================================


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ============================================================================
# API fixtures
# ============================================================================


@pytest.fixture
async def client(service):
    """Async test client with the service wired to in-memory stores."""
    from claimgate.api.deps import get_task_service, verify_api_key
    from claimgate.main import app

    async def override_verify_api_key():
        return None

    app.dependency_overrides[get_task_service] = lambda: service
    app.dependency_overrides[verify_api_key] = override_verify_api_key

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
