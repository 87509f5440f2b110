"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.dependencies import get_notifier, get_synchronizer
from backend.app.core.jwt import staff_token
from backend.app.core.redis_client import get_redis
from backend.app.domain.entitlements.coordinator import EntitlementCoordinator, customer_detail_loader
from backend.app.models.customer import Customer
from backend.app.models.enums import PlanInterval
from backend.app.models.membership_plan import MembershipPlan
from backend.app.models.pt_package import PtPackage
from backend.app.services.consistency import CacheKeyNamespace, ConsistencySynchronizer
from backend.app.services.notification_service import NotificationService

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine.sync_engine, "connect", set_sqlite_pragma)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def synchronizer(mock_redis, session_factory):
    return ConsistencySynchronizer(
        mock_redis,
        CacheKeyNamespace("test"),
        customer_detail_loader(session_factory),
        refetch_timeout_seconds=2.0,
        refetch_attempts=2
    )


@pytest.fixture
def notifier():
    return NotificationService()


@pytest.fixture
def coordinator(db_session, synchronizer, notifier):
    return EntitlementCoordinator(
        db_session, synchronizer, notifier,
        actor={"user_id": 1, "sub": "frontdesk", "role": "staff"}
    )


@pytest.fixture
async def client(session_factory, mock_redis, synchronizer, notifier):
    """Async client for testing."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_synchronizer] = lambda: synchronizer
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Auth headers

@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {staff_token(1, 'admin', 'admin')}"}


@pytest.fixture
def staff_headers():
    """Front-desk staff who can bill and take payments but not delete or cancel."""
    token = staff_token(2, "frontdesk", "staff", ["bill_create", "payment_create", "members_list_view"])
    return {"Authorization": f"Bearer {token}"}


# Catalog and customer data

@pytest.fixture
async def customer(db_session):
    customer = Customer(first_name="Maria", last_name="Santos", email="maria@example.com")
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest.fixture
async def plans(db_session):
    """Monthly and annual membership plans."""
    monthly = MembershipPlan(
        plan_name="Monthly Basic", price=150000, plan_period=1,
        plan_interval=PlanInterval.MONTHS, features=["Gym floor"]
    )
    annual = MembershipPlan(
        plan_name="Annual Premium", price=1200000, plan_period=1,
        plan_interval=PlanInterval.YEARS, features=["Gym floor", "Classes"]
    )
    db_session.add_all([monthly, annual])
    await db_session.commit()
    return monthly, annual


@pytest.fixture
async def pt_package(db_session):
    package = PtPackage(package_name="10 Sessions", number_of_sessions=10, price=500000)
    db_session.add(package)
    await db_session.commit()
    return package
