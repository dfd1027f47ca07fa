"""
Centralized Test Configuration.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.jwt import create_user_token
from backend.app.core.redis_client import get_redis
from backend.app.core.security import get_password_hash
from backend.app.models.user import User
from backend.app.models.donation import Donation
from backend.app.models.enums import UserRole, DonationStatus, FoodCategory, QuantityUnit
from backend.app.utils.time import utcnow
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "secret123"


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

    async def setex(self, key, ttl, value):
        return await self.set(key, value, ex=ttl)

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
def mock_redis():
    return MockRedis()


@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable foreign key constraints for SQLite."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
def apply_overrides(session_factory, mock_redis):
    """Point the app at the test database and the mock Redis for one test."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        return mock_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Insert a user directly; returns the persisted User."""
    async def _make_user(username, role=UserRole.DONOR, is_active=True, **fields):
        user = User(
            email=f"{username}@example.com",
            username=username,
            hashed_password=get_password_hash(TEST_PASSWORD),
            first_name=fields.pop("first_name", username.title()),
            last_name=fields.pop("last_name", "Tester"),
            role=role,
            is_active=is_active,
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_donation(db_session):
    """Insert a donation directly, bypassing create-time validation (e.g. already expired)."""
    async def _make_donation(donor, **overrides):
        now = utcnow()
        values = dict(
            donor_id=donor.id,
            title="Fresh bread",
            category=FoodCategory.BAKED,
            quantity_amount=5,
            quantity_unit=QuantityUnit.PIECES,
            pickup_date=now + timedelta(hours=2),
            expiry_date=now + timedelta(days=3),
            pickup_start="09:00",
            pickup_end="17:00",
            latitude=37.7749,
            longitude=-122.4194,
            address_city="San Francisco",
            status=DonationStatus.AVAILABLE,
            tags=[],
            views=0,
        )
        values.update(overrides)
        donation = Donation(**values)
        db_session.add(donation)
        await db_session.commit()
        await db_session.refresh(donation)
        return donation

    return _make_donation


def _bearer_headers(user):
    return {"Authorization": f"Bearer {create_user_token(user)}"}


@pytest.fixture
def auth_headers():
    """Build an Authorization header carrying a fresh token for a user."""
    return _bearer_headers


@pytest.fixture
async def donor(make_user):
    return await make_user("donor1", UserRole.DONOR)


@pytest.fixture
async def volunteer(make_user):
    return await make_user("volunteer1", UserRole.VOLUNTEER)


@pytest.fixture
async def charity(make_user):
    return await make_user("charity1", UserRole.CHARITY)


@pytest.fixture
async def admin(make_user):
    return await make_user("admin1", UserRole.ADMIN)
