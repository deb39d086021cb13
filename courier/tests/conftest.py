"""
Centralized Test Configuration.

In-memory SQLite shared through a StaticPool, a dict-backed Redis stand-in,
and factories for users, tokens and jobs.
"""

import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from courier.app.main import app
from courier.app.db.session import get_db, Base
from courier.app.core.jwt import create_access_token
from courier.app.core.security import get_password_hash
import courier.app.core.redis_client as redis_client_module
from courier.app.models.user import User
from courier.app.models.driver_profile import DriverProfile
from courier.app.models.driver_session import DriverSession
from courier.app.models.enums import UserRole
from courier.app.models.job_enums import StopKind
from courier.app.services.job_repository import JobRepository

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# Cairo Road to Manda Hill, Lusaka, roughly 3.2 km apart
PICKUP_COORDS = (-15.4167, 28.2833)
DROPOFF_COORDS = (-15.3982, 28.3063)


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


@pytest.fixture(scope="session")
def mock_redis():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(mock_redis):
    """Apply overrides once for the session."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(mock_redis):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await mock_redis.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def db_reader():
    """Session factory for assertions, so reads never hit a stale identity map."""
    return TestingSessionLocal


def auth_headers_for(user: User) -> dict:
    token = create_access_token(data={
        "sub": user.username,
        "user_id": user.id,
        "role": user.role.value,
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db_session):
    async def _make_user(username: str, role: UserRole = UserRole.DRIVER, password: str = "secret123") -> User:
        user = User(
            email=f"{username}@example.com",
            username=username,
            hashed_password=get_password_hash(password),
            role=role,
            is_active=True,
        )
        db_session.add(user)
        await db_session.flush()
        if role == UserRole.DRIVER:
            db_session.add(DriverProfile(driver_id=user.id, full_name=username.title()))
        await db_session.commit()
        return user
    return _make_user


@pytest.fixture
async def driver(make_user):
    return await make_user("driver_one")


@pytest.fixture
async def manager(make_user):
    return await make_user("manager_one", role=UserRole.MANAGER)


@pytest.fixture
def driver_headers(driver):
    return auth_headers_for(driver)


@pytest.fixture
def manager_headers(manager):
    return auth_headers_for(manager)


@pytest.fixture
def make_job(db_session):
    """
    Post a job straight through the repository.

    Default is one pickup and one dropoff without a stop-specific code, so
    the configured default confirmation code applies.
    """
    async def _make_job(label: str = "Test Job", stops=None, expires_in_minutes=60, payout: float = 50.0):
        if stops is None:
            stops = [
                {"kind": StopKind.PICKUP, "address": "Cairo Road, Lusaka",
                 "latitude": PICKUP_COORDS[0], "longitude": PICKUP_COORDS[1], "items": [{"name": "Box", "quantity": 1}]},
                {"kind": StopKind.DROPOFF, "address": "Manda Hill, Lusaka",
                 "latitude": DROPOFF_COORDS[0], "longitude": DROPOFF_COORDS[1], "items": [{"name": "Box", "quantity": 1}]},
            ]
        expires_at = None
        if expires_in_minutes is not None:
            expires_at = datetime.utcnow() + timedelta(minutes=expires_in_minutes)
        job, job_stops = await JobRepository(db_session).create_job(
            label=label,
            stops=stops,
            payout=payout,
            currency="ZMW",
            expires_at=expires_at,
        )
        await db_session.commit()
        return job, job_stops
    return _make_job


@pytest.fixture
def put_online(db_session):
    """Mark a driver online, optionally with a GPS fix."""
    async def _put_online(user: User, position=PICKUP_COORDS):
        session = DriverSession(
            driver_id=user.id,
            is_online=True,
            route_generation=0,
            last_latitude=position[0] if position else None,
            last_longitude=position[1] if position else None,
            last_position_at=datetime.utcnow() if position else None,
        )
        db_session.add(session)
        await db_session.commit()
        return session
    return _put_online


@pytest.fixture
def auth_headers():
    return auth_headers_for
