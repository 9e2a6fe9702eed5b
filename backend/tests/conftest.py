"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from backend.app.main import app
from backend.app.db.session import get_db, Base
import backend.app.core.redis_client as redis_client_module
from backend.app.domain.matching.engine import MatchingEngine
from backend.app.domain.matching.policy import MatchingPolicy
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus
from backend.app.models.user import User
from backend.app.services.notification_service import MatchNotifier
from backend.app.services.rematch_worker import RematchScheduler
from backend.app.services.route_lock import RouteResolutionLock
from backend.tests.fakes import DEPARTURE, SCENARIO_DROP_OFF, SCENARIO_PICKUP, FakeRoutingProvider

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

# Database: one SQLite file per test so concurrent sessions get their own connections
@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
        self.set_calls = 0

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if self._closed:
            return False
        self.set_calls += 1
        if nx and key in self.store:
            return None
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
def mock_redis():
    return MockRedis()


@pytest.fixture(autouse=True)
def apply_redis_override(mock_redis):
    """Point the global redis client (health check) at the mock."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = mock_redis
    yield
    redis_client_module.redis_client = original_client


@pytest.fixture
def routing_provider():
    return FakeRoutingProvider()


@pytest.fixture
def policy():
    return MatchingPolicy()


@pytest.fixture
async def rematch_scheduler(session_factory):
    scheduler = RematchScheduler(session_factory)
    yield scheduler
    await scheduler.shutdown()


@pytest.fixture
def matching_engine(session_factory, routing_provider, rematch_scheduler, mock_redis, policy):
    return MatchingEngine(
        session_factory,
        routing_provider,
        notifier=MatchNotifier(session_factory),
        scheduler=rematch_scheduler,
        route_lock=RouteResolutionLock(mock_redis, ttl_seconds=2, poll_interval=0.01),
        policy=policy,
    )


@pytest.fixture
async def client(session_factory, matching_engine):
    """Async client for testing."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.matching_engine = matching_engine

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Data factories

@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    async def _make_user(full_name="Test Driver"):
        counter["n"] += 1
        user = User(full_name=full_name, phone_number=f"+1555000{counter['n']:04d}")
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_trip(db_session, make_user):
    async def _make_trip(
        pickup=SCENARIO_PICKUP,
        drop_off=SCENARIO_DROP_OFF,
        departure_time=DEPARTURE,
        seats_offered=0,
        seats_required=0,
        status=TripStatus.PENDING,
        driver=None,
    ):
        driver = driver or await make_user()
        trip = Trip(
            driver_id=driver.id,
            pickup_lat=pickup[0],
            pickup_lng=pickup[1],
            drop_off_lat=drop_off[0],
            drop_off_lng=drop_off[1],
            departure_time=departure_time,
            seats_offered=seats_offered,
            seats_required=seats_required,
            status=status,
        )
        db_session.add(trip)
        await db_session.commit()
        return trip

    return _make_trip

