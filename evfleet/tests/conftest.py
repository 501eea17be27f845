"""
Centralized Test Configuration.
"""

import itertools

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from evfleet.app.main import app
from evfleet.app.db.session import get_db, Base
from evfleet.app.core.dependencies import get_scheduler
from evfleet.app.schemas.driver import DriverCreate
from evfleet.app.schemas.vehicle import VehicleCreate
from evfleet.app.services import fleet_store
from evfleet.app.services.trip_scheduler import TripScheduler

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def scheduler():
    """Scheduler with an empty index; the test database starts empty too."""
    return TripScheduler()


@pytest.fixture
async def client(session_factory, scheduler):
    """Async client wired to the test database and the test scheduler."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


@pytest.fixture
def create_vehicle(db_session):
    """Factory for vehicles with unique registrations."""
    counter = itertools.count(1)

    async def _create(**overrides):
        data = {
            "registration": f"EV-T{next(counter):03d}",
            "model": "Nissan Leaf",
            "battery_capacity_kwh": 40.0,
        }
        data.update(overrides)
        vehicle = await fleet_store.create_vehicle(db_session, VehicleCreate(**data))
        # Detached snapshot: a rollback in the shared session must not expire it
        db_session.expunge(vehicle)
        return vehicle

    return _create


@pytest.fixture
def create_driver(db_session):
    """Factory for drivers with unique licence ids."""
    counter = itertools.count(1)

    async def _create(**overrides):
        n = next(counter)
        data = {"name": f"Driver {n}", "license_id": f"DL-T{n:03d}"}
        data.update(overrides)
        driver = await fleet_store.create_driver(db_session, DriverCreate(**data))
        db_session.expunge(driver)
        return driver

    return _create


@pytest.fixture
async def vehicle(create_vehicle):
    return await create_vehicle()


@pytest.fixture
async def driver(create_driver):
    return await create_driver()
