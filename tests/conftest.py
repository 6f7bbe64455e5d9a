"""
Shared fixtures.

The app's own engine is pointed at a throwaway SQLite file before anything
from `carpool` is imported. Every transaction opens with BEGIN IMMEDIATE, so
concurrent writers serialise on the database lock the way row locks make
them serialise on Postgres.
"""
import os
import tempfile
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

_DB_DIR = tempfile.mkdtemp(prefix="carpool-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("PIN_ENCRYPTION_SECRET", "test-pin-secret")

import pytest
import pytest_asyncio
from sqlalchemy import event

from carpool import redis_client
from carpool.database import AsyncSessionLocal, Base, engine
from carpool.models import Booking, OutboxEvent, Ride  # noqa: F401  (register tables)
from carpool.schemas.schemas import BookingCreateRequest, RideCreateRequest
from carpool.services import lifecycle
from carpool.utils.time import utcnow


@event.listens_for(engine.sync_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # let the "begin" listener below own transaction start
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=10000")
    cursor.close()


@event.listens_for(engine.sync_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


# Destination used by every ride built here; completing "at" it is inside the geofence.
DEST = (37.3382, -121.8863)
ORIGIN = (37.7749, -122.4194)


@pytest_asyncio.fixture
async def db_engine():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    # connections are bound to this test's event loop
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return AsyncSessionLocal


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis(monkeypatch):
    redis = AsyncMock()
    redis.get.return_value = None
    redis.publish.return_value = 1
    monkeypatch.setattr(redis_client, "_redis_pool", redis)
    return redis


@pytest.fixture
def ride_payload():
    def _build(days_ahead: int = 2, hour: str = "09:00 AM", **overrides) -> RideCreateRequest:
        day = utcnow() + timedelta(days=days_ahead)
        data = {
            "from_address": "1 Market St",
            "from_city": "San Francisco",
            "from_state": "CA",
            "from_lat": ORIGIN[0],
            "from_lng": ORIGIN[1],
            "to_address": "200 E Santa Clara St",
            "to_city": "San Jose",
            "to_state": "CA",
            "to_lat": DEST[0],
            "to_lng": DEST[1],
            "departure_date": day.strftime("%m/%d/%Y"),
            "departure_time": hour,
            "total_seats": 3,
            "price_per_seat": Decimal("15.00"),
        }
        data.update(overrides)
        return RideCreateRequest(**data)

    return _build


@pytest.fixture
def make_ride(session_factory, ride_payload):
    async def _make(driver_id: str = "driver-1", **overrides) -> Ride:
        async with session_factory() as session:
            return await lifecycle.create_ride(session, driver_id, ride_payload(**overrides))

    return _make


@pytest.fixture
def make_booking(session_factory):
    async def _make(ride: Ride, rider_id: str = "rider-1", seats: int = 1, payment_reference=None) -> Booking:
        payload = BookingCreateRequest(
            ride_id=ride.id,
            pickup_address="500 Castro St",
            pickup_lat=37.3861,
            pickup_lng=-122.0839,
            number_of_seats=seats,
        )
        async with session_factory() as session:
            return await lifecycle.request_booking(
                session, rider_id, payload, payment_reference=payment_reference
            )

    return _make


@pytest.fixture
def accepted_booking(session_factory, make_booking):
    async def _make(ride: Ride, rider_id: str = "rider-1", seats: int = 1, **kwargs):
        booking = await make_booking(ride, rider_id=rider_id, seats=seats, **kwargs)
        async with session_factory() as session:
            return await lifecycle.accept_booking(session, booking.id, ride.driver_id)

    return _make
