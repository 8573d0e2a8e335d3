"""Test configuration and fixtures."""
import itertools
import os
from typing import AsyncGenerator

os.environ.setdefault("FLEET_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FLEET_REDIS_URL", "")
os.environ.setdefault("FLEET_CONNECTION_MONITOR_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fleetwatch.db.base import Base
from fleetwatch.deps import get_db_session, get_event_bus
from fleetwatch.models.entities import Vehicle
from fleetwatch.models.enums import FuelType, VehicleType
from fleetwatch.services.event_handlers import build_event_bus
from fleetwatch.services.events import (
    EventBus,
    TelemetryReceivedEvent,
    VehicleOfflineEvent,
    VehicleReconnectedEvent,
)
from main import app

_vin_counter = itertools.count(1)


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self) -> None:
        self.events: list = []

    async def __call__(self, event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.events if isinstance(event, event_type)]


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    yield async_session_maker

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db) -> AsyncGenerator[AsyncSession, None]:
    """Get a test database session."""
    async with test_db() as session:
        yield session


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def event_bus(recorder: EventRecorder) -> EventBus:
    """Bare bus that only records what is published."""
    bus = EventBus()
    for event_type in (TelemetryReceivedEvent, VehicleOfflineEvent, VehicleReconnectedEvent):
        bus.subscribe(event_type, recorder)
    return bus


@pytest_asyncio.fixture
async def client(test_db, recorder: EventRecorder) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database and event bus overrides."""
    bus = build_event_bus(test_db, broadcaster=None)
    bus.subscribe(TelemetryReceivedEvent, recorder)

    async def override_get_db():
        async with test_db() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: bus

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_vehicle(db_session: AsyncSession):
    """Factory persisting a vehicle with sensible defaults."""

    async def _make(**overrides) -> Vehicle:
        n = next(_vin_counter)
        fields = {
            "vin": f"TESTVIN{n:010d}",
            "license_plate": f"DXB-T-{n:04d}",
            "vehicle_model": "Transit Van",
            "manufacturer": "Ford",
            "year": 2022,
            "type": VehicleType.VAN,
            "fuel_type": FuelType.DIESEL,
        }
        fields.update(overrides)
        vehicle = Vehicle(**fields)
        db_session.add(vehicle)
        await db_session.commit()
        await db_session.refresh(vehicle)
        return vehicle

    return _make


@pytest_asyncio.fixture
async def vehicle(make_vehicle) -> Vehicle:
    return await make_vehicle()
