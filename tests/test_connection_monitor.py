"""Tests for vehicle connection state monitoring."""

from datetime import datetime, timedelta, timezone

import pytest

from fleetwatch.core.config import Settings
from fleetwatch.models.entities import Vehicle
from fleetwatch.models.enums import ConnectionStatus
from fleetwatch.services.events import VehicleOfflineEvent, VehicleReconnectedEvent
from fleetwatch.services.repositories import VehicleDirectory
from fleetwatch.workers.connection_monitor import ConnectionMonitor, classify_connection

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeBroadcaster:
    enabled = True

    def __init__(self):
        self.messages = []

    async def emit(self, channel, payload):
        self.messages.append((channel, payload))


@pytest.fixture
def settings():
    return Settings(
        connection_check_interval_seconds=30,
        stale_threshold_seconds=60,
        offline_threshold_seconds=300,
    )


@pytest.fixture
def broadcaster():
    return FakeBroadcaster()


@pytest.fixture
def monitor(settings, test_db, event_bus, broadcaster):
    return ConnectionMonitor(settings, test_db, event_bus, broadcaster, clock=lambda: NOW)


async def load_vehicle(test_db, vehicle_id: str) -> Vehicle:
    async with test_db() as session:
        return await session.get(Vehicle, vehicle_id)


def seen(seconds_ago: float) -> datetime:
    return NOW - timedelta(seconds=seconds_ago)


@pytest.mark.parametrize(
    "age, expected",
    [
        (0, ConnectionStatus.ONLINE),
        (45, ConnectionStatus.ONLINE),
        (60, ConnectionStatus.STALE),
        (120, ConnectionStatus.STALE),
        (300, ConnectionStatus.OFFLINE),
        (400, ConnectionStatus.OFFLINE),
    ],
)
def test_classify_connection(age, expected):
    """Test connection status classification by silence age."""
    status = classify_connection(timedelta(seconds=age), timedelta(seconds=60), timedelta(seconds=300))
    assert status is expected


@pytest.mark.asyncio
async def test_silent_vehicle_goes_offline_once(monitor, make_vehicle, test_db, recorder, broadcaster):
    """Test a silent vehicle goes offline and is reported once."""
    vehicle = await make_vehicle(connection_status=ConnectionStatus.ONLINE, last_seen_at=seen(400))

    result = await monitor.sweep()

    assert result.checked == 1
    assert result.offline == 1
    assert result.changed == 1
    stored = await load_vehicle(test_db, vehicle.id)
    assert stored.connection_status is ConnectionStatus.OFFLINE
    assert stored.offline_since == seen(400)

    [event] = recorder.of_type(VehicleOfflineEvent)
    assert event.vehicle_id == vehicle.id
    assert event.vin == vehicle.vin
    assert event.last_seen_at == seen(400)
    assert event.previous_status is ConnectionStatus.ONLINE

    [(channel, payload)] = broadcaster.messages
    assert channel == "vehicle:status-change"
    assert payload["oldStatus"] == "ONLINE"
    assert payload["newStatus"] == "OFFLINE"

    second = await monitor.sweep(now=NOW + timedelta(seconds=30))

    assert second.offline == 1
    assert second.changed == 0
    assert len(recorder.of_type(VehicleOfflineEvent)) == 1
    assert len(broadcaster.messages) == 1


@pytest.mark.asyncio
async def test_stale_transition_is_only_broadcast(monitor, make_vehicle, test_db, recorder, broadcaster):
    """Test stale transitions are broadcast without an event."""
    vehicle = await make_vehicle(connection_status=ConnectionStatus.ONLINE, last_seen_at=seen(120))

    result = await monitor.sweep()

    assert result.stale == 1
    assert result.changed == 1
    stored = await load_vehicle(test_db, vehicle.id)
    assert stored.connection_status is ConnectionStatus.STALE
    assert recorder.events == []
    assert [message[1]["newStatus"] for message in broadcaster.messages] == ["STALE"]


@pytest.mark.asyncio
async def test_stale_vehicle_going_offline_reports_previous_status(monitor, make_vehicle, recorder):
    """Test offline events carry the previous status."""
    await make_vehicle(connection_status=ConnectionStatus.STALE, last_seen_at=seen(301))

    await monitor.sweep()

    [event] = recorder.of_type(VehicleOfflineEvent)
    assert event.previous_status is ConnectionStatus.STALE


@pytest.mark.asyncio
async def test_offline_vehicle_reconnects(monitor, make_vehicle, test_db, recorder):
    """Test an offline vehicle that reports again is reconnected."""
    vehicle = await make_vehicle(
        connection_status=ConnectionStatus.OFFLINE,
        last_seen_at=seen(10),
        offline_since=seen(3600),
    )

    result = await monitor.sweep()

    assert result.online == 1
    assert result.reconnected == 1
    stored = await load_vehicle(test_db, vehicle.id)
    assert stored.connection_status is ConnectionStatus.ONLINE
    assert stored.offline_since is None

    [event] = recorder.of_type(VehicleReconnectedEvent)
    assert event.vehicle_id == vehicle.id
    assert event.reconnected_at == NOW
    assert event.offline_duration_ms == 10_000
    assert recorder.of_type(VehicleOfflineEvent) == []


@pytest.mark.asyncio
async def test_stale_vehicle_recovering_is_not_a_reconnection(monitor, make_vehicle, test_db, recorder):
    """Test a stale vehicle recovering is not a reconnection."""
    vehicle = await make_vehicle(connection_status=ConnectionStatus.STALE, last_seen_at=seen(5))

    result = await monitor.sweep()

    assert result.changed == 1
    assert result.reconnected == 0
    assert recorder.events == []
    stored = await load_vehicle(test_db, vehicle.id)
    assert stored.connection_status is ConnectionStatus.ONLINE


@pytest.mark.asyncio
async def test_unchanged_status_is_not_written(monitor, make_vehicle, recorder, broadcaster):
    """Test unchanged statuses are not written or broadcast."""
    await make_vehicle(connection_status=ConnectionStatus.ONLINE, last_seen_at=seen(45))
    await make_vehicle(connection_status=ConnectionStatus.OFFLINE, last_seen_at=seen(4000))

    result = await monitor.sweep()

    assert result.checked == 2
    assert result.online == 1
    assert result.offline == 1
    assert result.changed == 0
    assert recorder.events == []
    assert broadcaster.messages == []


@pytest.mark.asyncio
async def test_never_seen_vehicles_are_skipped(monitor, make_vehicle):
    """Test vehicles that never reported are skipped."""
    await make_vehicle()

    result = await monitor.sweep()

    assert result.checked == 0


@pytest.mark.asyncio
async def test_failure_on_one_vehicle_does_not_stop_the_sweep(
    monitor, make_vehicle, test_db, monkeypatch
):
    """Test one failing vehicle does not stop the sweep."""
    broken = await make_vehicle(connection_status=ConnectionStatus.ONLINE, last_seen_at=seen(400))
    healthy = await make_vehicle(connection_status=ConnectionStatus.ONLINE, last_seen_at=seen(400))
    real_update_status = VehicleDirectory.update_status

    async def flaky_update(self, vehicle_id, status, **kwargs):
        if vehicle_id == broken.id:
            raise RuntimeError("lock timeout")
        return await real_update_status(self, vehicle_id, status, **kwargs)

    monkeypatch.setattr(VehicleDirectory, "update_status", flaky_update)

    result = await monitor.sweep()

    assert result.checked == 2
    assert result.errors == 1
    assert result.changed == 1
    assert (await load_vehicle(test_db, healthy.id)).connection_status is ConnectionStatus.OFFLINE
    assert (await load_vehicle(test_db, broken.id)).connection_status is ConnectionStatus.ONLINE


@pytest.mark.asyncio
async def test_scheduled_run_records_sweep_result(monitor, make_vehicle):
    """Test a scheduled run records its sweep result."""
    await make_vehicle(connection_status=ConnectionStatus.ONLINE, last_seen_at=seen(400))

    assert await monitor.run() is True

    assert monitor.run_count == 1
    assert monitor.last_result.offline == 1
    assert monitor.status()["name"] == "ConnectionMonitor"
