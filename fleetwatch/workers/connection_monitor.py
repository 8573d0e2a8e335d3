"""Background sweep that keeps vehicle connection states current.

Connection states, by time since the vehicle was last seen:

- ONLINE: less than the stale threshold (60s by default)
- STALE: between the stale and offline thresholds (5 min by default)
- OFFLINE: at or beyond the offline threshold

Only actual transitions are written. Going OFFLINE publishes
``VehicleOfflineEvent`` and coming back ONLINE from OFFLINE publishes
``VehicleReconnectedEvent``; STALE transitions are only broadcast.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetwatch.core.clock import ensure_aware, utcnow
from fleetwatch.core.config import Settings
from fleetwatch.models.enums import ConnectionStatus
from fleetwatch.services.broadcast import RedisBroadcaster
from fleetwatch.services.events import EventBus, VehicleOfflineEvent, VehicleReconnectedEvent
from fleetwatch.services.repositories import VehicleConnection, VehicleDirectory
from fleetwatch.workers.base_job import PeriodicJob

log = logging.getLogger("connection-monitor")


def classify_connection(
    age: timedelta, stale_after: timedelta, offline_after: timedelta
) -> ConnectionStatus:
    if age < stale_after:
        return ConnectionStatus.ONLINE
    if age < offline_after:
        return ConnectionStatus.STALE
    return ConnectionStatus.OFFLINE


@dataclass
class SweepResult:
    checked: int = 0
    online: int = 0
    stale: int = 0
    offline: int = 0
    changed: int = 0
    reconnected: int = 0
    errors: int = 0

    def count(self, status: ConnectionStatus) -> None:
        if status is ConnectionStatus.ONLINE:
            self.online += 1
        elif status is ConnectionStatus.STALE:
            self.stale += 1
        else:
            self.offline += 1


class ConnectionMonitor(PeriodicJob):
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        event_bus: EventBus,
        broadcaster: RedisBroadcaster | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(
            name="ConnectionMonitor",
            interval_seconds=settings.connection_check_interval_seconds,
            enabled=settings.connection_monitor_enabled,
        )
        self.stale_after = timedelta(seconds=settings.stale_threshold_seconds)
        self.offline_after = timedelta(seconds=settings.offline_threshold_seconds)
        self.session_factory = session_factory
        self.event_bus = event_bus
        self.broadcaster = broadcaster
        self.clock = clock
        self.last_result: SweepResult | None = None

    async def execute(self) -> None:
        self.last_result = await self.sweep()

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        now = now or self.clock()
        result = SweepResult()

        async with self.session_factory() as session:
            directory = VehicleDirectory(session)
            vehicles = await directory.find_with_last_seen()
            log.debug("Checking %d vehicle connection(s)", len(vehicles))

            for vehicle in vehicles:
                result.checked += 1
                try:
                    await self._check_vehicle(directory, vehicle, now, result)
                except Exception:
                    result.errors += 1
                    log.exception("Failed to update connection status of vehicle %s", vehicle.id)
                    await session.rollback()

        if result.checked:
            log.debug(
                "Connection status: %d online, %d stale, %d offline, %d reconnected, %d error(s)",
                result.online,
                result.stale,
                result.offline,
                result.reconnected,
                result.errors,
            )
        return result

    async def _check_vehicle(
        self, directory: VehicleDirectory, vehicle: VehicleConnection, now: datetime, result: SweepResult
    ) -> None:
        last_seen = ensure_aware(vehicle.last_seen_at)
        age = now - last_seen
        previous = vehicle.connection_status
        status = classify_connection(age, self.stale_after, self.offline_after)
        result.count(status)

        if status is previous:
            return

        await directory.update_status(
            vehicle.id,
            status,
            clear_offline_since=status is ConnectionStatus.ONLINE,
            offline_since=last_seen if status is ConnectionStatus.OFFLINE else None,
        )
        result.changed += 1
        log.info(
            "Vehicle %s connection status changed: %s -> %s (last seen %ds ago)",
            vehicle.vin,
            previous.value,
            status.value,
            round(age.total_seconds()),
        )

        if self.broadcaster is not None:
            await self.broadcaster.emit(
                "vehicle:status-change",
                {
                    "vehicleId": vehicle.id,
                    "vin": vehicle.vin,
                    "oldStatus": previous.value,
                    "newStatus": status.value,
                    "timestamp": now.isoformat(),
                },
            )

        if status is ConnectionStatus.OFFLINE:
            await self.event_bus.publish(
                VehicleOfflineEvent(
                    vehicle_id=vehicle.id, vin=vehicle.vin, last_seen_at=last_seen, previous_status=previous
                )
            )
        elif status is ConnectionStatus.ONLINE and previous is ConnectionStatus.OFFLINE:
            result.reconnected += 1
            await self.event_bus.publish(
                VehicleReconnectedEvent(
                    vehicle_id=vehicle.id,
                    vin=vehicle.vin,
                    reconnected_at=now,
                    offline_duration_ms=int(age.total_seconds() * 1000),
                )
            )
