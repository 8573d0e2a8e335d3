from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetwatch.core.clock import ensure_aware, utcnow
from fleetwatch.models.entities import DailyAnalytics
from fleetwatch.services.broadcast import RedisBroadcaster
from fleetwatch.services.events import (
    EventBus,
    TelemetryReceivedEvent,
    VehicleOfflineEvent,
    VehicleReconnectedEvent,
)
from fleetwatch.services.telemetry_validator import round_half_up

log = logging.getLogger("fleetwatch.handlers")


class BroadcastTelemetryHandler:
    """Pushes every accepted reading to live dashboards."""

    def __init__(self, broadcaster: RedisBroadcaster | None):
        self.broadcaster = broadcaster

    async def handle(self, event: TelemetryReceivedEvent) -> None:
        if self.broadcaster is None or not self.broadcaster.enabled:
            log.debug("No broadcaster configured, skipping telemetry broadcast for %s", event.vehicle_id)
            return
        await self.broadcaster.emit(
            "telemetry:update",
            {"vehicleId": event.vehicle_id, "telemetry": event.telemetry_data.to_dict()},
        )


class UpdateAnalyticsHandler:
    """Maintains per-day running statistics and data quality for a vehicle."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def handle(self, event: TelemetryReceivedEvent) -> None:
        data = event.telemetry_data
        day = ensure_aware(data.timestamp).date()

        async with self.session_factory() as session:
            result = await session.execute(
                select(DailyAnalytics).where(
                    DailyAnalytics.vehicle_id == event.vehicle_id, DailyAnalytics.date == day
                )
            )
            analytics = result.scalar_one_or_none()
            if analytics is None:
                analytics = DailyAnalytics(
                    vehicle_id=event.vehicle_id,
                    date=day,
                    data_points=0,
                    valid_data_points=0,
                    data_quality=100.0,
                    average_speed=0.0,
                    max_speed=0.0,
                    average_engine_temp=0.0,
                    max_engine_temp=0.0,
                )
                session.add(analytics)

            analytics.data_points += 1
            if data.validation.context_valid:
                analytics.valid_data_points += 1
            analytics.data_quality = analytics.valid_data_points / analytics.data_points * 100

            count = analytics.data_points
            analytics.max_speed = max(analytics.max_speed, data.speed)
            analytics.average_speed += (data.speed - analytics.average_speed) / count
            analytics.max_engine_temp = max(analytics.max_engine_temp, data.engine_temp)
            analytics.average_engine_temp += (data.engine_temp - analytics.average_engine_temp) / count
            analytics.calculated_at = utcnow()

            await session.commit()
            log.debug(
                "Analytics updated for vehicle %s: %d data points, quality %.2f%%",
                event.vehicle_id,
                analytics.data_points,
                analytics.data_quality,
            )


class VehicleOfflineHandler:
    def __init__(self, broadcaster: RedisBroadcaster | None = None):
        self.broadcaster = broadcaster

    async def handle(self, event: VehicleOfflineEvent) -> None:
        log.warning(
            "Vehicle went OFFLINE - VIN: %s, last seen: %s, previous status: %s",
            event.vin,
            event.last_seen_at.isoformat(),
            event.previous_status.value,
        )
        if self.broadcaster is not None:
            await self.broadcaster.emit("vehicle:offline", event.to_dict())


class VehicleReconnectedHandler:
    def __init__(self, broadcaster: RedisBroadcaster | None = None):
        self.broadcaster = broadcaster

    async def handle(self, event: VehicleReconnectedEvent) -> None:
        log.info(
            "Vehicle RECONNECTED - VIN: %s, downtime: %d minute(s), reconnected at: %s",
            event.vin,
            round_half_up(event.offline_duration_ms / 1000 / 60),
            event.reconnected_at.isoformat(),
        )
        if self.broadcaster is not None:
            await self.broadcaster.emit("vehicle:reconnected", event.to_dict())


def build_event_bus(
    session_factory: async_sessionmaker[AsyncSession], broadcaster: RedisBroadcaster | None = None
) -> EventBus:
    bus = EventBus()
    bus.subscribe(TelemetryReceivedEvent, BroadcastTelemetryHandler(broadcaster))
    bus.subscribe(TelemetryReceivedEvent, UpdateAnalyticsHandler(session_factory))
    bus.subscribe(VehicleOfflineEvent, VehicleOfflineHandler(broadcaster))
    bus.subscribe(VehicleReconnectedEvent, VehicleReconnectedHandler(broadcaster))
    return bus
