"""SQLAlchemy-backed vehicle directory and telemetry store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.models.entities import Telemetry, Vehicle
from fleetwatch.models.enums import ConnectionStatus


@dataclass(frozen=True)
class VehicleConnection:
    """Connection fields of a vehicle, detached from the ORM session."""

    id: str
    vin: str
    connection_status: ConnectionStatus
    last_seen_at: datetime


@dataclass(frozen=True)
class SnapshotUpdate:
    latitude: float
    longitude: float
    speed: float
    fuel_level: float
    odometer: float
    engine_temp: float
    timestamp: datetime
    seen_at: datetime

    @classmethod
    def from_reading(cls, reading: Telemetry, seen_at: datetime) -> "SnapshotUpdate":
        return cls(
            latitude=reading.latitude,
            longitude=reading.longitude,
            speed=reading.speed,
            fuel_level=reading.fuel_level,
            odometer=reading.odometer,
            engine_temp=reading.engine_temp,
            timestamp=reading.timestamp,
            seen_at=seen_at,
        )


class VehicleDirectory:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, vehicle_id: str) -> Vehicle | None:
        return await self.session.get(Vehicle, vehicle_id)

    async def list_vehicles(self, connection_status: ConnectionStatus | None = None) -> Sequence[Vehicle]:
        stmt = select(Vehicle).order_by(Vehicle.created_at, Vehicle.vin)
        if connection_status is not None:
            stmt = stmt.where(Vehicle.connection_status == connection_status)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_vehicles(self, connection_status: ConnectionStatus | None = None) -> int:
        stmt = select(func.count()).select_from(Vehicle)
        if connection_status is not None:
            stmt = stmt.where(Vehicle.connection_status == connection_status)
        return await self.session.scalar(stmt) or 0

    async def create(self, **fields: Any) -> Vehicle:
        vehicle = Vehicle(**fields)
        self.session.add(vehicle)
        await self.session.commit()
        await self.session.refresh(vehicle)
        return vehicle

    async def update_snapshot(self, vehicle_id: str, snapshot: SnapshotUpdate) -> None:
        """Overwrite the live telemetry and mark the vehicle ONLINE."""
        await self.session.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(
                current_latitude=snapshot.latitude,
                current_longitude=snapshot.longitude,
                current_speed=snapshot.speed,
                current_fuel_level=snapshot.fuel_level,
                current_odometer=snapshot.odometer,
                current_engine_temp=snapshot.engine_temp,
                current_timestamp=snapshot.timestamp,
                connection_status=ConnectionStatus.ONLINE,
                last_seen_at=snapshot.seen_at,
                offline_since=None,
            )
        )
        await self.session.commit()

    async def update_status(
        self,
        vehicle_id: str,
        status: ConnectionStatus,
        *,
        clear_offline_since: bool = False,
        offline_since: datetime | None = None,
    ) -> None:
        values: dict[str, Any] = {"connection_status": status}
        if clear_offline_since:
            values["offline_since"] = None
        elif offline_since is not None:
            values["offline_since"] = offline_since
        await self.session.execute(
            update(Vehicle)
            .where(Vehicle.id == vehicle_id)
            .values(**values)
        )
        await self.session.commit()

    async def find_with_last_seen(self) -> list[VehicleConnection]:
        result = await self.session.execute(
            select(Vehicle.id, Vehicle.vin, Vehicle.connection_status, Vehicle.last_seen_at).where(
                Vehicle.last_seen_at.is_not(None)
            )
        )
        return [
            VehicleConnection(id=row.id, vin=row.vin, connection_status=row.connection_status, last_seen_at=row.last_seen_at)
            for row in result
        ]


class TelemetryStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_one(self, record: Telemetry) -> Telemetry:
        self.session.add(record)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(record)
        return record

    async def insert_many(self, records: Sequence[Telemetry]) -> int:
        """Insert every record in one transaction; nothing is kept on failure."""
        self.session.add_all(records)
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return len(records)

    async def find_most_recent(self, vehicle_id: str) -> Telemetry | None:
        result = await self.session.execute(
            select(Telemetry)
            .where(Telemetry.vehicle_id == vehicle_id)
            .order_by(Telemetry.timestamp.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_history(
        self,
        vehicle_id: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> tuple[Sequence[Telemetry], int]:
        conditions = [Telemetry.vehicle_id == vehicle_id]
        if start is not None:
            conditions.append(Telemetry.timestamp >= start)
        if end is not None:
            conditions.append(Telemetry.timestamp <= end)

        total = await self.session.scalar(select(func.count()).select_from(Telemetry).where(*conditions))
        result = await self.session.execute(
            select(Telemetry)
            .where(*conditions)
            .order_by(Telemetry.timestamp.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return result.scalars().all(), total or 0
