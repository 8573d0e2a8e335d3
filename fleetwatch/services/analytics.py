"""Read side of the daily analytics: per-vehicle and fleet-wide summaries."""

from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.models.entities import DailyAnalytics, Vehicle
from fleetwatch.models.enums import ConnectionStatus
from fleetwatch.services.repositories import VehicleDirectory

log = logging.getLogger("fleetwatch.analytics")


@dataclass(frozen=True)
class AnalyticsSummary:
    total_days: int = 0
    average_speed: float = 0.0
    max_speed: float = 0.0
    average_engine_temp: float = 0.0
    max_engine_temp: float = 0.0
    total_data_points: int = 0
    overall_data_quality: float = 0.0


@dataclass(frozen=True)
class VehicleAnalytics:
    vehicle_id: str
    vehicle: Vehicle
    summary: AnalyticsSummary
    daily_data: Sequence[DailyAnalytics]


@dataclass(frozen=True)
class FleetCounts:
    total_vehicles: int
    online_vehicles: int
    offline_vehicles: int
    active_vehicles: int


@dataclass(frozen=True)
class VehicleBreakdown:
    vehicle_id: str
    data_points: int
    valid_data_points: int
    data_quality: float


@dataclass(frozen=True)
class FleetAnalytics:
    fleet: FleetCounts
    summary: AnalyticsSummary
    vehicle_breakdown: list[VehicleBreakdown]


def data_quality(valid: int, total: int) -> float:
    return valid / total * 100 if total > 0 else 0.0


def summarize(rows: Sequence[DailyAnalytics]) -> AnalyticsSummary:
    """Fold daily rows into one summary.

    Averages are taken over days, not readings, so a quiet day weighs as much
    as a busy one. An empty selection yields an all-zero summary.
    """
    if not rows:
        return AnalyticsSummary()
    days = len(rows)
    total_points = sum(row.data_points for row in rows)
    valid_points = sum(row.valid_data_points for row in rows)
    return AnalyticsSummary(
        total_days=days,
        average_speed=sum(row.average_speed for row in rows) / days,
        max_speed=max(row.max_speed for row in rows),
        average_engine_temp=sum(row.average_engine_temp for row in rows) / days,
        max_engine_temp=max(row.max_engine_temp for row in rows),
        total_data_points=total_points,
        overall_data_quality=data_quality(valid_points, total_points),
    )


def breakdown_by_vehicle(rows: Sequence[DailyAnalytics]) -> list[VehicleBreakdown]:
    """Per-vehicle totals, busiest vehicle first."""
    points: dict[str, int] = defaultdict(int)
    valid: dict[str, int] = defaultdict(int)
    for row in rows:
        points[row.vehicle_id] += row.data_points
        valid[row.vehicle_id] += row.valid_data_points
    breakdown = [
        VehicleBreakdown(
            vehicle_id=vehicle_id,
            data_points=points[vehicle_id],
            valid_data_points=valid[vehicle_id],
            data_quality=data_quality(valid[vehicle_id], points[vehicle_id]),
        )
        for vehicle_id in points
    ]
    breakdown.sort(key=lambda item: (-item.data_points, item.vehicle_id))
    return breakdown


class AnalyticsReader:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def daily_rows(
        self,
        vehicle_id: str | None = None,
        start: dt.date | None = None,
        end: dt.date | None = None,
    ) -> Sequence[DailyAnalytics]:
        stmt = select(DailyAnalytics).order_by(DailyAnalytics.date.desc(), DailyAnalytics.vehicle_id)
        if vehicle_id is not None:
            stmt = stmt.where(DailyAnalytics.vehicle_id == vehicle_id)
        if start is not None:
            stmt = stmt.where(DailyAnalytics.date >= start)
        if end is not None:
            stmt = stmt.where(DailyAnalytics.date <= end)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def vehicle_analytics(
        self, vehicle: Vehicle, start: dt.date | None = None, end: dt.date | None = None
    ) -> VehicleAnalytics:
        rows = await self.daily_rows(vehicle.id, start, end)
        log.info("Fetched %d analytics day(s) for vehicle %s", len(rows), vehicle.id)
        return VehicleAnalytics(vehicle_id=vehicle.id, vehicle=vehicle, summary=summarize(rows), daily_data=rows)

    async def fleet_analytics(self, start: dt.date | None = None, end: dt.date | None = None) -> FleetAnalytics:
        rows = await self.daily_rows(start=start, end=end)
        directory = VehicleDirectory(self.session)
        breakdown = breakdown_by_vehicle(rows)
        fleet = FleetCounts(
            total_vehicles=await directory.count_vehicles(),
            online_vehicles=await directory.count_vehicles(ConnectionStatus.ONLINE),
            offline_vehicles=await directory.count_vehicles(ConnectionStatus.OFFLINE),
            active_vehicles=len(breakdown),
        )
        log.info("Fetched fleet analytics for %d active vehicle(s)", fleet.active_vehicles)
        return FleetAnalytics(fleet=fleet, summary=summarize(rows), vehicle_breakdown=breakdown)
