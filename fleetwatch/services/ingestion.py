"""Telemetry ingestion: single readings and offline-buffer batches.

Both paths validate against the vehicle's previous reading, persist whatever
the verdict, refresh the vehicle snapshot and publish one
``TelemetryReceivedEvent``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.core.clock import ensure_aware, utcnow
from fleetwatch.errors import EmptyBatchError, VehicleNotFoundError
from fleetwatch.models.entities import Telemetry
from fleetwatch.models.enums import ValidationSeverity
from fleetwatch.services.events import EventBus, TelemetryData, TelemetryReceivedEvent
from fleetwatch.services.repositories import SnapshotUpdate, TelemetryStore, VehicleDirectory
from fleetwatch.services.telemetry_validator import TelemetrySample, validate_telemetry_context

log = logging.getLogger("fleetwatch.ingestion")


@dataclass(frozen=True)
class TelemetryReading:
    """One incoming sample as reported by a vehicle."""

    lat: float
    lng: float
    speed: float
    fuel_level: float
    odometer: float
    engine_temp: float
    timestamp: datetime | None = None
    engine_rpm: float | None = None

    def to_sample(self, timestamp: datetime) -> TelemetrySample:
        return TelemetrySample(
            lat=self.lat,
            lng=self.lng,
            speed=self.speed,
            fuel_level=self.fuel_level,
            odometer=self.odometer,
            engine_temp=self.engine_temp,
            timestamp=timestamp,
        )


@dataclass(frozen=True)
class BatchIssue:
    timestamp: datetime
    issues: tuple[str, ...]
    severity: ValidationSeverity | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "issues": list(self.issues),
            "severity": self.severity.value if self.severity else None,
        }


@dataclass
class BatchValidationSummary:
    total: int = 0
    valid: int = 0
    invalid: int = 0
    issues: list[BatchIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "valid": self.valid,
            "invalid": self.invalid,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass
class BatchIngestResult:
    saved: int
    validation: BatchValidationSummary

    def to_dict(self) -> dict[str, Any]:
        return {"saved": self.saved, "validation": self.validation.to_dict()}


class TelemetryIngestionService:
    def __init__(
        self,
        session: AsyncSession,
        event_bus: EventBus,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.vehicles = VehicleDirectory(session)
        self.telemetry = TelemetryStore(session)
        self.event_bus = event_bus
        self.clock = clock

    async def ingest_one(
        self, vehicle_id: str, reading: TelemetryReading, device_id: str | None = None
    ) -> Telemetry:
        log.info("Saving telemetry for vehicle %s", vehicle_id)
        await self._require_vehicle(vehicle_id)

        previous = await self.telemetry.find_most_recent(vehicle_id)
        now = self.clock()
        timestamp = ensure_aware(reading.timestamp) or now

        validation = validate_telemetry_context(
            reading.to_sample(timestamp), previous.to_sample() if previous else None
        )
        record = self._build_record(vehicle_id, reading, timestamp, device_id, now)
        record.apply_validation(validation)

        record = await self.telemetry.insert_one(record)
        await self.vehicles.update_snapshot(vehicle_id, SnapshotUpdate.from_reading(record, seen_at=now))

        log.info("Telemetry saved for vehicle %s. Valid: %s", vehicle_id, validation.context_valid)
        if not validation.context_valid:
            log.warning(
                "Telemetry anomaly for vehicle %s (%s): %s",
                vehicle_id,
                validation.severity.value,
                "; ".join(validation.issues),
            )

        await self._publish(record, reading.engine_rpm)
        return record

    async def ingest_batch(
        self, vehicle_id: str, readings: Sequence[TelemetryReading], device_id: str | None = None
    ) -> BatchIngestResult:
        log.info("Saving batch of %d telemetry records for vehicle %s", len(readings), vehicle_id)
        await self._require_vehicle(vehicle_id)
        if not readings:
            raise EmptyBatchError()

        now = self.clock()
        stamped = [(ensure_aware(r.timestamp) or now, r) for r in readings]
        # sorted() is stable, equal timestamps keep submission order
        stamped = sorted(stamped, key=lambda item: item[0])

        cursor = await self.telemetry.find_most_recent(vehicle_id)
        summary = BatchValidationSummary(total=len(stamped))
        records: list[Telemetry] = []

        for timestamp, reading in stamped:
            validation = validate_telemetry_context(
                reading.to_sample(timestamp), cursor.to_sample() if cursor else None
            )
            if validation.context_valid:
                summary.valid += 1
            else:
                summary.invalid += 1
                summary.issues.append(
                    BatchIssue(timestamp=timestamp, issues=validation.issues, severity=validation.severity)
                )

            record = self._build_record(vehicle_id, reading, timestamp, device_id, now)
            record.apply_validation(validation)
            records.append(record)
            cursor = record

        saved = await self.telemetry.insert_many(records)

        latest = records[-1]
        await self.vehicles.update_snapshot(vehicle_id, SnapshotUpdate.from_reading(latest, seen_at=now))

        log.info(
            "Batch saved for vehicle %s. Valid: %d, Invalid: %d", vehicle_id, summary.valid, summary.invalid
        )

        await self._publish(latest, stamped[-1][1].engine_rpm)
        return BatchIngestResult(saved=saved, validation=summary)

    async def _require_vehicle(self, vehicle_id: str) -> None:
        if await self.vehicles.find_by_id(vehicle_id) is None:
            raise VehicleNotFoundError(vehicle_id)

    def _build_record(
        self,
        vehicle_id: str,
        reading: TelemetryReading,
        timestamp: datetime,
        device_id: str | None,
        received_at: datetime,
    ) -> Telemetry:
        return Telemetry(
            vehicle_id=vehicle_id,
            timestamp=timestamp,
            latitude=reading.lat,
            longitude=reading.lng,
            speed=reading.speed,
            fuel_level=reading.fuel_level,
            odometer=reading.odometer,
            engine_temp=reading.engine_temp,
            engine_rpm=reading.engine_rpm,
            device_id=device_id,
            received_at=received_at,
        )

    async def _publish(self, record: Telemetry, engine_rpm: float | None) -> None:
        event = TelemetryReceivedEvent(
            vehicle_id=record.vehicle_id,
            telemetry_data=TelemetryData(
                lat=record.latitude,
                lng=record.longitude,
                speed=record.speed,
                fuel_level=record.fuel_level,
                odometer=record.odometer,
                engine_temp=record.engine_temp,
                engine_rpm=engine_rpm,
                timestamp=record.timestamp,
                validation=record.validation,
            ),
        )
        failures = await self.event_bus.publish(event)
        if failures:
            log.warning("%d handler(s) failed for telemetry of vehicle %s", failures, record.vehicle_id)
