from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Any, List
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Date, Enum, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from fleetwatch.db.base import Base
from fleetwatch.db.types import UTCDateTime
from fleetwatch.models.enums import (
    ConnectionStatus,
    FuelType,
    ValidationSeverity,
    VehicleStatus,
    VehicleType,
)
from fleetwatch.services.telemetry_validator import TelemetrySample, ValidationResult


def _new_id() -> str:
    return str(uuid4())


def geo_point(lat: float, lng: float) -> dict[str, Any]:
    return {"type": "Point", "coordinates": [lng, lat]}


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class Vehicle(TimestampMixin, Base):
    __tablename__ = "vehicles"
    __table_args__ = (Index("ix_vehicles_status_connection", "status", "connection_status"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    vin: Mapped[str] = mapped_column(String(17), unique=True, index=True)
    license_plate: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    vehicle_model: Mapped[str] = mapped_column(String(100))
    manufacturer: Mapped[str] = mapped_column(String(50))
    year: Mapped[int] = mapped_column(Integer)
    type: Mapped[VehicleType] = mapped_column(Enum(VehicleType))
    fuel_type: Mapped[FuelType] = mapped_column(Enum(FuelType))
    status: Mapped[VehicleStatus] = mapped_column(Enum(VehicleStatus), default=VehicleStatus.ACTIVE)

    current_latitude: Mapped[float | None] = mapped_column(Float)
    current_longitude: Mapped[float | None] = mapped_column(Float)
    current_speed: Mapped[float | None] = mapped_column(Float)
    current_fuel_level: Mapped[float | None] = mapped_column(Float)
    current_odometer: Mapped[float | None] = mapped_column(Float)
    current_engine_temp: Mapped[float | None] = mapped_column(Float)
    current_timestamp: Mapped[datetime | None] = mapped_column(UTCDateTime())

    connection_status: Mapped[ConnectionStatus] = mapped_column(
        Enum(ConnectionStatus), default=ConnectionStatus.OFFLINE
    )
    last_seen_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), index=True)
    offline_since: Mapped[datetime | None] = mapped_column(UTCDateTime())

    readings: Mapped[List["Telemetry"]] = relationship(back_populates="vehicle", cascade="all, delete-orphan")

    @property
    def current_telemetry(self) -> dict[str, Any] | None:
        if self.current_timestamp is None:
            return None
        return {
            "location": geo_point(self.current_latitude, self.current_longitude),
            "speed": self.current_speed,
            "fuelLevel": self.current_fuel_level,
            "odometer": self.current_odometer,
            "engineTemp": self.current_engine_temp,
            "timestamp": self.current_timestamp,
        }


class Telemetry(Base):
    __tablename__ = "telemetry"
    __table_args__ = (Index("ix_telemetry_vehicle_timestamp", "vehicle_id", "timestamp"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    vehicle_id: Mapped[str] = mapped_column(ForeignKey("vehicles.id", ondelete="CASCADE"))
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    speed: Mapped[float] = mapped_column(Float)
    fuel_level: Mapped[float] = mapped_column(Float)
    odometer: Mapped[float] = mapped_column(Float)
    engine_temp: Mapped[float] = mapped_column(Float)
    engine_rpm: Mapped[float | None] = mapped_column(Float)

    schema_valid: Mapped[bool] = mapped_column(Boolean, default=True)
    context_valid: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    issues: Mapped[list] = mapped_column(JSON, default=list)
    severity: Mapped[ValidationSeverity | None] = mapped_column(Enum(ValidationSeverity))

    device_id: Mapped[str | None] = mapped_column(String(100))
    received_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    vehicle: Mapped[Vehicle] = relationship(back_populates="readings")

    @property
    def validation(self) -> ValidationResult:
        return ValidationResult(
            schema_valid=self.schema_valid,
            context_valid=self.context_valid,
            issues=tuple(self.issues or ()),
            severity=self.severity,
        )

    def apply_validation(self, result: ValidationResult) -> None:
        self.schema_valid = result.schema_valid
        self.context_valid = result.context_valid
        self.issues = list(result.issues)
        self.severity = result.severity

    def to_sample(self) -> TelemetrySample:
        return TelemetrySample(
            lat=self.latitude,
            lng=self.longitude,
            speed=self.speed,
            fuel_level=self.fuel_level,
            odometer=self.odometer,
            engine_temp=self.engine_temp,
            timestamp=self.timestamp,
        )

    def to_document(self) -> dict[str, Any]:
        """Persisted reading shape, GeoJSON location included."""
        document: dict[str, Any] = {
            "id": self.id,
            "vehicleId": self.vehicle_id,
            "timestamp": self.timestamp,
            "location": geo_point(self.latitude, self.longitude),
            "speed": self.speed,
            "fuelLevel": self.fuel_level,
            "odometer": self.odometer,
            "engineTemp": self.engine_temp,
            "validation": self.validation.to_dict(),
            "receivedAt": self.received_at,
        }
        if self.engine_rpm is not None:
            document["engineRPM"] = self.engine_rpm
        if self.device_id is not None:
            document["deviceId"] = self.device_id
        return document


class DailyAnalytics(Base):
    __tablename__ = "daily_analytics"
    __table_args__ = (UniqueConstraint("vehicle_id", "date", name="uq_daily_analytics_vehicle_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    vehicle_id: Mapped[str] = mapped_column(ForeignKey("vehicles.id", ondelete="CASCADE"), index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    data_points: Mapped[int] = mapped_column(Integer, default=0)
    valid_data_points: Mapped[int] = mapped_column(Integer, default=0)
    data_quality: Mapped[float] = mapped_column(Float, default=100)
    average_speed: Mapped[float] = mapped_column(Float, default=0)
    max_speed: Mapped[float] = mapped_column(Float, default=0)
    average_engine_temp: Mapped[float] = mapped_column(Float, default=0)
    max_engine_temp: Mapped[float] = mapped_column(Float, default=0)
    calculated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, server_default=func.now())
