from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from fleetwatch.models.enums import ValidationSeverity
from fleetwatch.schemas.base import CamelModel
from fleetwatch.services.ingestion import TelemetryReading


class LocationIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class TelemetryPointIn(CamelModel):
    location: LocationIn
    speed: float = Field(..., ge=0, le=300)
    fuel_level: float = Field(..., ge=0, le=100)
    odometer: float = Field(..., ge=0)
    engine_temp: float = Field(..., ge=-50, le=200)
    engine_rpm: float | None = Field(default=None, ge=0, le=10000, alias="engineRPM")
    timestamp: datetime | None = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_reading(self) -> TelemetryReading:
        return TelemetryReading(
            lat=self.location.lat,
            lng=self.location.lng,
            speed=self.speed,
            fuel_level=self.fuel_level,
            odometer=self.odometer,
            engine_temp=self.engine_temp,
            engine_rpm=self.engine_rpm,
            timestamp=self.timestamp,
        )


class TelemetryIngestRequest(TelemetryPointIn):
    vehicle_id: str = Field(..., min_length=1)
    device_id: str | None = None


class BatchPointIn(TelemetryPointIn):
    timestamp: datetime


class TelemetryBatchRequest(CamelModel):
    vehicle_id: str = Field(..., min_length=1)
    telemetry_data: list[BatchPointIn] = Field(..., min_length=1, max_length=1000)
    device_id: str | None = None


class GeoPointOut(BaseModel):
    type: str = "Point"
    coordinates: tuple[float, float]


class ValidationOut(CamelModel):
    schema_valid: bool
    context_valid: bool
    issues: list[str] = []
    severity: ValidationSeverity | None = None


class TelemetryOut(CamelModel):
    id: str
    vehicle_id: str
    timestamp: datetime
    location: GeoPointOut
    speed: float
    fuel_level: float
    odometer: float
    engine_temp: float
    engine_rpm: float | None = Field(default=None, alias="engineRPM")
    validation: ValidationOut
    device_id: str | None = None
    received_at: datetime


class BatchIssueOut(BaseModel):
    timestamp: datetime
    issues: list[str]
    severity: ValidationSeverity | None = None


class BatchValidationOut(BaseModel):
    total: int
    valid: int
    invalid: int
    issues: list[BatchIssueOut]


class TelemetryBatchResponse(BaseModel):
    saved: int
    validation: BatchValidationOut


class PaginationOut(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class TelemetryHistoryResponse(BaseModel):
    data: list[TelemetryOut]
    pagination: PaginationOut
