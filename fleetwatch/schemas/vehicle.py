from datetime import datetime

from pydantic import Field, field_validator

from fleetwatch.models.enums import ConnectionStatus, FuelType, VehicleStatus, VehicleType
from fleetwatch.schemas.base import CamelModel
from fleetwatch.schemas.telemetry import GeoPointOut


class VehicleCreate(CamelModel):
    id: str | None = Field(default=None, min_length=1, max_length=64)
    vin: str = Field(..., min_length=17, max_length=17)
    license_plate: str = Field(..., min_length=1, max_length=20)
    vehicle_model: str = Field(..., min_length=1, max_length=100)
    manufacturer: str = Field(..., min_length=1, max_length=50)
    year: int = Field(..., ge=1900)
    type: VehicleType
    fuel_type: FuelType
    status: VehicleStatus = VehicleStatus.ACTIVE

    @field_validator("vin", "license_plate")
    @classmethod
    def _normalise(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("year")
    @classmethod
    def _not_future_model(cls, value: int) -> int:
        if value > datetime.now().year + 1:
            raise ValueError("year is too far in the future")
        return value


class CurrentTelemetryOut(CamelModel):
    location: GeoPointOut
    speed: float | None = None
    fuel_level: float | None = None
    odometer: float | None = None
    engine_temp: float | None = None
    timestamp: datetime


class VehicleOut(CamelModel):
    id: str
    vin: str
    license_plate: str
    vehicle_model: str
    manufacturer: str
    year: int
    type: VehicleType
    fuel_type: FuelType
    status: VehicleStatus
    connection_status: ConnectionStatus
    last_seen_at: datetime | None = None
    offline_since: datetime | None = None
    current_telemetry: CurrentTelemetryOut | None = None
    created_at: datetime
    updated_at: datetime
