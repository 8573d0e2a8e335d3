import datetime as dt
from datetime import datetime

from fleetwatch.schemas.base import CamelModel


class DailyAnalyticsOut(CamelModel):
    vehicle_id: str
    date: dt.date
    data_points: int
    valid_data_points: int
    data_quality: float
    average_speed: float
    max_speed: float
    average_engine_temp: float
    max_engine_temp: float
    calculated_at: datetime


class AnalyticsSummaryOut(CamelModel):
    total_days: int
    average_speed: float
    max_speed: float
    average_engine_temp: float
    max_engine_temp: float
    total_data_points: int
    overall_data_quality: float


class VehicleIdentityOut(CamelModel):
    vin: str
    license_plate: str
    vehicle_model: str
    manufacturer: str


class VehicleAnalyticsOut(CamelModel):
    vehicle_id: str
    vehicle: VehicleIdentityOut
    summary: AnalyticsSummaryOut
    daily_data: list[DailyAnalyticsOut]


class FleetCountsOut(CamelModel):
    total_vehicles: int
    online_vehicles: int
    offline_vehicles: int
    active_vehicles: int


class VehicleBreakdownOut(CamelModel):
    vehicle_id: str
    data_points: int
    valid_data_points: int
    data_quality: float


class FleetAnalyticsOut(CamelModel):
    fleet: FleetCountsOut
    summary: AnalyticsSummaryOut
    vehicle_breakdown: list[VehicleBreakdownOut]
