import datetime as dt

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.deps import get_analytics_period, get_db_session
from fleetwatch.models.enums import ConnectionStatus
from fleetwatch.schemas.analytics import VehicleAnalyticsOut
from fleetwatch.schemas.vehicle import VehicleCreate, VehicleOut
from fleetwatch.services.analytics import AnalyticsReader
from fleetwatch.services.repositories import VehicleDirectory

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.post("", response_model=VehicleOut, status_code=status.HTTP_201_CREATED)
async def create_vehicle(payload: VehicleCreate, session: AsyncSession = Depends(get_db_session)):
    fields = payload.model_dump(exclude_none=True)
    try:
        vehicle = await VehicleDirectory(session).create(**fields)
    except IntegrityError:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Vehicle with this VIN or license plate already exists"
        ) from None
    return VehicleOut.model_validate(vehicle)


@router.get("", response_model=list[VehicleOut])
async def list_vehicles(
    connection_status: ConnectionStatus | None = Query(None, alias="connectionStatus"),
    session: AsyncSession = Depends(get_db_session),
):
    vehicles = await VehicleDirectory(session).list_vehicles(connection_status)
    return [VehicleOut.model_validate(vehicle) for vehicle in vehicles]


@router.get("/{vehicle_id}", response_model=VehicleOut)
async def get_vehicle(vehicle_id: str, session: AsyncSession = Depends(get_db_session)):
    vehicle = await VehicleDirectory(session).find_by_id(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return VehicleOut.model_validate(vehicle)


@router.get("/{vehicle_id}/analytics", response_model=VehicleAnalyticsOut)
async def get_vehicle_analytics(
    vehicle_id: str,
    period: tuple[dt.date | None, dt.date | None] = Depends(get_analytics_period),
    session: AsyncSession = Depends(get_db_session),
):
    """Daily statistics for a vehicle, most recent day first, with a summary over the period."""
    vehicle = await VehicleDirectory(session).find_by_id(vehicle_id)
    if vehicle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    start, end = period
    analytics = await AnalyticsReader(session).vehicle_analytics(vehicle, start, end)
    return VehicleAnalyticsOut.model_validate(analytics)
