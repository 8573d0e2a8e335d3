from datetime import datetime
from math import ceil

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.deps import get_db_session, get_ingestion_service
from fleetwatch.errors import EmptyBatchError, VehicleNotFoundError
from fleetwatch.schemas.telemetry import (
    PaginationOut,
    TelemetryBatchRequest,
    TelemetryBatchResponse,
    TelemetryHistoryResponse,
    TelemetryIngestRequest,
    TelemetryOut,
)
from fleetwatch.services.ingestion import TelemetryIngestionService
from fleetwatch.services.repositories import TelemetryStore

router = APIRouter(prefix="/telemetry", tags=["telemetry"])


@router.post("", response_model=TelemetryOut, status_code=status.HTTP_201_CREATED)
async def save_telemetry(
    payload: TelemetryIngestRequest,
    ingestion: TelemetryIngestionService = Depends(get_ingestion_service),
):
    try:
        record = await ingestion.ingest_one(payload.vehicle_id, payload.to_reading(), payload.device_id)
    except VehicleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    return TelemetryOut.model_validate(record.to_document())


@router.post("/batch", response_model=TelemetryBatchResponse, status_code=status.HTTP_201_CREATED)
async def save_telemetry_batch(
    payload: TelemetryBatchRequest,
    ingestion: TelemetryIngestionService = Depends(get_ingestion_service),
):
    """Store a buffered batch, e.g. readings collected while a vehicle was offline."""
    readings = [point.to_reading() for point in payload.telemetry_data]
    try:
        result = await ingestion.ingest_batch(payload.vehicle_id, readings, payload.device_id)
    except VehicleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from None
    except EmptyBatchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
    return TelemetryBatchResponse.model_validate(result.to_dict())


@router.get("/history", response_model=TelemetryHistoryResponse)
async def get_telemetry_history(
    vehicle_id: str = Query(..., alias="vehicleId", min_length=1),
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    session: AsyncSession = Depends(get_db_session),
):
    records, total = await TelemetryStore(session).find_history(
        vehicle_id, start=start_date, end=end_date, page=page, limit=limit
    )
    return TelemetryHistoryResponse(
        data=[TelemetryOut.model_validate(record.to_document()) for record in records],
        pagination=PaginationOut(page=page, limit=limit, total=total, total_pages=ceil(total / limit)),
    )
