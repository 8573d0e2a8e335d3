import datetime as dt

from sqlalchemy.ext.asyncio import AsyncSession

from fastapi import Depends, HTTPException, Query, status

from fleetwatch.core.config import get_settings
from fleetwatch.db.session import AsyncSessionLocal
from fleetwatch.services.broadcast import RedisBroadcaster
from fleetwatch.services.event_handlers import build_event_bus
from fleetwatch.services.events import EventBus
from fleetwatch.services.ingestion import TelemetryIngestionService
from fleetwatch.workers.connection_monitor import ConnectionMonitor
from fleetwatch.workers.job_manager import JobManager

broadcaster = RedisBroadcaster(get_settings())
event_bus = build_event_bus(AsyncSessionLocal, broadcaster)

job_manager = JobManager()
job_manager.register(ConnectionMonitor(get_settings(), AsyncSessionLocal, event_bus, broadcaster))


async def get_db_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


def get_event_bus() -> EventBus:
    return event_bus


def get_job_manager() -> JobManager:
    return job_manager


async def get_ingestion_service(
    session: AsyncSession = Depends(get_db_session),
    bus: EventBus = Depends(get_event_bus),
) -> TelemetryIngestionService:
    return TelemetryIngestionService(session, bus)


def get_analytics_period(
    start_date: dt.date | None = Query(None, alias="startDate"),
    end_date: dt.date | None = Query(None, alias="endDate"),
) -> tuple[dt.date | None, dt.date | None]:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="End date must be after or equal to start date",
        )
    return start_date, end_date
