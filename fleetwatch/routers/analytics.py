import datetime as dt

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleetwatch.deps import get_analytics_period, get_db_session
from fleetwatch.schemas.analytics import FleetAnalyticsOut
from fleetwatch.services.analytics import AnalyticsReader

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/fleet", response_model=FleetAnalyticsOut)
async def get_fleet_analytics(
    period: tuple[dt.date | None, dt.date | None] = Depends(get_analytics_period),
    session: AsyncSession = Depends(get_db_session),
):
    """Fleet connection counts, an overall summary and a per-vehicle breakdown."""
    start, end = period
    analytics = await AnalyticsReader(session).fleet_analytics(start, end)
    return FleetAnalyticsOut.model_validate(analytics)
