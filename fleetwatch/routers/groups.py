from fastapi import APIRouter

from . import analytics, health, telemetry, vehicles

API_ROUTERS: tuple[APIRouter, ...] = (
    telemetry.router,
    vehicles.router,
    analytics.router,
    health.router,
)

__all__ = ["API_ROUTERS"]
