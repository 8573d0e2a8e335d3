"""Domain events and the in-process event bus.

Publishing is best effort: every handler registered for the event type runs,
a failing handler is logged and never affects the other handlers or the
publisher.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol, Union

from fleetwatch.models.enums import ConnectionStatus
from fleetwatch.services.telemetry_validator import ValidationResult

log = logging.getLogger("fleetwatch.events")


@dataclass(frozen=True)
class TelemetryData:
    lat: float
    lng: float
    speed: float
    fuel_level: float
    odometer: float
    engine_temp: float
    timestamp: datetime
    validation: ValidationResult
    engine_rpm: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "location": {"lat": self.lat, "lng": self.lng},
            "speed": self.speed,
            "fuelLevel": self.fuel_level,
            "odometer": self.odometer,
            "engineTemp": self.engine_temp,
            "timestamp": self.timestamp.isoformat(),
            "validation": self.validation.to_dict(),
        }
        if self.engine_rpm is not None:
            payload["engineRPM"] = self.engine_rpm
        return payload


@dataclass(frozen=True)
class TelemetryReceivedEvent:
    vehicle_id: str
    telemetry_data: TelemetryData

    def to_dict(self) -> dict[str, Any]:
        return {"vehicleId": self.vehicle_id, "telemetryData": self.telemetry_data.to_dict()}


@dataclass(frozen=True)
class VehicleOfflineEvent:
    vehicle_id: str
    vin: str
    last_seen_at: datetime
    previous_status: ConnectionStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicleId": self.vehicle_id,
            "vin": self.vin,
            "lastSeenAt": self.last_seen_at.isoformat(),
            "previousStatus": self.previous_status.value,
        }


@dataclass(frozen=True)
class VehicleReconnectedEvent:
    vehicle_id: str
    vin: str
    reconnected_at: datetime
    offline_duration_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicleId": self.vehicle_id,
            "vin": self.vin,
            "reconnectedAt": self.reconnected_at.isoformat(),
            "offlineDurationMs": self.offline_duration_ms,
        }


class EventHandler(Protocol):
    async def handle(self, event: Any) -> None: ...


HandlerLike = Union[EventHandler, Callable[[Any], Awaitable[None]]]


class EventBus:
    """Fan-out of domain events to the handlers subscribed to their type."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[HandlerLike]] = {}

    def subscribe(self, event_type: type, handler: HandlerLike) -> None:
        self._handlers.setdefault(event_type, []).append(handler)
        log.info("Registered event handler: %s -> %s", event_type.__name__, _handler_name(handler))

    def handlers_for(self, event_type: type) -> list[HandlerLike]:
        return list(self._handlers.get(event_type, []))

    async def publish(self, event: Any) -> int:
        """Run every handler for ``event``; returns how many of them failed."""
        event_name = type(event).__name__
        handlers = self.handlers_for(type(event))
        log.debug("Publishing event %s to %d handler(s)", event_name, len(handlers))
        if not handlers:
            return 0
        outcomes = await asyncio.gather(*(self._invoke(handler, event) for handler in handlers))
        return outcomes.count(False)

    async def _invoke(self, handler: HandlerLike, event: Any) -> bool:
        try:
            if hasattr(handler, "handle"):
                await handler.handle(event)
            else:
                await handler(event)
        except Exception:
            log.exception(
                "Error in event handler %s for %s", _handler_name(handler), type(event).__name__
            )
            return False
        return True


def _handler_name(handler: HandlerLike) -> str:
    return getattr(handler, "__name__", None) or type(handler).__name__
