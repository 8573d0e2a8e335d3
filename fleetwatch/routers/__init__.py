from . import analytics, health, telemetry, vehicles

__all__ = [
    "analytics",
    "health",
    "telemetry",
    "vehicles",
]
