"""Contextual validation of telemetry readings.

A reading is compared against the chronologically previous reading of the
same vehicle. Every rule runs independently; anomalies are reported as
human-readable issues with a severity, never as exceptions. The caller
persists the reading whatever the verdict.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from fleetwatch.core.clock import ensure_aware
from fleetwatch.models.enums import ValidationSeverity

EARTH_RADIUS_KM = 6371.0
MAX_VEHICLE_SPEED_KMH = 300.0
LOCATION_JUMP_TOLERANCE = 1.5
REFUEL_THRESHOLD_PERCENT = 5.0
EXTREME_FUEL_DROP_PERCENT = 50.0
EXTREME_FUEL_WINDOW_SECONDS = 3600.0
HIGH_ENGINE_TEMP_C = 120.0
LOW_ENGINE_TEMP_C = -10.0
SPEED_MISMATCH_KMH = 50.0
MIN_ODOMETER_DELTA_KM = 1.0


@dataclass(frozen=True)
class TelemetrySample:
    """The subset of a reading the validator looks at."""

    speed: float
    fuel_level: float
    odometer: float
    engine_temp: float
    timestamp: datetime
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lng is not None


@dataclass(frozen=True)
class ValidationResult:
    schema_valid: bool = True
    context_valid: bool = True
    issues: tuple[str, ...] = field(default_factory=tuple)
    severity: ValidationSeverity | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "schemaValid": self.schema_valid,
            "contextValid": self.context_valid,
            "issues": list(self.issues),
        }
        if self.severity is not None:
            payload["severity"] = self.severity.value
        return payload


@dataclass(frozen=True)
class _RuleContext:
    current: TelemetrySample
    previous: TelemetrySample
    elapsed_seconds: float


Rule = Callable[[_RuleContext, list], Optional[ValidationSeverity]]


def _fmt(value: float) -> str:
    """Render whole numbers without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, so 2.5 becomes 3."""
    return math.floor(value + 0.5)


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def check_timestamp_order(ctx: _RuleContext, issues: list) -> Optional[ValidationSeverity]:
    if ctx.elapsed_seconds < 0:
        issues.append("Timestamp is before previous telemetry")
        return ValidationSeverity.HIGH
    return None


def check_odometer(ctx: _RuleContext, issues: list) -> Optional[ValidationSeverity]:
    if ctx.current.odometer < ctx.previous.odometer:
        issues.append(f"Odometer decreased from {_fmt(ctx.previous.odometer)} to {_fmt(ctx.current.odometer)}")
        return ValidationSeverity.MEDIUM
    return None


def check_location_jump(ctx: _RuleContext, issues: list) -> Optional[ValidationSeverity]:
    if not ctx.previous.has_location or not ctx.current.has_location:
        return None
    distance = haversine_distance(ctx.previous.lat, ctx.previous.lng, ctx.current.lat, ctx.current.lng)
    max_possible = (MAX_VEHICLE_SPEED_KMH / 3600) * ctx.elapsed_seconds
    if distance > max_possible * LOCATION_JUMP_TOLERANCE:
        issues.append(f"Unrealistic location jump: {distance:.2f}km in {_fmt(ctx.elapsed_seconds)}s")
        return ValidationSeverity.HIGH
    return None


def check_fuel_level(ctx: _RuleContext, issues: list) -> Optional[ValidationSeverity]:
    fuel_diff = ctx.current.fuel_level - ctx.previous.fuel_level
    if fuel_diff > REFUEL_THRESHOLD_PERCENT:
        issues.append(f"Fuel level increased by {fuel_diff:.1f}% (possible refuel?)")
        return ValidationSeverity.LOW
    if fuel_diff < -EXTREME_FUEL_DROP_PERCENT and ctx.elapsed_seconds < EXTREME_FUEL_WINDOW_SECONDS:
        minutes = round_half_up(ctx.elapsed_seconds / 60)
        issues.append(f"Extreme fuel consumption: {abs(fuel_diff):.1f}% in {minutes}min")
        return ValidationSeverity.MEDIUM
    return None


def check_engine_temperature(ctx: _RuleContext, issues: list) -> Optional[ValidationSeverity]:
    temp = ctx.current.engine_temp
    if temp > HIGH_ENGINE_TEMP_C:
        issues.append(f"High engine temperature: {_fmt(temp)}°C")
        return ValidationSeverity.MEDIUM
    if temp < LOW_ENGINE_TEMP_C and ctx.current.speed > 0:
        issues.append(f"Unusually low engine temp ({_fmt(temp)}°C) while moving")
        return ValidationSeverity.MEDIUM
    return None


def check_speed_odometer(ctx: _RuleContext, issues: list) -> Optional[ValidationSeverity]:
    if ctx.elapsed_seconds <= 0:
        return None
    odometer_diff = ctx.current.odometer - ctx.previous.odometer
    avg_from_odometer = (odometer_diff / ctx.elapsed_seconds) * 3600
    reported_avg = (ctx.current.speed + ctx.previous.speed) / 2
    if abs(avg_from_odometer - reported_avg) > SPEED_MISMATCH_KMH and odometer_diff > MIN_ODOMETER_DELTA_KM:
        issues.append(
            f"Speed/odometer mismatch: calculated {avg_from_odometer:.1f}km/h vs reported {reported_avg:.1f}km/h"
        )
        return ValidationSeverity.MEDIUM
    return None


CONTEXT_RULES: tuple[Rule, ...] = (
    check_timestamp_order,
    check_odometer,
    check_location_jump,
    check_fuel_level,
    check_engine_temperature,
    check_speed_odometer,
)


def highest_severity(severities) -> ValidationSeverity | None:
    triggered = [s for s in severities if s is not None]
    if not triggered:
        return None
    return max(triggered, key=lambda s: s.rank)


def validate_telemetry_context(
    current: TelemetrySample, previous: TelemetrySample | None
) -> ValidationResult:
    if previous is None:
        return ValidationResult()

    elapsed = (ensure_aware(current.timestamp) - ensure_aware(previous.timestamp)).total_seconds()
    ctx = _RuleContext(current=current, previous=previous, elapsed_seconds=elapsed)

    issues: list[str] = []
    severities = [rule(ctx, issues) for rule in CONTEXT_RULES]

    return ValidationResult(
        schema_valid=True,
        context_valid=not issues,
        issues=tuple(issues),
        severity=highest_severity(severities) if issues else None,
    )
