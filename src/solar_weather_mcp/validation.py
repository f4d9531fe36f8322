import logging
import math
import time
from typing import Dict, Optional, Tuple

from solar_weather_mcp.exceptions import PlausibilityError
from solar_weather_mcp.models import DataFreshness, RawEnvironmentReading

logger = logging.getLogger("solar_weather.validation")

# Provider-agnostic sanity bounds, inclusive
SANITY_BOUNDS: Dict[str, Tuple[float, float]] = {
    "temperature_c": (-40.0, 60.0),
    "wind_speed_ms": (0.0, 150.0),
    "pressure_hpa": (800.0, 1100.0),
    "humidity_pct": (0.0, 100.0),
    "cloud_cover_pct": (0.0, 100.0),
    "wind_direction_deg": (0.0, 360.0),
    "precipitation_mm_h": (0.0, 500.0),
    "uv_index": (0.0, 20.0),
    "visibility_m": (0.0, 100000.0),
}

STALENESS_THRESHOLD_SECONDS = 1800

# Tolerated provider clock drift ahead of local time
MAX_CLOCK_SKEW_SECONDS = 300


def validate_timestamp(captured_at: int, now: Optional[float] = None) -> int:
    """Reject capture times before the epoch or ahead of the local clock.

    Catches sentinel values and millisecond epochs.
    """
    if now is None:
        now = time.time()
    latest = now + MAX_CLOCK_SKEW_SECONDS
    if captured_at < 0 or captured_at > latest:
        logger.warning(f"Anomaly detected: captured_at={captured_at} outside [0, {latest:.0f}]")
        raise PlausibilityError("captured_at", captured_at, (0, latest))
    return captured_at


def validate_reading(
    reading: RawEnvironmentReading,
    bounds: Dict[str, Tuple[float, float]] = SANITY_BOUNDS,
    now: Optional[float] = None,
) -> RawEnvironmentReading:
    """Reject a reading whose fields fall outside physically sane ranges.

    Checks the fields in table order, then the capture time, and raises
    PlausibilityError for the first offending one. Returns the reading
    unchanged when every field passes.
    """
    for field, (low, high) in bounds.items():
        value = getattr(reading, field)
        if not math.isfinite(value) or value < low or value > high:
            logger.warning(f"Anomaly detected: {field}={value} outside [{low}, {high}]")
            raise PlausibilityError(field, value, (low, high))
    validate_timestamp(reading.captured_at, now=now)
    return reading


def check_freshness(
    captured_at: int,
    now: Optional[float] = None,
    threshold_seconds: float = STALENESS_THRESHOLD_SECONDS,
) -> DataFreshness:
    """Flag readings older than the staleness threshold.

    Never raises; staleness is only flagged.
    """
    if now is None:
        now = time.time()
    age = max(0.0, now - captured_at)
    stale = age > threshold_seconds
    if stale:
        logger.warning(f"Weather data is stale ({age:.0f}s old, threshold {threshold_seconds}s)")
    return DataFreshness(age_seconds=age, threshold_seconds=threshold_seconds, stale=stale)
