import logging
import time
from typing import Callable

from solar_weather_mcp.adapters import SourceAdapter
from solar_weather_mcp.models import Coordinates, RawEnvironmentReading

logger = logging.getLogger("solar_weather.synthetic")


class SyntheticAdapter(SourceAdapter):
    """Terminal fallback: climatological estimate built locally.

    Makes no network call and cannot fail for valid coordinates. Every value
    lies well inside the plausibility bounds.
    """

    source_id = "Climatological Estimate"

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    async def fetch(self, coords: Coordinates) -> RawEnvironmentReading:
        return self.generate(coords)

    def generate(self, coords: Coordinates) -> RawEnvironmentReading:
        # Annual mean surface temperature falls roughly 0.45 C per degree of latitude
        temperature = round(28.0 - 0.45 * abs(coords.latitude), 1)
        logger.warning(
            f"Generating climatological estimate for ({coords.latitude}, {coords.longitude}): {temperature} C"
        )
        return RawEnvironmentReading(
            temperature_c=temperature,
            humidity_pct=50.0,
            pressure_hpa=1013.25,
            wind_speed_ms=5.0,
            wind_direction_deg=180.0,
            precipitation_mm_h=0.0,
            uv_index=5.0,
            visibility_m=10000.0,
            cloud_cover_pct=20.0,
            captured_at=int(self._clock()),
            condition="fair (climatological estimate)",
            icon="02d",
        )
