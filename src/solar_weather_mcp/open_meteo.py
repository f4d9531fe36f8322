import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from solar_weather_mcp.adapters import HttpSourceAdapter, optional_float, wind_direction
from solar_weather_mcp.models import Coordinates, RawEnvironmentReading

logger = logging.getLogger("solar_weather.open_meteo")

CURRENT_VARIABLES = [
    "temperature_2m",
    "relative_humidity_2m",
    "pressure_msl",
    "wind_speed_10m",
    "wind_direction_10m",
    "precipitation",
    "cloud_cover",
    "visibility",
    "uv_index",
    "weather_code",
    "is_day",
]

DEFAULT_VISIBILITY_M = 10000.0
DEFAULT_INTERVAL_SECONDS = 900

# WMO weather interpretation codes -> (description, icon stem)
WMO_CODES: Dict[int, Tuple[str, str]] = {
    0: ("clear sky", "01"),
    1: ("mainly clear", "02"),
    2: ("partly cloudy", "03"),
    3: ("overcast", "04"),
    45: ("fog", "50"),
    48: ("depositing rime fog", "50"),
    51: ("light drizzle", "09"),
    53: ("moderate drizzle", "09"),
    55: ("dense drizzle", "09"),
    56: ("light freezing drizzle", "09"),
    57: ("dense freezing drizzle", "09"),
    61: ("slight rain", "10"),
    63: ("moderate rain", "10"),
    65: ("heavy rain", "10"),
    66: ("light freezing rain", "13"),
    67: ("heavy freezing rain", "13"),
    71: ("slight snow fall", "13"),
    73: ("moderate snow fall", "13"),
    75: ("heavy snow fall", "13"),
    77: ("snow grains", "13"),
    80: ("slight rain showers", "09"),
    81: ("moderate rain showers", "09"),
    82: ("violent rain showers", "09"),
    85: ("slight snow showers", "13"),
    86: ("heavy snow showers", "13"),
    95: ("thunderstorm", "11"),
    96: ("thunderstorm with slight hail", "11"),
    99: ("thunderstorm with heavy hail", "11"),
}


class OpenMeteoAdapter(HttpSourceAdapter):
    """Secondary source: Open-Meteo current conditions (keyless)"""

    source_id = "Open-Meteo"

    def __init__(
        self,
        base_url: str = "https://api.open-meteo.com/v1",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)

    async def request(self, coords: Coordinates) -> Dict[str, Any]:
        logger.info(f"Requesting current conditions for ({coords.latitude}, {coords.longitude})")
        return await self._get_json(
            "forecast",
            {
                "latitude": coords.latitude,
                "longitude": coords.longitude,
                "current": ",".join(CURRENT_VARIABLES),
                "wind_speed_unit": "ms",
                "timeformat": "unixtime",
            },
        )

    def normalize(self, payload: Dict[str, Any]) -> RawEnvironmentReading:
        current = payload["current"]

        # precipitation is the sum over the preceding interval
        interval = int(current.get("interval") or DEFAULT_INTERVAL_SECONDS)
        precipitation = optional_float(current.get("precipitation")) * 3600 / interval

        code = current.get("weather_code")
        description, icon_stem = WMO_CODES.get(int(code) if code is not None else -1, ("unknown", "03"))
        suffix = "n" if current.get("is_day") == 0 else "d"

        return RawEnvironmentReading(
            temperature_c=float(current["temperature_2m"]),
            humidity_pct=float(current["relative_humidity_2m"]),
            pressure_hpa=float(current["pressure_msl"]),
            wind_speed_ms=float(current["wind_speed_10m"]),
            wind_direction_deg=wind_direction(current.get("wind_direction_10m")),
            precipitation_mm_h=round(precipitation, 2),
            uv_index=optional_float(current.get("uv_index")),
            visibility_m=optional_float(current.get("visibility"), DEFAULT_VISIBILITY_M),
            cloud_cover_pct=optional_float(current.get("cloud_cover")),
            captured_at=int(current["time"]),
            condition=description,
            icon=f"{icon_stem}{suffix}",
        )
