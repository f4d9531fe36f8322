import logging
from typing import Any, Dict, Optional

import httpx

from solar_weather_mcp.adapters import HttpSourceAdapter, get_json, optional_float, wind_direction
from solar_weather_mcp.exceptions import SourceSchemaError, SourceUnavailableError
from solar_weather_mcp.models import AirQuality, Coordinates, RawEnvironmentReading

logger = logging.getLogger("solar_weather.openweather")

# OpenWeather caps reported visibility at 10 km
DEFAULT_VISIBILITY_M = 10000.0

# Status codes returned when the key is not subscribed to One Call 3.0
ONECALL_UNSUBSCRIBED = (401, 403)


class OpenWeatherAdapter(HttpSourceAdapter):
    """Primary source: OpenWeatherMap.

    Tries One Call 3.0 first, which carries the UV index. A key without a One
    Call subscription is answered with 401 or 403, in which case the 2.5 current
    weather endpoint is used instead. Any other failure is final.
    """

    source_id = "OpenWeatherMap"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openweathermap.org/data/2.5",
        onecall_url: Optional[str] = "https://api.openweathermap.org/data/3.0/onecall",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url, timeout=timeout, transport=transport)
        self._api_key = api_key
        self.onecall_url = onecall_url

    async def request(self, coords: Coordinates) -> Dict[str, Any]:
        if not self._api_key:
            logger.error("OPENWEATHER_API_KEY is not configured")
            raise SourceUnavailableError(f"{self.source_id}: API key not configured")

        params = {"lat": coords.latitude, "lon": coords.longitude, "appid": self._api_key, "units": "metric"}

        if self.onecall_url:
            logger.info(f"Requesting One Call 3.0 for ({coords.latitude}, {coords.longitude})")
            try:
                return await self._get_json(self.onecall_url, {**params, "exclude": "minutely,hourly,daily,alerts"})
            except SourceUnavailableError as e:
                if e.status_code not in ONECALL_UNSUBSCRIBED:
                    raise
                logger.warning("One Call 3.0 unauthorized for this key, falling back to current weather 2.5")

        logger.info(f"Requesting current weather 2.5 for ({coords.latitude}, {coords.longitude})")
        return await self._get_json("weather", params)

    def normalize(self, payload: Dict[str, Any]) -> RawEnvironmentReading:
        if "current" in payload:
            return self._normalize_onecall(payload["current"])
        return self._normalize_current(payload)

    def _normalize_onecall(self, current: Dict[str, Any]) -> RawEnvironmentReading:
        weather = current["weather"][0]
        return RawEnvironmentReading(
            temperature_c=float(current["temp"]),
            humidity_pct=float(current["humidity"]),
            pressure_hpa=float(current["pressure"]),
            wind_speed_ms=float(current["wind_speed"]),
            wind_direction_deg=wind_direction(current.get("wind_deg")),
            precipitation_mm_h=_hourly_precipitation(current),
            uv_index=optional_float(current.get("uvi")),
            visibility_m=optional_float(current.get("visibility"), DEFAULT_VISIBILITY_M),
            cloud_cover_pct=optional_float(current.get("clouds")),
            captured_at=int(current["dt"]),
            condition=str(weather.get("description", "")),
            icon=str(weather.get("icon", "")),
        )

    def _normalize_current(self, payload: Dict[str, Any]) -> RawEnvironmentReading:
        main = payload["main"]
        wind = payload["wind"]
        weather = payload["weather"][0]

        return RawEnvironmentReading(
            temperature_c=float(main["temp"]),
            humidity_pct=float(main["humidity"]),
            pressure_hpa=float(main["pressure"]),
            wind_speed_ms=float(wind["speed"]),
            wind_direction_deg=wind_direction(wind.get("deg")),
            precipitation_mm_h=_hourly_precipitation(payload),
            uv_index=0.0,  # not part of the 2.5 current weather response
            visibility_m=optional_float(payload.get("visibility"), DEFAULT_VISIBILITY_M),
            cloud_cover_pct=optional_float((payload.get("clouds") or {}).get("all")),
            captured_at=int(payload["dt"]),
            condition=str(weather.get("description", "")),
            icon=str(weather.get("icon", "")),
        )


def _hourly_precipitation(block: Dict[str, Any]) -> float:
    # rain/snow blocks only appear when there is precipitation
    rain = block.get("rain") or {}
    snow = block.get("snow") or {}
    return optional_float(rain.get("1h")) + optional_float(snow.get("1h"))


class OpenWeatherAirQuality:
    """Air pollution lookup (OpenWeather 2.5 air_pollution)"""

    source_id = "OpenWeatherMap Air Pollution"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openweathermap.org/data/2.5",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._api_key = api_key

    async def fetch(self, coords: Coordinates) -> AirQuality:
        if not self._api_key:
            raise SourceUnavailableError(f"{self.source_id}: API key not configured")

        payload = await get_json(
            f"{self.base_url}/air_pollution",
            {"lat": coords.latitude, "lon": coords.longitude, "appid": self._api_key},
            self.source_id,
            timeout=self.timeout,
            transport=self._transport,
        )
        try:
            entry = payload["list"][0]
            components = entry.get("components") or {}
            return AirQuality(
                aqi=int(entry["main"]["aqi"]),
                co=optional_float(components.get("co")),
                no=optional_float(components.get("no")),
                no2=optional_float(components.get("no2")),
                o3=optional_float(components.get("o3")),
                so2=optional_float(components.get("so2")),
                pm2_5=optional_float(components.get("pm2_5")),
                pm10=optional_float(components.get("pm10")),
                nh3=optional_float(components.get("nh3")),
            )
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise SourceSchemaError(f"{self.source_id}: unexpected payload ({type(e).__name__}: {e})") from e

