import logging
from typing import Optional

import httpx

from solar_weather_mcp.adapters import USER_AGENT
from solar_weather_mcp.exceptions import InvalidCoordinatesError, SourceSchemaError, SourceUnavailableError
from solar_weather_mcp.models import Coordinates
from solar_weather_mcp.pipeline import parse_coordinates

logger = logging.getLogger("solar_weather.location")

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
GEOCODER_ID = "Nominatim"


async def get_coordinates(
    location: str, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 10.0
) -> Coordinates:
    """Resolve a place name to site coordinates using OpenStreetMap Nominatim.

    Raises InvalidCoordinatesError when the name is blank, unknown or resolves
    outside the valid coordinate range, SourceUnavailableError when the
    geocoder cannot be reached and SourceSchemaError when its answer cannot
    be read.
    """
    name = (location or "").strip()
    if not name:
        raise InvalidCoordinatesError("A location name is required")

    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:
            response = await client.get(
                NOMINATIM_URL,
                params={"q": name, "format": "json", "limit": 1},
                headers={"User-Agent": USER_AGENT},
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"Geocoding {name} failed with HTTP {e.response.status_code}")
        raise SourceUnavailableError(
            f"{GEOCODER_ID}: HTTP {e.response.status_code}", status_code=e.response.status_code
        ) from e
    except httpx.HTTPError as e:
        logger.error(f"Geocoding {name} failed: {str(e)}")
        raise SourceUnavailableError(f"{GEOCODER_ID}: {type(e).__name__}: {e}") from e

    try:
        results = response.json()
    except ValueError as e:
        raise SourceSchemaError(f"{GEOCODER_ID}: response is not valid JSON") from e
    if not isinstance(results, list):
        raise SourceSchemaError(f"{GEOCODER_ID}: expected a list of places, got {type(results).__name__}")
    if not results:
        raise InvalidCoordinatesError(f"Location '{name}' not found")

    try:
        place = results[0]
        latitude, longitude = float(place["lat"]), float(place["lon"])
    except (KeyError, TypeError, ValueError) as e:
        raise SourceSchemaError(f"{GEOCODER_ID}: unreadable place entry ({type(e).__name__}: {e})") from e

    logger.info(f"Resolved {name} to ({latitude}, {longitude})")
    return parse_coordinates((latitude, longitude))
