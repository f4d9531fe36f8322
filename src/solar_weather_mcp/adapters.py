import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from solar_weather_mcp.exceptions import SourceSchemaError, SourceUnavailableError
from solar_weather_mcp.models import Coordinates, RawEnvironmentReading

logger = logging.getLogger("solar_weather.adapters")

USER_AGENT = "Solar_Weather_MCP/1.0"


async def get_json(
    url: str,
    params: Dict[str, Any],
    source_id: str,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """One GET returning a JSON object, with failures mapped to SourceErrors"""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url, params=params, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise SourceUnavailableError(
            f"{source_id}: HTTP {e.response.status_code}", status_code=e.response.status_code
        ) from e
    except httpx.HTTPError as e:
        raise SourceUnavailableError(f"{source_id}: {type(e).__name__}: {e}") from e

    try:
        payload = response.json()
    except ValueError as e:
        raise SourceSchemaError(f"{source_id}: response is not valid JSON") from e

    if not isinstance(payload, dict):
        raise SourceSchemaError(f"{source_id}: expected a JSON object, got {type(payload).__name__}")
    return payload


class SourceAdapter(ABC):
    """Translates one provider's response into a RawEnvironmentReading"""

    source_id: str = "unknown"

    @abstractmethod
    async def fetch(self, coords: Coordinates) -> RawEnvironmentReading:
        """Return the current reading for the coordinates or raise a SourceError"""
        raise NotImplementedError


class HttpSourceAdapter(SourceAdapter):
    """Adapter backed by an HTTP JSON endpoint"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = path if path.startswith(("http://", "https://")) else f"{self.base_url}/{path.lstrip('/')}"
        return await get_json(url, params, self.source_id, timeout=self.timeout, transport=self._transport)

    async def fetch(self, coords: Coordinates) -> RawEnvironmentReading:
        payload = await self.request(coords)
        try:
            return self.normalize(payload)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise SourceSchemaError(f"{self.source_id}: unexpected payload ({type(e).__name__}: {e})") from e

    @abstractmethod
    async def request(self, coords: Coordinates) -> Dict[str, Any]:
        """Perform the provider call"""

    @abstractmethod
    def normalize(self, payload: Dict[str, Any]) -> RawEnvironmentReading:
        """Map the provider payload onto the canonical reading"""


def optional_float(value: Any, default: float = 0.0) -> float:
    """Coerce an optional provider value, substituting the default when absent"""
    if value is None:
        return default
    return float(value)


def wind_direction(value: Any) -> float:
    """Meteorological direction folded into [0, 360), absent reads as 0 (north)"""
    return optional_float(value) % 360
