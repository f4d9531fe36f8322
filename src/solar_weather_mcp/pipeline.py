import asyncio
import logging
import time
from typing import Any, Callable, Mapping, Optional, Sequence, Union

import httpx
from pydantic import ValidationError

from solar_weather_mcp.cache import ReadingCache
from solar_weather_mcp.classifier import AdaptationRuleSet, build_rule_set, classify
from solar_weather_mcp.config import Config
from solar_weather_mcp.exceptions import InvalidCoordinatesError, SourceError
from solar_weather_mcp.irradiance import estimate_irradiance, estimate_production
from solar_weather_mcp.models import AirQuality, Coordinates, SourceKind, UnifiedEnvironmentReport
from solar_weather_mcp.open_meteo import OpenMeteoAdapter
from solar_weather_mcp.openweather import OpenWeatherAdapter, OpenWeatherAirQuality
from solar_weather_mcp.orchestrator import SourceSelector
from solar_weather_mcp.report import assemble_report
from solar_weather_mcp.synthetic import SyntheticAdapter
from solar_weather_mcp.validation import check_freshness

logger = logging.getLogger("solar_weather.pipeline")

# Reported when the air pollution lookup fails
DEFAULT_AIR_QUALITY = AirQuality(aqi=1, estimated=True)

CoordinatesLike = Union[Coordinates, Mapping[str, Any], Sequence[float]]


def parse_coordinates(value: Optional[CoordinatesLike]) -> Coordinates:
    """Accept Coordinates, a {latitude, longitude} mapping or a (lat, lon) pair"""
    if value is None:
        raise InvalidCoordinatesError("Coordinates are required")
    if isinstance(value, Coordinates):
        return value
    try:
        if isinstance(value, Mapping):
            return Coordinates(latitude=value["latitude"], longitude=value["longitude"])
        if isinstance(value, (str, bytes)) or len(value) != 2:
            raise InvalidCoordinatesError(f"Expected a (latitude, longitude) pair, got {value!r}")
        return Coordinates(latitude=value[0], longitude=value[1])
    except (KeyError, TypeError, ValidationError) as e:
        raise InvalidCoordinatesError(f"Invalid coordinates {value!r}: {e}") from e


class EnvironmentPipeline:
    """Selection -> validation -> freshness -> classification -> assembly"""

    def __init__(
        self,
        selector: SourceSelector,
        rule_set: AdaptationRuleSet,
        cache: Optional[ReadingCache] = None,
        staleness_threshold_seconds: float = 1800,
        deadline_seconds: Optional[float] = None,
        air_quality: Optional[OpenWeatherAirQuality] = None,
        plant_capacity_kw: float = 100000.0,
        panel_base_efficiency: float = 0.18,
        temperature_loss_per_c: float = 0.004,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.selector = selector
        self.rule_set = rule_set
        self.cache = cache
        self.staleness_threshold_seconds = staleness_threshold_seconds
        self.deadline_seconds = deadline_seconds
        self.air_quality = air_quality
        self.plant_capacity_kw = plant_capacity_kw
        self.panel_base_efficiency = panel_base_efficiency
        self.temperature_loss_per_c = temperature_loss_per_c
        self._clock = clock
        self._monotonic = monotonic

    async def get_unified_report(
        self, coordinates: Optional[CoordinatesLike], deadline_seconds: Optional[float] = None
    ) -> UnifiedEnvironmentReport:
        """Build a report for the coordinates.

        Only InvalidCoordinatesError propagates; every source failure degrades
        to the next source and finally to a climatological estimate. The air
        pollution lookup runs alongside source selection and degrades to
        DEFAULT_AIR_QUALITY.
        """
        started_at = self._monotonic()
        coords = parse_coordinates(coordinates)
        logger.info(f"Starting environment report for ({coords.latitude}, {coords.longitude})")

        deadline = deadline_seconds if deadline_seconds is not None else self.deadline_seconds
        (selection, cached), air_quality = await asyncio.gather(
            self._select(coords, deadline), self._air_quality(coords, deadline)
        )

        reading = selection.reading
        freshness = check_freshness(
            reading.captured_at, now=self._clock(), threshold_seconds=self.staleness_threshold_seconds
        )
        classification = classify(reading, self.rule_set)
        irradiance = estimate_irradiance(coords, reading.cloud_cover_pct, reading.captured_at)
        production = estimate_production(
            irradiance,
            reading.temperature_c,
            reading.cloud_cover_pct,
            capacity_kw=self.plant_capacity_kw,
            base_efficiency=self.panel_base_efficiency,
            temperature_loss_per_c=self.temperature_loss_per_c,
        )

        report = assemble_report(
            selection,
            freshness,
            classification,
            irradiance,
            production,
            started_at=started_at,
            finished_at=self._monotonic(),
            cached=cached,
            air_quality=air_quality,
        )
        logger.info(
            f"Report ready: source={report.meta.source_id} status={report.operational_status.value} "
            f"latency={report.meta.latency_ms:.1f}ms stale={freshness.stale}"
        )
        return report

    async def _select(self, coords: Coordinates, deadline: Optional[float]):
        selection = self.cache.get(coords) if self.cache is not None else None
        if selection is not None:
            return selection, True

        selection = await self.selector.select(coords, deadline_seconds=deadline)
        # synthetic readings are never cached
        if self.cache is not None and selection.source_kind != SourceKind.SYNTHETIC:
            self.cache.put(coords, selection)
        return selection, False

    async def _air_quality(self, coords: Coordinates, deadline: Optional[float]) -> Optional[AirQuality]:
        if self.air_quality is None:
            return None
        try:
            return await asyncio.wait_for(self.air_quality.fetch(coords), timeout=deadline)
        except (SourceError, asyncio.TimeoutError) as e:
            logger.warning(f"Air quality unavailable, reporting default index: {e}")
            return DEFAULT_AIR_QUALITY


def build_pipeline(
    config: Config,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    cache: Optional[ReadingCache] = None,
) -> EnvironmentPipeline:
    """Wire the default source chain and rule set from configuration"""
    selector = SourceSelector(
        primary=OpenWeatherAdapter(
            config.openweather_api_key,
            base_url=config.openweather_base_url,
            onecall_url=config.openweather_onecall_url,
            timeout=config.request_timeout_seconds,
            transport=transport,
        ),
        secondary=OpenMeteoAdapter(
            base_url=config.open_meteo_base_url,
            timeout=config.request_timeout_seconds,
            transport=transport,
        ),
        fallback=SyntheticAdapter(),
    )

    air_quality = None
    if config.air_quality_enabled and config.openweather_api_key:
        air_quality = OpenWeatherAirQuality(
            config.openweather_api_key,
            base_url=config.openweather_base_url,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    return EnvironmentPipeline(
        selector,
        build_rule_set(config),
        cache=cache,
        staleness_threshold_seconds=config.staleness_threshold_seconds,
        deadline_seconds=config.pipeline_deadline_seconds,
        air_quality=air_quality,
        plant_capacity_kw=config.plant_capacity_kw,
        panel_base_efficiency=config.panel_base_efficiency,
        temperature_loss_per_c=config.temperature_loss_per_c,
    )
