import httpx
import pytest

from solar_weather_mcp.cache import ReadingCache
from solar_weather_mcp.config import Config
from solar_weather_mcp.exceptions import InvalidCoordinatesError, SourceUnavailableError
from solar_weather_mcp.models import AirQuality, Coordinates, ImpactStatus, OperationalStatus, SourceKind
from solar_weather_mcp.orchestrator import SourceSelector
from solar_weather_mcp.pipeline import DEFAULT_AIR_QUALITY, EnvironmentPipeline, build_pipeline, parse_coordinates
from solar_weather_mcp.report import AIR_QUALITY_NOTICE, STALE_NOTICE, SYNTHETIC_NOTICE
from solar_weather_mcp.validation import validate_reading

NOW = 1_750_000_000


def make_pipeline(primary, secondary, rule_set, cache=None):
    return EnvironmentPipeline(SourceSelector(primary, secondary), rule_set, cache=cache, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_report_from_primary(fake_adapter, make_reading, rule_set, coords):
    pipeline = make_pipeline(
        fake_adapter("OpenWeatherMap", reading=make_reading(cloud_cover_pct=85)),
        fake_adapter("Open-Meteo", reading=make_reading()),
        rule_set,
    )

    report = await pipeline.get_unified_report(coords)

    assert report.meta.source_id == "OpenWeatherMap"
    assert report.meta.source_kind == SourceKind.PRIMARY
    assert report.meta.synthetic is False
    assert report.meta.latency_ms >= 0
    assert report.reading.cloud_cover_pct == 85
    assert report.impacts["grid_dispatch"].status == ImpactStatus.WARNING
    assert report.aggregate_status == ImpactStatus.WARNING
    assert report.operational_status == OperationalStatus.YELLOW
    assert report.freshness.stale is False
    assert report.notices == []
    assert [point.hour_offset for point in report.forecast] == [1, 2, 3, 4]
    assert {point.risk_label for point in report.forecast} == {"MODERATE"}


@pytest.mark.asyncio
async def test_all_sources_failing_yields_synthetic_report(fake_adapter, rule_set, coords):
    pipeline = make_pipeline(
        fake_adapter("OpenWeatherMap", error=SourceUnavailableError("network down")),
        fake_adapter("Open-Meteo", error=SourceUnavailableError("network down")),
        rule_set,
    )

    report = await pipeline.get_unified_report(coords)

    assert report.meta.source_kind == SourceKind.SYNTHETIC
    assert report.meta.synthetic is True
    assert SYNTHETIC_NOTICE in report.notices
    assert validate_reading(report.reading) is report.reading
    assert [attempt.succeeded for attempt in report.meta.attempts] == [False, False, True]


@pytest.mark.asyncio
async def test_stale_reading_still_classified(fake_adapter, make_reading, rule_set, coords):
    stale = make_reading(captured_at=NOW - 3600, wind_speed_ms=15.0)
    pipeline = make_pipeline(fake_adapter("primary", reading=stale), fake_adapter("secondary"), rule_set)

    report = await pipeline.get_unified_report(coords)

    assert report.freshness.stale is True
    assert STALE_NOTICE in report.notices
    assert report.impacts["drone_fleet"].status == ImpactStatus.CRITICAL
    assert report.operational_status == OperationalStatus.RED


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", [None, (91, 0), (0, 181), {"latitude": 10}, "52,4", (1, 2, 3), (float("nan"), 0)])
async def test_invalid_coordinates_propagate(fake_adapter, make_reading, rule_set, bad):
    primary = fake_adapter("primary", reading=make_reading())
    pipeline = make_pipeline(primary, fake_adapter("secondary"), rule_set)

    with pytest.raises(InvalidCoordinatesError):
        await pipeline.get_unified_report(bad)
    assert primary.calls == 0


def test_parse_coordinates_forms():
    expected = Coordinates(latitude=52.1, longitude=5.2)

    assert parse_coordinates(expected) is expected
    assert parse_coordinates((52.1, 5.2)) == expected
    assert parse_coordinates({"latitude": 52.1, "longitude": 5.2}) == expected


@pytest.mark.asyncio
async def test_cache_reuses_live_selection(fake_adapter, make_reading, rule_set, coords):
    primary = fake_adapter("primary", reading=make_reading())
    pipeline = make_pipeline(primary, fake_adapter("secondary"), rule_set, cache=ReadingCache(ttl_seconds=600))

    first = await pipeline.get_unified_report(coords)
    second = await pipeline.get_unified_report(coords)

    assert primary.calls == 1
    assert first.meta.cached is False
    assert second.meta.cached is True
    assert second.meta.source_id == "primary"


@pytest.mark.asyncio
async def test_cache_skips_synthetic_selection(fake_adapter, rule_set, coords):
    primary = fake_adapter("primary", error=SourceUnavailableError("down"))
    cache = ReadingCache(ttl_seconds=600)
    pipeline = make_pipeline(primary, fake_adapter("secondary", error=SourceUnavailableError("down")), rule_set, cache)

    await pipeline.get_unified_report(coords)
    await pipeline.get_unified_report(coords)

    assert primary.calls == 2
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_build_pipeline_falls_back_to_secondary_provider(settings, coords):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.openweathermap.org":
            return httpx.Response(503)
        return httpx.Response(
            200,
            json={
                "current": {
                    "time": NOW,
                    "interval": 900,
                    "temperature_2m": 24.0,
                    "relative_humidity_2m": 40,
                    "pressure_msl": 1012.0,
                    "wind_speed_10m": 3.0,
                    "wind_direction_10m": 180,
                    "precipitation": 0.0,
                    "cloud_cover": 5,
                    "weather_code": 0,
                    "is_day": 1,
                }
            },
        )

    pipeline = build_pipeline(settings, transport=httpx.MockTransport(handler))

    report = await pipeline.get_unified_report(coords)

    assert report.meta.source_id == "Open-Meteo"
    assert report.meta.attempts[0].source_id == "OpenWeatherMap"
    assert "503" in report.meta.attempts[0].error
    assert report.reading.condition == "clear sky"
    assert report.operational_status == OperationalStatus.GREEN
    # air pollution shares the unreachable OpenWeather host
    assert report.air_quality == DEFAULT_AIR_QUALITY
    assert AIR_QUALITY_NOTICE in report.notices


class FakeAirQuality:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def fetch(self, coords):
        if self.error is not None:
            raise self.error
        return self.result


@pytest.mark.asyncio
async def test_millisecond_capture_times_degrade_to_synthetic(fake_adapter, make_reading, rule_set, coords):
    pipeline = make_pipeline(
        fake_adapter("OpenWeatherMap", reading=make_reading(captured_at=NOW * 1000)),
        fake_adapter("Open-Meteo", reading=make_reading(captured_at=NOW * 1000)),
        rule_set,
    )

    report = await pipeline.get_unified_report(coords)

    assert report.meta.source_kind == SourceKind.SYNTHETIC
    assert all("captured_at" in attempt.error for attempt in report.meta.attempts[:2])


@pytest.mark.asyncio
async def test_report_carries_air_quality(fake_adapter, make_reading, rule_set, coords):
    air_quality = AirQuality(aqi=3, pm2_5=21.4, pm10=38.0)
    pipeline = EnvironmentPipeline(
        SourceSelector(fake_adapter("OpenWeatherMap", reading=make_reading()), fake_adapter("Open-Meteo")),
        rule_set,
        air_quality=FakeAirQuality(result=air_quality),
        clock=lambda: NOW,
    )

    report = await pipeline.get_unified_report(coords)

    assert report.air_quality == air_quality
    assert AIR_QUALITY_NOTICE not in report.notices


@pytest.mark.asyncio
async def test_failed_air_quality_uses_default(fake_adapter, make_reading, rule_set, coords):
    pipeline = EnvironmentPipeline(
        SourceSelector(fake_adapter("OpenWeatherMap", reading=make_reading()), fake_adapter("Open-Meteo")),
        rule_set,
        air_quality=FakeAirQuality(error=SourceUnavailableError("HTTP 500")),
        clock=lambda: NOW,
    )

    report = await pipeline.get_unified_report(coords)

    assert report.meta.source_kind == SourceKind.PRIMARY
    assert report.air_quality.aqi == 1
    assert report.air_quality.estimated is True
    assert report.notices == [AIR_QUALITY_NOTICE]


@pytest.mark.asyncio
async def test_report_without_air_quality_lookup(fake_adapter, make_reading, rule_set, coords):
    pipeline = make_pipeline(fake_adapter("OpenWeatherMap", reading=make_reading()), fake_adapter("Open-Meteo"), rule_set)

    report = await pipeline.get_unified_report(coords)

    assert report.air_quality is None


@pytest.mark.asyncio
async def test_report_includes_production_estimate(fake_adapter, make_reading, rule_set, coords):
    pipeline = EnvironmentPipeline(
        SourceSelector(
            fake_adapter("OpenWeatherMap", reading=make_reading(temperature_c=25)), fake_adapter("Open-Meteo")
        ),
        rule_set,
        plant_capacity_kw=5000,
        clock=lambda: NOW,
    )

    report = await pipeline.get_unified_report(coords)

    assert report.production.efficiency_pct == pytest.approx(18.0)
    assert report.production.expected_power_kw == pytest.approx(report.irradiance.ghi / 1000 * 5000)


def test_build_pipeline_skips_air_quality_without_key():
    pipeline = build_pipeline(Config(_env_file=None, openweather_api_key=None))

    assert pipeline.air_quality is None
