import asyncio

import pytest

from solar_weather_mcp.adapters import SourceAdapter
from solar_weather_mcp.classifier import build_rule_set
from solar_weather_mcp.config import Config
from solar_weather_mcp.models import Coordinates, RawEnvironmentReading

NOW = 1_750_000_000


class FakeAdapter(SourceAdapter):
    """Returns a fixed reading or raises a fixed error, counting calls"""

    def __init__(self, source_id, reading=None, error=None, delay=None):
        self.source_id = source_id
        self.reading = reading
        self.error = error
        self.delay = delay
        self.calls = 0

    async def fetch(self, coords):
        self.calls += 1
        if self.delay is not None:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reading


@pytest.fixture
def make_reading():
    def _make(**overrides):
        values = dict(
            temperature_c=22.0,
            humidity_pct=55.0,
            pressure_hpa=1013.0,
            wind_speed_ms=4.0,
            wind_direction_deg=200.0,
            precipitation_mm_h=0.0,
            uv_index=4.0,
            visibility_m=10000.0,
            cloud_cover_pct=20.0,
            captured_at=NOW - 60,
            condition="few clouds",
            icon="02d",
        )
        values.update(overrides)
        return RawEnvironmentReading(**values)

    return _make


@pytest.fixture
def coords():
    return Coordinates(latitude=37.39, longitude=-5.98)


@pytest.fixture
def settings():
    return Config(_env_file=None, openweather_api_key="test-key")


@pytest.fixture
def rule_set(settings):
    return build_rule_set(settings)


@pytest.fixture
def fake_adapter():
    return FakeAdapter
