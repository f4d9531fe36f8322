import httpx
import pytest

from solar_weather_mcp.exceptions import InvalidCoordinatesError, SourceSchemaError, SourceUnavailableError
from solar_weather_mcp.location import get_coordinates


def json_transport(body, status_code=200):
    return httpx.MockTransport(lambda request: httpx.Response(status_code, json=body))


@pytest.mark.asyncio
async def test_get_coordinates_returns_first_match():
    def handler(request):
        assert request.url.params["q"] == "Seville"
        return httpx.Response(200, json=[{"lat": "37.3886", "lon": "-5.9823", "display_name": "Sevilla"}])

    coords = await get_coordinates("  Seville ", transport=httpx.MockTransport(handler))

    assert coords.latitude == pytest.approx(37.3886)
    assert coords.longitude == pytest.approx(-5.9823)


@pytest.mark.asyncio
async def test_unknown_location_is_invalid_coordinates():
    with pytest.raises(InvalidCoordinatesError, match="not found"):
        await get_coordinates("Atlantis", transport=json_transport([]))


@pytest.mark.asyncio
async def test_blank_location_skips_the_geocoder():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[])

    with pytest.raises(InvalidCoordinatesError):
        await get_coordinates("   ", transport=httpx.MockTransport(handler))
    assert calls == []


@pytest.mark.asyncio
async def test_out_of_range_result_is_invalid_coordinates():
    transport = json_transport([{"lat": "123.0", "lon": "0.0"}])

    with pytest.raises(InvalidCoordinatesError):
        await get_coordinates("Nowhere", transport=transport)


@pytest.mark.asyncio
async def test_geocoder_error_status_is_unavailable():
    with pytest.raises(SourceUnavailableError) as excinfo:
        await get_coordinates("Seville", transport=json_transport({"error": "busy"}, status_code=503))

    assert excinfo.value.status_code == 503


@pytest.mark.asyncio
async def test_geocoder_connection_failure_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(SourceUnavailableError):
        await get_coordinates("Seville", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"lat": "37.3", "lon": "-5.9"},
        [{"display_name": "Sevilla"}],
        [{"lat": "north", "lon": "-5.9"}],
    ],
)
async def test_unreadable_geocoder_answer_is_schema_error(body):
    with pytest.raises(SourceSchemaError):
        await get_coordinates("Seville", transport=json_transport(body))
