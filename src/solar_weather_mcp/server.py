import logging
from pathlib import Path
from typing import Any, Dict, Union

from dotenv import load_dotenv
from mcp.server.fastmcp import Context, FastMCP

from solar_weather_mcp.cache import ReadingCache
from solar_weather_mcp.config import config
from solar_weather_mcp.exceptions import InvalidCoordinatesError, SourceError
from solar_weather_mcp.location import get_coordinates
from solar_weather_mcp.pipeline import build_pipeline

load_dotenv()

# Set up logging
log_dir = Path("logs")
log_dir.mkdir(exist_ok=True)
log_file = log_dir / "solar_weather.log"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(log_file),
        logging.StreamHandler(),
    ],
)

logger = logging.getLogger("solar_weather")

mcp = FastMCP(
    "Solar Weather",
    instructions="Environmental conditions and operational impact for solar sites",
    debug=False,
    log_level="INFO",
    port=config.port,
)

# The cache lives for the server process
pipeline = build_pipeline(
    config, cache=ReadingCache(ttl_seconds=config.cache_ttl_seconds, max_entries=config.cache_max_entries)
)


# Tools
@mcp.tool()
async def get_environment_report(
    latitude: float, longitude: float, ctx: Context
) -> Union[Dict[str, Any], str]:
    """
    Get current conditions and operational impact for a site

    Args:
        latitude: Latitude in degrees
        longitude: Longitude in degrees
    """
    logger.info(f"Starting environment report request for ({latitude}, {longitude})")
    try:
        report = await pipeline.get_unified_report((latitude, longitude))
    except InvalidCoordinatesError as e:
        logger.error(f"Rejected coordinates: {str(e)}")
        return f"Error: {str(e)}"

    await ctx.info(f"Report from {report.meta.source_id}: {report.operational_status.value}")
    return report.model_dump(mode="json")


@mcp.tool()
async def get_location_environment_report(location: str, ctx: Context) -> Union[Dict[str, Any], str]:
    """
    Get current conditions and operational impact for a named place

    Args:
        location: City or place name
    """
    logger.info(f"Starting environment report request for {location}")
    try:
        coords = await get_coordinates(location)
    except InvalidCoordinatesError as e:
        logger.error(f"Rejected location {location}: {str(e)}")
        return f"Error: Unable to locate {location}. {str(e)}"
    except SourceError as e:
        logger.error(f"Geocoding unavailable for {location}: {str(e)}")
        return f"Error: Location lookup unavailable, try coordinates instead. {str(e)}"

    await ctx.info(f"Resolved {location} to ({coords.latitude}, {coords.longitude})")
    report = await pipeline.get_unified_report(coords)
    data = report.model_dump(mode="json")
    data["requested_location"] = location
    return data


# Prompts
@mcp.prompt()
def operational_briefing(report: Dict[str, Any]) -> str:
    """Help the assistant brief site operators on a report"""
    meta = report.get("meta", {})
    reading = report.get("reading", {})
    impacts = report.get("impacts", {})

    impact_lines = "\n".join(
        f"        - {name}: {impact.get('status')} ({impact.get('score')}/100) - {impact.get('reason')}"
        for name, impact in impacts.items()
    )
    notices = ", ".join(report.get("notices", [])) or "none"
    production = report.get("production") or {}
    air_quality = report.get("air_quality") or {}

    return f"""Please brief the site operations team on these conditions and provide:
        1. A one-line overall go/no-go summary
        2. Which field operations are affected and why
        3. Whether the data can be trusted (source, staleness)

        Source: {meta.get("source_id", "Unknown")} ({meta.get("source_kind", "unknown")}) at {meta.get("generated_at", "N/A")}
        Operational status: {report.get("operational_status", "N/A")}
        Notices: {notices}

        Current measurements:
        - Temperature: {reading.get("temperature_c", "N/A")}°C
        - Humidity: {reading.get("humidity_pct", "N/A")}%
        - Wind Speed: {reading.get("wind_speed_ms", "N/A")} m/s
        - Precipitation: {reading.get("precipitation_mm_h", "N/A")} mm/h
        - Visibility: {reading.get("visibility_m", "N/A")} meters
        - Cloud Cover: {reading.get("cloud_cover_pct", "N/A")}%
        - Air Quality Index: {air_quality.get("aqi", "N/A")} (1 good .. 5 very poor)

        Expected production: {production.get("expected_power_kw", "N/A")} kW at {production.get("efficiency_pct", "N/A")}% efficiency

        Subsystems:
{impact_lines}
        """


if __name__ == "__main__":
    mcp.run()
