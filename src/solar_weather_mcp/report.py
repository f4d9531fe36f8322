from datetime import datetime, timezone
from typing import List, Optional

from solar_weather_mcp.models import (
    AirQuality,
    ClassificationResult,
    DataFreshness,
    ForecastPoint,
    IrradianceEstimate,
    OperationalStatus,
    ProductionEstimate,
    RawEnvironmentReading,
    ReportMeta,
    SourceKind,
    UnifiedEnvironmentReport,
)
from solar_weather_mcp.orchestrator import SourceSelection

FORECAST_HOURS = 4

RISK_LABELS = {
    OperationalStatus.GREEN: "LOW",
    OperationalStatus.YELLOW: "MODERATE",
    OperationalStatus.RED: "HIGH",
}

STALE_NOTICE = "stale - consider manual override"
SYNTHETIC_NOTICE = "climatological estimate - no live source reachable"
AIR_QUALITY_NOTICE = "air quality unavailable - default index reported"


def short_term_forecast(reading: RawEnvironmentReading, status: OperationalStatus) -> List[ForecastPoint]:
    """Persistence forecast with a small diurnal drift, not a predictive model"""
    hour = datetime.fromtimestamp(reading.captured_at, tz=timezone.utc).hour
    points = []
    for offset in range(1, FORECAST_HOURS + 1):
        # warming until mid-afternoon, cooling after
        drift = 0.5 if 6 <= (hour + offset) % 24 <= 15 else -0.5
        points.append(
            ForecastPoint(
                hour_offset=offset,
                temperature_c=round(reading.temperature_c + drift * offset, 1),
                risk_label=RISK_LABELS[status],
            )
        )
    return points


def assemble_report(
    selection: SourceSelection,
    freshness: DataFreshness,
    classification: ClassificationResult,
    irradiance: IrradianceEstimate,
    production: ProductionEstimate,
    started_at: float,
    finished_at: float,
    cached: bool = False,
    generated_at: Optional[datetime] = None,
    air_quality: Optional[AirQuality] = None,
) -> UnifiedEnvironmentReport:
    """Combine provenance, reading and classification into one report"""
    synthetic = selection.source_kind == SourceKind.SYNTHETIC

    notices = []
    if freshness.stale:
        notices.append(STALE_NOTICE)
    if synthetic:
        notices.append(SYNTHETIC_NOTICE)
    if air_quality is not None and air_quality.estimated:
        notices.append(AIR_QUALITY_NOTICE)

    return UnifiedEnvironmentReport(
        meta=ReportMeta(
            source_id=selection.source_id,
            source_kind=selection.source_kind,
            generated_at=generated_at or datetime.now(timezone.utc),
            latency_ms=round((finished_at - started_at) * 1000, 3),
            synthetic=synthetic,
            cached=cached,
            attempts=selection.attempts,
        ),
        reading=selection.reading,
        freshness=freshness,
        impacts=classification.impacts,
        aggregate_status=classification.aggregate_status,
        operational_status=classification.operational_status,
        irradiance=irradiance,
        production=production,
        forecast=short_term_forecast(selection.reading, classification.operational_status),
        air_quality=air_quality,
        notices=notices,
    )
