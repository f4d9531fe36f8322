from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """Geographic coordinates"""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)


class RawEnvironmentReading(BaseModel):
    """One normalized snapshot of conditions at a location.

    Bounds are not enforced here, the plausibility validator rejects
    implausible values before a reading is used.
    """

    model_config = ConfigDict(frozen=True)

    temperature_c: float
    humidity_pct: float
    pressure_hpa: float
    wind_speed_ms: float
    wind_direction_deg: float
    precipitation_mm_h: float
    uv_index: float
    visibility_m: float
    cloud_cover_pct: float
    captured_at: int
    condition: str
    icon: str


class ImpactStatus(str, Enum):
    """Per-subsystem verdict, ordered by severity"""

    OPTIMAL = "OPTIMAL"
    WARNING = "WARNING"
    PAUSED = "PAUSED"
    CRITICAL = "CRITICAL"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def operational_status(self) -> "OperationalStatus":
        return _OPERATIONAL[self]


class OperationalStatus(str, Enum):
    """Simplified top-level display status"""

    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


_SEVERITY = {
    ImpactStatus.OPTIMAL: 0,
    ImpactStatus.WARNING: 1,
    ImpactStatus.PAUSED: 2,
    ImpactStatus.CRITICAL: 3,
}

_OPERATIONAL = {
    ImpactStatus.OPTIMAL: OperationalStatus.GREEN,
    ImpactStatus.WARNING: OperationalStatus.YELLOW,
    ImpactStatus.PAUSED: OperationalStatus.YELLOW,
    ImpactStatus.CRITICAL: OperationalStatus.RED,
}


class SubsystemImpact(BaseModel):
    """Verdict for one downstream consumer"""

    model_config = ConfigDict(frozen=True)

    status: ImpactStatus
    score: int = Field(..., ge=0, le=100)
    reason: str
    limiting_factor: Optional[str] = None


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    impacts: Dict[str, SubsystemImpact]
    aggregate_status: ImpactStatus
    operational_status: OperationalStatus


class SourceKind(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SYNTHETIC = "synthetic"


class SourceAttempt(BaseModel):
    """Outcome of trying one source in the fallback chain"""

    model_config = ConfigDict(frozen=True)

    source_id: str
    kind: SourceKind
    succeeded: bool
    error: Optional[str] = None


class DataFreshness(BaseModel):
    model_config = ConfigDict(frozen=True)

    age_seconds: float
    threshold_seconds: float
    stale: bool


class IrradianceEstimate(BaseModel):
    """Estimated solar irradiance in W/m2"""

    model_config = ConfigDict(frozen=True)

    ghi: float
    dni: float
    dhi: float


class ProductionEstimate(BaseModel):
    """Expected plant output for the estimated irradiance"""

    model_config = ConfigDict(frozen=True)

    expected_power_kw: float
    efficiency_pct: float


class AirQuality(BaseModel):
    """Air pollution index (1 good .. 5 very poor) and component concentrations in ug/m3"""

    model_config = ConfigDict(frozen=True)

    aqi: int = Field(..., ge=1, le=5)
    co: float = 0.0
    no: float = 0.0
    no2: float = 0.0
    o3: float = 0.0
    so2: float = 0.0
    pm2_5: float = 0.0
    pm10: float = 0.0
    nh3: float = 0.0
    estimated: bool = False


class ForecastPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    hour_offset: int
    temperature_c: float
    risk_label: str


class ReportMeta(BaseModel):
    """Provenance of a report"""

    model_config = ConfigDict(frozen=True)

    source_id: str
    source_kind: SourceKind
    generated_at: datetime
    latency_ms: float
    synthetic: bool
    cached: bool = False
    attempts: List[SourceAttempt] = Field(default_factory=list)


class UnifiedEnvironmentReport(BaseModel):
    """Full response returned to dashboard callers"""

    model_config = ConfigDict(frozen=True)

    meta: ReportMeta
    reading: RawEnvironmentReading
    freshness: DataFreshness
    impacts: Dict[str, SubsystemImpact]
    aggregate_status: ImpactStatus
    operational_status: OperationalStatus
    irradiance: IrradianceEstimate
    production: ProductionEstimate
    forecast: List[ForecastPoint]
    air_quality: Optional[AirQuality] = None
    notices: List[str] = Field(default_factory=list)
