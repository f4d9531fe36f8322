import logging
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from solar_weather_mcp.config import Config
from solar_weather_mcp.models import (
    ClassificationResult,
    ImpactStatus,
    RawEnvironmentReading,
    SubsystemImpact,
)

logger = logging.getLogger("solar_weather.classifier")

DRONE_FLEET = "drone_fleet"
CLEANING_ROBOTS = "cleaning_robots"
GRID_DISPATCH = "grid_dispatch"


class ThresholdRule(BaseModel):
    """One threshold on a reading field.

    The reason template may use {value} and {limit}.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    comparator: Literal["gt", "lt"]
    limit: float
    status: ImpactStatus
    score: int
    reason: str
    limiting_factor: Optional[str] = None

    def triggered(self, reading: RawEnvironmentReading) -> bool:
        value = getattr(reading, self.field)
        if self.comparator == "gt":
            return value > self.limit
        return value < self.limit

    def impact(self, reading: RawEnvironmentReading) -> SubsystemImpact:
        value = getattr(reading, self.field)
        return SubsystemImpact(
            status=self.status,
            score=self.score,
            reason=self.reason.format(value=value, limit=self.limit),
            limiting_factor=self.limiting_factor,
        )


class SubsystemRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    rules: Tuple[ThresholdRule, ...]
    nominal_score: int = 100
    nominal_reason: str = "Conditions nominal"


class AdaptationRuleSet(BaseModel):
    """Operational thresholds per consuming subsystem"""

    model_config = ConfigDict(frozen=True)

    subsystems: Dict[str, SubsystemRules]


def build_rule_set(config: Config) -> AdaptationRuleSet:
    """Build the default rule table from configured thresholds"""
    return AdaptationRuleSet(
        subsystems={
            DRONE_FLEET: SubsystemRules(
                rules=(
                    ThresholdRule(
                        field="wind_speed_ms",
                        comparator="gt",
                        limit=config.drone_max_wind_speed_ms,
                        status=ImpactStatus.CRITICAL,
                        score=0,
                        reason="Wind speed {value:.1f} m/s exceeds safety limit of {limit:.1f} m/s",
                        limiting_factor="High Wind",
                    ),
                    ThresholdRule(
                        field="precipitation_mm_h",
                        comparator="gt",
                        limit=config.drone_max_precipitation_mm_h,
                        status=ImpactStatus.CRITICAL,
                        score=0,
                        reason="Precipitation detected ({value:.1f} mm/h)",
                        limiting_factor="Precipitation",
                    ),
                    ThresholdRule(
                        field="visibility_m",
                        comparator="lt",
                        limit=config.drone_min_visibility_m,
                        status=ImpactStatus.WARNING,
                        score=50,
                        reason="Low visibility ({value:.0f} m, minimum {limit:.0f} m)",
                        limiting_factor="Low Visibility",
                    ),
                ),
                nominal_reason="Flight conditions nominal",
            ),
            CLEANING_ROBOTS: SubsystemRules(
                rules=(
                    ThresholdRule(
                        field="temperature_c",
                        comparator="gt",
                        limit=config.robot_max_temperature_c,
                        status=ImpactStatus.PAUSED,
                        score=0,
                        reason="Temperature {value:.1f} C too high for sensitive electronics (max {limit:.1f} C)",
                        limiting_factor="High Temperature",
                    ),
                    ThresholdRule(
                        field="wind_speed_ms",
                        comparator="gt",
                        limit=config.robot_max_wind_speed_ms,
                        status=ImpactStatus.PAUSED,
                        score=0,
                        reason="Wind speed {value:.1f} m/s too high for panel-top operation",
                        limiting_factor="High Wind",
                    ),
                    ThresholdRule(
                        field="humidity_pct",
                        comparator="lt",
                        limit=config.robot_min_humidity_pct,
                        status=ImpactStatus.WARNING,
                        score=60,
                        reason="Low humidity {value:.0f}% (static risk)",
                        limiting_factor="Low Humidity",
                    ),
                    ThresholdRule(
                        field="uv_index",
                        comparator="gt",
                        limit=config.robot_max_uv_index,
                        status=ImpactStatus.WARNING,
                        score=70,
                        reason="UV index {value:.0f} above {limit:.0f}",
                        limiting_factor="High UV",
                    ),
                ),
                nominal_reason="Ready for deployment",
            ),
            GRID_DISPATCH: SubsystemRules(
                rules=(
                    ThresholdRule(
                        field="cloud_cover_pct",
                        comparator="gt",
                        limit=config.grid_max_cloud_cover_pct,
                        status=ImpactStatus.WARNING,
                        score=45,
                        reason="High intermittency expected ({value:.0f}% cloud cover)",
                        limiting_factor="Cloud Cover",
                    ),
                ),
                nominal_score=95,
                nominal_reason="Production forecast stable",
            ),
        }
    )


def evaluate_subsystem(reading: RawEnvironmentReading, rules: SubsystemRules) -> SubsystemImpact:
    """Most severe triggered rule wins, earlier rules win ties"""
    worst: Optional[ThresholdRule] = None
    for rule in rules.rules:
        if rule.triggered(reading) and (worst is None or rule.status.severity > worst.status.severity):
            worst = rule
    if worst is None:
        return SubsystemImpact(status=ImpactStatus.OPTIMAL, score=rules.nominal_score, reason=rules.nominal_reason)
    return worst.impact(reading)


def classify(reading: RawEnvironmentReading, rule_set: AdaptationRuleSet) -> ClassificationResult:
    """Map a reading to per-subsystem verdicts and an aggregate status"""
    impacts = {name: evaluate_subsystem(reading, rules) for name, rules in rule_set.subsystems.items()}

    aggregate = ImpactStatus.OPTIMAL
    for impact in impacts.values():
        if impact.status.severity > aggregate.severity:
            aggregate = impact.status

    logger.debug(f"Classification: {', '.join(f'{k}={v.status.value}' for k, v in impacts.items())}")
    return ClassificationResult(
        impacts=impacts,
        aggregate_status=aggregate,
        operational_status=aggregate.operational_status,
    )
