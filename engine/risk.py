"""
Battery risk classification.

Rule-based, like the maintenance dashboard's health signals: a handful of
threshold checks evaluated most severe first. The functions here are pure
and total. Any numeric input gives a valid answer (NaN compares false
everywhere, so it lands on LOW with no emergency).
"""

from typing import NamedTuple, Optional

from engine.config import DEFAULT_THRESHOLDS, RiskThresholds
from engine.models import RiskLevel

_SEVERITY = {
    RiskLevel.LOW: 0,
    RiskLevel.MODERATE: 1,
    RiskLevel.HIGH: 2,
    RiskLevel.CRITICAL: 3,
}


class RiskAssessment(NamedTuple):
    risk_level: RiskLevel
    requires_emergency_response: bool


def severity(level: RiskLevel) -> int:
    """Ordinal of a risk level, 0 (low) through 3 (critical)."""
    return _SEVERITY[level]


def requires_emergency(
    temperature: float,
    battery_level: float,
    thresholds: Optional[RiskThresholds] = None,
) -> bool:
    """
    True when the battery needs an emergency response: either past the
    critical temperature, or hot and nearly empty at the same time.
    """
    t = thresholds or DEFAULT_THRESHOLDS
    return temperature > t.temp_critical or (
        temperature > t.temp_high and battery_level < t.charge_critical
    )


def classify_risk(
    temperature: float,
    cycle_count: float,
    battery_level: float,
    thresholds: Optional[RiskThresholds] = None,
) -> RiskLevel:
    """
    Map battery telemetry to a risk level. First matching rule wins:

      - critical: past critical temp, hot + critically low charge,
        or worn out (cycle count)
      - high:     past high temp, warm + low charge, or heavily cycled
      - moderate: warm, very low charge, or moderately cycled
      - low:      everything else
    """
    t = thresholds or DEFAULT_THRESHOLDS

    if (
        temperature > t.temp_critical
        or (temperature > t.temp_high and battery_level < t.charge_critical)
        or cycle_count > t.cycles_critical
    ):
        return RiskLevel.CRITICAL

    if (
        temperature > t.temp_high
        or (battery_level < t.charge_high and temperature > t.temp_elevated)
        or cycle_count > t.cycles_high
    ):
        return RiskLevel.HIGH

    if (
        temperature > t.temp_moderate
        or battery_level < t.charge_moderate
        or cycle_count > t.cycles_moderate
    ):
        return RiskLevel.MODERATE

    return RiskLevel.LOW


def assess(
    temperature: float,
    cycle_count: float,
    battery_level: float,
    thresholds: Optional[RiskThresholds] = None,
) -> RiskAssessment:
    return RiskAssessment(
        classify_risk(temperature, cycle_count, battery_level, thresholds),
        requires_emergency(temperature, battery_level, thresholds),
    )
