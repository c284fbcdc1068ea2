"""
Fleet statistics for the dashboard's stats panel.

Vehicles are flattened into a pandas DataFrame and bucketed the same way
the fleet overview does it: battery charge bands, temperature bands,
a combined charge/temperature health band and a lifecycle band driven by
charge cycles and time since the last inspection.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from engine.incidents import EmergencyIncident, IncidentStatus
from engine.models import Location, RiskLevel, Vehicle, VehicleStatus, VehicleType

# Charge bands (percent, inclusive upper bounds)
CRITICAL_CHARGE = 20
MEDIUM_CHARGE = 50

# Temperature bands (°C)
THERMAL_RUNAWAY_C = 150.0
TEMP_HIGH_C = 45.0
TEMP_MODERATE_C = 40.0
TEMP_WARM_C = 35.0

# Lifecycle bands: (cycles, days since inspection)
LIFECYCLE_CRITICAL = (900, 45)
LIFECYCLE_WARNING = (700, 30)
LIFECYCLE_MODERATE = (500, 15)

VEHICLE_COLUMNS = [
    "id",
    "type",
    "model",
    "status",
    "latitude",
    "longitude",
    "battery_level",
    "risk_level",
    "temperature",
    "cycle_count",
    "voltage_stability",
    "last_inspection",
    "requires_emergency_response",
]


@dataclass(frozen=True)
class BatteryAlert:
    vehicle_id: str
    location: Location
    battery_level: int
    timestamp: datetime

    def to_dict(self) -> Dict:
        return {
            "vehicle_id": self.vehicle_id,
            "location": self.location.to_dict(),
            "battery_level": self.battery_level,
            "timestamp": self.timestamp.isoformat(),
        }


def vehicles_frame(vehicles: Iterable[Vehicle]) -> pd.DataFrame:
    """One row per vehicle with battery health fields flattened out."""
    rows = [
        {
            "id": v.id,
            "type": v.type.value,
            "model": v.model,
            "status": v.status.value,
            "latitude": v.location.latitude,
            "longitude": v.location.longitude,
            "battery_level": v.battery_level,
            "risk_level": v.battery_health.risk_level.value,
            "temperature": v.battery_health.temperature,
            "cycle_count": v.battery_health.cycle_count,
            "voltage_stability": v.battery_health.voltage_stability,
            "last_inspection": v.battery_health.last_inspection,
            "requires_emergency_response": v.battery_health.requires_emergency_response,
        }
        for v in vehicles
    ]
    return pd.DataFrame(rows, columns=VEHICLE_COLUMNS)


def _round_half_up(value: float) -> int:
    # halves go up, e.g. 42.5 -> 43
    return int(np.floor(value + 0.5))


def _band_counts(bands: pd.Series, labels: List[str]) -> Dict[str, int]:
    counts = bands.value_counts()
    return {label: int(counts.get(label, 0)) for label in labels}


def _charge_band(df: pd.DataFrame) -> pd.Series:
    return pd.Series(
        np.select(
            [df["battery_level"] <= CRITICAL_CHARGE, df["battery_level"] <= MEDIUM_CHARGE],
            ["critical", "medium"],
            default="healthy",
        ),
        index=df.index,
    )


def _temperature_band(df: pd.DataFrame) -> pd.Series:
    temp = df["temperature"]
    return pd.Series(
        np.select(
            [temp >= THERMAL_RUNAWAY_C, temp > TEMP_HIGH_C, temp > TEMP_MODERATE_C],
            ["thermal_runaway", "high", "moderate"],
            default="safe",
        ),
        index=df.index,
    )


def _combined_band(df: pd.DataFrame) -> pd.Series:
    charge = df["battery_level"]
    temp = df["temperature"]
    return pd.Series(
        np.select(
            [
                (charge <= CRITICAL_CHARGE) | (temp > TEMP_MODERATE_C),
                (charge <= MEDIUM_CHARGE) | (temp > TEMP_WARM_C),
            ],
            ["critical", "medium"],
            default="healthy",
        ),
        index=df.index,
    )


def _lifecycle_band(cycles: pd.Series, days: pd.Series) -> pd.Series:
    conditions = [
        (cycles > LIFECYCLE_CRITICAL[0]) | (days > LIFECYCLE_CRITICAL[1]),
        (cycles > LIFECYCLE_WARNING[0]) | (days > LIFECYCLE_WARNING[1]),
        (cycles > LIFECYCLE_MODERATE[0]) | (days > LIFECYCLE_MODERATE[1]),
    ]
    return pd.Series(
        np.select(conditions, ["critical", "warning", "moderate"], default="healthy"),
        index=cycles.index,
    )


def _empty_stats() -> Dict:
    return {
        "total_vehicles": 0,
        "average_battery_level": 0,
        "battery": {"critical": 0, "medium": 0, "healthy": 0},
        "by_type": {t.value: 0 for t in VehicleType},
        "by_status": {s.value: 0 for s in VehicleStatus},
        "by_risk_level": {r.value: 0 for r in RiskLevel},
        "temperature_risk": {"thermal_runaway": 0, "high": 0, "moderate": 0, "safe": 0},
        "combined_health": {"critical": 0, "medium": 0, "healthy": 0},
        "lifecycle_risk": {
            "critical": 0,
            "warning": 0,
            "moderate": 0,
            "healthy": 0,
            "average_cycles": 0,
            "oldest_inspection_days": 0,
            "oldest_inspection_vehicle": None,
        },
        "emergency_flagged": 0,
    }


def fleet_stats(vehicles: Iterable[Vehicle], now: Optional[datetime] = None) -> Dict:
    """Aggregate fleet-wide battery statistics. An empty fleet yields zeros."""
    df = vehicles_frame(vehicles)
    if df.empty:
        return _empty_stats()

    now_ts = pd.Timestamp(now or datetime.now(timezone.utc))
    if now_ts.tzinfo is None:
        now_ts = now_ts.tz_localize("UTC")
    inspected = pd.to_datetime(df["last_inspection"], utc=True)
    days_since = (now_ts - inspected).dt.days.clip(lower=0)

    oldest_idx = days_since.idxmax()
    oldest_days = int(days_since.loc[oldest_idx])

    return {
        "total_vehicles": int(len(df)),
        "average_battery_level": _round_half_up(df["battery_level"].mean()),
        "battery": _band_counts(_charge_band(df), ["critical", "medium", "healthy"]),
        "by_type": _band_counts(df["type"], [t.value for t in VehicleType]),
        "by_status": _band_counts(df["status"], [s.value for s in VehicleStatus]),
        "by_risk_level": _band_counts(df["risk_level"], [r.value for r in RiskLevel]),
        "temperature_risk": _band_counts(
            _temperature_band(df), ["thermal_runaway", "high", "moderate", "safe"]
        ),
        "combined_health": _band_counts(_combined_band(df), ["critical", "medium", "healthy"]),
        "lifecycle_risk": {
            **_band_counts(
                _lifecycle_band(df["cycle_count"], days_since),
                ["critical", "warning", "moderate", "healthy"],
            ),
            "average_cycles": _round_half_up(df["cycle_count"].mean()),
            "oldest_inspection_days": oldest_days,
            "oldest_inspection_vehicle": df.loc[oldest_idx, "id"] if oldest_days > 0 else None,
        },
        "emergency_flagged": int(df["requires_emergency_response"].sum()),
    }


def incident_stats(incidents: Iterable[EmergencyIncident]) -> Dict[str, int]:
    counts = {s.value: 0 for s in IncidentStatus}
    for incident in incidents:
        counts[incident.status.value] += 1
    counts["active"] = counts["pending"] + counts["responded"]
    return counts


def low_battery_alerts(
    vehicles: Iterable[Vehicle],
    threshold: int = CRITICAL_CHARGE,
    now: Optional[datetime] = None,
) -> List[BatteryAlert]:
    """Vehicles at or below `threshold` percent charge, emptiest first."""
    now = now or datetime.now(timezone.utc)
    low = sorted(
        (v for v in vehicles if v.battery_level <= threshold),
        key=lambda v: (v.battery_level, v.id),
    )
    return [BatteryAlert(v.id, v.location, v.battery_level, now) for v in low]
