# engine/config.py
#
# NYC Fleet Monitor – Configuration
#
# Everything tunable lives here and can be overridden from the environment.
# Risk thresholds are configuration: the classifier takes whichever set it
# is handed and falls back to DEFAULT_THRESHOLDS.

import os
from dataclasses import dataclass

# -------------------------------------------------
# Fleet / simulation
# -------------------------------------------------

FLEET_SIZE = int(os.getenv("FLEET_SIZE", "200"))
_seed = os.getenv("FLEET_SEED")
FLEET_SEED = int(_seed) if _seed else None

SCAN_INTERVAL_SECONDS = float(os.getenv("SCAN_INTERVAL_SECONDS", "30"))
LOW_BATTERY_THRESHOLD = int(os.getenv("LOW_BATTERY_THRESHOLD", "20"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Overheat injected by the demo control (°C)
DEMO_OVERHEAT_TEMP_C = 55.0


# -------------------------------------------------
# Risk thresholds
# -------------------------------------------------


@dataclass(frozen=True)
class RiskThresholds:
    """
    Threshold set used by the battery risk classifier.

    Temperatures in °C, charge in percent, cycles as a count. All
    comparisons against these values are strict.
    """

    temp_critical: float = 45.0
    temp_high: float = 40.0
    temp_elevated: float = 35.0  # lower bound paired with charge_high
    temp_moderate: float = 35.0

    charge_critical: float = 20.0
    charge_high: float = 30.0
    charge_moderate: float = 15.0

    cycles_critical: int = 800
    cycles_high: int = 500
    cycles_moderate: int = 300

    @classmethod
    def from_env(cls) -> "RiskThresholds":
        """Build thresholds, letting RISK_* variables override the defaults."""
        base = cls()
        return cls(
            temp_critical=float(os.getenv("RISK_TEMP_CRITICAL_C", base.temp_critical)),
            temp_high=float(os.getenv("RISK_TEMP_HIGH_C", base.temp_high)),
            temp_elevated=float(os.getenv("RISK_TEMP_ELEVATED_C", base.temp_elevated)),
            temp_moderate=float(os.getenv("RISK_TEMP_MODERATE_C", base.temp_moderate)),
            charge_critical=float(os.getenv("RISK_CHARGE_CRITICAL", base.charge_critical)),
            charge_high=float(os.getenv("RISK_CHARGE_HIGH", base.charge_high)),
            charge_moderate=float(os.getenv("RISK_CHARGE_MODERATE", base.charge_moderate)),
            cycles_critical=int(os.getenv("RISK_CYCLES_CRITICAL", base.cycles_critical)),
            cycles_high=int(os.getenv("RISK_CYCLES_HIGH", base.cycles_high)),
            cycles_moderate=int(os.getenv("RISK_CYCLES_MODERATE", base.cycles_moderate)),
        )


DEFAULT_THRESHOLDS = RiskThresholds()
