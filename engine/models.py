"""
Domain records for the simulated fleet.

Vehicles and their battery health are frozen: once the emulator builds a
record nothing mutates it. The controller swaps whole records when a demo
overheat is injected.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict


class VehicleType(str, Enum):
    BIKE = "bike"
    SCOOTER = "scooter"


class VehicleStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in-use"
    MAINTENANCE = "maintenance"


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class FleetMonitorError(Exception):
    """Base class for lookups and operations the fleet cannot satisfy."""


class VehicleNotFound(FleetMonitorError, KeyError):
    pass


class IncidentNotFound(FleetMonitorError, KeyError):
    pass


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class BatteryHealth:
    risk_level: RiskLevel
    temperature: float  # °C
    cycle_count: int
    last_inspection: datetime
    voltage_stability: float  # percent
    requires_emergency_response: bool = False


@dataclass(frozen=True)
class Vehicle:
    id: str
    type: VehicleType
    model: str
    location: Location
    battery_level: int  # 0..100
    battery_health: BatteryHealth
    status: VehicleStatus
    last_updated: datetime

    @property
    def risk_level(self) -> RiskLevel:
        return self.battery_health.risk_level

    @property
    def requires_emergency_response(self) -> bool:
        return self.battery_health.requires_emergency_response

    def to_dict(self) -> Dict:
        """Flatten into a JSON-friendly dict (enums as values, ISO timestamps)."""
        health = self.battery_health
        return {
            "id": self.id,
            "type": self.type.value,
            "model": self.model,
            "location": self.location.to_dict(),
            "battery_level": self.battery_level,
            "battery_health": {
                "risk_level": health.risk_level.value,
                "temperature": health.temperature,
                "cycle_count": health.cycle_count,
                "last_inspection": health.last_inspection.isoformat(),
                "voltage_stability": health.voltage_stability,
                "requires_emergency_response": health.requires_emergency_response,
            },
            "status": self.status.value,
            "last_updated": self.last_updated.isoformat(),
        }
