"""
Emergency incident bookkeeping.

Each incident moves through a fixed lifecycle:

    pending  ->  responded  ->  resolved

No step is skipped, nothing moves backwards and resolved is terminal. A
vehicle has at most one open (pending or responded) incident at a time.
Incidents are never removed, the log only grows for the life of the
process.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterator, List, Optional

from engine.models import IncidentNotFound, Location, RiskLevel, Vehicle

logger = logging.getLogger(__name__)


class IncidentStatus(str, Enum):
    PENDING = "pending"
    RESPONDED = "responded"
    RESOLVED = "resolved"


OPEN_STATUSES = (IncidentStatus.PENDING, IncidentStatus.RESPONDED)

# status an incident must be in before it can move to the key status
_REQUIRED_PREVIOUS = {
    IncidentStatus.RESPONDED: IncidentStatus.PENDING,
    IncidentStatus.RESOLVED: IncidentStatus.RESPONDED,
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EmergencyIncident:
    id: str
    vehicle_id: str
    created_at: datetime

    # snapshot of the vehicle when the incident was opened
    location: Location
    temperature: float
    battery_level: int
    risk_level: RiskLevel

    status: IncidentStatus = IncidentStatus.PENDING
    responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "created_at": self.created_at.isoformat(),
            "location": self.location.to_dict(),
            "temperature": self.temperature,
            "battery_level": self.battery_level,
            "risk_level": self.risk_level.value,
            "status": self.status.value,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


class IncidentLog:
    """In-memory, append-only collection of emergency incidents."""

    def __init__(self) -> None:
        self._incidents: Dict[str, EmergencyIncident] = {}
        self._counter = itertools.count(1)
        # vehicle id -> its pending or responded incident
        self._open_by_vehicle: Dict[str, EmergencyIncident] = {}

    def __len__(self) -> int:
        return len(self._incidents)

    def __iter__(self) -> Iterator[EmergencyIncident]:
        return iter(list(self._incidents.values()))

    # -------------------------------------------------
    # Queries
    # -------------------------------------------------

    def get(self, incident_id: str) -> EmergencyIncident:
        try:
            return self._incidents[incident_id]
        except KeyError:
            raise IncidentNotFound(incident_id) from None

    def open_incident_for(self, vehicle_id: str) -> Optional[EmergencyIncident]:
        return self._open_by_vehicle.get(vehicle_id)

    def has_open(self, vehicle_id: str) -> bool:
        return self.open_incident_for(vehicle_id) is not None

    def by_status(self, status: IncidentStatus) -> List[EmergencyIncident]:
        return [i for i in self._incidents.values() if i.status == status]

    def active(self) -> List[EmergencyIncident]:
        return [i for i in self._incidents.values() if i.is_open]

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    def open(
        self, vehicle: Vehicle, now: Optional[datetime] = None
    ) -> Optional[EmergencyIncident]:
        """
        Open a pending incident for the vehicle, snapshotting its current
        battery metrics. Returns None (and changes nothing) when the vehicle
        already has an open incident.
        """
        if self.has_open(vehicle.id):
            return None

        incident = EmergencyIncident(
            id=f"INC-{next(self._counter):04d}",
            vehicle_id=vehicle.id,
            created_at=now or _now_utc(),
            location=vehicle.location,
            temperature=vehicle.battery_health.temperature,
            battery_level=vehicle.battery_level,
            risk_level=vehicle.battery_health.risk_level,
        )
        self._incidents[incident.id] = incident
        self._open_by_vehicle[vehicle.id] = incident

        # No real integration: the dispatch only exists in the log.
        logger.warning(
            "Dispatching fire department to vehicle %s at (%.4f, %.4f): "
            "battery %.1f°C, %d%% charge [%s]",
            vehicle.id,
            vehicle.location.latitude,
            vehicle.location.longitude,
            incident.temperature,
            incident.battery_level,
            incident.id,
        )
        return incident

    def mark_responded(
        self, incident_id: str, now: Optional[datetime] = None
    ) -> Optional[EmergencyIncident]:
        """pending -> responded. Returns None if the incident is not pending."""
        incident = self._transition(incident_id, IncidentStatus.RESPONDED)
        if incident is not None:
            incident.responded_at = now or _now_utc()
        return incident

    def mark_resolved(
        self, incident_id: str, now: Optional[datetime] = None
    ) -> Optional[EmergencyIncident]:
        """responded -> resolved. Returns None if the incident is not responded."""
        incident = self._transition(incident_id, IncidentStatus.RESOLVED)
        if incident is not None:
            incident.resolved_at = now or _now_utc()
        return incident

    def _transition(
        self, incident_id: str, target: IncidentStatus
    ) -> Optional[EmergencyIncident]:
        incident = self.get(incident_id)
        required = _REQUIRED_PREVIOUS[target]
        if incident.status != required:
            logger.info(
                "Ignoring %s -> %s for incident %s",
                incident.status.value,
                target.value,
                incident_id,
            )
            return None

        incident.status = target
        if not incident.is_open:
            del self._open_by_vehicle[incident.vehicle_id]
        logger.info("Incident %s (vehicle %s) is now %s", incident_id, incident.vehicle_id, target.value)
        return incident
