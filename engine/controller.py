"""
FleetController: the single owner of simulation state.

Holds the vehicle set, the incident log, the risk thresholds and the
periodic scanner. The API builds one per application and starts/stops it
with the application lifespan; tests build their own from a fixed seed.
"""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from emulator.emulator import FleetEmulator
from engine import config
from engine.config import DEFAULT_THRESHOLDS, RiskThresholds
from engine.incidents import EmergencyIncident, IncidentLog, IncidentStatus
from engine.models import (
    RiskLevel,
    Vehicle,
    VehicleNotFound,
    VehicleStatus,
    VehicleType,
)
from engine.risk import assess
from engine.scanner import PeriodicScanner, scan
from engine.stats import BatteryAlert, fleet_stats, incident_stats, low_battery_alerts

logger = logging.getLogger(__name__)


class FleetController:
    def __init__(
        self,
        vehicles: Iterable[Vehicle],
        thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
        scan_interval: float = config.SCAN_INTERVAL_SECONDS,
    ):
        self.vehicles: Dict[str, Vehicle] = {v.id: v for v in vehicles}
        self.incidents = IncidentLog()
        self.thresholds = thresholds
        self.scanner = PeriodicScanner(self.scan, interval_seconds=scan_interval)

    @classmethod
    def create(
        cls,
        fleet_size: int = config.FLEET_SIZE,
        seed: Optional[int] = config.FLEET_SEED,
        thresholds: Optional[RiskThresholds] = None,
        scan_interval: float = config.SCAN_INTERVAL_SECONDS,
    ) -> "FleetController":
        thresholds = thresholds or RiskThresholds.from_env()
        vehicles = FleetEmulator(seed=seed, thresholds=thresholds).generate(fleet_size)
        logger.info("Generated fleet of %d vehicles (seed=%s)", len(vehicles), seed)
        return cls(vehicles, thresholds=thresholds, scan_interval=scan_interval)

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    async def start(self) -> None:
        await self.scanner.start()

    async def stop(self) -> None:
        await self.scanner.stop()

    # -------------------------------------------------
    # Vehicles
    # -------------------------------------------------

    def vehicle(self, vehicle_id: str) -> Vehicle:
        try:
            return self.vehicles[vehicle_id]
        except KeyError:
            raise VehicleNotFound(vehicle_id) from None

    def list_vehicles(
        self,
        risk_level: Optional[RiskLevel] = None,
        vehicle_type: Optional[VehicleType] = None,
        status: Optional[VehicleStatus] = None,
    ) -> List[Vehicle]:
        return [
            v
            for v in self.vehicles.values()
            if (risk_level is None or v.risk_level == risk_level)
            and (vehicle_type is None or v.type == vehicle_type)
            and (status is None or v.status == status)
        ]

    def inject_overheat(
        self, vehicle_id: str, temperature: float = config.DEMO_OVERHEAT_TEMP_C
    ) -> Vehicle:
        """
        Replace a vehicle with a copy whose battery runs at `temperature`,
        reclassified against the controller's thresholds. The next scan
        sees the new record.
        """
        current = self.vehicle(vehicle_id)
        health = current.battery_health
        risk = assess(temperature, health.cycle_count, current.battery_level, self.thresholds)
        updated = dataclasses.replace(
            current,
            battery_health=dataclasses.replace(
                health,
                temperature=temperature,
                risk_level=risk.risk_level,
                requires_emergency_response=risk.requires_emergency_response,
            ),
            last_updated=datetime.now(timezone.utc),
        )
        self.vehicles[vehicle_id] = updated
        logger.info(
            "Injected overheat on vehicle %s: %.1f°C -> %s", vehicle_id, temperature, risk.risk_level.value
        )
        return updated

    # -------------------------------------------------
    # Incidents
    # -------------------------------------------------

    def scan(self) -> List[EmergencyIncident]:
        created = scan(self.vehicles.values(), self.incidents)
        if created:
            logger.info("Scan opened %d new incident(s)", len(created))
        return created

    def list_incidents(self, status: Optional[IncidentStatus] = None) -> List[EmergencyIncident]:
        if status is None:
            return list(self.incidents)
        return self.incidents.by_status(status)

    def incident(self, incident_id: str) -> EmergencyIncident:
        return self.incidents.get(incident_id)

    def respond(self, incident_id: str) -> Optional[EmergencyIncident]:
        return self.incidents.mark_responded(incident_id)

    def resolve(self, incident_id: str) -> Optional[EmergencyIncident]:
        return self.incidents.mark_resolved(incident_id)

    # -------------------------------------------------
    # Reporting
    # -------------------------------------------------

    def stats(self) -> Dict:
        summary = fleet_stats(self.vehicles.values())
        summary["incidents"] = incident_stats(self.incidents)
        return summary

    def low_battery_alerts(self, threshold: int = config.LOW_BATTERY_THRESHOLD) -> List[BatteryAlert]:
        return low_battery_alerts(self.vehicles.values(), threshold)
