"""
NYC Fleet Monitor - API

FastAPI service that:
- Owns one FleetController (simulated fleet + incident log) per app
- Runs the periodic emergency scan for the life of the app
- Exposes vehicles, fleet stats and low-battery alerts for the dashboard
- Lets operators walk incidents through respond -> resolve
- Lets the dashboard inject a demo overheat on a vehicle

Run with e.g.
    uvicorn api.api:app --port 8000
or
    fleet-api
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from engine import config
from engine.controller import FleetController
from engine.incidents import EmergencyIncident, IncidentStatus
from engine.models import (
    IncidentNotFound,
    RiskLevel,
    Vehicle,
    VehicleNotFound,
    VehicleStatus,
    VehicleType,
)

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# -------------------------------------------------------------------
# Data models
# -------------------------------------------------------------------


class LocationOut(BaseModel):
    latitude: float
    longitude: float


class BatteryHealthOut(BaseModel):
    risk_level: RiskLevel
    temperature: float = Field(..., description="Battery temperature in °C")
    cycle_count: int
    last_inspection: datetime
    voltage_stability: float = Field(..., description="Voltage stability in percent")
    requires_emergency_response: bool


class VehicleOut(BaseModel):
    id: str
    type: VehicleType
    model: str
    location: LocationOut
    battery_level: int
    battery_health: BatteryHealthOut
    status: VehicleStatus
    last_updated: datetime


class IncidentOut(BaseModel):
    id: str
    vehicle_id: str
    created_at: datetime
    location: LocationOut
    temperature: float
    battery_level: int
    risk_level: RiskLevel
    status: IncidentStatus
    responded_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class BatteryAlertOut(BaseModel):
    vehicle_id: str
    location: LocationOut
    battery_level: int
    timestamp: datetime


class SimulateOverheatRequest(BaseModel):
    vehicle_id: str
    temperature: float = Field(config.DEMO_OVERHEAT_TEMP_C, description="Injected temperature in °C")


class HealthOut(BaseModel):
    status: str
    scanner_running: bool
    vehicles: int
    incidents: int


# -------------------------------------------------------------------
# Helper functions
# -------------------------------------------------------------------


def _vehicle_out(vehicle: Vehicle) -> VehicleOut:
    return VehicleOut(**vehicle.to_dict())


def _incident_out(incident: EmergencyIncident) -> IncidentOut:
    return IncidentOut(**incident.to_dict())


def get_controller(request: Request) -> FleetController:
    return request.app.state.controller


# -------------------------------------------------------------------
# App factory
# -------------------------------------------------------------------


def create_app(
    controller: Optional[FleetController] = None, start_scanner: bool = True
) -> FastAPI:
    """
    Build the API around `controller`, or around a freshly generated fleet
    when none is given. The scanner runs only while the app is alive.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "controller", None) is None:
            app.state.controller = FleetController.create()
        ctrl: FleetController = app.state.controller
        logger.info("Serving %d vehicles", len(ctrl.vehicles))
        if start_scanner:
            await ctrl.start()
        try:
            yield
        finally:
            await ctrl.stop()

    app = FastAPI(title="NYC Fleet Monitor API", lifespan=lifespan)
    app.state.controller = controller

    # ---------------------------------------------------------------
    # Health
    # ---------------------------------------------------------------

    @app.get("/health", response_model=HealthOut)
    def health(ctrl: FleetController = Depends(get_controller)):
        return HealthOut(
            status="ok",
            scanner_running=ctrl.scanner.running(),
            vehicles=len(ctrl.vehicles),
            incidents=len(ctrl.incidents),
        )

    # ---------------------------------------------------------------
    # Vehicle endpoints
    # ---------------------------------------------------------------

    @app.get("/vehicles", response_model=List[VehicleOut])
    def list_vehicles(
        risk_level: Optional[RiskLevel] = None,
        type: Optional[VehicleType] = None,
        status: Optional[VehicleStatus] = None,
        ctrl: FleetController = Depends(get_controller),
    ):
        vehicles = ctrl.list_vehicles(risk_level=risk_level, vehicle_type=type, status=status)
        return [_vehicle_out(v) for v in vehicles]

    @app.get("/vehicles/{vehicle_id}", response_model=VehicleOut)
    def get_vehicle(vehicle_id: str, ctrl: FleetController = Depends(get_controller)):
        try:
            return _vehicle_out(ctrl.vehicle(vehicle_id))
        except VehicleNotFound:
            raise HTTPException(status_code=404, detail=f"Unknown vehicle {vehicle_id}")

    @app.post("/simulate_overheat", response_model=VehicleOut)
    def simulate_overheat(
        req: SimulateOverheatRequest, ctrl: FleetController = Depends(get_controller)
    ):
        """
        Push one vehicle's battery temperature up, as if a thermal event
        had started. The next scan (periodic or POST /scan) opens the
        incident if the new reading warrants it.
        """
        try:
            vehicle = ctrl.inject_overheat(req.vehicle_id, req.temperature)
        except VehicleNotFound:
            raise HTTPException(status_code=404, detail=f"Unknown vehicle {req.vehicle_id}")
        return _vehicle_out(vehicle)

    # ---------------------------------------------------------------
    # Incident endpoints
    # ---------------------------------------------------------------

    @app.get("/incidents", response_model=List[IncidentOut])
    def list_incidents(
        status: Optional[IncidentStatus] = None,
        limit: Optional[int] = None,
        ctrl: FleetController = Depends(get_controller),
    ):
        """All matching incidents, or only the latest `limit` when given."""
        incidents = ctrl.list_incidents(status)
        if limit is not None:
            if limit <= 0:
                raise HTTPException(status_code=400, detail="limit must be > 0")
            incidents = incidents[-limit:]
        return [_incident_out(i) for i in incidents]

    @app.get("/incidents/{incident_id}", response_model=IncidentOut)
    def get_incident(incident_id: str, ctrl: FleetController = Depends(get_controller)):
        try:
            return _incident_out(ctrl.incident(incident_id))
        except IncidentNotFound:
            raise HTTPException(status_code=404, detail=f"Unknown incident {incident_id}")

    @app.post("/incidents/{incident_id}/respond", response_model=IncidentOut)
    def respond_incident(incident_id: str, ctrl: FleetController = Depends(get_controller)):
        try:
            incident = ctrl.respond(incident_id)
        except IncidentNotFound:
            raise HTTPException(status_code=404, detail=f"Unknown incident {incident_id}")
        if incident is None:
            current = ctrl.incident(incident_id).status.value
            raise HTTPException(
                status_code=409,
                detail=f"Incident {incident_id} is {current}; only pending incidents can be responded to",
            )
        return _incident_out(incident)

    @app.post("/incidents/{incident_id}/resolve", response_model=IncidentOut)
    def resolve_incident(incident_id: str, ctrl: FleetController = Depends(get_controller)):
        try:
            incident = ctrl.resolve(incident_id)
        except IncidentNotFound:
            raise HTTPException(status_code=404, detail=f"Unknown incident {incident_id}")
        if incident is None:
            current = ctrl.incident(incident_id).status.value
            raise HTTPException(
                status_code=409,
                detail=f"Incident {incident_id} is {current}; only responded incidents can be resolved",
            )
        return _incident_out(incident)

    @app.post("/scan", response_model=List[IncidentOut])
    def run_scan(ctrl: FleetController = Depends(get_controller)):
        """Run one emergency scan now and return the incidents it opened."""
        return [_incident_out(i) for i in ctrl.scan()]

    # ---------------------------------------------------------------
    # Stats / alerts
    # ---------------------------------------------------------------

    @app.get("/stats", response_model=Dict)
    def get_stats(ctrl: FleetController = Depends(get_controller)):
        return ctrl.stats()

    @app.get("/alerts/low_battery", response_model=List[BatteryAlertOut])
    def get_low_battery_alerts(
        threshold: int = config.LOW_BATTERY_THRESHOLD,
        ctrl: FleetController = Depends(get_controller),
    ):
        if not 0 <= threshold <= 100:
            raise HTTPException(status_code=400, detail="threshold must be within 0..100")
        return [BatteryAlertOut(**a.to_dict()) for a in ctrl.low_battery_alerts(threshold)]

    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        app,
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
