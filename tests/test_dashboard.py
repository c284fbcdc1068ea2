from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import dashboard.app as dashboard_app
from api.api import create_app
from dashboard.app import (
    FOCUS_ZOOM,
    GREEN,
    MAP_ZOOM,
    NYC_CENTER,
    RED,
    YELLOW,
    battery_color,
    fetch_incidents,
    map_view,
    organize_incidents,
    temperature_label,
    time_ago,
    vehicles_to_frame,
)
from engine.controller import FleetController
from tests.conftest import make_vehicle


def _incident(incident_id, status, temperature, created_at="2024-06-01T12:00:00+00:00", resolved_at=None):
    return {
        "id": incident_id,
        "vehicle_id": incident_id[-1],
        "status": status,
        "temperature": temperature,
        "created_at": created_at,
        "resolved_at": resolved_at,
    }


def test_battery_color_bands():
    assert battery_color(5) == RED
    assert battery_color(20) == RED
    assert battery_color(21) == YELLOW
    assert battery_color(50) == YELLOW
    assert battery_color(51) == GREEN


def test_temperature_label():
    assert temperature_label(30.0) == "30.0°C"
    assert "🔥" in temperature_label(46.0)
    assert "thermal runaway" in temperature_label(150.0)


def test_organize_incidents():
    incidents = [
        _incident("INC-1", "pending", 46.0),
        _incident("INC-2", "pending", 49.0),
        _incident("INC-3", "responded", 47.0),
    ] + [
        _incident(f"INC-R{i}", "resolved", 46.0, resolved_at=f"2024-06-01T13:0{i}:00+00:00")
        for i in range(7)
    ]

    organized = organize_incidents(incidents)

    assert [i["id"] for i in organized["pending"]] == ["INC-2", "INC-1"]
    assert [i["id"] for i in organized["responded"]] == ["INC-3"]
    assert [i["id"] for i in organized["resolved"]] == ["INC-R6", "INC-R5", "INC-R4", "INC-R3", "INC-R2"]


def test_vehicles_to_frame():
    payload = [
        {
            "id": "1",
            "type": "bike",
            "model": "Urban-2",
            "status": "available",
            "location": {"latitude": 40.75, "longitude": -73.98},
            "battery_level": 15,
            "battery_health": {
                "risk_level": "moderate",
                "temperature": 31.0,
                "cycle_count": 120,
                "voltage_stability": 96.0,
                "requires_emergency_response": False,
                "last_inspection": "2024-06-01T00:00:00+00:00",
            },
            "last_updated": "2024-06-01T12:00:00+00:00",
        }
    ]
    df = vehicles_to_frame(payload)
    assert df.loc[0, "latitude"] == 40.75
    assert df.loc[0, "color"] == RED
    assert vehicles_to_frame([]).empty


def test_time_ago():
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert time_ago((now - timedelta(seconds=30)).isoformat(), now) == "30s ago"
    assert time_ago((now - timedelta(minutes=5)).isoformat(), now) == "5m ago"
    assert time_ago((now - timedelta(hours=3)).isoformat(), now) == "3h ago"
    assert time_ago(None, now) == "n/a"


def test_map_view_defaults_to_city():
    assert map_view() == (NYC_CENTER[0], NYC_CENTER[1], MAP_ZOOM)
    assert map_view(None) == map_view({})


def test_map_view_zooms_on_focus():
    lat, lon, zoom = map_view({"latitude": 40.6782, "longitude": -73.9442})
    assert (lat, lon) == (40.6782, -73.9442)
    assert zoom == FOCUS_ZOOM > MAP_ZOOM


@pytest.fixture
def api_client(monkeypatch):
    controller = FleetController(
        [
            make_vehicle("A", temperature=50.0),
            make_vehicle("B", temperature=48.0),
        ]
    )
    client = TestClient(create_app(controller, start_scanner=False))

    def _get(path, **params):
        resp = client.get(path, params=params or None)
        resp.raise_for_status()
        return resp.json()

    monkeypatch.setattr(dashboard_app, "_get", _get)
    return controller


def test_fetch_incidents_keeps_old_pending_incident(api_client):
    controller = api_client
    controller.scan()
    for _ in range(510):
        incident = controller.incidents.open_incident_for("B")
        controller.respond(incident.id)
        controller.resolve(incident.id)
        controller.scan()

    incidents = fetch_incidents()
    organized = organize_incidents(incidents)

    assert [i["id"] for i in organized["pending"]] == ["INC-0001", controller.incidents.open_incident_for("B").id]
    assert len([i for i in incidents if i["status"] == "resolved"]) == dashboard_app.RESOLVED_FETCH_LIMIT
    assert len(organized["resolved"]) == dashboard_app.RESOLVED_HISTORY
