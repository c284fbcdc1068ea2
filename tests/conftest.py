from datetime import datetime, timedelta, timezone

import pytest

from engine.models import BatteryHealth, Location, Vehicle, VehicleStatus, VehicleType
from engine.risk import assess

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_vehicle(
    vehicle_id="1",
    temperature=30.0,
    battery_level=80,
    cycle_count=100,
    vehicle_type=VehicleType.BIKE,
    status=VehicleStatus.AVAILABLE,
    inspected_days_ago=1,
    latitude=40.7580,
    longitude=-73.9855,
):
    risk = assess(temperature, cycle_count, battery_level)
    return Vehicle(
        id=vehicle_id,
        type=vehicle_type,
        model="Classic-1" if vehicle_type == VehicleType.BIKE else "Max-R",
        location=Location(latitude, longitude),
        battery_level=battery_level,
        battery_health=BatteryHealth(
            risk_level=risk.risk_level,
            temperature=temperature,
            cycle_count=cycle_count,
            last_inspection=NOW - timedelta(days=inspected_days_ago),
            voltage_stability=95.0,
            requires_emergency_response=risk.requires_emergency_response,
        ),
        status=status,
        last_updated=NOW,
    )


@pytest.fixture
def hot_vehicle():
    return make_vehicle("7", temperature=50.0, battery_level=10, cycle_count=100)


@pytest.fixture
def cool_vehicle():
    return make_vehicle("8", temperature=30.0, battery_level=80, cycle_count=100)
