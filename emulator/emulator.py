# emulator/emulator.py
#
# NYC Fleet Monitor – Fleet Emulator
#
# Synthesizes a fleet of e-bikes and scooters spread around Manhattan hubs,
# each with plausible battery telemetry. Risk levels and emergency flags are
# derived from that telemetry by the classifier, so the emulator never
# decides them itself. All randomness goes through one seedable
# random.Random, so the same seed always yields the same fleet.

import argparse
import json
import math
import random
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from engine.config import DEFAULT_THRESHOLDS, FLEET_SIZE, RiskThresholds
from engine.models import BatteryHealth, Location, Vehicle, VehicleStatus, VehicleType
from engine.risk import assess

KM_PER_DEGREE = 111.32

# -------------------------------------------------
# Geography
# -------------------------------------------------

NYC_HUBS: Dict[str, Tuple[float, float]] = {
    "times_square": (40.7580, -73.9855),
    "midtown_east": (40.7549, -73.9749),
    "midtown_west": (40.7551, -73.9947),
    "downtown": (40.7127, -74.0134),
    "financial_district": (40.7075, -74.0021),
    "upper_east_side": (40.7736, -73.9566),
    "upper_west_side": (40.7870, -73.9754),
    "central_park": (40.7829, -73.9654),
}

NYC_BOUNDS = {
    "north": 40.917577,
    "south": 40.477399,
    "east": -73.700272,
    "west": -74.259090,
}


@dataclass(frozen=True)
class Zone:
    name: str
    share: float  # fraction of the fleet
    hubs: Tuple[str, ...]
    radius_km: float


# Remaining share after the hub zones is scattered across the whole city.
ZONES: Tuple[Zone, ...] = (
    Zone("midtown", 0.4, ("times_square", "midtown_east", "midtown_west"), 0.5),
    Zone("downtown", 0.3, ("downtown", "financial_district"), 0.7),
    Zone("uptown", 0.2, ("upper_east_side", "upper_west_side", "central_park"), 0.6),
)

# -------------------------------------------------
# Vehicles
# -------------------------------------------------

VEHICLE_MODELS = {
    VehicleType.BIKE: ("Classic-1", "Mountain-X", "Urban-2"),
    VehicleType.SCOOTER: ("Speeder-S1", "City-Glide", "Max-R"),
}
BIKE_SHARE = 0.6

# Healthy-ish fleet ranges; the tails are what produce risky batteries.
TEMP_RANGE_C = (20.0, 50.0)
VOLTAGE_STABILITY_RANGE = (85.0, 100.0)
MAX_BATTERY_LEVEL = 100  # exclusive
MAX_CYCLE_COUNT = 1000  # exclusive
INSPECTION_WINDOW_DAYS = 30


def point_near(
    rng: random.Random, lat: float, lon: float, radius_km: float
) -> Location:
    """Uniform point in the lat/lon box spanning radius_km around a center."""
    lat_radius = radius_km / KM_PER_DEGREE
    lon_radius = radius_km / (KM_PER_DEGREE * math.cos(math.radians(lat)))
    return Location(
        latitude=lat + (rng.random() - 0.5) * lat_radius * 2,
        longitude=lon + (rng.random() - 0.5) * lon_radius * 2,
    )


def random_location(rng: random.Random) -> Location:
    """
    Place a vehicle following the hub distribution: 40% midtown, 30%
    downtown, 20% uptown, the rest anywhere inside the city bounds.
    """
    roll = rng.random()
    cumulative = 0.0
    for zone in ZONES:
        cumulative += zone.share
        if roll < cumulative:
            lat, lon = NYC_HUBS[rng.choice(zone.hubs)]
            return point_near(rng, lat, lon, zone.radius_km)

    return Location(
        latitude=NYC_BOUNDS["south"] + rng.random() * (NYC_BOUNDS["north"] - NYC_BOUNDS["south"]),
        longitude=NYC_BOUNDS["west"] + rng.random() * (NYC_BOUNDS["east"] - NYC_BOUNDS["west"]),
    )


def generate_battery_health(
    rng: random.Random,
    battery_level: int,
    cycle_count: int,
    now: datetime,
    thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
) -> BatteryHealth:
    temperature = rng.uniform(*TEMP_RANGE_C)
    voltage_stability = rng.uniform(*VOLTAGE_STABILITY_RANGE)
    last_inspection = now - timedelta(
        seconds=rng.random() * INSPECTION_WINDOW_DAYS * 24 * 3600
    )
    risk = assess(temperature, cycle_count, battery_level, thresholds)
    return BatteryHealth(
        risk_level=risk.risk_level,
        temperature=temperature,
        cycle_count=cycle_count,
        last_inspection=last_inspection,
        voltage_stability=voltage_stability,
        requires_emergency_response=risk.requires_emergency_response,
    )


def generate_vehicle(
    rng: random.Random,
    vehicle_id: str,
    now: datetime,
    thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
) -> Vehicle:
    location = random_location(rng)
    vtype = VehicleType.BIKE if rng.random() < BIKE_SHARE else VehicleType.SCOOTER
    model = rng.choice(VEHICLE_MODELS[vtype])

    battery_level = rng.randrange(MAX_BATTERY_LEVEL)
    cycle_count = rng.randrange(MAX_CYCLE_COUNT)
    health = generate_battery_health(rng, battery_level, cycle_count, now, thresholds)

    return Vehicle(
        id=vehicle_id,
        type=vtype,
        model=model,
        location=location,
        battery_level=battery_level,
        battery_health=health,
        status=rng.choice(list(VehicleStatus)),
        last_updated=now,
    )


def generate_fleet(
    count: int,
    rng: Optional[random.Random] = None,
    thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
    now: Optional[datetime] = None,
) -> List[Vehicle]:
    """Generate `count` vehicles with ids "1".."count"."""
    if count < 0:
        raise ValueError("count must be >= 0")
    rng = rng or random.Random()
    now = now or datetime.now(timezone.utc)
    return [generate_vehicle(rng, str(i), now, thresholds) for i in range(1, count + 1)]


class FleetEmulator:
    """
    Seeded fleet generator.

    Holds the random source so that successive fleets (e.g. on restart of
    a demo) stay reproducible from a single seed.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        thresholds: RiskThresholds = DEFAULT_THRESHOLDS,
    ):
        self.seed = seed
        self.thresholds = thresholds
        self._rng = random.Random(seed)

    def generate(self, count: int = FLEET_SIZE, now: Optional[datetime] = None) -> List[Vehicle]:
        return generate_fleet(count, self._rng, self.thresholds, now)


def summarize(vehicles: Sequence[Vehicle]) -> Dict:
    """Small JSON-serializable overview of a generated fleet."""
    return {
        "total": len(vehicles),
        "by_type": dict(Counter(v.type.value for v in vehicles)),
        "by_risk": dict(Counter(v.risk_level.value for v in vehicles)),
        "emergencies": sum(1 for v in vehicles if v.requires_emergency_response),
    }


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Generate a simulated NYC e-bike fleet")
    parser.add_argument("--count", type=int, default=FLEET_SIZE)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--full", action="store_true", help="dump every vehicle, not just a summary")
    args = parser.parse_args(argv)

    vehicles = FleetEmulator(seed=args.seed, thresholds=RiskThresholds.from_env()).generate(args.count)
    if args.full:
        payload = [v.to_dict() for v in vehicles]
    else:
        payload = summarize(vehicles)
    print(json.dumps(payload, indent=2), flush=True)


if __name__ == "__main__":
    main()
