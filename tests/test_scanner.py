import asyncio

import pytest

from engine.incidents import IncidentLog
from engine.scanner import PeriodicScanner, scan
from tests.conftest import make_vehicle


def _fleet():
    return [
        make_vehicle("1", temperature=30.0, battery_level=80),
        make_vehicle("2", temperature=50.0, battery_level=60),
        make_vehicle("3", temperature=25.0, battery_level=90, cycle_count=950),
        make_vehicle("4", temperature=42.0, battery_level=10),
    ]


def test_scan_opens_incidents_for_flagged_vehicles_in_order():
    log = IncidentLog()
    created = scan(_fleet(), log)

    assert [i.vehicle_id for i in created] == ["2", "4"]
    assert len(log) == 2


def test_repeated_scans_do_not_duplicate():
    log = IncidentLog()
    fleet = _fleet()
    scan(fleet, log)

    assert scan(fleet, log) == []
    assert scan(fleet, log) == []
    assert len(log) == 2


def test_scan_reopens_after_resolution():
    log = IncidentLog()
    fleet = _fleet()
    first = scan(fleet, log)
    for incident in first:
        log.mark_responded(incident.id)
    assert scan(fleet, log) == []

    log.mark_resolved(first[0].id)
    again = scan(fleet, log)
    assert [i.vehicle_id for i in again] == ["2"]


def test_scan_with_healthy_fleet_creates_nothing():
    log = IncidentLog()
    assert scan([make_vehicle("1"), make_vehicle("2")], log) == []
    assert len(log) == 0


def test_periodic_scanner_runs_until_stopped():
    calls = []

    async def run():
        scanner = PeriodicScanner(lambda: calls.append(1), interval_seconds=0.01)
        await scanner.start()
        assert scanner.running()
        await asyncio.sleep(0.05)
        await scanner.stop()
        assert not scanner.running()
        return scanner

    scanner = asyncio.run(run())
    assert len(calls) >= 1
    assert scanner.passes == len(calls)


def test_periodic_scanner_rejects_double_start():
    async def run():
        scanner = PeriodicScanner(lambda: None, interval_seconds=10)
        await scanner.start()
        try:
            with pytest.raises(RuntimeError):
                await scanner.start()
        finally:
            await scanner.stop()

    asyncio.run(run())


def test_periodic_scanner_survives_failing_pass():
    def boom():
        raise ValueError("bad pass")

    async def run():
        scanner = PeriodicScanner(boom, interval_seconds=0.01)
        await scanner.start()
        await asyncio.sleep(0.1)
        alive = scanner.running()
        await scanner.stop()
        return scanner, alive

    scanner, alive = asyncio.run(run())
    assert alive
    assert scanner.passes >= 2


def test_stop_without_start_is_harmless():
    asyncio.run(PeriodicScanner(lambda: None).stop())


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicScanner(lambda: None, interval_seconds=0)
