from datetime import timedelta

import pytest

from engine.incidents import IncidentLog, IncidentStatus
from engine.models import IncidentNotFound, RiskLevel
from tests.conftest import NOW, make_vehicle


def test_open_snapshots_vehicle(hot_vehicle):
    log = IncidentLog()
    incident = log.open(hot_vehicle, now=NOW)

    assert incident.id == "INC-0001"
    assert incident.vehicle_id == "7"
    assert incident.status == IncidentStatus.PENDING
    assert incident.created_at == NOW
    assert incident.temperature == 50.0
    assert incident.battery_level == 10
    assert incident.risk_level == RiskLevel.CRITICAL
    assert incident.location == hot_vehicle.location
    assert incident.responded_at is None and incident.resolved_at is None


def test_open_twice_yields_one_incident(hot_vehicle):
    log = IncidentLog()
    first = log.open(hot_vehicle)
    second = log.open(hot_vehicle)

    assert first is not None
    assert second is None
    assert len(log) == 1


def test_open_logs_simulated_dispatch(hot_vehicle, caplog):
    log = IncidentLog()
    with caplog.at_level("WARNING", logger="engine.incidents"):
        log.open(hot_vehicle)
    assert "Dispatching fire department to vehicle 7" in caplog.text


def test_full_lifecycle_sets_timestamps(hot_vehicle):
    log = IncidentLog()
    incident = log.open(hot_vehicle, now=NOW)

    responded = log.mark_responded(incident.id, now=NOW + timedelta(minutes=3))
    assert responded is incident
    assert incident.status == IncidentStatus.RESPONDED
    assert incident.responded_at == NOW + timedelta(minutes=3)
    assert incident.is_open

    resolved = log.mark_resolved(incident.id, now=NOW + timedelta(minutes=20))
    assert resolved is incident
    assert incident.status == IncidentStatus.RESOLVED
    assert incident.resolved_at == NOW + timedelta(minutes=20)
    assert not incident.is_open


def test_resolving_a_pending_incident_is_a_noop(hot_vehicle):
    log = IncidentLog()
    incident = log.open(hot_vehicle)

    assert log.mark_resolved(incident.id) is None
    assert incident.status == IncidentStatus.PENDING
    assert incident.resolved_at is None


def test_transitions_never_reverse_or_repeat(hot_vehicle):
    log = IncidentLog()
    incident = log.open(hot_vehicle)
    log.mark_responded(incident.id, now=NOW)

    assert log.mark_responded(incident.id) is None
    assert incident.responded_at == NOW

    log.mark_resolved(incident.id)
    assert log.mark_responded(incident.id) is None
    assert log.mark_resolved(incident.id) is None
    assert incident.status == IncidentStatus.RESOLVED


def test_responded_incident_still_blocks_new_one(hot_vehicle):
    log = IncidentLog()
    incident = log.open(hot_vehicle)
    log.mark_responded(incident.id)

    assert log.open(hot_vehicle) is None
    assert log.open_incident_for(hot_vehicle.id) is incident


def test_vehicle_can_get_new_incident_after_resolution(hot_vehicle):
    log = IncidentLog()
    first = log.open(hot_vehicle)
    log.mark_responded(first.id)
    log.mark_resolved(first.id)

    second = log.open(hot_vehicle)
    assert second is not None
    assert second.id == "INC-0002"
    assert len(log) == 2
    assert [i.id for i in log.active()] == ["INC-0002"]


def test_unknown_incident_raises():
    log = IncidentLog()
    with pytest.raises(IncidentNotFound):
        log.mark_responded("INC-9999")
    with pytest.raises(KeyError):
        log.get("nope")


def test_queries_by_status():
    log = IncidentLog()
    a = log.open(make_vehicle("1", temperature=48.0))
    b = log.open(make_vehicle("2", temperature=49.0))
    log.open(make_vehicle("3", temperature=46.0))
    log.mark_responded(a.id)
    log.mark_responded(b.id)
    log.mark_resolved(b.id)

    assert [i.vehicle_id for i in log.by_status(IncidentStatus.PENDING)] == ["3"]
    assert [i.vehicle_id for i in log.by_status(IncidentStatus.RESPONDED)] == ["1"]
    assert [i.vehicle_id for i in log.by_status(IncidentStatus.RESOLVED)] == ["2"]
    assert {i.vehicle_id for i in log.active()} == {"1", "3"}
    assert not log.has_open("2")


def test_to_dict_serializes_enums_and_timestamps(hot_vehicle):
    log = IncidentLog()
    incident = log.open(hot_vehicle, now=NOW)
    data = incident.to_dict()
    assert data["status"] == "pending"
    assert data["risk_level"] == "critical"
    assert data["created_at"] == NOW.isoformat()
    assert data["responded_at"] is None


def test_open_index_follows_many_lifecycles():
    log = IncidentLog()
    steady = log.open(make_vehicle("A", temperature=50.0))
    churn = make_vehicle("B", temperature=50.0)

    for _ in range(50):
        incident = log.open(churn)
        assert log.open_incident_for("B") is incident
        log.mark_responded(incident.id)
        assert log.open_incident_for("B") is incident
        log.mark_resolved(incident.id)
        assert log.open_incident_for("B") is None

    assert log.open_incident_for("A") is steady
    assert len(log) == 51
    assert log.active() == [steady]
