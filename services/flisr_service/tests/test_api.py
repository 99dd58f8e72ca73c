from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[3]
SERVICE_DIR = ROOT / "services" / "flisr_service"
if str(SERVICE_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICE_DIR))

import pytest
from fastapi.testclient import TestClient

from database import get_db
from flisr.service import FlisrService
from flisr.store import SqlAlchemyFlisrStore
from main import app
from routers.flisr import get_flisr_service

LINE = {
    "length_km": 10.0,
    "resistance_ohm_km": 0.2,
    "inductance_h_km": 1.2e-3,
    "capacitance_f_km": 9e-9,
}


def _client(session_factory, commands) -> TestClient:
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_flisr_service] = lambda: FlisrService(
        SqlAlchemyFlisrStore(session_factory), commands
    )
    # Без контекстного менеджера: startup (Postgres, MQTT) не запускается
    return TestClient(app)


@pytest.fixture
def client(session_factory, channel):
    yield _client(session_factory, channel)
    app.dependency_overrides.clear()


@pytest.fixture
def failing_client(session_factory, failing_channel):
    yield _client(session_factory, failing_channel)
    app.dependency_overrides.clear()


def test_health(client) -> None:
    r = client.get("/health")

    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_run_flisr_returns_analysis_and_plan(client, grid, channel) -> None:
    r = client.post("/api/v1/flisr/run", json={"fault_event_id": grid["fault_event_id"]})

    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "FLISR process completed successfully."

    analysis = body["fault_analysis"]
    assert analysis["fault_connection_id"] == "conn-1"
    assert analysis["from_zone"] == "Feeder 1"
    assert analysis["to_zone"] == "Feeder 2"
    assert analysis["distance_from_source_m"] == pytest.approx(5152.15, abs=0.01)
    assert analysis["line_length_m"] == 10_000
    assert analysis["time_delta_s"] == pytest.approx(1e-6)
    assert analysis["confidence"] == 1.0
    assert analysis["clamped"] is False

    actions = body["service_restoration"]["actions"]
    assert [a["action"] for a in actions] == ["OPEN_SWITCH", "CLOSE_SWITCH"]
    assert actions[1]["target_connection_id"] == "conn-2"
    assert len(body["service_restoration"]["rationale"]) == 2
    assert len(channel.sent) == 2


def test_run_flisr_for_resolved_event_is_404(client, grid) -> None:
    first = client.post("/api/v1/flisr/run", json={"fault_event_id": grid["fault_event_id"]})
    second = client.post("/api/v1/flisr/run", json={"fault_event_id": grid["fault_event_id"]})

    assert first.status_code == 200
    assert second.status_code == 404
    assert "not found" in second.json()["detail"]


def test_run_flisr_for_unknown_event_is_404(client, grid) -> None:
    r = client.post("/api/v1/flisr/run", json={"fault_event_id": 12345})

    assert r.status_code == 404


@pytest.mark.parametrize("payload", [{}, {"fault_event_id": 0}, {"fault_event_id": -3}, {"fault_event_id": "abc"}, {"fault_event_id": 1.5}])
def test_run_flisr_rejects_malformed_trigger(client, grid, channel, payload) -> None:
    r = client.post("/api/v1/flisr/run", json=payload)

    assert r.status_code == 400
    assert r.json()["message"] == "Invalid input."
    assert channel.sent == []


def test_run_flisr_dispatch_failure_is_500_and_rolled_back(failing_client, grid) -> None:
    r = failing_client.post("/api/v1/flisr/run", json={"fault_event_id": grid["fault_event_id"]})

    assert r.status_code == 500
    detail = r.json()["detail"]
    assert detail["message"] == "FLISR execution failed"
    assert detail["error_type"] == "TransactionError"

    topology = failing_client.get("/api/v1/topology").json()
    statuses = {c["connection_id"]: c["connection_status"] for c in topology["connections"]}
    assert statuses == {"conn-1": "ACTIVE", "conn-2": "INACTIVE", "conn-3": "INACTIVE"}


def test_topology_reports_ties_and_active_faults(client, grid) -> None:
    r = client.get("/api/v1/topology")

    assert r.status_code == 200
    body = r.json()
    zones = {z["zone_id"]: z for z in body["zones"]}
    assert zones["zone-3"]["is_tie"] is True
    assert zones["zone-1"]["is_tie"] is False
    assert zones["zone-1"]["active_faults"] == 1
    assert zones["zone-4"]["active_faults"] == 0

    connections = {c["connection_id"]: c for c in body["connections"]}
    assert connections["conn-1"]["active_fault_event_id"] == grid["fault_event_id"]
    assert connections["conn-2"]["active_fault_event_id"] is None
    assert body["tie_closed"] is False


def test_topology_after_restoration_shows_closed_tie(client, grid) -> None:
    client.post("/api/v1/flisr/run", json={"fault_event_id": grid["fault_event_id"]})

    body = client.get("/api/v1/topology").json()

    connections = {c["connection_id"]: c for c in body["connections"]}
    assert connections["conn-1"]["connection_status"] == "CUT"
    assert connections["conn-1"]["is_faulty"] is True
    assert connections["conn-1"]["active_fault_event_id"] is None
    assert connections["conn-2"]["connection_status"] == "ACTIVE"
    assert body["tie_closed"] is True


def test_create_zone_and_connection(client) -> None:
    a = client.post("/api/v1/topology/zones", json={"feeder_number": 1, "location_description": "Feeder A"})
    b = client.post("/api/v1/topology/zones", json={"feeder_number": 99, "location_description": "Tie"})

    assert a.status_code == 201
    assert b.status_code == 201
    assert a.json()["is_tie"] is False
    assert b.json()["is_tie"] is True

    r = client.post(
        "/api/v1/topology/connections",
        json={"from_zone_id": a.json()["zone_id"], "to_zone_id": b.json()["zone_id"], "connection_status": "INACTIVE", **LINE},
    )

    assert r.status_code == 201
    assert r.json()["connection_status"] == "INACTIVE"
    assert r.json()["version"] == 1


def test_create_connection_with_unknown_zone_is_404(client, grid) -> None:
    r = client.post(
        "/api/v1/topology/connections",
        json={"from_zone_id": "zone-1", "to_zone_id": "missing", **LINE},
    )

    assert r.status_code == 404


@pytest.mark.parametrize(
    "overrides",
    [
        {"connection_status": "CUT", "is_faulty": False},
        {"to_zone_id": "zone-1"},
        {"inductance_h_km": 0},
        {"length_km": -1},
    ],
)
def test_create_connection_rejects_inconsistent_payload(client, grid, overrides) -> None:
    payload = {"from_zone_id": "zone-1", "to_zone_id": "zone-2", **LINE, **overrides}

    r = client.post("/api/v1/topology/connections", json=payload)

    assert r.status_code == 400


def test_registered_fault_can_be_restored(client, grid, channel) -> None:
    with_wave = client.post(
        "/api/v1/events/faults",
        json={"connection_id": "conn-1", "timestamp_a": 5_000_040_000, "timestamp_b": 5_000_000_000},
    )

    assert with_wave.status_code == 201
    fault = with_wave.json()
    assert fault["zone_id"] == "zone-1"
    assert fault["resolved"] is False
    assert fault["description"] == "Overcurrent fault detected"

    r = client.post("/api/v1/flisr/run", json={"fault_event_id": fault["event_id"]})

    assert r.status_code == 200
    analysis = r.json()["fault_analysis"]
    assert analysis["clamped"] is True
    assert analysis["distance_from_source_m"] == 10_000
    assert analysis["confidence"] == 0.89


def test_register_fault_on_unknown_connection_is_404(client, grid) -> None:
    r = client.post(
        "/api/v1/events/faults",
        json={"connection_id": "missing", "timestamp_a": 1, "timestamp_b": 0},
    )

    assert r.status_code == 404


def test_events_listing(client, grid) -> None:
    r = client.get("/api/v1/events")

    assert r.status_code == 200
    events = r.json()
    assert len(events) == 1
    assert events[0]["event_type"] == "FAULT"
    assert events[0]["zone_name"] == "Feeder 1"
    assert events[0]["resolved"] is False


def test_events_listing_respects_limit(client, grid) -> None:
    client.post("/api/v1/flisr/run", json={"fault_event_id": grid["fault_event_id"]})

    assert len(client.get("/api/v1/events").json()) == 4
    assert len(client.get("/api/v1/events", params={"limit": 2}).json()) == 2
    assert client.get("/api/v1/events", params={"limit": 0}).status_code == 400


@pytest.mark.parametrize("field, value", [("timestamp_a", 2**70), ("timestamp_b", -(2**63) - 1)])
def test_register_fault_rejects_timestamps_outside_bigint(client, grid, field, value) -> None:
    payload = {"connection_id": "conn-1", "timestamp_a": 1_000, "timestamp_b": 0, field: value}

    r = client.post("/api/v1/events/faults", json=payload)

    assert r.status_code == 400
    assert len(client.get("/api/v1/events").json()) == 1
