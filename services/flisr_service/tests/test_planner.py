from pathlib import Path
import copy
import sys

ROOT = Path(__file__).resolve().parents[3]
SERVICE_DIR = ROOT / "services" / "flisr_service"
if str(SERVICE_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICE_DIR))

from flisr import planner
from flisr.types import ActionType, ConnectionState, ConnectionStatus, FaultContext, ZoneState


def _zone(zone_id: str, name: str | None = None) -> ZoneState:
    return ZoneState(zone_id=zone_id, feeder_number=1, location_description=name, status="NORMAL")


def _conn(connection_id, from_zone, to_zone, status=ConnectionStatus.INACTIVE, faulty=False) -> ConnectionState:
    return ConnectionState(
        connection_id=connection_id,
        from_zone_id=from_zone,
        to_zone_id=to_zone,
        connection_status=status,
        is_faulty=faulty,
        length_km=10.0,
        resistance_ohm_km=0.2,
        inductance_h_km=1.2e-3,
        capacitance_f_km=9e-9,
    )


def _fault(connection_id="C1", from_zone="Z1", to_zone="Z2", **names) -> FaultContext:
    return FaultContext(
        event_id=42,
        connection_id=connection_id,
        from_zone_id=from_zone,
        to_zone_id=to_zone,
        length_km=10.0,
        inductance_h_per_km=1.2e-3,
        capacitance_f_per_km=9e-9,
        timestamp_a=1_000_000_000,
        timestamp_b=999_999_000,
        **names,
    )


ZONES = [_zone("Z1", "Feeder 1"), _zone("Z2", "Feeder 2"), _zone("Z3", "Tie"), _zone("Z4"), _zone("Z5")]


def test_plan_backfeeds_through_adjacent_tie() -> None:
    connections = [
        _conn("C1", "Z1", "Z2", status=ConnectionStatus.ACTIVE),
        _conn("C2", "Z2", "Z3"),
        _conn("C3", "Z4", "Z5"),
    ]

    result = planner.plan(_fault(), ZONES, connections)

    assert [a.action for a in result.actions] == [ActionType.OPEN_SWITCH, ActionType.CLOSE_SWITCH]
    assert result.actions[0].target_connection_id == "C1"
    assert result.actions[0].reason == planner.ISOLATE_REASON
    assert result.actions[0].metadata == {"event_id": 42, "from_zone_id": "Z1", "to_zone_id": "Z2"}

    close = result.actions[1]
    assert close.target_connection_id == "C2"
    assert close.reason == planner.BACKFEED_REASON
    assert close.metadata == {
        "from_zone_id": "Z2",
        "to_zone_id": "Z3",
        "from_zone_name": "Feeder 2",
        "to_zone_name": "Tie",
    }
    assert len(result.rationale) == 2
    assert result.rationale[1] == "Tie switch C2 selected (currently INACTIVE)."


def test_plan_escalates_when_no_tie_is_available() -> None:
    connections = [
        _conn("C1", "Z1", "Z2", status=ConnectionStatus.ACTIVE),
        _conn("C3", "Z4", "Z5"),
    ]

    result = planner.plan(_fault(), ZONES, connections)

    assert [a.action for a in result.actions] == [ActionType.OPEN_SWITCH, ActionType.NOTIFY]
    notify = result.actions[1]
    assert notify.target_connection_id == "C1"
    assert notify.reason == planner.ESCALATE_REASON
    assert notify.metadata == {"escalation": "DISPATCH_CREW"}
    assert "Escalating to operator" in result.rationale[1]


def test_faulty_active_and_cut_neighbours_are_not_candidates() -> None:
    connections = [
        _conn("C1", "Z1", "Z2", status=ConnectionStatus.ACTIVE),
        _conn("C2", "Z2", "Z3", faulty=True),
        _conn("C4", "Z1", "Z4", status=ConnectionStatus.ACTIVE),
        _conn("C5", "Z2", "Z5", status=ConnectionStatus.CUT, faulty=True),
    ]

    result = planner.plan(_fault(), ZONES, connections)

    assert result.actions[1].action == ActionType.NOTIFY


def test_faulted_connection_is_never_its_own_tie() -> None:
    connections = [_conn("C1", "Z1", "Z2", status=ConnectionStatus.INACTIVE)]

    assert planner.find_tie_candidate(_fault(), connections) is None


def test_tie_break_picks_lowest_connection_id_regardless_of_order() -> None:
    connections = [
        _conn("C9", "Z1", "Z5"),
        _conn("C1", "Z1", "Z2", status=ConnectionStatus.ACTIVE),
        _conn("C4", "Z2", "Z3"),
    ]

    forward = planner.plan(_fault(), ZONES, connections)
    backward = planner.plan(_fault(), ZONES, list(reversed(connections)))

    assert forward.actions[1].target_connection_id == "C4"
    assert forward == backward


def test_tie_adjacent_to_source_side_zone_is_accepted() -> None:
    connections = [_conn("C7", "Z4", "Z1")]

    tie = planner.find_tie_candidate(_fault(), connections)

    assert tie is not None
    assert tie.connection_id == "C7"


def test_rationale_uses_zone_ids_when_names_are_missing() -> None:
    result = planner.plan(_fault(from_zone="Z4", to_zone="Z5"), ZONES, [])

    assert result.rationale[0] == "Fault located on connection C1 between zones Z4 and Z5."


def test_rationale_prefers_zone_names() -> None:
    fault = _fault(from_zone_name="Feeder 1", to_zone_name="Feeder 2")

    result = planner.plan(fault, ZONES, [])

    assert result.rationale[0] == "Fault located on connection C1 between zones Feeder 1 and Feeder 2."


def test_unknown_zone_names_resolve_to_none() -> None:
    connections = [_conn("C2", "Z2", "Z-unknown")]

    result = planner.plan(_fault(), ZONES, connections)

    assert result.actions[1].metadata["to_zone_name"] is None


def test_plan_does_not_mutate_inputs() -> None:
    zones = list(ZONES)
    connections = [
        _conn("C1", "Z1", "Z2", status=ConnectionStatus.ACTIVE),
        _conn("C2", "Z2", "Z3"),
    ]
    zones_before = copy.deepcopy(zones)
    connections_before = copy.deepcopy(connections)

    planner.plan(_fault(), zones, connections)

    assert zones == zones_before
    assert connections == connections_before
