from pathlib import Path
import os
import sys

ROOT = Path(__file__).resolve().parents[3]
SERVICE_DIR = ROOT / "services" / "flisr_service"
if str(SERVICE_DIR) not in sys.path:
    sys.path.insert(0, str(SERVICE_DIR))

# Модульный engine в database.py создаётся при импорте: в тестах без Postgres
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, FLISR_SCHEMA
from flisr.errors import CommandDispatchError
from flisr.types import EventType, SwitchCommandType
from models import EventLog, FaultWaveform, GridConnection, Zone

LINE = dict(
    length_km=10.0,
    resistance_ohm_km=0.2,
    inductance_h_km=1.2e-3,
    capacitance_f_km=9e-9,
)


class RecordingChannel:
    """Канал команд для тестов: запоминает команды, может падать по требованию."""

    def __init__(self, fail_on: SwitchCommandType | None = None):
        self.sent = []
        self.fail_on = fail_on

    def send_switch_command(self, command) -> None:
        if self.fail_on is not None and command.command == self.fail_on:
            raise CommandDispatchError(f"broker rejected {command.command.value}")
        self.sent.append(command)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _attach_schema(dbapi_connection, connection_record):
        dbapi_connection.execute(f"ATTACH DATABASE ':memory:' AS {FLISR_SCHEMA}")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def grid(session_factory):
    """
    Z1 -- conn-1 (ACTIVE, повреждение) -- Z2 -- conn-2 (INACTIVE) -- Z3 (tie)
    Z4 -- conn-3 (INACTIVE) -- Z5
    """
    with session_factory.begin() as db:
        db.add_all(
            [
                Zone(zone_id="zone-1", feeder_number=1, location_description="Feeder 1", status="NORMAL"),
                Zone(zone_id="zone-2", feeder_number=2, location_description="Feeder 2", status="FAULT"),
                Zone(zone_id="zone-3", feeder_number=99, location_description="Tie", status="NORMAL"),
                Zone(zone_id="zone-4", feeder_number=3, location_description="Feeder 3", status="NORMAL"),
                Zone(zone_id="zone-5", feeder_number=4, location_description=None, status="NORMAL"),
            ]
        )
        db.flush()
        db.add_all(
            [
                GridConnection(
                    connection_id="conn-1", from_zone_id="zone-1", to_zone_id="zone-2",
                    connection_status="ACTIVE", is_faulty=False, **LINE,
                ),
                GridConnection(
                    connection_id="conn-2", from_zone_id="zone-2", to_zone_id="zone-3",
                    connection_status="INACTIVE", is_faulty=False, **LINE,
                ),
                GridConnection(
                    connection_id="conn-3", from_zone_id="zone-4", to_zone_id="zone-5",
                    connection_status="INACTIVE", is_faulty=False, **LINE,
                ),
            ]
        )
        db.flush()

        fault = EventLog(
            zone_id="zone-1",
            event_type=EventType.FAULT.value,
            description="Overcurrent on feeder 1",
            resolved=False,
        )
        db.add(fault)
        db.flush()
        db.add(
            FaultWaveform(
                event_id=fault.event_id,
                connection_id="conn-1",
                timestamp_a=1_000_000_000,
                timestamp_b=999_999_000,
            )
        )
        fault_event_id = fault.event_id

    return {"fault_event_id": fault_event_id}


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def failing_channel():
    """Брокер отклоняет команду CLOSE: изоляция уже отправлена, восстановление нет."""
    return RecordingChannel(fail_on=SwitchCommandType.CLOSE)
