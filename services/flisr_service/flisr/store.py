"""\
Доступ к хранилищу для workflow FLISR.

Чтения (контекст повреждения, топология) идут в коротких сессиях и отдают
неизменяемые снимки. Запись результата идёт одной транзакцией: либо применяется
всё (состояния связей, команды, журнал, resolved), либо ничего.
"""

import json
from datetime import datetime, timezone
from typing import Optional, Protocol

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, aliased, sessionmaker

from flisr.commands import CommandChannel
from flisr.errors import NotFoundError, TopologyChangedError, TransactionError
from flisr.types import (
    ActionType,
    ConnectionState,
    ConnectionStatus,
    EventType,
    FaultContext,
    FaultDistanceResult,
    RestorationAction,
    RestorationPlan,
    SwitchCommand,
    SwitchCommandType,
    Topology,
    ZoneState,
)
from models import EventLog, FaultWaveform, GridConnection, Zone

ISOLATION_COMMAND_REASON = "Isolate detected faulted feeder segment"


class FlisrStore(Protocol):
    def get_fault_context(self, event_id: int) -> FaultContext:
        ...

    def get_topology(self) -> Topology:
        ...

    def apply_restoration(
        self,
        fault_context: FaultContext,
        plan: RestorationPlan,
        distance: FaultDistanceResult,
        commands: CommandChannel,
        expected_versions: Optional[dict[str, int]] = None,
    ) -> None:
        ...


class EventLedger:
    """
    Журнал событий как append-only реестр.
    Кроме добавления записи есть только блокировка неразрешённого события
    и отметка resolved.
    """

    def __init__(self, session: Session):
        self._session = session

    def append(
        self,
        event_type: EventType,
        description: str,
        resolved: bool = False,
        zone_id: Optional[str] = None,
    ) -> EventLog:
        entry = EventLog(
            event_type=event_type.value,
            description=description,
            resolved=resolved,
            zone_id=zone_id,
        )
        self._session.add(entry)
        return entry

    def lock_unresolved(self, event_id: int) -> EventLog:
        """
        Блокирует событие до конца транзакции. Событие повреждения
        потребляется ровно один раз: параллельный запуск, прочитавший
        контекст до фиксации первого, здесь получит отказ.
        """
        entry = self._session.get(EventLog, event_id, with_for_update=True)
        if entry is None:
            raise TransactionError(f"Event {event_id} disappeared before it could be resolved")
        if entry.resolved:
            raise TransactionError(f"Event {event_id} was already resolved by another FLISR run")
        return entry

    def mark_resolved(self, event_id: int) -> None:
        entry = self._session.get(EventLog, event_id)
        if entry is None:
            raise TransactionError(f"Event {event_id} disappeared before it could be resolved")
        entry.resolved = True


def zone_state(row: Zone) -> ZoneState:
    return ZoneState(
        zone_id=row.zone_id,
        feeder_number=int(row.feeder_number),
        location_description=row.location_description,
        status=row.status,
    )


def connection_state(row: GridConnection) -> ConnectionState:
    return ConnectionState(
        connection_id=row.connection_id,
        from_zone_id=row.from_zone_id,
        to_zone_id=row.to_zone_id,
        connection_status=ConnectionStatus(row.connection_status),
        is_faulty=bool(row.is_faulty),
        length_km=float(row.length_km),
        resistance_ohm_km=float(row.resistance_ohm_km),
        inductance_h_km=float(row.inductance_h_km),
        capacitance_f_km=float(row.capacitance_f_km),
        version=int(row.version),
    )


def describe_action(action: RestorationAction) -> str:
    parts = [
        f"FLISR Action: {action.action.value}",
        f"Target: {action.target_connection_id}",
        f"Reason: {action.reason}",
    ]
    if action.metadata:
        parts.append(f"Metadata: {json.dumps(action.metadata, sort_keys=True, default=str)}")
    return " | ".join(parts)


def describe_analysis(fault_context: FaultContext, distance: FaultDistanceResult) -> str:
    summary = (
        f"Fault located ~{distance.distance_from_source_m:.1f} m from source "
        f"({fault_context.from_zone_label}) on connection {fault_context.connection_id}, "
        f"confidence {distance.confidence:.2f}"
    )
    if distance.clamped:
        summary += " (estimate clamped to line end)"
    return summary + "."


def _check_open_targets(plan: RestorationPlan, fault_context: FaultContext) -> None:
    """OPEN_SWITCH допустим только для повреждённой связи; проверяется до первой команды."""
    for action in plan.actions:
        if (
            action.action is ActionType.OPEN_SWITCH
            and action.target_connection_id != fault_context.connection_id
        ):
            raise TransactionError(
                f"OPEN_SWITCH targets {action.target_connection_id}, "
                f"expected faulted connection {fault_context.connection_id}"
            )


class SqlAlchemyFlisrStore:
    """Хранилище FLISR поверх SQLAlchemy; каждая операция открывает свою сессию."""

    def __init__(self, session_factory: sessionmaker, command_source: str = "FLISR"):
        self._session_factory = session_factory
        self._command_source = command_source

    # ---------- Чтение ----------

    def get_fault_context(self, event_id: int) -> FaultContext:
        from_zone = aliased(Zone)
        to_zone = aliased(Zone)
        stmt = (
            select(
                EventLog,
                FaultWaveform,
                GridConnection,
                from_zone.location_description,
                to_zone.location_description,
            )
            .join(FaultWaveform, FaultWaveform.event_id == EventLog.event_id)
            .join(GridConnection, GridConnection.connection_id == FaultWaveform.connection_id)
            .outerjoin(from_zone, from_zone.zone_id == GridConnection.from_zone_id)
            .outerjoin(to_zone, to_zone.zone_id == GridConnection.to_zone_id)
            .where(
                EventLog.event_id == event_id,
                EventLog.event_type == EventType.FAULT.value,
                EventLog.resolved.is_(False),
            )
            .order_by(FaultWaveform.created_at.desc())
            .limit(1)
        )

        with self._session_factory() as session:
            row = session.execute(stmt).first()

        if row is None:
            raise NotFoundError(
                f"Fault event {event_id} not found, already resolved "
                f"or has no associated waveform."
            )

        event, waveform, connection, from_name, to_name = row
        return FaultContext(
            event_id=event.event_id,
            connection_id=connection.connection_id,
            from_zone_id=connection.from_zone_id,
            to_zone_id=connection.to_zone_id,
            from_zone_name=from_name,
            to_zone_name=to_name,
            length_km=float(connection.length_km),
            inductance_h_per_km=float(connection.inductance_h_km),
            capacitance_f_per_km=float(connection.capacitance_f_km),
            timestamp_a=waveform.timestamp_a,
            timestamp_b=waveform.timestamp_b,
            description=event.description,
            event_timestamp=event.timestamp,
        )

    def get_topology(self) -> Topology:
        with self._session_factory() as session:
            zones = session.scalars(select(Zone).order_by(Zone.zone_id)).all()
            connections = session.scalars(
                select(GridConnection).order_by(GridConnection.connection_id)
            ).all()
            return Topology(
                zones=tuple(zone_state(zone) for zone in zones),
                connections=tuple(connection_state(conn) for conn in connections),
            )

    # ---------- Запись ----------

    def apply_restoration(
        self,
        fault_context: FaultContext,
        plan: RestorationPlan,
        distance: FaultDistanceResult,
        commands: CommandChannel,
        expected_versions: Optional[dict[str, int]] = None,
    ) -> None:
        """
        Атомарно применяет план:
          0. событие повреждения блокируется и должно быть ещё не разрешено;
          1. повреждённая связь -> CUT, is_faulty = true;
          2. команда OPEN на повреждённую связь;
          3. каждая CLOSE_SWITCH -> ACTIVE, is_faulty = false, команда CLOSE;
          4. запись SERVICE_RESTORATION на каждое действие плана;
          5. запись FAULT_ANALYSIS с расстоянием до повреждения;
          6. исходное событие повреждения -> resolved.
        Любое исключение откатывает транзакцию целиком.
        """
        expected_versions = expected_versions or {}
        timestamp = datetime.now(timezone.utc)

        with self._session_factory.begin() as session:
            ledger = EventLedger(session)
            ledger.lock_unresolved(fault_context.event_id)
            _check_open_targets(plan, fault_context)

            faulted = self._lock_connection(session, fault_context.connection_id, expected_versions)
            faulted.connection_status = ConnectionStatus.CUT.value
            faulted.is_faulty = True
            # Ошибки БД должны всплыть до того, как команда ушла на устройство
            session.flush()
            commands.send_switch_command(
                SwitchCommand(
                    connection_id=fault_context.connection_id,
                    command=SwitchCommandType.OPEN,
                    source=self._command_source,
                    reason=ISOLATION_COMMAND_REASON,
                    timestamp=timestamp,
                )
            )

            for action in plan.actions:
                if action.action is ActionType.OPEN_SWITCH:
                    # Изоляция уже выполнена выше
                    pass
                elif action.action is ActionType.CLOSE_SWITCH:
                    self._close_tie(session, commands, action, expected_versions, timestamp)
                elif action.action is ActionType.NOTIFY:
                    logger.warning(
                        f"🚨 Operator escalation for connection {action.target_connection_id}: "
                        f"{action.reason}"
                    )
                else:
                    raise TransactionError(f"Unsupported restoration action: {action.action!r}")

                ledger.append(
                    EventType.SERVICE_RESTORATION,
                    describe_action(action),
                    resolved=True,
                )

            ledger.append(
                EventType.FAULT_ANALYSIS,
                describe_analysis(fault_context, distance),
                resolved=True,
                zone_id=fault_context.from_zone_id,
            )
            ledger.mark_resolved(fault_context.event_id)

        logger.info(
            f"💾 Restoration for fault event {fault_context.event_id} committed "
            f"({len(plan.actions)} actions)"
        )

    def _lock_connection(
        self,
        session: Session,
        connection_id: str,
        expected_versions: dict[str, int],
    ) -> GridConnection:
        row = session.get(GridConnection, connection_id, with_for_update=True)
        if row is None:
            raise TransactionError(f"Connection {connection_id} does not exist")

        expected = expected_versions.get(connection_id)
        if expected is not None and row.version != expected:
            raise TopologyChangedError(
                f"Connection {connection_id} changed since topology was read "
                f"(version {expected} -> {row.version})"
            )
        return row

    def _close_tie(
        self,
        session: Session,
        commands: CommandChannel,
        action: RestorationAction,
        expected_versions: dict[str, int],
        timestamp: datetime,
    ) -> None:
        row = self._lock_connection(session, action.target_connection_id, expected_versions)
        row.connection_status = ConnectionStatus.ACTIVE.value
        row.is_faulty = False
        session.flush()
        commands.send_switch_command(
            SwitchCommand(
                connection_id=action.target_connection_id,
                command=SwitchCommandType.CLOSE,
                source=self._command_source,
                reason=action.reason,
                timestamp=timestamp,
            )
        )
