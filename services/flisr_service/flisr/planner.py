"""\
Планирование восстановления питания после повреждения.

План всегда начинается с отключения повреждённого участка. Затем ищется
нормально разомкнутая (INACTIVE) исправная связь, примыкающая к одной из
концевых зон повреждённой линии: через неё нагрузка запитывается с другой
стороны. Если такой связи нет, план эскалируется оператору (выезд бригады).

Планировщик не обращается к хранилищу и не изменяет переданные снимки.
"""

from typing import Iterable, Optional, Sequence

from flisr.types import (
    ActionType,
    ConnectionState,
    ConnectionStatus,
    FaultContext,
    RestorationAction,
    RestorationPlan,
    ZoneState,
)

ISOLATE_REASON = "Isolate the faulted segment."
BACKFEED_REASON = "Backfeed through alternate healthy path."
ESCALATE_REASON = "No automated restoration path available."
ESCALATION_DISPATCH_CREW = "DISPATCH_CREW"


def is_tie_candidate(connection: ConnectionState, fault_context: FaultContext) -> bool:
    if connection.connection_id == fault_context.connection_id:
        return False
    if connection.connection_status != ConnectionStatus.INACTIVE:
        return False
    if connection.is_faulty:
        return False
    return connection.touches(fault_context.from_zone_id) or connection.touches(
        fault_context.to_zone_id
    )


def find_tie_candidate(
    fault_context: FaultContext,
    connections: Iterable[ConnectionState],
) -> Optional[ConnectionState]:
    """
    Подходящая связь секционирования или None.
    При нескольких кандидатах выбирается связь с наименьшим идентификатором,
    чтобы результат не зависел от порядка строк из хранилища.
    """
    candidates = [conn for conn in connections if is_tie_candidate(conn, fault_context)]
    if not candidates:
        return None
    return min(candidates, key=lambda conn: conn.connection_id)


def plan(
    fault_context: FaultContext,
    zones: Sequence[ZoneState],
    connections: Sequence[ConnectionState],
) -> RestorationPlan:
    zone_names = {zone.zone_id: zone.location_description for zone in zones}

    actions = [
        RestorationAction(
            action=ActionType.OPEN_SWITCH,
            target_connection_id=fault_context.connection_id,
            reason=ISOLATE_REASON,
            metadata={
                "event_id": fault_context.event_id,
                "from_zone_id": fault_context.from_zone_id,
                "to_zone_id": fault_context.to_zone_id,
            },
        )
    ]
    rationale = [
        f"Fault located on connection {fault_context.connection_id} between zones "
        f"{fault_context.from_zone_label} and {fault_context.to_zone_label}."
    ]

    tie = find_tie_candidate(fault_context, connections)

    if tie is not None:
        actions.append(
            RestorationAction(
                action=ActionType.CLOSE_SWITCH,
                target_connection_id=tie.connection_id,
                reason=BACKFEED_REASON,
                metadata={
                    "from_zone_id": tie.from_zone_id,
                    "to_zone_id": tie.to_zone_id,
                    "from_zone_name": zone_names.get(tie.from_zone_id),
                    "to_zone_name": zone_names.get(tie.to_zone_id),
                },
            )
        )
        rationale.append(
            f"Tie switch {tie.connection_id} selected "
            f"(currently {tie.connection_status.value})."
        )
    else:
        actions.append(
            RestorationAction(
                action=ActionType.NOTIFY,
                target_connection_id=fault_context.connection_id,
                reason=ESCALATE_REASON,
                metadata={"escalation": ESCALATION_DISPATCH_CREW},
            )
        )
        rationale.append(
            "No viable tie switch found. Escalating to operator for manual restoration."
        )

    return RestorationPlan(actions=tuple(actions), rationale=tuple(rationale))
