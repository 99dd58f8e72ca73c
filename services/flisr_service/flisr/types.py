"""Типы ядра FLISR: перечисления состояний и неизменяемые снимки данных."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ZoneStatus(str, Enum):
    NORMAL = "NORMAL"
    FAULT = "FAULT"
    TRIPPED = "TRIPPED"
    ISOLATED = "ISOLATED"
    LOCKOUT = "LOCKOUT"
    OFFLINE = "OFFLINE"
    MANUAL = "MANUAL"


class ConnectionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    CUT = "CUT"


class ActionType(str, Enum):
    OPEN_SWITCH = "OPEN_SWITCH"
    CLOSE_SWITCH = "CLOSE_SWITCH"
    NOTIFY = "NOTIFY"


class SwitchCommandType(str, Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"


class EventType(str, Enum):
    FAULT = "FAULT"
    STATUS_UPDATE = "STATUS_UPDATE"
    SERVICE_RESTORATION = "SERVICE_RESTORATION"
    FAULT_ANALYSIS = "FAULT_ANALYSIS"


class WorkflowStage(str, Enum):
    LOAD_CONTEXT = "LOAD_CONTEXT"
    COMPUTE_DISTANCE = "COMPUTE_DISTANCE"
    LOAD_TOPOLOGY = "LOAD_TOPOLOGY"
    PLAN = "PLAN"
    PERSIST = "PERSIST"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ZoneState:
    zone_id: str
    feeder_number: int
    location_description: Optional[str]
    # Телеметрия может выставлять и переходные статусы вне ZoneStatus
    status: str


@dataclass(frozen=True)
class ConnectionState:
    connection_id: str
    from_zone_id: str
    to_zone_id: str
    connection_status: ConnectionStatus
    is_faulty: bool
    length_km: float
    resistance_ohm_km: float
    inductance_h_km: float
    capacitance_f_km: float
    version: int = 1

    def touches(self, zone_id: str) -> bool:
        return zone_id in (self.from_zone_id, self.to_zone_id)


@dataclass(frozen=True)
class Topology:
    """Снимок всех зон и связей на момент чтения."""
    zones: tuple[ZoneState, ...]
    connections: tuple[ConnectionState, ...]

    def versions(self) -> dict[str, int]:
        return {conn.connection_id: conn.version for conn in self.connections}


@dataclass(frozen=True)
class FaultContext:
    """
    Событие повреждения вместе с линией, на которой оно произошло,
    и именами концевых зон. Метки времени в том виде, как их вернуло хранилище
    (int или строка с целым числом наносекунд).
    """
    event_id: int
    connection_id: str
    from_zone_id: str
    to_zone_id: str
    length_km: float
    inductance_h_per_km: float
    capacitance_f_per_km: float
    timestamp_a: Any
    timestamp_b: Any
    from_zone_name: Optional[str] = None
    to_zone_name: Optional[str] = None
    description: Optional[str] = None
    event_timestamp: Optional[datetime] = None

    @property
    def from_zone_label(self) -> str:
        return self.from_zone_name or self.from_zone_id

    @property
    def to_zone_label(self) -> str:
        return self.to_zone_name or self.to_zone_id


@dataclass(frozen=True)
class FaultDistanceResult:
    distance_from_source_m: float
    distance_from_end_m: float
    line_length_m: float
    propagation_speed_m_s: float
    time_delta_s: float
    clamped: bool
    confidence: float


@dataclass(frozen=True)
class RestorationAction:
    action: ActionType
    target_connection_id: str
    reason: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RestorationPlan:
    actions: tuple[RestorationAction, ...]
    rationale: tuple[str, ...]


@dataclass(frozen=True)
class SwitchCommand:
    connection_id: str
    command: SwitchCommandType
    source: str
    reason: str
    timestamp: datetime


@dataclass(frozen=True)
class FlisrOutcome:
    """То, что workflow возвращает вызывающей стороне (API/UI)."""
    fault_context: FaultContext
    distance: FaultDistanceResult
    plan: RestorationPlan
