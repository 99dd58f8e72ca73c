# services/flisr_service/schemas.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flisr.types import ActionType, ConnectionStatus, FlisrOutcome, ZoneStatus


# ------------------------------------------------------------
#  ЗАПУСК FLISR
# ------------------------------------------------------------

class FlisrTriggerRequest(BaseModel):
    """Тело запроса на запуск FLISR для зарегистрированного события повреждения."""
    fault_event_id: int = Field(gt=0, strict=True, description="ID события FAULT в журнале")


class FaultAnalysisOut(BaseModel):
    """Результат определения места повреждения."""
    fault_event_id: int
    fault_connection_id: str
    from_zone: str = Field(description="Имя (или ID) зоны со стороны источника")
    to_zone: str = Field(description="Имя (или ID) зоны со стороны нагрузки")
    propagation_speed_m_s: float = Field(description="Скорость распространения волны, м/с")
    time_delta_s: float = Field(description="Разность времён прихода волны t_a - t_b, с")
    distance_from_source_m: float
    distance_from_end_m: float
    line_length_m: float
    confidence: float = Field(ge=0, le=1)
    clamped: bool = Field(description="Оценка прижата к концу линии")


class RestorationActionOut(BaseModel):
    action: ActionType
    target_connection_id: str
    reason: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RestorationPlanOut(BaseModel):
    actions: List[RestorationActionOut]
    rationale: List[str]


class FlisrRunResponse(BaseModel):
    message: str
    fault_analysis: FaultAnalysisOut
    service_restoration: RestorationPlanOut

    @classmethod
    def from_outcome(cls, outcome: FlisrOutcome) -> "FlisrRunResponse":
        context, distance, plan = outcome.fault_context, outcome.distance, outcome.plan
        return cls(
            message="FLISR process completed successfully.",
            fault_analysis=FaultAnalysisOut(
                fault_event_id=context.event_id,
                fault_connection_id=context.connection_id,
                from_zone=context.from_zone_label,
                to_zone=context.to_zone_label,
                propagation_speed_m_s=round(distance.propagation_speed_m_s),
                time_delta_s=round(distance.time_delta_s, 9),
                distance_from_source_m=round(distance.distance_from_source_m, 2),
                distance_from_end_m=round(distance.distance_from_end_m, 2),
                line_length_m=distance.line_length_m,
                confidence=distance.confidence,
                clamped=distance.clamped,
            ),
            service_restoration=RestorationPlanOut(
                actions=[
                    RestorationActionOut(
                        action=action.action,
                        target_connection_id=action.target_connection_id,
                        reason=action.reason,
                        metadata=dict(action.metadata),
                    )
                    for action in plan.actions
                ],
                rationale=list(plan.rationale),
            ),
        )


# ------------------------------------------------------------
#  ТОПОЛОГИЯ
# ------------------------------------------------------------

class ZoneIn(BaseModel):
    """Создание зоны при первичной настройке топологии."""
    feeder_number: int = Field(ge=1, description="Номер фидера; зарезервированный номер — зона tie")
    location_description: Optional[str] = Field(default=None, max_length=255)
    status: ZoneStatus = ZoneStatus.NORMAL


class ZoneOut(BaseModel):
    zone_id: str
    feeder_number: int
    location_description: Optional[str] = None
    status: str
    is_tie: bool = False
    active_faults: int = Field(default=0, description="Неразрешённые события FAULT по зоне")

    model_config = ConfigDict(from_attributes=True)


class ConnectionIn(BaseModel):
    """Создание связи (участок линии с коммутационным аппаратом)."""
    from_zone_id: str
    to_zone_id: str
    connection_status: ConnectionStatus = ConnectionStatus.ACTIVE
    is_faulty: bool = False
    length_km: float = Field(gt=0)
    resistance_ohm_km: float = Field(ge=0)
    inductance_h_km: float = Field(gt=0)
    capacitance_f_km: float = Field(gt=0)

    @model_validator(mode="after")
    def check_consistency(self) -> "ConnectionIn":
        if self.from_zone_id == self.to_zone_id:
            raise ValueError("from_zone_id and to_zone_id must differ")
        if self.connection_status == ConnectionStatus.CUT and not self.is_faulty:
            raise ValueError("CUT connection must be marked as faulty")
        return self


class ConnectionOut(BaseModel):
    connection_id: str
    from_zone_id: str
    to_zone_id: str
    connection_status: ConnectionStatus
    is_faulty: bool
    length_km: float
    resistance_ohm_km: float
    inductance_h_km: float
    capacitance_f_km: float
    version: int
    updated_at: Optional[datetime] = None
    active_fault_event_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class TopologyOut(BaseModel):
    zones: List[ZoneOut]
    connections: List[ConnectionOut]
    tie_closed: bool = Field(description="Хотя бы одна связь зоны tie замкнута (ACTIVE)")


# ------------------------------------------------------------
#  ЖУРНАЛ СОБЫТИЙ
# ------------------------------------------------------------

class EventLogOut(BaseModel):
    event_id: int
    event_type: str
    description: str
    timestamp: datetime
    resolved: bool
    zone_id: Optional[str] = None
    zone_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# Диапазон колонки BIGINT
BIGINT_MIN = -2 ** 63
BIGINT_MAX = 2 ** 63 - 1


class FaultEventIn(BaseModel):
    """Регистрация обнаруженного повреждения с парой меток времени (нс)."""
    connection_id: str
    timestamp_a: int = Field(
        ge=BIGINT_MIN, le=BIGINT_MAX, description="Время прихода волны на конец A, нс"
    )
    timestamp_b: int = Field(
        ge=BIGINT_MIN, le=BIGINT_MAX, description="Время прихода волны на конец B, нс"
    )
    description: str = Field(
        default="Overcurrent fault detected", min_length=1, max_length=1000
    )


class FaultEventOut(BaseModel):
    event_id: int
    connection_id: str
    zone_id: Optional[str] = None
    timestamp_a: int
    timestamp_b: int
    description: str
    resolved: bool
