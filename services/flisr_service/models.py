# services/flisr_service/models.py

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base, FLISR_SCHEMA


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Zone(Base):
    """
    Зона сети: участок фидера или точка секционирования (tie).
    Статус выставляется телеметрией и workflow FLISR, лениво не вычисляется.
    """
    __tablename__ = "zones"
    __table_args__ = {"schema": FLISR_SCHEMA}

    zone_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    feeder_number: Mapped[int] = mapped_column(Integer, nullable=False)
    location_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="NORMAL")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


class GridConnection(Base):
    """
    Связь между двумя зонами: участок линии с коммутационным аппаратом.
    Хранит погонные параметры линии для расчёта места повреждения.
    """
    __tablename__ = "grid_connections"
    __table_args__ = (
        CheckConstraint("length_km > 0", name="ck_grid_connections_length_positive"),
        CheckConstraint("inductance_h_km > 0", name="ck_grid_connections_inductance_positive"),
        CheckConstraint("capacitance_f_km > 0", name="ck_grid_connections_capacitance_positive"),
        CheckConstraint(
            "connection_status IN ('ACTIVE', 'INACTIVE', 'CUT')",
            name="ck_grid_connections_status",
        ),
        # CUT всегда означает повреждённый участок
        CheckConstraint(
            "connection_status != 'CUT' OR is_faulty",
            name="ck_grid_connections_cut_is_faulty",
        ),
        {"schema": FLISR_SCHEMA},
    )

    connection_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    from_zone_id: Mapped[str] = mapped_column(
        String(36), ForeignKey(f"{FLISR_SCHEMA}.zones.zone_id"), nullable=False, index=True
    )
    to_zone_id: Mapped[str] = mapped_column(
        String(36), ForeignKey(f"{FLISR_SCHEMA}.zones.zone_id"), nullable=False, index=True
    )
    connection_status: Mapped[str] = mapped_column(String(50), nullable=False, default="ACTIVE")
    is_faulty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Физические параметры линии
    length_km: Mapped[float] = mapped_column(Float, nullable=False)
    resistance_ohm_km: Mapped[float] = mapped_column(Float, nullable=False)
    inductance_h_km: Mapped[float] = mapped_column(Float, nullable=False)
    capacitance_f_km: Mapped[float] = mapped_column(Float, nullable=False)

    # Версия строки для оптимистической блокировки
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __mapper_args__ = {"version_id_col": version}


class EventLog(Base):
    """
    Журнал событий (аудит): повреждения, шаги восстановления, итоги анализа.
    Записи только добавляются; меняться может лишь флаг resolved.
    """
    __tablename__ = "event_log"
    __table_args__ = {"schema": FLISR_SCHEMA}

    event_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    zone_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey(f"{FLISR_SCHEMA}.zones.zone_id"), nullable=True, index=True
    )
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class FaultWaveform(Base):
    """
    Пара меток времени прихода волны на концы линии (нс) для события FAULT.
    Захват осциллограмм выполняется на стороне устройств.
    """
    __tablename__ = "fault_waveforms"
    __table_args__ = {"schema": FLISR_SCHEMA}

    waveform_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{FLISR_SCHEMA}.event_log.event_id"), nullable=False, index=True
    )
    connection_id: Mapped[str] = mapped_column(
        String(36), ForeignKey(f"{FLISR_SCHEMA}.grid_connections.connection_id"), nullable=False
    )
    timestamp_a: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp_b: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
