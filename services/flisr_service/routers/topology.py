from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from flisr.types import ConnectionStatus, EventType
from models import EventLog, FaultWaveform, GridConnection, Zone
from schemas import ConnectionIn, ConnectionOut, TopologyOut, ZoneIn, ZoneOut
from utils.logging import setup_logging

logger = setup_logging()

router = APIRouter(prefix="/api/v1/topology", tags=["topology"])


@router.get("", response_model=TopologyOut)
async def get_topology(db: Session = Depends(get_db)):
    """
    Текущая структура сети: зоны, связи и активные (неразрешённые) повреждения.
    """
    zones = db.scalars(select(Zone).order_by(Zone.created_at, Zone.zone_id)).all()
    connections = db.scalars(
        select(GridConnection).order_by(GridConnection.connection_id)
    ).all()

    fault_counts = dict(
        db.execute(
            select(EventLog.zone_id, func.count(EventLog.event_id))
            .where(
                EventLog.zone_id.is_not(None),
                EventLog.event_type == EventType.FAULT.value,
                EventLog.resolved.is_(False),
            )
            .group_by(EventLog.zone_id)
        ).all()
    )
    active_fault_events = dict(
        db.execute(
            select(FaultWaveform.connection_id, func.max(EventLog.event_id))
            .join(EventLog, EventLog.event_id == FaultWaveform.event_id)
            .where(
                EventLog.event_type == EventType.FAULT.value,
                EventLog.resolved.is_(False),
            )
            .group_by(FaultWaveform.connection_id)
        ).all()
    )

    tie_zone_ids = {
        zone.zone_id for zone in zones if zone.feeder_number == settings.TIE_FEEDER_NUMBER
    }

    zones_out = [
        ZoneOut(
            zone_id=zone.zone_id,
            feeder_number=zone.feeder_number,
            location_description=zone.location_description,
            status=zone.status,
            is_tie=zone.zone_id in tie_zone_ids,
            active_faults=fault_counts.get(zone.zone_id, 0),
        )
        for zone in zones
    ]
    connections_out = []
    for conn in connections:
        item = ConnectionOut.model_validate(conn)
        item.active_fault_event_id = active_fault_events.get(conn.connection_id)
        connections_out.append(item)

    tie_closed = any(
        conn.connection_status == ConnectionStatus.ACTIVE.value
        and (conn.from_zone_id in tie_zone_ids or conn.to_zone_id in tie_zone_ids)
        for conn in connections
    )

    logger.debug(f"🗺️ Topology: {len(zones_out)} zones, {len(connections_out)} connections")
    return TopologyOut(zones=zones_out, connections=connections_out, tie_closed=tie_closed)


@router.post("/zones", response_model=ZoneOut, status_code=201)
async def create_zone(payload: ZoneIn, db: Session = Depends(get_db)):
    """Добавляет зону (первичная настройка топологии)."""
    zone = Zone(
        feeder_number=payload.feeder_number,
        location_description=payload.location_description,
        status=payload.status.value,
    )
    db.add(zone)
    db.commit()
    db.refresh(zone)

    logger.info(f"🏷️ Zone created: {zone.zone_id} (feeder {zone.feeder_number})")
    return ZoneOut(
        zone_id=zone.zone_id,
        feeder_number=zone.feeder_number,
        location_description=zone.location_description,
        status=zone.status,
        is_tie=zone.feeder_number == settings.TIE_FEEDER_NUMBER,
    )


@router.post("/connections", response_model=ConnectionOut, status_code=201)
async def create_connection(payload: ConnectionIn, db: Session = Depends(get_db)):
    """Добавляет связь между двумя существующими зонами."""
    for zone_id in (payload.from_zone_id, payload.to_zone_id):
        if db.get(Zone, zone_id) is None:
            raise HTTPException(status_code=404, detail=f"Zone {zone_id} not found")

    conn = GridConnection(
        from_zone_id=payload.from_zone_id,
        to_zone_id=payload.to_zone_id,
        connection_status=payload.connection_status.value,
        is_faulty=payload.is_faulty,
        length_km=payload.length_km,
        resistance_ohm_km=payload.resistance_ohm_km,
        inductance_h_km=payload.inductance_h_km,
        capacitance_f_km=payload.capacitance_f_km,
    )
    db.add(conn)
    db.commit()
    db.refresh(conn)

    logger.info(
        f"🔗 Connection created: {conn.connection_id} "
        f"({conn.from_zone_id} -> {conn.to_zone_id}, {conn.connection_status})"
    )
    return ConnectionOut.model_validate(conn)
