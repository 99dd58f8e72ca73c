from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from flisr.store import EventLedger
from flisr.types import EventType
from models import EventLog, FaultWaveform, GridConnection, Zone
from schemas import EventLogOut, FaultEventIn, FaultEventOut
from utils.logging import setup_logging

logger = setup_logging()

router = APIRouter(prefix="/api/v1/events", tags=["events"])


@router.get("", response_model=List[EventLogOut])
async def list_events(
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """
    Последние N записей журнала событий (аудит FLISR, повреждения и т.п.),
    от новых к старым.
    """
    if limit is None:
        limit = settings.EVENTS_DEFAULT_LIMIT
    if limit <= 0:
        raise HTTPException(status_code=400, detail="limit must be positive")

    rows = db.execute(
        select(EventLog, Zone.location_description)
        .outerjoin(Zone, Zone.zone_id == EventLog.zone_id)
        .order_by(EventLog.timestamp.desc(), EventLog.event_id.desc())
        .limit(limit)
    ).all()

    return [
        EventLogOut(
            event_id=event.event_id,
            event_type=event.event_type,
            description=event.description,
            timestamp=event.timestamp,
            resolved=event.resolved,
            zone_id=event.zone_id,
            zone_name=zone_name,
        )
        for event, zone_name in rows
    ]


@router.post("/faults", response_model=FaultEventOut, status_code=201)
async def register_fault(payload: FaultEventIn, db: Session = Depends(get_db)):
    """
    Регистрирует обнаруженное повреждение: запись FAULT в журнале
    (неразрешённая, привязана к зоне со стороны источника) и пару меток
    времени прихода волны. После этого по event_id можно запускать FLISR.
    """
    conn = db.get(GridConnection, payload.connection_id)
    if conn is None:
        raise HTTPException(status_code=404, detail=f"Connection {payload.connection_id} not found")

    event = EventLedger(db).append(
        EventType.FAULT,
        payload.description,
        resolved=False,
        zone_id=conn.from_zone_id,
    )
    db.flush()

    db.add(
        FaultWaveform(
            event_id=event.event_id,
            connection_id=conn.connection_id,
            timestamp_a=payload.timestamp_a,
            timestamp_b=payload.timestamp_b,
        )
    )
    db.commit()

    logger.warning(
        f"🚨 Fault registered: event_id={event.event_id}, connection={conn.connection_id}"
    )
    return FaultEventOut(
        event_id=event.event_id,
        connection_id=conn.connection_id,
        zone_id=event.zone_id,
        timestamp_a=payload.timestamp_a,
        timestamp_b=payload.timestamp_b,
        description=event.description,
        resolved=event.resolved,
    )
