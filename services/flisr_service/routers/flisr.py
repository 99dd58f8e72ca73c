from fastapi import APIRouter, Depends, HTTPException, Request

from config import settings
from database import SessionLocal
from flisr.commands import CommandChannel
from flisr.errors import FlisrError, NotFoundError
from flisr.service import FlisrService
from flisr.store import SqlAlchemyFlisrStore
from schemas import FlisrRunResponse, FlisrTriggerRequest
from utils.logging import setup_logging

logger = setup_logging()

router = APIRouter(prefix="/api/v1/flisr", tags=["flisr"])


# ---------- Зависимости ----------

def get_command_channel(request: Request) -> CommandChannel:
    """Канал команд создаётся при старте приложения и живёт в app.state."""
    return request.app.state.command_channel


def get_flisr_service(commands: CommandChannel = Depends(get_command_channel)) -> FlisrService:
    store = SqlAlchemyFlisrStore(SessionLocal, command_source=settings.COMMAND_SOURCE)
    return FlisrService(store=store, commands=commands)


# ---------- Эндпойнты ----------

@router.post("/run", response_model=FlisrRunResponse)
def run_flisr(req: FlisrTriggerRequest, service: FlisrService = Depends(get_flisr_service)):
    """
    Запускает FLISR (локализация, изоляция, восстановление) для события
    повреждения, уже записанного в журнал вместе с меткой осциллограммы.

    Обычная (не async) функция: транзакция и публикация команд блокирующие,
    FastAPI выполнит её в пуле потоков.
    """
    try:
        outcome = service.run(req.fault_event_id)
    except NotFoundError as e:
        logger.warning(f"⚠️ FLISR rejected: {e}")
        raise HTTPException(status_code=404, detail=str(e))
    except FlisrError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "message": "FLISR execution failed",
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
    except Exception as e:
        logger.exception(f"❌ Unexpected error during FLISR for event {req.fault_event_id}")
        raise HTTPException(
            status_code=500,
            detail={"message": "FLISR execution failed", "error": str(e)},
        )

    return FlisrRunResponse.from_outcome(outcome)
