# services/flisr_service/main.py

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from utils.logging import setup_logging
from database import engine, ensure_schema
from models import Base
from config import settings
from flisr.commands import MqttCommandChannel
from routers import events as events_router
from routers import flisr as flisr_router
from routers import topology as topology_router

# --- Инициализация приложения ---
logger = setup_logging()

app = FastAPI(
    title=settings.SERVICE_NAME,
    version=settings.VERSION,
    description=(
        "FLISR Service — определение места повреждения, изоляция участка "
        "и восстановление питания через резервную связь."
    ),
)

# Метрики Prometheus — доступны на /metrics
if settings.METRICS_ENABLED:
    Instrumentator().instrument(app).expose(
        app, endpoint=settings.METRICS_PATH, include_in_schema=False
    )


# --- События приложения ---
@app.on_event("startup")
def startup_event():
    """Создание схемы и таблиц, подключение канала команд."""
    ensure_schema()
    Base.metadata.create_all(bind=engine)

    channel = MqttCommandChannel.from_settings(settings)
    channel.start()
    app.state.command_channel = channel

    logger.info("⚡ flisr_service started and schema ensured.")


@app.on_event("shutdown")
def shutdown_event():
    channel = getattr(app.state, "command_channel", None)
    if channel is not None:
        channel.stop()
    logger.info("🛑 flisr_service stopped.")


# --- Ошибки валидации: 400 вместо стандартного 422 ---
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"⚠️ Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid input.", "detail": jsonable_encoder(exc.errors())},
    )


# --- Health & readiness ---
@app.get("/health", tags=["system"])
async def health():
    return {"status": "ok", "service": "flisr_service"}


@app.get("/ready", tags=["system"])
async def ready():
    return {"status": "ready"}


@app.get("/", include_in_schema=False)
async def root():
    return {"message": "FLISR Service is operational"}


# --- Маршруты доменной логики ---
app.include_router(flisr_router.router)
app.include_router(topology_router.router)
app.include_router(events_router.router)
