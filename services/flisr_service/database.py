# services/flisr_service/database.py

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import settings

# URL базы: берём из окружения (docker-compose / .env)
DATABASE_URL = settings.DATABASE_URL

# Отдельная схема для flisr_service
FLISR_SCHEMA = "flisr"

# У SQLite нет пула с ожиданием соединения, pool_timeout там не принимается
_engine_kwargs = {"pool_pre_ping": True, "future": True}
if not DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["pool_timeout"] = settings.DB_POOL_TIMEOUT

# Движок SQLAlchemy
engine = create_engine(DATABASE_URL, **_engine_kwargs)

# Фабрика сессий
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


class Base(DeclarativeBase):
    """Базовый класс моделей SQLAlchemy для flisr_service."""
    pass


def ensure_schema() -> None:
    """Создаёт схему flisr, если она ещё не существует."""
    with engine.begin() as conn:
        conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{FLISR_SCHEMA}"'))


def get_db():
    """Зависимость FastAPI для получения сессии БД."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
