import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool, text
from alembic import context

# Корень сервиса в sys.path: env.py запускается alembic'ом из alembic/
SERVICE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from config import settings  # noqa: E402
from database import Base, FLISR_SCHEMA  # noqa: E402
import models  # noqa: E402,F401  регистрирует таблицы в Base.metadata

config = context.config
config.set_main_option("sqlalchemy.url", os.getenv("DATABASE_URL", settings.DATABASE_URL))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

CREATE_SCHEMA_SQL = f'CREATE SCHEMA IF NOT EXISTS "{FLISR_SCHEMA}"'


def include_object(obj, name, type_, reflected, compare_to):
    """Autogenerate видит только таблицы схемы flisr, соседние сервисы не трогаем."""
    if type_ == "table":
        return obj.schema == FLISR_SCHEMA
    return True


def _configure_options() -> dict:
    return dict(
        target_metadata=Base.metadata,
        include_schemas=True,
        include_object=include_object,
        version_table_schema=FLISR_SCHEMA,
        compare_type=True,
    )


def run_migrations_offline() -> None:
    """SQL-скрипт миграций без подключения к БД (alembic upgrade --sql)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        **_configure_options(),
    )
    with context.begin_transaction():
        context.execute(CREATE_SCHEMA_SQL)
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        # Таблица версий alembic живёт в схеме flisr, она должна существовать заранее
        connection.execute(text(CREATE_SCHEMA_SQL))
        connection.commit()

        context.configure(connection=connection, **_configure_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
