import sys

from loguru import logger

from config import settings

# Роутеры и main вызывают setup_logging() при импорте; синки добавляем один раз
_configured = False

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>flisr</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging():
    """
    Настраивает loguru для flisr_service и возвращает общий logger.

    В dev пишем в stdout цветной однострочный формат. При LOG_JSON=true
    каждая запись уходит в stdout одной JSON-строкой (для Loki/ELK),
    туда же попадают extra-поля, привязанные через logger.bind().
    """
    global _configured
    if _configured:
        return logger

    logger.remove()
    level = settings.LOG_LEVEL.upper()

    if settings.LOG_JSON:
        logger.add(sys.stdout, serialize=True, level=level, enqueue=True)
    else:
        logger.add(
            sys.stdout,
            colorize=True,
            format=_CONSOLE_FORMAT,
            level=level,
            enqueue=True,       # записи приходят и из пула потоков FastAPI, и из сетевого цикла MQTT
            backtrace=False,
            diagnose=False,
        )

    _configured = True
    logger.debug(f"📜 flisr_service logging ready (level={level}, json={settings.LOG_JSON})")
    return logger
