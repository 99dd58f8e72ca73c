import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Конфигурация flisr_service — сервиса локализации повреждений,
    изоляции участка и восстановления питания (FLISR).
    Загружается из переменных окружения (.env) или docker-compose.
    """

    # --- Общая информация ---
    SERVICE_NAME: str = "FLISR Service"
    VERSION: str = "1.0.0"
    ENV: str = os.getenv("ENV", "dev")

    # --- Подключение к БД ---
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://postgres:postgres@db:5432/diploma"
    )
    DB_POOL_TIMEOUT: float = 10.0     # ожидание свободного соединения из пула (сек)

    # --- Топология сети ---
    TIE_FEEDER_NUMBER: int = 99       # зарезервированный номер фидера для зоны секционирования

    # --- Канал команд (MQTT) ---
    COMMAND_SOURCE: str = "FLISR"
    MQTT_BROKER_URL: str = os.getenv("MQTT_BROKER_URL", "mqtt://localhost:1883")
    MQTT_USERNAME: str = os.getenv("MQTT_USERNAME", "")
    MQTT_PASSWORD: str = os.getenv("MQTT_PASSWORD", "")
    MQTT_CLIENT_ID: str = os.getenv("MQTT_CLIENT_ID", "flisr-service")
    MQTT_TOPIC_PREFIX: str = "smart-grid"
    MQTT_QOS: int = 1
    MQTT_KEEPALIVE: int = 30

    # --- API ---
    EVENTS_DEFAULT_LIMIT: int = 100

    # --- Логирование ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = False            # JSON-строки в stdout вместо цветного формата

    # --- Метрики ---
    METRICS_ENABLED: bool = True
    METRICS_PATH: str = "/metrics"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Единый экземпляр конфигурации для импорта
settings = Settings()
