# src/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секреты и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ridenow"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"


class DeploymentSettings(BaseModel):
    """Адреса и порты компонентов."""
    USERS_SERVICE_HOST: str = "users_service"
    USERS_SERVICE_PORT: int = 8084
    RIDE_SERVICE_HOST: str = "ride_service"
    RIDE_SERVICE_PORT: int = 8085
    PAYMENTS_PROCESSOR_URL: str = ""

    @property
    def users_service_url(self) -> str:
        """Базовый URL реестра водителей и пассажиров."""
        return f"http://{self.USERS_SERVICE_HOST}:{self.USERS_SERVICE_PORT}/api/v1"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ridenow"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 5
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL."""
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "ridenow.events"

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        env_pass = os.getenv("RABBITMQ_PASSWORD", "")
        if env_pass:
            return env_pass
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class FareSettings(BaseModel):
    """
    Настройки тарифов.

    ZONE_FARES: фиксированные цены известных маршрутов, ключ "зона|зона"
    в нижнем регистре (направление не важно).
    """
    BASE_FARE: float = 10.0
    FARE_PER_BAND: float = 4.5
    DISTANCE_BANDS: int = 8
    MIN_FARE: float = 8.0
    CURRENCY: str = "EUR"
    ZONE_FARES: dict[str, float] = Field(default_factory=lambda: {
        "downtown|airport": 25.5,
        "suburbs|city center": 18.75,
        "beach|hotel district": 32.0,
        "university|train station": 15.25,
    })


class TimeoutSettings(BaseModel):
    """Таймауты сетевых вызовов и интервалы фоновых задач (секунды)."""
    REGISTRY_TIMEOUT: float = 5.0
    PAYMENT_TIMEOUT: float = 5.0
    RIDE_WRITE_TIMEOUT: float = 5.0
    RECONCILIATION_INTERVAL: int = 30
    RECONCILIATION_BATCH_SIZE: int = 50
    # Потолок задержки повтора задачи сверки: интервал удваивается с каждой неудачей
    RECONCILIATION_MAX_BACKOFF: int = 600


class RetrySettings(BaseModel):
    """Параметры повторов с ограниченной задержкой."""
    CLAIM_ATTEMPTS: int = 3
    COMPENSATION_ATTEMPTS: int = 5
    SIDE_EFFECT_ATTEMPTS: int = 3
    RETRY_DELAY: float = 0.5
    CLAIM_SELECTION_ATTEMPTS: int = 5


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    fares: FareSettings = Field(default_factory=FareSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        config_data = load_config_json()

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        def pick(section: type[BaseModel], env_keys: tuple[str, ...] = ()) -> dict[str, Any]:
            """Выбирает поля секции из config.json, env имеет приоритет."""
            values = {name: data[name] for name in section.model_fields if name in data}
            for key in env_keys:
                env_value = os.getenv(key)
                if env_value is not None:
                    values[key] = env_value
            return values

        return cls(
            system=SystemSettings(**pick(SystemSettings, ("COMPONENT_MODE", "ENVIRONMENT"))),
            deployment=DeploymentSettings(**pick(
                DeploymentSettings,
                (
                    "USERS_SERVICE_HOST",
                    "USERS_SERVICE_PORT",
                    "RIDE_SERVICE_HOST",
                    "RIDE_SERVICE_PORT",
                    "PAYMENTS_PROCESSOR_URL",
                ),
            )),
            logging=LoggingSettings(**pick(LoggingSettings, ("LOG_LEVEL", "LOG_FORMAT"))),
            database=DatabaseSettings(**pick(
                DatabaseSettings,
                ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASSWORD"),
            )),
            rabbitmq=RabbitMQSettings(**pick(
                RabbitMQSettings,
                ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER", "RABBITMQ_PASSWORD"),
            )),
            fares=FareSettings(**pick(FareSettings)),
            timeouts=TimeoutSettings(**pick(TimeoutSettings)),
            retry=RetrySettings(**pick(RetrySettings)),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Перед чтением config.json подгружает .env из корня проекта.
    """
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
