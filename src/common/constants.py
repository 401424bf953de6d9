# src/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Префикс маршрутов HTTP API всех сервисов
API_PREFIX = "/api/v1"

# Заголовок, которым сервисы передают ключ идемпотентности
IDEMPOTENCY_HEADER = "Idempotency-Key"
