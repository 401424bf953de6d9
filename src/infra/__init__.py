"""
Инфраструктурный слой.
Работа с внешними системами: PostgreSQL, RabbitMQ; повторы вызовов.
"""

from src.infra.database import DatabaseManager, get_db
from src.infra.event_bus import EventBus, get_event_bus
from src.infra.retry import retry_async, retry_on_connection_error

__all__ = [
    "DatabaseManager",
    "get_db",
    "EventBus",
    "get_event_bus",
    "retry_async",
    "retry_on_connection_error",
]
