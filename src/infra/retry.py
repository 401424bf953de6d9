# src/infra/retry.py
"""
Повторы с ограниченной линейной задержкой.

retry_on_connection_error: декоратор для обращений к PostgreSQL.
retry_async: повтор произвольной корутины: им обёрнуты захват водителя,
компенсация и побочные эффекты терминальных статусов.
"""

from __future__ import annotations

import asyncio
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

import asyncpg

from src.common.logger import log_error, log_warning

T = TypeVar("T")

# Ошибки подключения, после которых запрос к БД можно повторить
CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    delay: float,
    retry_on: tuple[type[BaseException], ...],
    description: str = "операция",
) -> T:
    """
    Выполняет операцию, повторяя её при ошибках из retry_on.

    Задержка перед попыткой N равна delay * N. Ошибки, не входящие
    в retry_on, пробрасываются сразу. После последней неудачной попытки
    пробрасывается последняя ошибка.

    Args:
        operation: Фабрика корутины (вызывается заново на каждой попытке)
        attempts: Максимальное количество попыток (>= 1)
        delay: Базовая задержка между попытками (секунды)
        retry_on: Типы исключений, при которых делается повтор
        description: Описание операции для логов
    """
    attempts = max(1, attempts)
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            last_error = e
            if attempt < attempts:
                await log_warning(
                    f"{description}: ошибка (попытка {attempt}/{attempts}): {e}",
                )
                await asyncio.sleep(delay * attempt)
            else:
                await log_error(f"{description}: не выполнено после {attempts} попыток: {e}")

    raise last_error  # type: ignore[misc]


def retry_on_connection_error(
    max_attempts: int = 3,
    delay: float = 1.0,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Декоратор для автоматического ретрая при ошибках подключения к БД.

    Args:
        max_attempts: Максимальное количество попыток
        delay: Задержка между попытками (секунды)
    """
    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async(
                lambda: func(*args, **kwargs),
                attempts=max_attempts,
                delay=delay,
                retry_on=CONNECTION_ERRORS,
                description=f"БД {func.__name__}",
            )

        return wrapper

    return decorator
