# src/shared/errors.py
"""
Таксономия ошибок ядра диспетчеризации.

Клиентские ошибки (NotFound, ValidationError, InvalidTransition,
NoDriverAvailable) возвращаются синхронно и не повторяются.
UpstreamUnavailable: временный сбой зависимости после исчерпания повторов.
ReconciliationRequired не пробрасывается вызывающему коду: статус поездки
уже записан, побочный эффект доводится вне запроса.
"""

from __future__ import annotations

from typing import Any


class RideNowError(Exception):
    """Базовая ошибка домена."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or None


class NotFound(RideNowError):
    """Сущность с указанным идентификатором не существует."""
    code = "NOT_FOUND"
    status_code = 404


class PassengerNotFound(NotFound):
    """Поездка запрошена для несуществующего пассажира."""
    code = "PASSENGER_NOT_FOUND"


class ValidationError(RideNowError):
    """Отсутствует или пусто обязательное поле."""
    code = "VALIDATION_ERROR"
    status_code = 422


class NoDriverAvailable(RideNowError):
    """Нет свободного водителя на момент захвата. Ожидаемый бизнес-исход."""
    code = "NO_DRIVER_AVAILABLE"
    status_code = 409


class InvalidTransition(RideNowError):
    """Переход статуса не разрешён таблицей переходов."""
    code = "INVALID_TRANSITION"
    status_code = 409


class UpstreamUnavailable(RideNowError):
    """Вызов зависимости завершился ошибкой или таймаутом после повторов."""
    code = "UPSTREAM_UNAVAILABLE"
    status_code = 503


class CompensationFailed(UpstreamUnavailable):
    """
    Компенсация не доставлена: водитель остаётся занятым без поездки.
    Фатальная операционная ошибка, требует ручного вмешательства
    или отработки задачи сверки.
    """
    code = "COMPENSATION_FAILED"


class ReconciliationRequired(RideNowError):
    """Побочный эффект терминального статуса не выполнен и записан на сверку."""
    code = "RECONCILIATION_REQUIRED"
    status_code = 202
