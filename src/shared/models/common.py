# src/shared/models/common.py
"""
Общие модели для всех сервисов.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""

    error_code: str
    message: str
    details: dict[str, Any] | None = None


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
