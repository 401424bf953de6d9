# src/services/ride_service/dependencies.py
"""
Dependency Injection для Ride Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.infra.database import DatabaseManager
from src.infra.event_bus import get_event_bus
from src.services.ride_service.dispatch import DispatchCoordinator
from src.services.ride_service.pricing import PricingService
from src.services.ride_service.repository import ReconciliationRepository, RideRepository
from src.services.ride_service.service import RideService
from src.services.ride_service.state_machine import RideStateMachine

if TYPE_CHECKING:
    from src.services.ride_service.payments import PaymentGateway
    from src.services.ride_service.registry_client import RegistryClient


# Синглтоны HTTP-клиентов (пул соединений на процесс)
_registry: "RegistryClient | None" = None
_payments: "PaymentGateway | None" = None


async def init_dependencies() -> None:
    """Создать HTTP-клиенты при старте приложения."""
    global _registry, _payments
    from src.services.ride_service.payments import get_payment_gateway
    from src.services.ride_service.registry_client import RegistryClient

    if _registry is None:
        _registry = RegistryClient()
    if _payments is None:
        _payments = get_payment_gateway()


def get_registry_client() -> "RegistryClient":
    """Получить клиент реестра."""
    if _registry is None:
        raise RuntimeError("Клиент реестра не инициализирован. Вызовите init_dependencies()")
    return _registry


def get_payment_gateway() -> "PaymentGateway":
    """Получить платёжный шлюз."""
    if _payments is None:
        raise RuntimeError("Платёжный шлюз не инициализирован. Вызовите init_dependencies()")
    return _payments


def get_state_machine() -> RideStateMachine:
    db = DatabaseManager()
    return RideStateMachine(
        rides=RideRepository(db),
        reconciliation=ReconciliationRepository(db),
        registry=get_registry_client(),
        payments=get_payment_gateway(),
        event_bus=get_event_bus(),
    )


def get_ride_service() -> RideService:
    db = DatabaseManager()
    rides = RideRepository(db)
    reconciliation = ReconciliationRepository(db)
    dispatch = DispatchCoordinator(
        rides=rides,
        reconciliation=reconciliation,
        registry=get_registry_client(),
        pricing=PricingService(),
        event_bus=get_event_bus(),
    )
    return RideService(rides, reconciliation, dispatch, get_state_machine())


async def cleanup_dependencies() -> None:
    """Закрыть HTTP-клиенты при остановке приложения."""
    global _registry, _payments
    if _registry is not None:
        await _registry.close()
        _registry = None
    if _payments is not None:
        await _payments.close()
        _payments = None
