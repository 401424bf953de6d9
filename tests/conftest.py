# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")

from src.config.loader import FareSettings, RetrySettings
from src.services.ride_service.dispatch import DispatchCoordinator
from src.services.ride_service.pricing import PricingService
from src.services.ride_service.service import RideService
from src.services.ride_service.state_machine import RideStateMachine
from src.services.users_service.service import DriverService, PassengerService
from tests.fakes import (
    FakeDriverRepository,
    FakePassengerRepository,
    FakePaymentGateway,
    FakeReconciliationRepository,
    FakeRideRepository,
    InProcessRegistryClient,
)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "ridenow_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "COMPONENT_MODE": "ride_service",
        "USERS_SERVICE_HOST": "registry.test",
        "USERS_SERVICE_PORT": 9000,
        "RIDE_SERVICE_PORT": 9001,
        "PAYMENTS_PROCESSOR_URL": "",
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "json",
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "ridenow_test",
        "DB_USER": "postgres",
        "DB_PASSWORD": "",
        "RABBITMQ_EXCHANGE": "ridenow.test",
        "BASE_FARE": 5.0,
        "FARE_PER_BAND": 2.0,
        "DISTANCE_BANDS": 4,
        "MIN_FARE": 3.0,
        "ZONE_FARES": {"a|b": 11.0},
        "REGISTRY_TIMEOUT": 1.5,
        "CLAIM_ATTEMPTS": 4,
        "RETRY_DELAY": 0.0,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


@pytest.fixture
def fast_retry() -> RetrySettings:
    """Повторы без задержек."""
    return RetrySettings(
        CLAIM_ATTEMPTS=3,
        COMPENSATION_ATTEMPTS=3,
        SIDE_EFFECT_ATTEMPTS=2,
        RETRY_DELAY=0.0,
        CLAIM_SELECTION_ATTEMPTS=3,
    )


@pytest.fixture
def fares() -> FareSettings:
    return FareSettings()


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# IN-MEMORY СИСТЕМА: РЕЕСТР + ЖУРНАЛ ПОЕЗДОК
# =============================================================================

@dataclass
class RideWorld:
    driver_repo: FakeDriverRepository
    passenger_repo: FakePassengerRepository
    drivers: DriverService
    passengers: PassengerService
    registry: InProcessRegistryClient
    rides: FakeRideRepository
    reconciliation: FakeReconciliationRepository
    payments: FakePaymentGateway
    dispatch: DispatchCoordinator
    state_machine: RideStateMachine
    service: RideService
    event_bus: AsyncMock


@pytest.fixture
def world(mock_event_bus: AsyncMock, fast_retry: RetrySettings, fares: FareSettings) -> RideWorld:
    """Оба сервиса поверх in-memory хранилищ с настоящей бизнес-логикой."""
    driver_repo = FakeDriverRepository()
    passenger_repo = FakePassengerRepository()
    drivers = DriverService(driver_repo, mock_event_bus)
    passengers = PassengerService(passenger_repo)
    registry = InProcessRegistryClient(drivers, passengers)

    rides = FakeRideRepository()
    reconciliation = FakeReconciliationRepository()
    payments = FakePaymentGateway()

    dispatch = DispatchCoordinator(
        rides=rides,
        reconciliation=reconciliation,
        registry=registry,
        pricing=PricingService(fares),
        event_bus=mock_event_bus,
        retry=fast_retry,
        write_timeout=1.0,
    )
    state_machine = RideStateMachine(
        rides=rides,
        reconciliation=reconciliation,
        registry=registry,
        payments=payments,
        event_bus=mock_event_bus,
        retry=fast_retry,
    )
    service = RideService(rides, reconciliation, dispatch, state_machine)

    return RideWorld(
        driver_repo=driver_repo,
        passenger_repo=passenger_repo,
        drivers=drivers,
        passengers=passengers,
        registry=registry,
        rides=rides,
        reconciliation=reconciliation,
        payments=payments,
        dispatch=dispatch,
        state_machine=state_machine,
        service=service,
        event_bus=mock_event_bus,
    )
