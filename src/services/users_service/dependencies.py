from src.infra.database import DatabaseManager
from src.infra.event_bus import get_event_bus
from src.services.users_service.repository import DriverRepository, PassengerRepository
from src.services.users_service.service import DriverService, PassengerService
from src.config import settings


def get_database() -> DatabaseManager:
    return DatabaseManager()


def get_driver_repository() -> DriverRepository:
    return DriverRepository(get_database(), selection_attempts=settings.retry.CLAIM_SELECTION_ATTEMPTS)


def get_passenger_repository() -> PassengerRepository:
    return PassengerRepository(get_database())


def get_driver_service() -> DriverService:
    return DriverService(get_driver_repository(), get_event_bus())


def get_passenger_service() -> PassengerService:
    return PassengerService(get_passenger_repository())
