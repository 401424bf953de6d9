from typing import Optional, List
from uuid import UUID, uuid4
from src.services.users_service.repository import DriverRepository, PassengerRepository
from src.shared.models.driver_dto import DriverDTO, ReleaseResultDTO
from src.shared.models.passenger_dto import PassengerDTO
from src.shared.models.enums import ReleaseOutcome
from src.shared.events import DriverClaimed, DriverReleased
from src.shared.errors import InvalidTransition, NotFound, NoDriverAvailable, ValidationError
from src.infra.event_bus import EventBus
from src.common.logger import log_info, TypeMsg


def _require_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Имя не может быть пустым", field="name")
    return cleaned


class DriverService:
    def __init__(self, repository: DriverRepository, event_bus: Optional[EventBus] = None):
        self.repository = repository
        self.event_bus = event_bus

    async def create_driver(self, name: str) -> DriverDTO:
        driver = await self.repository.create_driver(uuid4(), _require_name(name))
        await log_info(f"Зарегистрирован водитель {driver.id}", type_msg=TypeMsg.INFO)
        return driver

    async def list_drivers(self, available: Optional[bool] = None) -> List[DriverDTO]:
        return await self.repository.list_drivers(available)

    async def get_driver(self, driver_id: UUID) -> DriverDTO:
        driver = await self.repository.get_driver(driver_id)
        if not driver:
            raise NotFound(f"Водитель {driver_id} не найден", driver_id=str(driver_id))
        return driver

    async def claim(self, ride_id: UUID) -> DriverDTO:
        """
        Захватывает свободного водителя под поездку ride_id.
        Повтор с тем же ride_id безопасен и возвращает того же водителя.
        """
        driver = await self.repository.claim_driver(ride_id)
        if not driver:
            await log_info(f"Нет свободных водителей для поездки {ride_id}", type_msg=TypeMsg.WARNING)
            raise NoDriverAvailable("Нет свободных водителей", ride_id=str(ride_id))

        await log_info(f"Водитель {driver.id} захвачен под поездку {ride_id}", type_msg=TypeMsg.INFO)
        await self._publish(DriverClaimed(driver_id=str(driver.id), ride_id=str(ride_id)))
        return driver

    async def release(self, driver_id: UUID, ride_id: Optional[UUID] = None) -> ReleaseResultDTO:
        result = await self.repository.release_driver(driver_id, ride_id)
        if result is None:
            raise NotFound(f"Водитель {driver_id} не найден", driver_id=str(driver_id))

        if result.outcome == ReleaseOutcome.RELEASED:
            await log_info(f"Водитель {driver_id} освобождён (поездка {ride_id})", type_msg=TypeMsg.INFO)
            await self._publish(
                DriverReleased(driver_id=str(driver_id), ride_id=str(ride_id) if ride_id else None)
            )
        elif result.outcome == ReleaseOutcome.REASSIGNED:
            await log_info(
                f"Освобождение водителя {driver_id} по поездке {ride_id} пропущено: "
                f"водитель занят поездкой {result.driver.current_ride_id}",
                type_msg=TypeMsg.WARNING,
            )
        return result

    async def release_claim(self, ride_id: UUID) -> Optional[DriverDTO]:
        """Освобождает водителя, захваченного под ride_id. None: такого захвата нет."""
        driver = await self.repository.get_driver_by_claim(ride_id)
        if not driver:
            await log_info(f"Захват под поездку {ride_id} не найден, освобождать нечего", type_msg=TypeMsg.DEBUG)
            return None
        result = await self.release(driver.id, ride_id)
        return result.driver

    async def set_driver_status(self, driver_id: UUID, is_available: bool) -> DriverDTO:
        """
        Ручное управление доступностью. Водителя с активной поездкой вручную
        освободить нельзя: его освобождает только завершение или отмена поездки.

        Raises:
            NotFound: водитель не найден
            InvalidTransition: водитель занят поездкой
        """
        if is_available:
            driver = await self.repository.set_available(driver_id)
            if driver is None:
                current = await self.get_driver(driver_id)
                raise InvalidTransition(
                    f"Водитель {driver_id} занят поездкой {current.current_ride_id}",
                    driver_id=str(driver_id),
                    ride_id=str(current.current_ride_id),
                )
            await log_info(f"Водитель {driver_id} переведён в онлайн", type_msg=TypeMsg.INFO)
            return driver

        driver = await self.repository.set_unavailable(driver_id)
        if not driver:
            raise NotFound(f"Водитель {driver_id} не найден", driver_id=str(driver_id))
        await log_info(f"Водитель {driver_id} переведён в офлайн", type_msg=TypeMsg.INFO)
        return driver

    async def _publish(self, event) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(event)


class PassengerService:
    def __init__(self, repository: PassengerRepository):
        self.repository = repository

    async def create_passenger(self, name: str) -> PassengerDTO:
        passenger = await self.repository.create_passenger(uuid4(), _require_name(name))
        await log_info(f"Зарегистрирован пассажир {passenger.id}", type_msg=TypeMsg.INFO)
        return passenger

    async def list_passengers(self) -> List[PassengerDTO]:
        return await self.repository.list_passengers()

    async def get_passenger(self, passenger_id: UUID) -> PassengerDTO:
        passenger = await self.repository.get_passenger(passenger_id)
        if not passenger:
            raise NotFound(f"Пассажир {passenger_id} не найден", passenger_id=str(passenger_id))
        return passenger

    async def update_passenger(self, passenger_id: UUID, name: str) -> PassengerDTO:
        passenger = await self.repository.update_passenger(passenger_id, _require_name(name))
        if not passenger:
            raise NotFound(f"Пассажир {passenger_id} не найден", passenger_id=str(passenger_id))
        return passenger

    async def delete_passenger(self, passenger_id: UUID) -> None:
        deleted = await self.repository.delete_passenger(passenger_id)
        if not deleted:
            raise NotFound(f"Пассажир {passenger_id} не найден", passenger_id=str(passenger_id))
        await log_info(f"Пассажир {passenger_id} удалён", type_msg=TypeMsg.INFO)
