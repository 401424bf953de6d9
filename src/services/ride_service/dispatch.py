# src/services/ride_service/dispatch.py
"""
Координатор диспетчеризации.

Создание поездки: сага из двух хранилищ без общей транзакции:
захват водителя в реестре, расчёт цены, запись поездки. Если запись
не удалась, захваченный водитель обязательно освобождается до возврата
ошибки (компенсация), в том числе при отмене запроса. Недоставленная
компенсация фиксируется задачей сверки и поднимается как CompensationFailed.
"""

from __future__ import annotations

import asyncio
from typing import Optional
from uuid import UUID, uuid4

from src.common.logger import log_critical, log_error, log_info, log_warning, TypeMsg
from src.config import settings
from src.config.loader import RetrySettings
from src.infra.event_bus import EventBus
from src.infra.retry import retry_async
from src.services.ride_service.pricing import PricingService
from src.services.ride_service.registry_client import RegistryClient
from src.services.ride_service.repository import ReconciliationRepository, RideRepository
from src.shared.errors import (
    CompensationFailed,
    RideNowError,
    UpstreamUnavailable,
    ValidationError,
)
from src.shared.events import RideCreated
from src.shared.models.driver_dto import DriverDTO
from src.shared.models.enums import ReconciliationAction
from src.shared.models.ride_dto import RideDTO


class DispatchCoordinator:
    def __init__(
        self,
        rides: RideRepository,
        reconciliation: ReconciliationRepository,
        registry: RegistryClient,
        pricing: PricingService,
        event_bus: Optional[EventBus] = None,
        retry: Optional[RetrySettings] = None,
        write_timeout: Optional[float] = None,
    ) -> None:
        self.rides = rides
        self.reconciliation = reconciliation
        self.registry = registry
        self.pricing = pricing
        self.event_bus = event_bus
        self.retry = retry or settings.retry
        self.write_timeout = write_timeout if write_timeout is not None else settings.timeouts.RIDE_WRITE_TIMEOUT

    async def create_ride(self, passenger_id: UUID, from_zone: str, to_zone: str) -> RideDTO:
        """
        Создаёт поездку с назначенным водителем или завершается ошибкой
        без остаточных побочных эффектов.

        Raises:
            ValidationError: пустая зона
            PassengerNotFound: пассажир не существует
            NoDriverAvailable: свободных водителей нет, ничего не записано
            UpstreamUnavailable: реестр или хранилище поездок недоступны
            CompensationFailed: водитель захвачен, но освободить его не удалось
        """
        from_zone = (from_zone or "").strip()
        to_zone = (to_zone or "").strip()
        if not from_zone:
            raise ValidationError("Зона отправления не может быть пустой", field="from_zone")
        if not to_zone:
            raise ValidationError("Зона назначения не может быть пустой", field="to_zone")

        await self.registry.get_passenger(passenger_id)

        # id поездки генерируется заранее и служит токеном захвата
        ride_id = uuid4()
        driver = await self._claim_driver(ride_id)

        price = self.pricing.quote(from_zone, to_zone)

        try:
            ride = await asyncio.wait_for(
                self.rides.create_ride(
                    ride_id=ride_id,
                    passenger_id=passenger_id,
                    driver_id=driver.id,
                    from_zone=from_zone,
                    to_zone=to_zone,
                    price=price,
                    currency=settings.fares.CURRENCY,
                ),
                timeout=self.write_timeout,
            )
        except asyncio.CancelledError as e:
            await log_warning(f"Запись поездки {ride_id} прервана отменой запроса")
            await self._finish_on_cancel(self._compensate(ride_id, driver.id, e))
            raise
        except Exception as e:
            await log_error(f"Запись поездки {ride_id} не удалась: {e}", exc_info=True)
            await self._compensate(ride_id, driver.id, e)
            if isinstance(e, RideNowError):
                raise
            raise UpstreamUnavailable(
                f"Хранилище поездок недоступно: {e}", ride_id=str(ride_id)
            ) from e

        await log_info(
            f"Поездка {ride.id} создана: пассажир {passenger_id}, водитель {driver.id}, цена {price}",
            type_msg=TypeMsg.INFO,
        )
        if self.event_bus is not None:
            await self.event_bus.publish(RideCreated.for_ride(
                str(ride.id),
                passenger_id=str(ride.passenger_id),
                driver_id=str(ride.driver_id),
                from_zone=ride.from_zone,
                to_zone=ride.to_zone,
                price=ride.price,
                currency=ride.currency,
            ))
        return ride

    async def _claim_driver(self, ride_id: UUID) -> DriverDTO:
        """
        Захват с повторами. Повторять безопасно: захват идемпотентен по ride_id.
        NoDriverAvailable не повторяется.
        """
        try:
            return await retry_async(
                lambda: self.registry.claim(ride_id),
                attempts=self.retry.CLAIM_ATTEMPTS,
                delay=self.retry.RETRY_DELAY,
                retry_on=(UpstreamUnavailable,),
                description=f"Захват водителя для поездки {ride_id}",
            )
        except UpstreamUnavailable as e:
            # Захват мог пройти, а ответ потеряться: освобождаем по токену
            await self._release_claim(ride_id, e)
            raise
        except asyncio.CancelledError as e:
            await self._finish_on_cancel(self._release_claim(ride_id, e))
            raise

    async def _release_claim(self, ride_id: UUID, cause: BaseException) -> None:
        """Снимает возможный захват под ride_id. Недоставленное снятие уходит на сверку."""
        try:
            await retry_async(
                lambda: self.registry.release_claim(ride_id),
                attempts=self.retry.COMPENSATION_ATTEMPTS,
                delay=self.retry.RETRY_DELAY,
                retry_on=(UpstreamUnavailable,),
                description=f"Компенсация: снятие захвата поездки {ride_id}",
            )
        except RideNowError as release_error:
            await self._record_task(ride_id, ReconciliationAction.RELEASE_CLAIM, None, release_error)
            await log_critical(
                f"Компенсация не выполнена: захват поездки {ride_id} не снят. "
                f"Причина: {cause}. Ошибка освобождения: {release_error}",
                extra={"ride_id": str(ride_id)},
            )
            raise CompensationFailed(
                f"Захват поездки {ride_id} не снят после сбоя реестра",
                ride_id=str(ride_id),
            ) from release_error

    @staticmethod
    async def _finish_on_cancel(compensation) -> None:
        """Доводит компенсацию до конца при отмене запроса; отмена пробрасывается вызывающим."""
        try:
            await asyncio.shield(compensation)
        except CompensationFailed:
            # Уже записана задачей сверки и залогирована как CRITICAL
            return

    async def _record_task(
        self,
        ride_id: UUID,
        action: ReconciliationAction,
        driver_id: Optional[UUID],
        error: BaseException,
    ) -> None:
        try:
            await self.reconciliation.record_task(ride_id, action, driver_id=driver_id, error=str(error))
        except Exception as e:
            await log_error(f"Не удалось записать задачу сверки {action} для поездки {ride_id}: {e}")

    async def _compensate(self, ride_id: UUID, driver_id: UUID, cause: BaseException) -> None:
        """Откат саги: удаление возможной записи и освобождение водителя."""
        try:
            await self.rides.discard_ride(ride_id)
        except Exception as e:
            await log_warning(f"Не удалось удалить частично записанную поездку {ride_id}: {e}")

        try:
            await retry_async(
                lambda: self.registry.release(driver_id, ride_id),
                attempts=self.retry.COMPENSATION_ATTEMPTS,
                delay=self.retry.RETRY_DELAY,
                retry_on=(UpstreamUnavailable,),
                description=f"Компенсация: освобождение водителя {driver_id}",
            )
        except RideNowError as release_error:
            await self._record_task(ride_id, ReconciliationAction.RELEASE_DRIVER, driver_id, release_error)
            await log_critical(
                f"Компенсация не выполнена: водитель {driver_id} занят без поездки {ride_id}. "
                f"Причина записи: {cause}. Ошибка освобождения: {release_error}",
                extra={"ride_id": str(ride_id), "driver_id": str(driver_id)},
            )
            raise CompensationFailed(
                f"Водитель {driver_id} не освобождён после сбоя записи поездки",
                ride_id=str(ride_id),
                driver_id=str(driver_id),
            ) from release_error

        await log_info(
            f"Компенсация выполнена: водитель {driver_id} освобождён после сбоя поездки {ride_id}",
            type_msg=TypeMsg.WARNING,
        )
