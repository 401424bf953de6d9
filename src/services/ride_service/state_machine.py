# src/services/ride_service/state_machine.py
"""
Машина состояний поездки.

Статус записывается первым (compare-and-set по ожидаемому статусу), затем
выполняются побочные эффекты терминального статуса: оплата и освобождение
водителя. Каждый эффект повторяется независимо; исчерпавший повторы эффект
записывается задачей сверки и не откатывает смену статуса.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from src.common.logger import log_error, log_info, log_warning, TypeMsg
from src.config import settings
from src.config.loader import RetrySettings
from src.infra.event_bus import EventBus
from src.infra.retry import retry_async
from src.services.ride_service.payments import PaymentGateway
from src.services.ride_service.registry_client import RegistryClient
from src.services.ride_service.repository import ReconciliationRepository, RideRepository
from src.shared.errors import (
    InvalidTransition,
    NotFound,
    ReconciliationRequired,
    UpstreamUnavailable,
)
from src.shared.events import ReconciliationRequested, RideStatusChanged
from src.shared.models.enums import PaymentStatus, ReconciliationAction, ReleaseOutcome, RideStatus
from src.shared.models.ride_dto import RideDTO


class RideStateMachine:
    ALLOWED_TRANSITIONS = {
        RideStatus.ASSIGNED: [RideStatus.IN_PROGRESS, RideStatus.CANCELLED],
        RideStatus.IN_PROGRESS: [RideStatus.COMPLETED, RideStatus.CANCELLED],
        RideStatus.COMPLETED: [],
        RideStatus.CANCELLED: []
    }

    def __init__(
        self,
        rides: RideRepository,
        reconciliation: ReconciliationRepository,
        registry: RegistryClient,
        payments: PaymentGateway,
        event_bus: Optional[EventBus] = None,
        retry: Optional[RetrySettings] = None,
    ) -> None:
        self.rides = rides
        self.reconciliation = reconciliation
        self.registry = registry
        self.payments = payments
        self.event_bus = event_bus
        self.retry = retry or settings.retry

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = RideStatus(current_status)
            new = RideStatus(new_status)
            return new in RideStateMachine.ALLOWED_TRANSITIONS.get(curr, [])
        except ValueError:
            return False

    @staticmethod
    def payment_action_for(ride: RideDTO, new_status: RideStatus) -> Optional[ReconciliationAction]:
        """Платёжный эффект перехода в терминальный статус."""
        if new_status == RideStatus.COMPLETED:
            return ReconciliationAction.CAPTURE_PAYMENT
        if new_status == RideStatus.CANCELLED:
            if ride.payment_status == PaymentStatus.CAPTURED:
                return ReconciliationAction.REFUND_PAYMENT
            return ReconciliationAction.VOID_PAYMENT
        return None

    async def transition(self, ride_id: UUID, new_status: RideStatus) -> RideDTO:
        """
        Переводит поездку в new_status.

        Raises:
            NotFound: поездка не найдена
            InvalidTransition: переход не разрешён или уже выполнен конкурентным запросом
        """
        ride = await self.rides.get_ride(ride_id)
        if not ride:
            raise NotFound(f"Поездка {ride_id} не найдена", ride_id=str(ride_id))

        if not self.can_transition(ride.status, new_status):
            raise InvalidTransition(
                f"Переход {ride.status} -> {new_status} запрещён",
                ride_id=str(ride_id),
                current_status=str(ride.status),
                requested_status=str(new_status),
            )

        updated = await self.rides.compare_and_set_status(ride_id, ride.status, new_status)
        if not updated:
            raise InvalidTransition(
                f"Статус поездки {ride_id} изменён конкурентным запросом",
                ride_id=str(ride_id),
                requested_status=str(new_status),
            )
        await log_info(f"Поездка {ride_id}: {ride.status} -> {new_status}", type_msg=TypeMsg.INFO)

        if new_status.is_terminal:
            payment_action = self.payment_action_for(updated, new_status)
            await self._run_side_effect(updated, payment_action)
            await self._run_side_effect(updated, ReconciliationAction.RELEASE_DRIVER)

        try:
            final = await self.rides.get_ride(ride_id) or updated
        except Exception as e:
            # Статус уже записан: ответ строится по результату compare-and-set
            await log_warning(f"Не удалось перечитать поездку {ride_id} после смены статуса: {e}")
            final = updated
        if self.event_bus is not None:
            await self.event_bus.publish(RideStatusChanged.for_ride(
                str(ride_id),
                old_status=str(ride.status),
                new_status=str(final.status),
                payment_status=str(final.payment_status),
                driver_id=str(final.driver_id),
            ))
        return final

    async def perform(self, action: ReconciliationAction, ride_id: UUID, driver_id: Optional[UUID] = None) -> None:
        """
        Выполняет один побочный эффект. Идемпотентно: уже отражённая
        в поездке оплата не повторяется, повторное освобождение безопасно.
        Используется и при смене статуса, и воркером сверки.
        """
        if action == ReconciliationAction.RELEASE_DRIVER:
            result = await self.registry.release(driver_id, ride_id)
            if result.outcome == ReleaseOutcome.REASSIGNED:
                await log_info(
                    f"Водитель {driver_id} уже занят другой поездкой, освобождение по {ride_id} пропущено",
                    type_msg=TypeMsg.WARNING,
                )
            return

        if action == ReconciliationAction.RELEASE_CLAIM:
            await self.registry.release_claim(ride_id)
            return

        ride = await self.rides.get_ride(ride_id)
        if not ride:
            raise NotFound(f"Поездка {ride_id} не найдена", ride_id=str(ride_id))

        if action == ReconciliationAction.CAPTURE_PAYMENT:
            if ride.payment_status == PaymentStatus.CAPTURED:
                return
            await self.payments.capture(ride.id, ride.price)
            await self.rides.update_payment_status(ride.id, PaymentStatus.CAPTURED)
        elif action == ReconciliationAction.REFUND_PAYMENT:
            if ride.payment_status == PaymentStatus.REFUNDED:
                return
            await self.payments.refund(ride.id, ride.price)
            await self.rides.update_payment_status(ride.id, PaymentStatus.REFUNDED)
        elif action == ReconciliationAction.VOID_PAYMENT:
            await self.payments.void(ride.id)

    async def _run_side_effect(self, ride: RideDTO, action: ReconciliationAction) -> None:
        try:
            await retry_async(
                lambda: self.perform(action, ride.id, ride.driver_id),
                attempts=self.retry.SIDE_EFFECT_ATTEMPTS,
                delay=self.retry.RETRY_DELAY,
                retry_on=(UpstreamUnavailable,),
                description=f"{action} для поездки {ride.id}",
            )
        except Exception as e:
            # Ошибки клиента реестра и исчерпанные сбои БД одинаково уходят на сверку
            await self._require_reconciliation(ride, action, e)

    async def _require_reconciliation(self, ride: RideDTO, action: ReconciliationAction, error: Exception) -> None:
        """Статус уже записан: эффект доводится задачей сверки, вызывающему ошибка не возвращается."""
        task_id = None
        try:
            task = await self.reconciliation.record_task(ride.id, action, driver_id=ride.driver_id, error=str(error))
            task_id = str(task.id)
        except Exception as e:
            await log_error(f"Не удалось записать задачу сверки {action} для поездки {ride.id}: {e}")

        pending = ReconciliationRequired(
            f"{action} для поездки {ride.id} требует сверки: {error}",
            ride_id=str(ride.id),
            action=str(action),
        )
        await log_error(pending.message, extra={"error_code": pending.code, **pending.details})

        if self.event_bus is not None:
            await self.event_bus.publish(ReconciliationRequested.for_ride(
                str(ride.id),
                task_id=task_id,
                action=str(action),
                driver_id=str(ride.driver_id),
                error=str(error),
            ))
