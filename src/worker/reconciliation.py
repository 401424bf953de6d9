# src/worker/reconciliation.py
"""
Воркер сверки.

Доводит побочные эффекты, не выполненные в запросе: оплату терминальных
поездок и освобождение водителей. Действия идемпотентны, поэтому задача,
выполненная частично до сбоя, безопасно повторяется целиком.
"""

from __future__ import annotations

from typing import Optional

from src.common.logger import log_info, log_warning
from src.common.constants import TypeMsg
from src.config import settings
from src.infra.database import DatabaseManager
from src.infra.event_bus import EventBus
from src.services.ride_service.repository import ReconciliationRepository
from src.services.ride_service.state_machine import RideStateMachine
from src.shared.models.enums import ReconciliationStatus
from src.shared.models.ride_dto import ReconciliationTaskDTO
from src.worker.base import BaseWorker


class ReconciliationWorker(BaseWorker):
    """Периодически переигрывает открытые задачи сверки."""

    def __init__(
        self,
        state_machine: RideStateMachine,
        reconciliation: ReconciliationRepository,
        event_bus: Optional[EventBus] = None,
        db: Optional[DatabaseManager] = None,
        interval: Optional[float] = None,
        batch_size: Optional[int] = None,
        max_backoff: Optional[float] = None,
    ) -> None:
        super().__init__(event_bus=event_bus, db=db)
        self.state_machine = state_machine
        self.reconciliation = reconciliation
        self._interval = interval if interval is not None else settings.timeouts.RECONCILIATION_INTERVAL
        self.batch_size = batch_size or settings.timeouts.RECONCILIATION_BATCH_SIZE
        self.max_backoff = max_backoff if max_backoff is not None else settings.timeouts.RECONCILIATION_MAX_BACKOFF

    @property
    def name(self) -> str:
        return "reconciliation"

    @property
    def interval(self) -> float:
        return self._interval

    def backoff(self, attempts: int) -> float:
        """Задержка перед следующей попыткой: интервал, удвоенный attempts - 1 раз, не больше потолка."""
        return min(self.interval * 2 ** max(attempts - 1, 0), self.max_backoff)

    async def run_once(self) -> int:
        """Обрабатывает пачку открытых задач. Возвращает число закрытых."""
        tasks = await self.reconciliation.list_tasks(ReconciliationStatus.PENDING, self.batch_size, due_only=True)
        resolved = 0
        for task in tasks:
            if await self._replay(task):
                resolved += 1
        return resolved

    async def _replay(self, task: ReconciliationTaskDTO) -> bool:
        try:
            await self.state_machine.perform(task.action, task.ride_id, task.driver_id)
        except Exception as e:
            retry_in = self.backoff(task.attempts + 1)
            await self.reconciliation.mark_failed(task.id, str(e), retry_in)
            await log_warning(
                f"Задача сверки {task.id} ({task.action}, поездка {task.ride_id}) "
                f"не выполнена, попытка {task.attempts + 1}, следующая через {retry_in:.0f} с: {e}"
            )
            return False

        await self.reconciliation.mark_resolved(task.id)
        await log_info(
            f"Задача сверки {task.id} ({task.action}, поездка {task.ride_id}) выполнена",
            type_msg=TypeMsg.INFO,
        )
        return True
