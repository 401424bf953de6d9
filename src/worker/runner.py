# src/worker/runner.py
"""
Запускалка воркеров.
"""

from __future__ import annotations

import asyncio
from typing import List

from src.worker.base import BaseWorker
from src.worker.reconciliation import ReconciliationWorker
from src.infra.database import init_db, close_db, get_db
from src.infra.event_bus import init_event_bus, close_event_bus, get_event_bus
from src.services.ride_service.payments import get_payment_gateway
from src.services.ride_service.registry_client import RegistryClient
from src.services.ride_service.repository import ReconciliationRepository, RideRepository
from src.services.ride_service.state_machine import RideStateMachine
from src.common.logger import log_info, log_error
from src.common.constants import TypeMsg


async def run_workers(init_infra: bool = True) -> None:
    """
    Запускает ReconciliationWorker.

    Args:
        init_infra: Если True, инициализирует инфраструктуру (БД, RabbitMQ).
                    При запуске через main.py в режиме all передаётся False,
                    так как инфраструктура уже инициализирована.
    """
    await log_info("Запуск ReconciliationWorker...", type_msg=TypeMsg.INFO)

    if init_infra:
        await log_info("Инициализация инфраструктуры для воркеров...", type_msg=TypeMsg.DEBUG)
        await init_db("rides.sql")
        await init_event_bus()

    db = get_db()
    event_bus = get_event_bus()
    registry = RegistryClient()
    payments = get_payment_gateway()
    reconciliation = ReconciliationRepository(db)
    state_machine = RideStateMachine(
        rides=RideRepository(db),
        reconciliation=reconciliation,
        registry=registry,
        payments=payments,
        event_bus=event_bus,
    )

    workers: List[BaseWorker] = [
        ReconciliationWorker(state_machine, reconciliation, event_bus=event_bus, db=db),
    ]

    try:
        for worker in workers:
            await worker.start()

        await log_info(f"Запущено {len(workers)} воркеров", type_msg=TypeMsg.INFO)

        # Ждём завершения (Ctrl+C)
        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}")
    finally:
        for worker in workers:
            await worker.stop()

        await registry.close()
        await payments.close()

        if init_infra:
            await close_event_bus()
            await close_db()

        await log_info("Воркеры остановлены", type_msg=TypeMsg.INFO)


def main() -> None:
    """Точка входа."""
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
