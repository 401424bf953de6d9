# src/worker/base.py
"""
Базовый класс для воркеров.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional

from src.infra.event_bus import EventBus, get_event_bus
from src.infra.database import DatabaseManager, get_db
from src.common.logger import log_info, log_error
from src.common.constants import TypeMsg


class BaseWorker(ABC):
    """
    Базовый класс для всех воркеров.
    Периодически выполняет run_once() в фоновой задаче.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        db: Optional[DatabaseManager] = None,
    ) -> None:
        """
        Инициализирует воркер.

        Args:
            event_bus: Шина событий
            db: Менеджер БД
        """
        self.event_bus = event_bus or get_event_bus()
        self.db = db or get_db()
        self._running = False
        self._tasks: List[asyncio.Task] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Имя воркера."""
        pass

    @property
    @abstractmethod
    def interval(self) -> float:
        """Пауза между проходами (секунды)."""
        pass

    @abstractmethod
    async def run_once(self) -> int:
        """
        Один проход воркера.

        Returns:
            Количество обработанных элементов
        """
        pass

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Запускает воркер."""
        if self._running:
            return

        self._running = True
        self._tasks.append(asyncio.create_task(self._loop(), name=f"worker:{self.name}"))
        await log_info(f"Воркер {self.name} запущен", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        """Останавливает воркер."""
        if not self._running:
            return

        self._running = False

        # Отменяем все задачи
        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        await log_info(f"Воркер {self.name} остановлен", type_msg=TypeMsg.INFO)

    async def _loop(self) -> None:
        while self._running:
            try:
                processed = await self.run_once()
                if processed:
                    await log_info(
                        f"Воркер {self.name} обработал {processed} элементов",
                        type_msg=TypeMsg.DEBUG,
                    )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Проход упал целиком: повторим на следующем интервале
                await log_error(f"Ошибка в воркере {self.name}: {e}", exc_info=True)
            await asyncio.sleep(self.interval)
