#!/usr/bin/env python3
# main.py
"""
Главная точка входа RideNow.
Запускает реестр, журнал поездок, воркер сверки или всё вместе.
"""

from __future__ import annotations

import asyncio
import signal
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


VALID_MODES = ("users_service", "ride_service", "reconciliation_worker", "worker", "all")

# Глобальный флаг для graceful shutdown
_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        """Обработчик сигналов SIGINT и SIGTERM."""
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def _serve(app_path: str, port: int, title: str) -> None:
    import uvicorn

    await log_info(f"Запуск {title} на порту {port}...", type_msg=TypeMsg.INFO)

    config = uvicorn.Config(
        app_path,
        host="0.0.0.0",
        port=port,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info(f"{title}: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_users_service() -> None:
    """Запускает реестр водителей и пассажиров."""
    await _serve(
        "src.services.users_service.app:app",
        settings.deployment.USERS_SERVICE_PORT,
        "Users Service",
    )


async def run_ride_service() -> None:
    """Запускает журнал поездок."""
    await _serve(
        "src.services.ride_service.app:app",
        settings.deployment.RIDE_SERVICE_PORT,
        "Ride Service",
    )


async def run_reconciliation_worker(init_infra: bool = True) -> None:
    """Запускает воркер сверки."""
    from src.worker.runner import run_workers

    await run_workers(init_infra=init_infra)


async def run_all() -> None:
    """Режим разработки: оба сервиса и воркер в одном процессе."""
    from src.infra.database import init_db
    from src.infra.event_bus import init_event_bus

    # Схема журнала нужна воркеру до старта ride_service
    await init_db("rides.sql")
    await init_event_bus()

    await asyncio.gather(
        run_users_service(),
        run_ride_service(),
        run_reconciliation_worker(init_infra=False),
    )


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска. Если None, берётся COMPONENT_MODE из настроек.
    """
    setup_logging()
    setup_signal_handlers()

    if mode is None:
        mode = settings.system.COMPONENT_MODE
    if mode not in VALID_MODES:
        await log_error(f"Неизвестный режим запуска '{mode}'. Допустимые: {', '.join(VALID_MODES)}")
        sys.exit(2)

    await log_info(
        f"RideNow v{settings.system.VERSION} — запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO
    )

    if mode == "users_service":
        runner = run_users_service()
    elif mode == "ride_service":
        runner = run_ride_service()
    elif mode in ("reconciliation_worker", "worker"):
        runner = run_reconciliation_worker()
    else:
        runner = run_all()

    task = asyncio.create_task(runner)
    _running_tasks.append(task)
    try:
        await task
    except asyncio.CancelledError:
        await log_info("Компоненты остановлены по сигналу", type_msg=TypeMsg.INFO)
    finally:
        if mode == "all":
            from src.infra.database import close_db
            from src.infra.event_bus import close_event_bus
            try:
                await close_event_bus()
                await close_db()
            except Exception as e:
                await log_error(f"Ошибка при закрытии подключений: {e}")
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print(f"""
RideNow v{settings.system.VERSION} — ядро диспетчеризации поездок

Использование:
    python main.py [mode]

Режимы:
    users_service          — реестр водителей и пассажиров (:{settings.deployment.USERS_SERVICE_PORT})
    ride_service           — журнал поездок (:{settings.deployment.RIDE_SERVICE_PORT})
    reconciliation_worker  — воркер сверки побочных эффектов
    all                    — всё в одном процессе (разработка)

Без аргумента режим берётся из COMPONENT_MODE.
    """)


if __name__ == "__main__":
    mode = None

    if len(sys.argv) > 1:
        arg = sys.argv[1].lower()
        if arg in ("--help", "-h"):
            print_usage()
            sys.exit(0)
        elif arg in VALID_MODES:
            mode = arg
        else:
            print(f"Неизвестный режим: {arg}")
            print_usage()
            sys.exit(1)

    try:
        asyncio.run(main(mode))
    except KeyboardInterrupt:
        pass
