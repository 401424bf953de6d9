# src/common/logger.py
"""
Модуль структурированного логирования.
Поддерживает JSON и цветной текстовый формат, ротацию файлов
и отдельный файл для ошибок.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from src.common.constants import TypeMsg


DEFAULT_LOGGER = "ridenow"

# Общие файловые хендлеры (один на процесс для всех логгеров)
_GLOBAL_FILE_HANDLER: logging.Handler | None = None
_GLOBAL_ERROR_HANDLER: logging.Handler | None = None

_LOGGING_INITIALIZED: bool = False


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """Форматтер для JSON логов."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Цветной форматтер для консоли (разработка)."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.GRAY)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        caller_info = ""
        extra_data = getattr(record, "extra_data", None) or {}
        if extra_data.get("caller_function"):
            caller_info = (
                f" {self.GRAY}[{extra_data.get('caller_module')}."
                f"{extra_data.get('caller_function')}() "
                f"{extra_data.get('caller_file')}:{extra_data.get('caller_line')}]{self.RESET}"
            )

        message = f"{timestamp} {color}[{record.levelname}]{self.RESET}{caller_info} {record.getMessage()}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


class DateBasedRotatingFileHandler(RotatingFileHandler):
    """
    Хендлер для ротации логов.
    Пишет в фиксированный файл (например, ridenow.log), при превышении
    размера переименовывает его, добавляя дату и время.
    """

    def __init__(self, log_dir: str, max_bytes: int, logger_name: str = "app", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name

        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        archive_filename = self.log_dir / f"{self.logger_name}_{timestamp}.log"

        if os.path.exists(self.baseFilename):
            try:
                os.rename(self.baseFilename, archive_filename)
            except OSError:
                # Файл занят другим процессом: продолжаем писать в текущий
                pass

        self.stream = self._open()


# =============================================================================
# ЛОГГЕР
# =============================================================================

_loggers: dict[str, logging.Logger] = {}


def _make_formatter(log_format: str) -> logging.Formatter:
    return JsonFormatter() if log_format == "json" else ColoredFormatter()


def setup_logging() -> None:
    """
    Инициализирует систему логирования.
    Может безопасно вызываться многократно (идемпотентна).
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return

    _LOGGING_INITIALIZED = True

    get_logger(DEFAULT_LOGGER)

    # Уровень для сторонних библиотек
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)


def get_logger(name: str = DEFAULT_LOGGER) -> logging.Logger:
    """
    Возвращает настроенный логгер.
    Использует кэширование для избежания дублирования хендлеров.

    Args:
        name: Имя логгера

    Returns:
        Настроенный логгер
    """
    if name in _loggers:
        return _loggers[name]

    # Ленивый импорт для избежания циклических зависимостей
    try:
        from src.config import settings
        log_level = settings.logging.LOG_LEVEL
        log_format = settings.logging.LOG_FORMAT
        log_to_file = settings.logging.LOG_TO_FILE
        log_file_path = settings.logging.LOG_FILE_PATH
        log_max_bytes = settings.logging.LOG_MAX_BYTES
        # Защита от MagicMock в тестах
        if not isinstance(log_level, str):
            log_level = "DEBUG"
        if not isinstance(log_format, str):
            log_format = "colored"
        if not isinstance(log_file_path, str):
            log_to_file = False
    except Exception:
        log_level = "DEBUG"
        log_format = "colored"
        log_to_file = False
        log_file_path = "logs/app.log"
        log_max_bytes = 10485760

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_make_formatter(log_format))
    logger.addHandler(console_handler)

    if log_to_file is True:
        global _GLOBAL_FILE_HANDLER, _GLOBAL_ERROR_HANDLER
        log_path = Path(log_file_path)
        if _GLOBAL_FILE_HANDLER is None:
            log_name = log_path.stem
            # Каждый компонент пишет в свой файл
            service_name = os.getenv("SERVICE_NAME")
            if service_name:
                log_name = f"{log_name}_{service_name}"

            _GLOBAL_FILE_HANDLER = DateBasedRotatingFileHandler(
                log_dir=str(log_path.parent),
                max_bytes=log_max_bytes,
                logger_name=log_name,
            )
            _GLOBAL_FILE_HANDLER.setFormatter(_make_formatter(log_format))

        if _GLOBAL_ERROR_HANDLER is None:
            _GLOBAL_ERROR_HANDLER = DateBasedRotatingFileHandler(
                log_dir=str(log_path.parent),
                max_bytes=log_max_bytes,
                logger_name="error",
            )
            _GLOBAL_ERROR_HANDLER.setLevel(logging.ERROR)
            _GLOBAL_ERROR_HANDLER.setFormatter(_make_formatter(log_format))

        logger.addHandler(_GLOBAL_FILE_HANDLER)
        logger.addHandler(_GLOBAL_ERROR_HANDLER)

    logger.propagate = False

    _loggers[name] = logger
    return logger


# =============================================================================
# ВСПОМОГАТЕЛЬНЫЕ ФУНКЦИИ ЛОГИРОВАНИЯ
# =============================================================================

def _get_caller_info() -> dict[str, Any]:
    """
    Получает информацию о коде, вызвавшем функцию логирования.

    Стек: [0] _get_caller_info, [1] log_* , [2] вызывающий код.
    Для log_debug/log_warning/log_critical добавляется ещё один уровень,
    поэтому пропускаем кадры самого модуля логирования.
    """
    frame = inspect.currentframe()
    caller_frame = None
    try:
        if frame is None:
            return {}

        caller_frame = frame.f_back
        while caller_frame is not None and caller_frame.f_globals.get("__name__") == __name__:
            caller_frame = caller_frame.f_back

        if caller_frame is None:
            return {}

        frame_info = inspect.getframeinfo(caller_frame)
        caller_module = inspect.getmodule(caller_frame)

        return {
            "caller_function": caller_frame.f_code.co_name,
            "caller_module": caller_module.__name__ if caller_module else "unknown",
            "caller_file": Path(frame_info.filename).name if frame_info.filename else "unknown",
            "caller_line": frame_info.lineno,
        }
    except Exception:
        return {}
    finally:
        # Освобождаем ссылки на фреймы для избежания утечек памяти
        del frame
        del caller_frame


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """
    Асинхронная функция логирования.

    Args:
        message: Сообщение для логирования
        type_msg: Уровень сообщения
        logger_name: Имя логгера
        extra: Дополнительные данные (попадают в JSON-поле extra)
        exc_info: Включать ли трейсбек текущего исключения
    """
    logger = get_logger(logger_name)
    record_extra = {"extra_data": {**_get_caller_info(), **(extra or {})}}

    match type_msg:
        case TypeMsg.DEBUG:
            logger.debug(message, extra=record_extra, exc_info=exc_info)
        case TypeMsg.WARNING:
            logger.warning(message, extra=record_extra, exc_info=exc_info)
        case TypeMsg.ERROR:
            logger.error(message, extra=record_extra, exc_info=exc_info)
        case TypeMsg.CRITICAL:
            logger.critical(message, extra=record_extra, exc_info=exc_info)
        case _:
            logger.info(message, extra=record_extra, exc_info=exc_info)


async def log_debug(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование DEBUG уровня."""
    await log_info(message, type_msg=TypeMsg.DEBUG, logger_name=logger_name, extra=extra)


async def log_warning(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование WARNING уровня."""
    await log_info(message, type_msg=TypeMsg.WARNING, logger_name=logger_name, extra=extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """
    Логирование ERROR уровня.

    Args:
        message: Сообщение об ошибке
        logger_name: Имя логгера
        extra: Дополнительные данные
        exc_info: Включать ли трейсбек исключения
    """
    await log_info(
        message,
        type_msg=TypeMsg.ERROR,
        logger_name=logger_name,
        extra=extra,
        exc_info=exc_info,
    )


async def log_critical(
    message: str,
    logger_name: str = DEFAULT_LOGGER,
    extra: dict[str, Any] | None = None,
) -> None:
    """Логирование CRITICAL уровня (требуется вмешательство оператора)."""
    await log_info(message, type_msg=TypeMsg.CRITICAL, logger_name=logger_name, extra=extra)
