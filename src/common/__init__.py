"""
Общие утилиты, константы и логгер.
"""

from src.common.logger import (
    get_logger,
    log_critical,
    log_debug,
    log_error,
    log_info,
    log_warning,
    setup_logging,
)
from src.common.constants import TypeMsg

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "log_critical",
    "setup_logging",
    "TypeMsg",
]
