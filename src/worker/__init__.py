# src/worker/__init__.py
"""
Фоновые воркеры: доведение побочных эффектов через задачи сверки.
"""

from src.worker.base import BaseWorker
from src.worker.reconciliation import ReconciliationWorker

__all__ = ["BaseWorker", "ReconciliationWorker"]
