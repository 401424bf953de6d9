#!/usr/bin/env python3
# entrypoint_ride_service.py
"""
Точка входа для Ride Service (диспетчеризация и машина состояний поездок).
Порт: 8085
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

from main import main


if __name__ == "__main__":
    try:
        asyncio.run(main(mode="ride_service"))
    except KeyboardInterrupt:
        pass
