# src/services/__init__.py
"""
Микросервисы приложения.

Архитектура:
- Каждый сервис является независимым FastAPI-приложением со своей схемой PostgreSQL
- Синхронные вызовы между сервисами по HTTP (httpx)
- Доменные события публикуются в RabbitMQ

Сервисы:
- users_service: реестр водителей и пассажиров, атомарный захват и освобождение водителя
- ride_service: журнал поездок, координатор диспетчеризации, машина состояний, тарифы
"""

__all__: list[str] = []
