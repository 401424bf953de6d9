# src/shared/__init__.py
"""
Общий код между сервисами.

Модули:
- events: схемы событий RabbitMQ
- models: общие DTO и Pydantic-модели
- errors: таксономия доменных ошибок
"""

__all__: list[str] = []
