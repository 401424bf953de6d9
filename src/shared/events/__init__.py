"""
Схемы событий для RabbitMQ.

События разделены по доменам:
- ride_events: создание поездки, смена статуса, задачи сверки
- driver_events: захват и освобождение водителя

Все события содержат event_id для дедупликации.
"""

from src.shared.events.base import DomainEvent, EventMetadata
from src.shared.events.ride_events import (
    ReconciliationRequested,
    RideCreated,
    RideStatusChanged,
)
from src.shared.events.driver_events import DriverClaimed, DriverReleased

__all__ = [
    "DomainEvent",
    "EventMetadata",
    "RideCreated",
    "RideStatusChanged",
    "ReconciliationRequested",
    "DriverClaimed",
    "DriverReleased",
]
