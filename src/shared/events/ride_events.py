# src/shared/events/ride_events.py
"""
События домена поездок.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent, EventMetadata


def _ride_metadata(ride_id: str) -> EventMetadata:
    return EventMetadata(correlation_id=ride_id, source_service="ride_service")


class RideCreated(DomainEvent):
    """Событие: поездка создана и водитель назначен."""

    event_type: Literal["ride.created"] = "ride.created"

    ride_id: str
    passenger_id: str
    driver_id: str
    from_zone: str
    to_zone: str
    price: float
    currency: str = "EUR"

    @classmethod
    def for_ride(cls, ride_id: str, **fields) -> "RideCreated":
        return cls(ride_id=ride_id, metadata=_ride_metadata(ride_id), **fields)


class RideStatusChanged(DomainEvent):
    """Событие: статус поездки изменён."""

    event_type: Literal["ride.status_changed"] = "ride.status_changed"

    ride_id: str
    old_status: str
    new_status: str
    payment_status: str
    driver_id: str

    @classmethod
    def for_ride(cls, ride_id: str, **fields) -> "RideStatusChanged":
        return cls(ride_id=ride_id, metadata=_ride_metadata(ride_id), **fields)


class ReconciliationRequested(DomainEvent):
    """Событие: побочный эффект не выполнен, создана задача сверки."""

    event_type: Literal["ride.reconciliation_required"] = "ride.reconciliation_required"

    task_id: str | None = None
    ride_id: str
    action: str
    driver_id: str | None = None
    error: str | None = None

    @classmethod
    def for_ride(cls, ride_id: str, **fields) -> "ReconciliationRequested":
        return cls(ride_id=ride_id, metadata=_ride_metadata(ride_id), **fields)
