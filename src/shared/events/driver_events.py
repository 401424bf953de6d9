# src/shared/events/driver_events.py
"""
События реестра водителей.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent


class DriverClaimed(DomainEvent):
    """Событие: водитель захвачен под поездку."""

    event_type: Literal["driver.claimed"] = "driver.claimed"

    driver_id: str
    ride_id: str


class DriverReleased(DomainEvent):
    """Событие: водитель снова свободен."""

    event_type: Literal["driver.released"] = "driver.released"

    driver_id: str
    ride_id: str | None = None
