# tests/shared/test_shared_models.py
"""
Тесты перечислений, ошибок и событий общего слоя.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from src.shared.errors import (
    CompensationFailed,
    InvalidTransition,
    NoDriverAvailable,
    NotFound,
    PassengerNotFound,
    ReconciliationRequired,
    RideNowError,
    UpstreamUnavailable,
    ValidationError,
)
from src.shared.events import DriverClaimed, ReconciliationRequested, RideCreated, RideStatusChanged
from src.shared.models import RideDTO
from src.shared.models.enums import PaymentStatus, ReleaseOutcome, RideStatus


class TestRideStatus:
    """Тесты закрытого перечисления статусов поездки."""

    @pytest.mark.parametrize("status", [RideStatus.COMPLETED, RideStatus.CANCELLED])
    def test_terminal(self, status: RideStatus) -> None:
        assert status.is_terminal
        assert not status.is_active

    @pytest.mark.parametrize("status", [RideStatus.ASSIGNED, RideStatus.IN_PROGRESS])
    def test_active(self, status: RideStatus) -> None:
        assert status.is_active
        assert not status.is_terminal

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValueError):
            RideStatus("FINISHED")

    def test_str_is_value(self) -> None:
        assert str(RideStatus.IN_PROGRESS) == "IN_PROGRESS"
        assert str(PaymentStatus.CAPTURED) == "CAPTURED"
        assert str(ReleaseOutcome.REASSIGNED) == "REASSIGNED"


class TestErrors:
    """Тесты таксономии ошибок."""

    @pytest.mark.parametrize(
        "error_cls, code, status_code",
        [
            (NotFound, "NOT_FOUND", 404),
            (PassengerNotFound, "PASSENGER_NOT_FOUND", 404),
            (ValidationError, "VALIDATION_ERROR", 422),
            (NoDriverAvailable, "NO_DRIVER_AVAILABLE", 409),
            (InvalidTransition, "INVALID_TRANSITION", 409),
            (UpstreamUnavailable, "UPSTREAM_UNAVAILABLE", 503),
            (CompensationFailed, "COMPENSATION_FAILED", 503),
            (ReconciliationRequired, "RECONCILIATION_REQUIRED", 202),
        ],
    )
    def test_codes(self, error_cls, code: str, status_code: int) -> None:
        error = error_cls("boom", ride_id="r-1")
        assert isinstance(error, RideNowError)
        assert error.code == code
        assert error.status_code == status_code
        assert error.message == "boom"
        assert error.details == {"ride_id": "r-1"}

    def test_hierarchy(self) -> None:
        assert issubclass(PassengerNotFound, NotFound)
        assert issubclass(CompensationFailed, UpstreamUnavailable)

    def test_default_message_is_code(self) -> None:
        error = NoDriverAvailable()
        assert error.message == "NO_DRIVER_AVAILABLE"
        assert error.details is None


class TestEvents:
    """Тесты доменных событий."""

    def test_ride_event_correlation(self) -> None:
        ride_id = str(uuid4())
        event = RideStatusChanged.for_ride(
            ride_id,
            old_status="IN_PROGRESS",
            new_status="COMPLETED",
            payment_status="CAPTURED",
            driver_id="d-1",
        )
        assert event.event_type == "ride.status_changed"
        assert event.metadata.correlation_id == ride_id
        assert event.metadata.source_service == "ride_service"

    def test_json_roundtrip(self) -> None:
        event = RideCreated.for_ride(
            "r-1",
            passenger_id="p-1",
            driver_id="d-1",
            from_zone="Downtown",
            to_zone="Airport",
            price=25.5,
        )
        restored = RideCreated.from_json(event.to_json())
        assert restored == event
        assert restored.event_id == event.event_id

    def test_reconciliation_event_type(self) -> None:
        event = ReconciliationRequested.for_ride("r-1", action="CAPTURE_PAYMENT")
        assert event.event_type == "ride.reconciliation_required"

    def test_driver_claimed_type(self) -> None:
        assert DriverClaimed(driver_id="d", ride_id="r").event_type == "driver.claimed"


def test_ride_dto_defaults() -> None:
    now = datetime.now(timezone.utc)
    ride = RideDTO(
        id=uuid4(),
        passenger_id=uuid4(),
        driver_id=uuid4(),
        from_zone="A",
        to_zone="B",
        price=10.0,
        created_at=now,
        updated_at=now,
    )
    assert ride.status == RideStatus.ASSIGNED
    assert ride.payment_status == PaymentStatus.PENDING
