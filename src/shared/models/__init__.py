"""
Общие DTO и Pydantic-модели для межсервисного взаимодействия.
"""

from src.shared.models.enums import (
    PaymentStatus,
    ReconciliationAction,
    ReconciliationStatus,
    ReleaseOutcome,
    RideStatus,
)
from src.shared.models.driver_dto import (
    ClaimDriverRequest,
    CreateDriverRequest,
    DriverDTO,
    ReleaseDriverRequest,
    ReleaseResultDTO,
    UpdateDriverStatusRequest,
)
from src.shared.models.passenger_dto import (
    CreatePassengerRequest,
    PassengerDTO,
    UpdatePassengerRequest,
)
from src.shared.models.ride_dto import (
    CreateRideRequest,
    ReconciliationTaskDTO,
    RideDTO,
    UpdateRideStatusRequest,
)
from src.shared.models.common import ErrorResponse, HealthStatus

__all__ = [
    # Enums
    "RideStatus",
    "PaymentStatus",
    "ReleaseOutcome",
    "ReconciliationAction",
    "ReconciliationStatus",
    # Drivers
    "DriverDTO",
    "CreateDriverRequest",
    "UpdateDriverStatusRequest",
    "ClaimDriverRequest",
    "ReleaseDriverRequest",
    "ReleaseResultDTO",
    # Passengers
    "PassengerDTO",
    "CreatePassengerRequest",
    "UpdatePassengerRequest",
    # Rides
    "RideDTO",
    "CreateRideRequest",
    "UpdateRideStatusRequest",
    "ReconciliationTaskDTO",
    # Common
    "ErrorResponse",
    "HealthStatus",
]
