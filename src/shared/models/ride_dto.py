from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel
from src.shared.models.enums import (
    PaymentStatus,
    ReconciliationAction,
    ReconciliationStatus,
    RideStatus,
)


class RideDTO(BaseModel):
    id: UUID
    passenger_id: UUID
    driver_id: UUID
    from_zone: str
    to_zone: str
    price: float
    currency: str = "EUR"
    status: RideStatus = RideStatus.ASSIGNED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CreateRideRequest(BaseModel):
    passenger_id: UUID
    from_zone: str
    to_zone: str


class UpdateRideStatusRequest(BaseModel):
    status: RideStatus


class ReconciliationTaskDTO(BaseModel):
    id: UUID
    ride_id: UUID
    driver_id: Optional[UUID] = None
    action: ReconciliationAction
    status: ReconciliationStatus = ReconciliationStatus.PENDING
    attempts: int = 0
    last_error: Optional[str] = None
    next_attempt_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None

    class Config:
        from_attributes = True
