from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel
from src.shared.models.enums import ReleaseOutcome


class DriverDTO(BaseModel):
    id: UUID
    name: str
    is_available: bool = True
    current_ride_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CreateDriverRequest(BaseModel):
    name: str


class UpdateDriverStatusRequest(BaseModel):
    is_available: bool


class ClaimDriverRequest(BaseModel):
    # Идентификатор поездки, под которую захватывается водитель (токен захвата)
    ride_id: UUID


class ReleaseDriverRequest(BaseModel):
    ride_id: Optional[UUID] = None


class ReleaseResultDTO(BaseModel):
    driver: DriverDTO
    outcome: ReleaseOutcome
