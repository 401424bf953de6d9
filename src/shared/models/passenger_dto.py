from datetime import datetime
from uuid import UUID
from pydantic import BaseModel


class PassengerDTO(BaseModel):
    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class CreatePassengerRequest(BaseModel):
    name: str


class UpdatePassengerRequest(BaseModel):
    name: str
