from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Response, status
from src.services.users_service.service import DriverService, PassengerService
from src.services.users_service.dependencies import get_driver_service, get_passenger_service
from src.shared.models.driver_dto import (
    DriverDTO,
    CreateDriverRequest,
    UpdateDriverStatusRequest,
    ClaimDriverRequest,
    ReleaseDriverRequest,
    ReleaseResultDTO,
)
from src.shared.models.passenger_dto import PassengerDTO, CreatePassengerRequest, UpdatePassengerRequest

router = APIRouter(tags=["registry"])


@router.post("/drivers", response_model=DriverDTO, status_code=status.HTTP_201_CREATED)
async def create_driver(
    request: CreateDriverRequest,
    service: DriverService = Depends(get_driver_service)
):
    return await service.create_driver(request.name)


@router.get("/drivers", response_model=List[DriverDTO])
async def list_drivers(
    available: Optional[bool] = None,
    service: DriverService = Depends(get_driver_service)
):
    return await service.list_drivers(available)


@router.post("/drivers/claim", response_model=DriverDTO)
async def claim_driver(
    request: ClaimDriverRequest,
    service: DriverService = Depends(get_driver_service)
):
    return await service.claim(request.ride_id)


@router.post("/drivers/claims/{ride_id}/release", response_model=Optional[DriverDTO])
async def release_claim(
    ride_id: UUID,
    service: DriverService = Depends(get_driver_service)
):
    return await service.release_claim(ride_id)


@router.get("/drivers/{driver_id}", response_model=DriverDTO)
async def get_driver(
    driver_id: UUID,
    service: DriverService = Depends(get_driver_service)
):
    return await service.get_driver(driver_id)


@router.patch("/drivers/{driver_id}/status", response_model=DriverDTO)
async def set_driver_status(
    driver_id: UUID,
    request: UpdateDriverStatusRequest,
    service: DriverService = Depends(get_driver_service)
):
    return await service.set_driver_status(driver_id, request.is_available)


@router.post("/drivers/{driver_id}/release", response_model=ReleaseResultDTO)
async def release_driver(
    driver_id: UUID,
    request: Optional[ReleaseDriverRequest] = None,
    service: DriverService = Depends(get_driver_service)
):
    ride_id = request.ride_id if request else None
    return await service.release(driver_id, ride_id)


@router.post("/passengers", response_model=PassengerDTO, status_code=status.HTTP_201_CREATED)
async def create_passenger(
    request: CreatePassengerRequest,
    service: PassengerService = Depends(get_passenger_service)
):
    return await service.create_passenger(request.name)


@router.get("/passengers", response_model=List[PassengerDTO])
async def list_passengers(service: PassengerService = Depends(get_passenger_service)):
    return await service.list_passengers()


@router.get("/passengers/{passenger_id}", response_model=PassengerDTO)
async def get_passenger(
    passenger_id: UUID,
    service: PassengerService = Depends(get_passenger_service)
):
    return await service.get_passenger(passenger_id)


@router.put("/passengers/{passenger_id}", response_model=PassengerDTO)
async def update_passenger(
    passenger_id: UUID,
    request: UpdatePassengerRequest,
    service: PassengerService = Depends(get_passenger_service)
):
    return await service.update_passenger(passenger_id, request.name)


@router.delete("/passengers/{passenger_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_passenger(
    passenger_id: UUID,
    service: PassengerService = Depends(get_passenger_service)
):
    await service.delete_passenger(passenger_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
