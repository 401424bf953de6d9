from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status
from src.services.ride_service.service import RideService
from src.services.ride_service.dependencies import get_ride_service
from src.shared.models.ride_dto import RideDTO, CreateRideRequest, UpdateRideStatusRequest, ReconciliationTaskDTO
from src.shared.models.enums import RideStatus, ReconciliationStatus

router = APIRouter(tags=["rides"])


@router.post("/rides", response_model=RideDTO, status_code=http_status.HTTP_201_CREATED)
async def create_ride(
    request: CreateRideRequest,
    service: RideService = Depends(get_ride_service)
):
    return await service.create_ride(request)


@router.get("/rides", response_model=List[RideDTO])
async def list_rides(
    status: Optional[RideStatus] = None,
    service: RideService = Depends(get_ride_service)
):
    return await service.list_rides(status)


@router.get("/rides/{ride_id}", response_model=RideDTO)
async def get_ride(
    ride_id: UUID,
    service: RideService = Depends(get_ride_service)
):
    return await service.get_ride(ride_id)


@router.patch("/rides/{ride_id}/status", response_model=RideDTO)
async def update_ride_status(
    ride_id: UUID,
    request: UpdateRideStatusRequest,
    service: RideService = Depends(get_ride_service)
):
    return await service.update_status(ride_id, request.status)


@router.get("/reconciliation", response_model=List[ReconciliationTaskDTO])
async def list_reconciliation_tasks(
    status: Optional[ReconciliationStatus] = ReconciliationStatus.PENDING,
    limit: int = Query(100, ge=1, le=1000),
    service: RideService = Depends(get_ride_service)
):
    return await service.list_reconciliation_tasks(status, limit)
