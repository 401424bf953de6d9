from typing import Optional, List
from uuid import UUID
from src.services.ride_service.dispatch import DispatchCoordinator
from src.services.ride_service.state_machine import RideStateMachine
from src.services.ride_service.repository import RideRepository, ReconciliationRepository
from src.shared.models.ride_dto import RideDTO, CreateRideRequest, ReconciliationTaskDTO
from src.shared.models.enums import RideStatus, ReconciliationStatus
from src.shared.errors import NotFound


class RideService:
    """Точка входа журнала поездок: создание через координатор, смена статуса через машину состояний."""

    def __init__(
        self,
        rides: RideRepository,
        reconciliation: ReconciliationRepository,
        dispatch: DispatchCoordinator,
        state_machine: RideStateMachine,
    ):
        self.rides = rides
        self.reconciliation = reconciliation
        self.dispatch = dispatch
        self.state_machine = state_machine

    async def create_ride(self, request: CreateRideRequest) -> RideDTO:
        return await self.dispatch.create_ride(request.passenger_id, request.from_zone, request.to_zone)

    async def get_ride(self, ride_id: UUID) -> RideDTO:
        ride = await self.rides.get_ride(ride_id)
        if not ride:
            raise NotFound(f"Поездка {ride_id} не найдена", ride_id=str(ride_id))
        return ride

    async def list_rides(self, status: Optional[RideStatus] = None) -> List[RideDTO]:
        return await self.rides.list_rides(status)

    async def update_status(self, ride_id: UUID, new_status: RideStatus) -> RideDTO:
        return await self.state_machine.transition(ride_id, new_status)

    async def list_reconciliation_tasks(
        self,
        status: Optional[ReconciliationStatus] = ReconciliationStatus.PENDING,
        limit: int = 100,
    ) -> List[ReconciliationTaskDTO]:
        return await self.reconciliation.list_tasks(status, limit)
