import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from unittest.mock import AsyncMock

from src.services.ride_service.state_machine import RideStateMachine
from src.shared.errors import InvalidTransition, NotFound
from src.shared.events import ReconciliationRequested, RideStatusChanged
from src.shared.models.enums import (
    PaymentStatus,
    ReconciliationAction,
    ReleaseOutcome,
    RideStatus,
)
from src.shared.models.ride_dto import RideDTO


async def assigned_ride(world):
    passenger = await world.passengers.create_passenger("Jerry")
    await world.drivers.create_driver("Rick")
    return await world.dispatch.create_ride(passenger.id, "Downtown", "Airport")


async def in_progress_ride(world):
    ride = await assigned_ride(world)
    return await world.state_machine.transition(ride.id, RideStatus.IN_PROGRESS)


def published(world, event_type):
    return [c.args[0] for c in world.event_bus.publish.call_args_list if isinstance(c.args[0], event_type)]


@pytest.mark.parametrize("current,new,allowed", [
    ("ASSIGNED", "IN_PROGRESS", True),
    ("ASSIGNED", "CANCELLED", True),
    ("IN_PROGRESS", "COMPLETED", True),
    ("IN_PROGRESS", "CANCELLED", True),
    ("ASSIGNED", "COMPLETED", False),
    ("ASSIGNED", "ASSIGNED", False),
    ("IN_PROGRESS", "ASSIGNED", False),
    ("COMPLETED", "CANCELLED", False),
    ("CANCELLED", "IN_PROGRESS", False),
    ("COMPLETED", "COMPLETED", False),
    ("ASSIGNED", "FINISHED", False),
])
def test_transition_table(current, new, allowed):
    assert RideStateMachine.can_transition(current, new) is allowed


def test_payment_action_for():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ride = RideDTO(
        id=uuid4(), passenger_id=uuid4(), driver_id=uuid4(),
        from_zone="a", to_zone="b", price=10.0, created_at=now, updated_at=now,
    )
    captured = ride.model_copy(update={"payment_status": PaymentStatus.CAPTURED})

    assert RideStateMachine.payment_action_for(ride, RideStatus.COMPLETED) == ReconciliationAction.CAPTURE_PAYMENT
    assert RideStateMachine.payment_action_for(ride, RideStatus.CANCELLED) == ReconciliationAction.VOID_PAYMENT
    assert RideStateMachine.payment_action_for(captured, RideStatus.CANCELLED) == ReconciliationAction.REFUND_PAYMENT
    assert RideStateMachine.payment_action_for(ride, RideStatus.IN_PROGRESS) is None


@pytest.mark.asyncio
async def test_start_ride_has_no_side_effects(world):
    ride = await in_progress_ride(world)

    assert ride.status == RideStatus.IN_PROGRESS
    assert world.payments.calls == []
    assert world.registry.release_calls == []
    assert (await world.drivers.get_driver(ride.driver_id)).is_available is False


@pytest.mark.asyncio
async def test_complete_captures_and_releases(world):
    ride = await in_progress_ride(world)

    done = await world.state_machine.transition(ride.id, RideStatus.COMPLETED)

    assert done.status == RideStatus.COMPLETED
    assert done.payment_status == PaymentStatus.CAPTURED
    assert world.payments.calls == [("capture", ride.id, ride.price)]
    assert world.registry.release_calls == [(ride.driver_id, ride.id)]
    assert (await world.drivers.get_driver(ride.driver_id)).is_available is True

    (event,) = published(world, RideStatusChanged)[-1:]
    assert event.old_status == "IN_PROGRESS"
    assert event.new_status == "COMPLETED"
    assert event.payment_status == "CAPTURED"


@pytest.mark.asyncio
async def test_cancel_voids_and_releases(world):
    ride = await assigned_ride(world)

    cancelled = await world.state_machine.transition(ride.id, RideStatus.CANCELLED)

    assert cancelled.status == RideStatus.CANCELLED
    assert cancelled.payment_status == PaymentStatus.PENDING
    assert world.payments.calls == [("void", ride.id, None)]
    assert (await world.drivers.get_driver(ride.driver_id)).is_available is True


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [RideStatus.COMPLETED, RideStatus.CANCELLED])
async def test_terminal_status_is_final(world, terminal):
    ride = await in_progress_ride(world)
    await world.state_machine.transition(ride.id, terminal)

    for target in RideStatus:
        with pytest.raises(InvalidTransition):
            await world.state_machine.transition(ride.id, target)


@pytest.mark.asyncio
async def test_self_transition_rejected(world):
    ride = await assigned_ride(world)

    with pytest.raises(InvalidTransition):
        await world.state_machine.transition(ride.id, RideStatus.ASSIGNED)


@pytest.mark.asyncio
async def test_unknown_ride(world):
    with pytest.raises(NotFound):
        await world.state_machine.transition(uuid4(), RideStatus.IN_PROGRESS)


@pytest.mark.asyncio
async def test_concurrent_terminal_transitions(world):
    """Из двух конкурентных переходов применяется ровно один."""
    ride = await in_progress_ride(world)

    results = await asyncio.gather(
        world.state_machine.transition(ride.id, RideStatus.COMPLETED),
        world.state_machine.transition(ride.id, RideStatus.CANCELLED),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, RideDTO)]
    rejected = [r for r in results if isinstance(r, InvalidTransition)]
    assert len(succeeded) == 1
    assert len(rejected) == 1
    assert len(world.payments.calls) == 1


@pytest.mark.asyncio
async def test_transient_payment_failure_is_retried(world):
    ride = await in_progress_ride(world)
    world.payments.fail("capture", 1)

    done = await world.state_machine.transition(ride.id, RideStatus.COMPLETED)

    assert done.payment_status == PaymentStatus.CAPTURED
    assert world.reconciliation.tasks == {}


@pytest.mark.asyncio
async def test_exhausted_payment_goes_to_reconciliation(world):
    ride = await in_progress_ride(world)
    world.payments.fail("capture", 10)

    done = await world.state_machine.transition(ride.id, RideStatus.COMPLETED)

    assert done.status == RideStatus.COMPLETED
    assert done.payment_status == PaymentStatus.PENDING
    (task,) = world.reconciliation.tasks.values()
    assert task.action == ReconciliationAction.CAPTURE_PAYMENT
    # освобождение водителя не зависит от оплаты
    assert (await world.drivers.get_driver(ride.driver_id)).is_available is True

    (event,) = published(world, ReconciliationRequested)
    assert event.action == "CAPTURE_PAYMENT"
    assert event.task_id == str(task.id)


@pytest.mark.asyncio
async def test_exhausted_release_goes_to_reconciliation(world):
    ride = await in_progress_ride(world)
    world.registry.release_failures = 10

    done = await world.state_machine.transition(ride.id, RideStatus.COMPLETED)

    assert done.status == RideStatus.COMPLETED
    assert done.payment_status == PaymentStatus.CAPTURED
    (task,) = world.reconciliation.tasks.values()
    assert task.action == ReconciliationAction.RELEASE_DRIVER
    assert task.driver_id == ride.driver_id


@pytest.mark.asyncio
async def test_storage_error_after_capture_goes_to_reconciliation(world):
    ride = await in_progress_ride(world)
    world.rides.payment_update_error = ConnectionError("ledger down")

    done = await world.state_machine.transition(ride.id, RideStatus.COMPLETED)

    assert done.status == RideStatus.COMPLETED
    assert [t.action for t in world.reconciliation.tasks.values()] == [ReconciliationAction.CAPTURE_PAYMENT]


@pytest.mark.asyncio
async def test_perform_capture_is_idempotent(world):
    ride = await in_progress_ride(world)
    await world.state_machine.transition(ride.id, RideStatus.COMPLETED)

    await world.state_machine.perform(ReconciliationAction.CAPTURE_PAYMENT, ride.id, ride.driver_id)

    assert [c[0] for c in world.payments.calls] == ["capture"]


@pytest.mark.asyncio
async def test_perform_refund_after_capture(world):
    ride = await in_progress_ride(world)
    await world.rides.update_payment_status(ride.id, PaymentStatus.CAPTURED)

    await world.state_machine.perform(ReconciliationAction.REFUND_PAYMENT, ride.id)
    await world.state_machine.perform(ReconciliationAction.REFUND_PAYMENT, ride.id)

    assert (await world.rides.get_ride(ride.id)).payment_status == PaymentStatus.REFUNDED
    assert world.payments.calls == [("refund", ride.id, ride.price)]


@pytest.mark.asyncio
async def test_perform_release_skips_reassigned_driver(world):
    ride = await in_progress_ride(world)
    await world.drivers.release(ride.driver_id, ride.id)
    new_ride = uuid4()
    await world.drivers.claim(new_ride)

    await world.state_machine.perform(ReconciliationAction.RELEASE_DRIVER, ride.id, ride.driver_id)

    driver = await world.drivers.get_driver(ride.driver_id)
    assert driver.current_ride_id == new_ride
    assert (await world.registry.release(ride.driver_id, ride.id)).outcome == ReleaseOutcome.REASSIGNED


@pytest.mark.asyncio
async def test_reread_failure_returns_written_status(world):
    """Статус записан: сбой повторного чтения не превращается в ошибку для вызывающего."""
    ride = await assigned_ride(world)
    world.rides.get_ride = AsyncMock(side_effect=[ride, ConnectionError("db down")])

    updated = await world.state_machine.transition(ride.id, RideStatus.IN_PROGRESS)

    assert updated.status == RideStatus.IN_PROGRESS
    assert world.rides.rides[ride.id].status == RideStatus.IN_PROGRESS
    (event,) = published(world, RideStatusChanged)
    assert event.new_status == "IN_PROGRESS"
