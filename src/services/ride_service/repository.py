from typing import Optional, List
from uuid import UUID, uuid4
from src.infra.database import DatabaseManager
from src.shared.models.ride_dto import RideDTO, ReconciliationTaskDTO
from src.shared.models.enums import (
    RideStatus,
    PaymentStatus,
    ReconciliationAction,
    ReconciliationStatus,
)

RIDE_COLUMNS = (
    "id, passenger_id, driver_id, from_zone, to_zone, price, currency, "
    "status, payment_status, created_at, updated_at"
)
TASK_COLUMNS = (
    "id, ride_id, driver_id, action, status, attempts, last_error, "
    "next_attempt_at, created_at, updated_at, resolved_at"
)


def _to_ride(record) -> RideDTO:
    data = dict(record)
    # NUMERIC приходит из asyncpg как Decimal
    data["price"] = float(data["price"])
    return RideDTO(**data)


class RideRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create_ride(
        self,
        ride_id: UUID,
        passenger_id: UUID,
        driver_id: UUID,
        from_zone: str,
        to_zone: str,
        price: float,
        currency: str,
    ) -> RideDTO:
        """Записывает новую поездку в статусе ASSIGNED с оплатой PENDING."""
        query = f"""
            INSERT INTO rides_schema.rides
                (id, passenger_id, driver_id, from_zone, to_zone, price, currency, status, payment_status)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING {RIDE_COLUMNS}
        """
        record = await self.db.fetchrow(
            query,
            ride_id,
            passenger_id,
            driver_id,
            from_zone,
            to_zone,
            price,
            currency,
            RideStatus.ASSIGNED.value,
            PaymentStatus.PENDING.value,
        )
        return _to_ride(record)

    async def get_ride(self, ride_id: UUID) -> Optional[RideDTO]:
        query = f"SELECT {RIDE_COLUMNS} FROM rides_schema.rides WHERE id = $1"
        record = await self.db.fetchrow(query, ride_id)
        return _to_ride(record) if record else None

    async def list_rides(self, status: Optional[RideStatus] = None) -> List[RideDTO]:
        if status is None:
            query = f"SELECT {RIDE_COLUMNS} FROM rides_schema.rides ORDER BY created_at, id"
            records = await self.db.fetch(query)
        else:
            query = f"""
                SELECT {RIDE_COLUMNS} FROM rides_schema.rides
                WHERE status = $1
                ORDER BY created_at, id
            """
            records = await self.db.fetch(query, status.value)
        return [_to_ride(record) for record in records]

    async def compare_and_set_status(
        self,
        ride_id: UUID,
        expected: RideStatus,
        new_status: RideStatus,
    ) -> Optional[RideDTO]:
        """
        Меняет статус, только если текущий равен expected.
        None: строка не совпала (поездка удалена или переход уже выполнен другим запросом).
        """
        query = f"""
            UPDATE rides_schema.rides
            SET status = $3, updated_at = NOW()
            WHERE id = $1 AND status = $2
            RETURNING {RIDE_COLUMNS}
        """
        record = await self.db.fetchrow(query, ride_id, expected.value, new_status.value)
        return _to_ride(record) if record else None

    async def update_payment_status(self, ride_id: UUID, payment_status: PaymentStatus) -> Optional[RideDTO]:
        query = f"""
            UPDATE rides_schema.rides
            SET payment_status = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING {RIDE_COLUMNS}
        """
        record = await self.db.fetchrow(query, ride_id, payment_status.value)
        return _to_ride(record) if record else None

    async def discard_ride(self, ride_id: UUID) -> bool:
        """Удаляет только что созданную поездку (компенсация неудачной записи)."""
        result = await self.db.execute(
            "DELETE FROM rides_schema.rides WHERE id = $1 AND status = $2",
            ride_id,
            RideStatus.ASSIGNED.value,
        )
        return result.endswith(" 1")


class ReconciliationRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def record_task(
        self,
        ride_id: UUID,
        action: ReconciliationAction,
        driver_id: Optional[UUID] = None,
        error: Optional[str] = None,
    ) -> ReconciliationTaskDTO:
        """
        Создаёт задачу сверки. Если открытая задача на то же действие
        по поездке уже есть, обновляет её last_error.
        """
        query = f"""
            INSERT INTO rides_schema.reconciliation_tasks (id, ride_id, driver_id, action, last_error)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (ride_id, action) WHERE status = 'PENDING'
            DO UPDATE SET last_error = EXCLUDED.last_error, updated_at = NOW()
            RETURNING {TASK_COLUMNS}
        """
        record = await self.db.fetchrow(query, uuid4(), ride_id, driver_id, action.value, error)
        return ReconciliationTaskDTO(**dict(record))

    async def list_tasks(
        self,
        status: Optional[ReconciliationStatus] = None,
        limit: int = 100,
        due_only: bool = False,
    ) -> List[ReconciliationTaskDTO]:
        """due_only: только открытые задачи, чей отложенный повтор уже наступил."""
        if due_only:
            query = f"""
                SELECT {TASK_COLUMNS} FROM rides_schema.reconciliation_tasks
                WHERE status = 'PENDING' AND next_attempt_at <= NOW()
                ORDER BY next_attempt_at, id
                LIMIT $1
            """
            records = await self.db.fetch(query, limit)
        elif status is None:
            query = f"""
                SELECT {TASK_COLUMNS} FROM rides_schema.reconciliation_tasks
                ORDER BY created_at, id
                LIMIT $1
            """
            records = await self.db.fetch(query, limit)
        else:
            query = f"""
                SELECT {TASK_COLUMNS} FROM rides_schema.reconciliation_tasks
                WHERE status = $1
                ORDER BY created_at, id
                LIMIT $2
            """
            records = await self.db.fetch(query, status.value, limit)
        return [ReconciliationTaskDTO(**dict(record)) for record in records]

    async def mark_resolved(self, task_id: UUID) -> None:
        await self.db.execute(
            """
            UPDATE rides_schema.reconciliation_tasks
            SET status = 'RESOLVED', attempts = attempts + 1, resolved_at = NOW(), updated_at = NOW()
            WHERE id = $1
            """,
            task_id,
        )

    async def mark_failed(self, task_id: UUID, error: str, retry_in: float = 0) -> None:
        """Фиксирует неудачную попытку и откладывает следующую на retry_in секунд."""
        await self.db.execute(
            """
            UPDATE rides_schema.reconciliation_tasks
            SET attempts = attempts + 1, last_error = $2,
                next_attempt_at = NOW() + make_interval(secs => $3), updated_at = NOW()
            WHERE id = $1
            """,
            task_id,
            error,
            float(retry_in),
        )
