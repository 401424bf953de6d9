from typing import Optional, List
from uuid import UUID
import asyncpg
from src.infra.database import DatabaseManager
from src.shared.models.driver_dto import DriverDTO, ReleaseResultDTO
from src.shared.models.passenger_dto import PassengerDTO
from src.shared.models.enums import ReleaseOutcome
from src.common.logger import log_debug

DRIVER_COLUMNS = "id, name, is_available, current_ride_id, created_at, updated_at"
PASSENGER_COLUMNS = "id, name, created_at, updated_at"

# Атомарный захват: выбор самого раннего свободного водителя и сброс флага
# одним условным UPDATE. SKIP LOCKED разводит конкурентные захваты по разным
# строкам, повторная проверка is_available: шаг compare-and-set.
CLAIM_QUERY = f"""
    UPDATE users_schema.drivers
    SET is_available = FALSE, current_ride_id = $1, updated_at = NOW()
    WHERE id = (
        SELECT id FROM users_schema.drivers
        WHERE is_available = TRUE
        ORDER BY created_at, id
        LIMIT 1
        FOR UPDATE SKIP LOCKED
    )
    AND is_available = TRUE
    RETURNING {DRIVER_COLUMNS}
"""


class DriverRepository:
    def __init__(self, db: DatabaseManager, selection_attempts: int = 5):
        self.db = db
        self.selection_attempts = selection_attempts

    async def create_driver(self, driver_id: UUID, name: str) -> DriverDTO:
        """Создает свободного водителя."""
        query = f"""
            INSERT INTO users_schema.drivers (id, name, is_available)
            VALUES ($1, $2, TRUE)
            RETURNING {DRIVER_COLUMNS}
        """
        record = await self.db.fetchrow(query, driver_id, name)
        return DriverDTO(**dict(record))

    async def get_driver(self, driver_id: UUID) -> Optional[DriverDTO]:
        query = f"SELECT {DRIVER_COLUMNS} FROM users_schema.drivers WHERE id = $1"
        record = await self.db.fetchrow(query, driver_id)
        return DriverDTO(**dict(record)) if record else None

    async def list_drivers(self, available: Optional[bool] = None) -> List[DriverDTO]:
        """Список водителей в порядке регистрации, с фильтром по доступности."""
        if available is None:
            query = f"SELECT {DRIVER_COLUMNS} FROM users_schema.drivers ORDER BY created_at, id"
            records = await self.db.fetch(query)
        else:
            query = f"""
                SELECT {DRIVER_COLUMNS} FROM users_schema.drivers
                WHERE is_available = $1
                ORDER BY created_at, id
            """
            records = await self.db.fetch(query, available)
        return [DriverDTO(**dict(record)) for record in records]

    async def get_driver_by_claim(self, ride_id: UUID) -> Optional[DriverDTO]:
        """Возвращает водителя, захваченного под поездку ride_id."""
        query = f"SELECT {DRIVER_COLUMNS} FROM users_schema.drivers WHERE current_ride_id = $1"
        record = await self.db.fetchrow(query, ride_id)
        return DriverDTO(**dict(record)) if record else None

    async def claim_driver(self, ride_id: UUID) -> Optional[DriverDTO]:
        """
        Захватывает свободного водителя под поездку.

        Повторный вызов с тем же ride_id возвращает уже захваченного водителя.
        Если условный UPDATE проиграл гонку, а свободные водители ещё есть,
        выбор повторяется. None: свободных водителей нет.
        """
        existing = await self.get_driver_by_claim(ride_id)
        if existing:
            return existing

        for attempt in range(1, self.selection_attempts + 1):
            try:
                record = await self.db.fetchrow(CLAIM_QUERY, ride_id)
            except asyncpg.UniqueViolationError:
                # Параллельный захват с тем же токеном уже прошёл
                return await self.get_driver_by_claim(ride_id)

            if record:
                return DriverDTO(**dict(record))

            has_available = await self.db.fetchval(
                "SELECT EXISTS (SELECT 1 FROM users_schema.drivers WHERE is_available = TRUE)"
            )
            if not has_available:
                return None
            await log_debug(f"Захват под поездку {ride_id} проиграл гонку, попытка {attempt}")

        return None

    async def release_driver(self, driver_id: UUID, ride_id: Optional[UUID] = None) -> Optional[ReleaseResultDTO]:
        """
        Освобождает водителя под блокировкой строки.

        Идемпотентно: свободный водитель остаётся без изменений.
        Если указан ride_id, а водитель занят другой поездкой, ничего не меняется.
        None: водитель не найден.
        """
        async with self.db.transaction() as conn:
            record = await conn.fetchrow(
                f"SELECT {DRIVER_COLUMNS} FROM users_schema.drivers WHERE id = $1 FOR UPDATE",
                driver_id,
            )
            if record is None:
                return None

            current = DriverDTO(**dict(record))
            if current.is_available:
                return ReleaseResultDTO(driver=current, outcome=ReleaseOutcome.ALREADY_AVAILABLE)
            if ride_id is not None and current.current_ride_id != ride_id:
                return ReleaseResultDTO(driver=current, outcome=ReleaseOutcome.REASSIGNED)

            record = await conn.fetchrow(
                f"""
                UPDATE users_schema.drivers
                SET is_available = TRUE, current_ride_id = NULL, updated_at = NOW()
                WHERE id = $1
                RETURNING {DRIVER_COLUMNS}
                """,
                driver_id,
            )
            return ReleaseResultDTO(driver=DriverDTO(**dict(record)), outcome=ReleaseOutcome.RELEASED)

    async def set_available(self, driver_id: UUID) -> Optional[DriverDTO]:
        """
        Возвращает водителя в онлайн, только если он не держит захват поездки.
        None: водитель не найден или занят поездкой.
        """
        query = f"""
            UPDATE users_schema.drivers
            SET is_available = TRUE, updated_at = NOW()
            WHERE id = $1 AND current_ride_id IS NULL
            RETURNING {DRIVER_COLUMNS}
        """
        record = await self.db.fetchrow(query, driver_id)
        return DriverDTO(**dict(record)) if record else None

    async def set_unavailable(self, driver_id: UUID) -> Optional[DriverDTO]:
        """Переводит водителя в офлайн (ручное управление, без токена захвата)."""
        query = f"""
            UPDATE users_schema.drivers
            SET is_available = FALSE, updated_at = NOW()
            WHERE id = $1
            RETURNING {DRIVER_COLUMNS}
        """
        record = await self.db.fetchrow(query, driver_id)
        return DriverDTO(**dict(record)) if record else None


class PassengerRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def create_passenger(self, passenger_id: UUID, name: str) -> PassengerDTO:
        query = f"""
            INSERT INTO users_schema.passengers (id, name)
            VALUES ($1, $2)
            RETURNING {PASSENGER_COLUMNS}
        """
        record = await self.db.fetchrow(query, passenger_id, name)
        return PassengerDTO(**dict(record))

    async def get_passenger(self, passenger_id: UUID) -> Optional[PassengerDTO]:
        query = f"SELECT {PASSENGER_COLUMNS} FROM users_schema.passengers WHERE id = $1"
        record = await self.db.fetchrow(query, passenger_id)
        return PassengerDTO(**dict(record)) if record else None

    async def list_passengers(self) -> List[PassengerDTO]:
        query = f"SELECT {PASSENGER_COLUMNS} FROM users_schema.passengers ORDER BY created_at, id"
        records = await self.db.fetch(query)
        return [PassengerDTO(**dict(record)) for record in records]

    async def update_passenger(self, passenger_id: UUID, name: str) -> Optional[PassengerDTO]:
        query = f"""
            UPDATE users_schema.passengers
            SET name = $2, updated_at = NOW()
            WHERE id = $1
            RETURNING {PASSENGER_COLUMNS}
        """
        record = await self.db.fetchrow(query, passenger_id, name)
        return PassengerDTO(**dict(record)) if record else None

    async def delete_passenger(self, passenger_id: UUID) -> bool:
        """Удаляет пассажира. False: пассажир не найден."""
        result = await self.db.execute(
            "DELETE FROM users_schema.passengers WHERE id = $1", passenger_id
        )
        return result.endswith(" 1")
