from contextlib import asynccontextmanager
from fastapi import FastAPI
from src.services.users_service.routes import router
from src.services.error_handlers import register_error_handlers
from src.infra.database import init_db, close_db, get_db
from src.infra.event_bus import init_event_bus, close_event_bus, get_event_bus
from src.shared.models.common import HealthStatus
from src.common.constants import API_PREFIX
from src.common.logger import log_info, TypeMsg
from src.config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    await log_info("Запуск Users Service...", type_msg=TypeMsg.INFO)
    await init_db("users.sql")
    await init_event_bus()

    yield

    await log_info("Остановка Users Service...", type_msg=TypeMsg.INFO)
    await close_event_bus()
    await close_db()


app = FastAPI(
    title="Users Service",
    description="Реестр водителей и пассажиров: атомарный захват и освобождение водителей",
    version=settings.system.VERSION,
    lifespan=lifespan
)

register_error_handlers(app)
app.include_router(router, prefix=API_PREFIX)


@app.get("/health", response_model=HealthStatus)
async def health_check():
    db_ok = await get_db().health_check()
    bus_ok = await get_event_bus().health_check()
    return HealthStatus(
        service="users_service",
        status="healthy" if db_ok else "unhealthy",
        version=settings.system.VERSION,
        dependencies={
            "postgres": "ok" if db_ok else "down",
            "rabbitmq": "ok" if bus_ok else "down",
        },
    )
