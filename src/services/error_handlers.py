# src/services/error_handlers.py
"""
Преобразование доменных ошибок в HTTP-ответы ErrorResponse.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.common.logger import log_info, TypeMsg
from src.shared.errors import RideNowError, UpstreamUnavailable
from src.shared.models.common import ErrorResponse


async def ridenow_error_handler(request: Request, exc: RideNowError) -> JSONResponse:
    level = TypeMsg.ERROR if isinstance(exc, UpstreamUnavailable) else TypeMsg.DEBUG
    await log_info(
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}",
        type_msg=level,
    )
    body = ErrorResponse(error_code=exc.code, message=exc.message, details=exc.details)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RideNowError, ridenow_error_handler)
