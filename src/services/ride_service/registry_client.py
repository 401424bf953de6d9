# src/services/ride_service/registry_client.py
"""
HTTP-клиент реестра водителей и пассажиров (users_service).

Каждый вызов ограничен таймаутом. Ошибки транспорта, таймауты и ответы 5xx
превращаются в UpstreamUnavailable, бизнес-ответы 404/409/422 в
соответствующие доменные ошибки.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import httpx

from src.config import settings
from src.shared.errors import (
    NoDriverAvailable,
    NotFound,
    PassengerNotFound,
    UpstreamUnavailable,
    ValidationError,
)
from src.shared.models.driver_dto import DriverDTO, ReleaseResultDTO
from src.shared.models.passenger_dto import PassengerDTO


class RegistryClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url or settings.deployment.users_service_url
        self.timeout = timeout if timeout is not None else settings.timeouts.REGISTRY_TIMEOUT
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def close(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> Any:
        try:
            response = await self.client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Таймаут реестра: {method} {path}", path=path) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Реестр недоступен: {e}", path=path) from e

        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Реестр ответил {response.status_code}: {method} {path}",
                path=path,
                status_code=response.status_code,
            )
        if response.status_code == 404:
            raise NotFound(self._error_message(response), path=path)
        if response.status_code == 409:
            raise NoDriverAvailable(self._error_message(response))
        if response.status_code == 422:
            raise ValidationError(self._error_message(response), path=path)
        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"Неожиданный ответ реестра {response.status_code}: {method} {path}",
                path=path,
                status_code=response.status_code,
            )
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return body.get("message") or str(body.get("detail") or body)
        return str(body)

    async def get_passenger(self, passenger_id: UUID) -> PassengerDTO:
        try:
            data = await self._request("GET", f"/passengers/{passenger_id}")
        except NotFound as e:
            raise PassengerNotFound(
                f"Пассажир {passenger_id} не найден", passenger_id=str(passenger_id)
            ) from e
        return PassengerDTO(**data)

    async def get_driver(self, driver_id: UUID) -> DriverDTO:
        data = await self._request("GET", f"/drivers/{driver_id}")
        return DriverDTO(**data)

    async def claim(self, ride_id: UUID) -> DriverDTO:
        """Захват водителя под поездку. Повтор с тем же ride_id идемпотентен."""
        data = await self._request("POST", "/drivers/claim", json={"ride_id": str(ride_id)})
        return DriverDTO(**data)

    async def release(self, driver_id: UUID, ride_id: Optional[UUID] = None) -> ReleaseResultDTO:
        payload = {"ride_id": str(ride_id) if ride_id else None}
        data = await self._request("POST", f"/drivers/{driver_id}/release", json=payload)
        return ReleaseResultDTO(**data)

    async def release_claim(self, ride_id: UUID) -> Optional[DriverDTO]:
        data = await self._request("POST", f"/drivers/claims/{ride_id}/release")
        return DriverDTO(**data) if data else None
