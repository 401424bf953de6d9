# src/services/ride_service/payments.py
"""
Интеграция с платёжным процессором.

Используется только контракт capture/void/refund. Каждая операция
отправляется с ключом идемпотентности "<ride_id>:<action>", поэтому
повторы и задачи сверки не приводят к двойному списанию.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

import httpx

from src.common.constants import IDEMPOTENCY_HEADER
from src.common.logger import log_info, TypeMsg
from src.config import settings
from src.shared.errors import UpstreamUnavailable


class PaymentGateway(ABC):
    """Контракт платёжного процессора."""

    @abstractmethod
    async def capture(self, ride_id: UUID, amount: float) -> None:
        """Списать оплату за завершённую поездку."""

    @abstractmethod
    async def void(self, ride_id: UUID) -> None:
        """Аннулировать несписанную оплату отменённой поездки."""

    @abstractmethod
    async def refund(self, ride_id: UUID, amount: float) -> None:
        """Вернуть списанную оплату."""

    async def close(self) -> None:
        return None


class HttpPaymentGateway(PaymentGateway):
    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.timeouts.PAYMENT_TIMEOUT
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)

    async def close(self) -> None:
        await self.client.aclose()

    async def _post(self, action: str, ride_id: UUID, amount: Optional[float] = None) -> None:
        payload = {"ride_id": str(ride_id), "currency": settings.fares.CURRENCY}
        if amount is not None:
            payload["amount"] = amount
        headers = {IDEMPOTENCY_HEADER: f"{ride_id}:{action}"}

        try:
            response = await self.client.post(f"/payments/{action}", json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(
                f"Платёжный процессор: {action} для поездки {ride_id} не выполнен: {e}",
                ride_id=str(ride_id),
                action=action,
            ) from e

        await log_info(f"Платёж {action} для поездки {ride_id} выполнен", type_msg=TypeMsg.INFO)

    async def capture(self, ride_id: UUID, amount: float) -> None:
        await self._post("capture", ride_id, amount)

    async def void(self, ride_id: UUID) -> None:
        await self._post("void", ride_id)

    async def refund(self, ride_id: UUID, amount: float) -> None:
        await self._post("refund", ride_id, amount)


class SimulatedPaymentGateway(PaymentGateway):
    """Процессор не настроен: операции только логируются."""

    async def capture(self, ride_id: UUID, amount: float) -> None:
        await log_info(f"[simulated] capture {amount:.2f} для поездки {ride_id}", type_msg=TypeMsg.INFO)

    async def void(self, ride_id: UUID) -> None:
        await log_info(f"[simulated] void для поездки {ride_id}", type_msg=TypeMsg.INFO)

    async def refund(self, ride_id: UUID, amount: float) -> None:
        await log_info(f"[simulated] refund {amount:.2f} для поездки {ride_id}", type_msg=TypeMsg.INFO)


def get_payment_gateway() -> PaymentGateway:
    """HTTP-шлюз, если задан PAYMENTS_PROCESSOR_URL, иначе симуляция."""
    url = settings.deployment.PAYMENTS_PROCESSOR_URL
    if url:
        return HttpPaymentGateway(url)
    return SimulatedPaymentGateway()
