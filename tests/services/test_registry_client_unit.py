import json
from datetime import datetime, timezone
from uuid import uuid4

import httpx
import pytest

from src.services.ride_service.registry_client import RegistryClient
from src.shared.errors import (
    NoDriverAvailable,
    NotFound,
    PassengerNotFound,
    UpstreamUnavailable,
    ValidationError,
)
from src.shared.models.enums import ReleaseOutcome

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc).isoformat()


def driver_json(driver_id=None, ride_id=None):
    return {
        "id": str(driver_id or uuid4()),
        "name": "Rick",
        "is_available": ride_id is None,
        "current_ride_id": str(ride_id) if ride_id else None,
        "created_at": NOW,
        "updated_at": NOW,
    }


def make_client(handler) -> RegistryClient:
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(base_url="http://registry.test/api/v1", transport=transport)
    return RegistryClient(base_url="http://registry.test/api/v1", timeout=1.0, client=http)


@pytest.mark.asyncio
async def test_claim_sends_ride_token():
    ride_id = uuid4()
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=driver_json(ride_id=ride_id))

    client = make_client(handler)
    driver = await client.claim(ride_id)

    assert seen == {"path": "/api/v1/drivers/claim", "body": {"ride_id": str(ride_id)}}
    assert driver.current_ride_id == ride_id


@pytest.mark.asyncio
async def test_claim_conflict_is_no_driver():
    client = make_client(lambda request: httpx.Response(
        409, json={"error_code": "NO_DRIVER_AVAILABLE", "message": "Нет свободных водителей"}
    ))

    with pytest.raises(NoDriverAvailable, match="Нет свободных водителей"):
        await client.claim(uuid4())


@pytest.mark.asyncio
async def test_missing_passenger():
    client = make_client(lambda request: httpx.Response(404, json={"error_code": "NOT_FOUND", "message": "нет"}))

    with pytest.raises(PassengerNotFound):
        await client.get_passenger(uuid4())

    with pytest.raises(NotFound):
        await client.get_driver(uuid4())


@pytest.mark.asyncio
async def test_validation_error():
    client = make_client(lambda request: httpx.Response(422, json={"detail": "bad"}))

    with pytest.raises(ValidationError):
        await client.claim(uuid4())


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [500, 503, 400])
async def test_unexpected_status_is_upstream(status_code):
    client = make_client(lambda request: httpx.Response(status_code, text="boom"))

    with pytest.raises(UpstreamUnavailable):
        await client.claim(uuid4())


@pytest.mark.asyncio
async def test_transport_errors_are_upstream():
    def timeout(request):
        raise httpx.ReadTimeout("slow", request=request)

    def refused(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        await make_client(timeout).claim(uuid4())
    with pytest.raises(UpstreamUnavailable):
        await make_client(refused).release(uuid4())


@pytest.mark.asyncio
async def test_release_with_token():
    driver_id, ride_id = uuid4(), uuid4()
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"driver": driver_json(driver_id), "outcome": "RELEASED"})

    result = await make_client(handler).release(driver_id, ride_id)

    assert seen["path"] == f"/api/v1/drivers/{driver_id}/release"
    assert seen["body"] == {"ride_id": str(ride_id)}
    assert result.outcome == ReleaseOutcome.RELEASED


@pytest.mark.asyncio
async def test_release_claim_without_holder():
    ride_id = uuid4()
    client = make_client(lambda request: httpx.Response(200, content=b"null"))

    assert await client.release_claim(ride_id) is None
