# backend/tests/api/test_system.py
import pytest
from fastapi import status
from httpx import AsyncClient

from nottu.core.config import settings


@pytest.mark.asyncio
async def test_health(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Server is running"
    assert body["environment"] == settings.ENVIRONMENT
    assert body["timestamp"]


@pytest.mark.asyncio
async def test_unknown_route(test_client: AsyncClient) -> None:
    response = await test_client.get(f"{settings.API_PREFIX}/nope")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"success": False, "message": "Route not found"}


@pytest.mark.asyncio
async def test_request_id_is_generated(test_client: AsyncClient) -> None:
    response = await test_client.get("/health")

    assert response.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_request_id_is_echoed(test_client: AsyncClient) -> None:
    response = await test_client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_malformed_body_uses_error_envelope(test_client: AsyncClient) -> None:
    response = await test_client.post(
        f"{settings.API_PREFIX}/auth/register/options", json={"email": ["a@x.com"], "name": "A"}
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["success"] is False
    assert body["message"].startswith("email")
