"""Tests for the health endpoint and request-id propagation."""
import pytest
from httpx import ASGITransport, AsyncClient

from userdir.main import app


@pytest.mark.asyncio
async def test_health_returns_ok_status():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_request_id_is_generated_when_absent():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert len(response.headers["X-Request-ID"]) == 32


@pytest.mark.asyncio
async def test_request_id_is_echoed_back():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
