"""Tests for the root and health endpoints."""
import pytest
from httpx import AsyncClient


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["red_zone_sweep"] == "on_demand"

    @pytest.mark.asyncio
    async def test_correlation_headers_echoed(self, client: AsyncClient):
        response = await client.get("/health", headers={"X-Correlation-ID": "abc123"})
        assert response.headers["X-Correlation-ID"] == "abc123"
        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_not_found_is_problem_json(self, client: AsyncClient):
        response = await client.get("/api/v2/nope")
        assert response.status_code == 404
        assert response.headers["content-type"].startswith("application/problem+json")
        assert response.json()["code"] == "RES_001"
