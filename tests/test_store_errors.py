"""Tests for store-failure translation (StoreUnavailableError → 503)."""

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StoreUnavailableError, store_errors


async def _login(client: AsyncClient, slug: str) -> dict:
    resp = await client.post("/v1/organizations", json={
        "organization_name": f"{slug} Co",
        "organization_slug": slug,
        "owner_email": f"owner@{slug}.com",
        "owner_password": "testpass123",
    })
    assert resp.status_code == 201
    resp = await client.post("/v1/auth/login", json={
        "email": f"owner@{slug}.com",
        "password": "testpass123",
    })
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_store_errors_wraps_connectivity_failures():
    cause = OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    with pytest.raises(StoreUnavailableError) as excinfo:
        with store_errors("get_current_period"):
            raise cause

    assert excinfo.value.operation == "get_current_period"
    assert excinfo.value.cause is cause


def test_store_errors_passes_integrity_errors_through():
    with pytest.raises(IntegrityError):
        with store_errors("provision_codes"):
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))


@pytest.mark.asyncio
async def test_usage_read_returns_503_when_store_is_down(client: AsyncClient, monkeypatch):
    headers = await _login(client, "store-down")

    async def _connection_lost(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset by peer"))

    # JWT auth needs no query, so the first statement is the usage read
    monkeypatch.setattr(AsyncSession, "execute", _connection_lost)

    resp = await client.get("/v1/billing/usage", headers=headers)

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"] == "store_unavailable"
    assert body["operation"] == "get_current_period"
