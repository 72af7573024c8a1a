"""Tests for the /v1/billing endpoints."""

import uuid

import pytest
from httpx import AsyncClient

from app.models.appsumo_code import AppsumoCode


async def _bootstrap(client: AsyncClient, slug: str):
    """Helper: bootstrap an organization and return (headers, data)."""
    resp = await client.post("/v1/organizations", json={
        "organization_name": f"{slug} Co",
        "organization_slug": slug,
        "owner_email": f"owner@{slug}.com",
        "owner_password": "testpass123",
    })
    assert resp.status_code == 201
    data = resp.json()
    headers = {"Authorization": f"Bearer {data['api_token']}"}
    return headers, data


async def _make_code(session, tier: int) -> str:
    code = f"LTD-{uuid.uuid4().hex[:10].upper()}"
    session.add(AppsumoCode(code=code, tier=tier))
    await session.commit()
    return code


@pytest.mark.asyncio
async def test_plans_catalog_is_public(client: AsyncClient):
    resp = await client.get("/v1/billing/plans")
    assert resp.status_code == 200
    data = resp.json()
    assert data["free"]["projects"] == 1
    assert set(data["subscription"]) == {"growth", "business", "enterprise"}
    assert data["subscription"]["enterprise"]["projects"] == -1
    assert data["appsumo"]["3"]["white_label"] is True


@pytest.mark.asyncio
async def test_new_organization_starts_on_free(client: AsyncClient):
    headers, data = await _bootstrap(client, "billing-free")
    assert data["organization"]["plan_type"] == "free"

    resp = await client.get("/v1/billing/limits", headers=headers)
    assert resp.status_code == 200
    limits = resp.json()
    assert limits["plan_type"] == "free"
    assert limits["appsumo_tier"] is None
    assert limits["limits"]["name"] == "Free"
    assert limits["limits"]["team_members"] == 1


@pytest.mark.asyncio
async def test_billing_requires_auth(client: AsyncClient):
    resp = await client.get("/v1/billing/limits")
    assert resp.status_code in (401, 403)


@pytest.mark.asyncio
async def test_increment_usage(client: AsyncClient):
    headers, _ = await _bootstrap(client, "billing-incr")

    for _ in range(3):
        resp = await client.post(
            "/v1/billing/usage/increment", json={"kind": "emails", "amount": 5}, headers=headers,
        )
        assert resp.status_code == 200
    assert resp.json()["applied"] is True
    assert resp.json()["value"] == 15

    resp = await client.get("/v1/billing/usage", headers=headers)
    usage = resp.json()["usage"]
    assert usage["emails_monthly"] == 15
    assert usage["sms_monthly"] == 0
    assert usage["ai_analyses"] == 0
    assert usage["team_members"] == 1


@pytest.mark.asyncio
async def test_increment_unknown_kind_rejected(client: AsyncClient):
    headers, _ = await _bootstrap(client, "billing-badkind")

    resp = await client.post(
        "/v1/billing/usage/increment", json={"kind": "pigeons", "amount": 1}, headers=headers,
    )
    assert resp.status_code == 422

    resp = await client.post(
        "/v1/billing/usage/increment", json={"kind": "sms", "amount": 0}, headers=headers,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_quota_check(client: AsyncClient):
    headers, _ = await _bootstrap(client, "billing-quota")

    resp = await client.post(
        "/v1/billing/quota/check", json={"limit_key": "projects"}, headers=headers,
    )
    assert resp.status_code == 200
    decision = resp.json()
    assert decision["allowed"] is True
    assert decision["current"] == 1
    assert decision["limit"] == 1
    assert decision["percent"] == 100

    resp = await client.post(
        "/v1/billing/quota/check", json={"limit_key": "projects", "increment": 2}, headers=headers,
    )
    decision = resp.json()
    assert decision["allowed"] is False
    assert decision["upgrade_required"] is True
    assert decision["current"] == 0
    assert decision["percent"] == 0


@pytest.mark.asyncio
async def test_quota_check_rejects_feature_flags(client: AsyncClient):
    headers, _ = await _bootstrap(client, "billing-flag")

    resp = await client.post(
        "/v1/billing/quota/check", json={"limit_key": "api_access"}, headers=headers,
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_summary_and_upgrade_options(client: AsyncClient):
    headers, _ = await _bootstrap(client, "billing-summary")

    resp = await client.get("/v1/billing/summary", headers=headers)
    assert resp.status_code == 200
    summary = resp.json()
    assert summary["plan"]["name"] == "Free"
    assert [m["key"] for m in summary["metrics"]] == [
        "projects", "automations", "customers", "emails", "ai_analyses",
    ]

    resp = await client.get("/v1/billing/upgrade-options", headers=headers)
    assert resp.status_code == 200
    assert [o["action"] for o in resp.json()["options"]] == ["upgrade", "redeem"]


@pytest.mark.asyncio
async def test_redeem_flow(client: AsyncClient, session):
    headers, data = await _bootstrap(client, "billing-redeem")
    first = await _make_code(session, tier=1)
    second = await _make_code(session, tier=1)

    resp = await client.post("/v1/billing/codes/check", json={"code": first}, headers=headers)
    assert resp.json() == {"valid": True, "tier": 1, "error": None}

    resp = await client.post("/v1/billing/redeem", json={"code": first}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["tier"] == 1

    resp = await client.post("/v1/billing/redeem", json={"code": second.lower()}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == (
        "Code redeemed successfully! Your plan has been upgraded to Tier 2"
    )

    resp = await client.get("/v1/organizations/me", headers=headers)
    org = resp.json()
    assert org["plan_type"] == "appsumo_lifetime"
    assert org["appsumo_tier"] == 2
    assert org["appsumo_codes"] == [first, second]

    resp = await client.get("/v1/billing/limits", headers=headers)
    assert resp.json()["limits"]["name"] == "Lifetime Tier 2"


@pytest.mark.asyncio
async def test_redeem_failures_map_to_status_codes(client: AsyncClient, session):
    headers, _ = await _bootstrap(client, "billing-redeem-fail")
    code = await _make_code(session, tier=3)

    resp = await client.post("/v1/billing/redeem", json={"code": "NOT-REAL"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_code"

    resp = await client.post("/v1/billing/redeem", json={"code": code}, headers=headers)
    assert resp.status_code == 200

    resp = await client.post("/v1/billing/redeem", json={"code": code}, headers=headers)
    assert resp.status_code == 409
    assert resp.json() == {
        "success": False,
        "error": "already_redeemed",
        "message": "Code already redeemed",
    }

    resp = await client.post("/v1/billing/codes/check", json={"code": code}, headers=headers)
    assert resp.json() == {"valid": False, "tier": None, "error": "Code already redeemed"}


@pytest.mark.asyncio
async def test_members_cannot_redeem(client: AsyncClient, session):
    headers, _ = await _bootstrap(client, "billing-member")
    # Free plan allows one seat; a lifetime code makes room for a member
    resp = await client.post(
        "/v1/billing/redeem", json={"code": await _make_code(session, tier=1)}, headers=headers,
    )
    assert resp.status_code == 200

    resp = await client.post("/v1/users", json={
        "email": "member@billing-member.com",
        "password": "memberpass1",
        "role": "member",
    }, headers=headers)
    assert resp.status_code == 201

    resp = await client.post("/v1/auth/login", json={
        "email": "member@billing-member.com",
        "password": "memberpass1",
    })
    member_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}

    resp = await client.post(
        "/v1/billing/redeem",
        json={"code": await _make_code(session, tier=1)},
        headers=member_headers,
    )
    assert resp.status_code == 403

    # Read-only billing views stay open to members
    resp = await client.get("/v1/billing/limits", headers=member_headers)
    assert resp.status_code == 200
    assert resp.json()["appsumo_tier"] == 1
