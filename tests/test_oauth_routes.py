"""Tests for the gateway's own authorization-code client and token proxies."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from conftest import ADMIN_EMAIL, ORY_URL

from indian_store_mcp.server import create_app
from indian_store_mcp.stores import InMemoryCsrfStateStore


def _state_from(location: str) -> str:
    return parse_qs(urlparse(location).query)["state"][0]


@pytest.mark.asyncio
async def test_start_redirects_to_hydra(http):
    async with http as client:
        resp = await client.get("/oauth/start")
    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith(f"{ORY_URL}/oauth2/auth?")
    query = parse_qs(urlparse(location).query)
    assert query["client_id"] == ["gateway"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://gateway.test/oauth/callback"]


@pytest.mark.asyncio
async def test_each_start_issues_a_fresh_state(http):
    async with http as client:
        first = await client.get("/oauth/start")
        second = await client.get("/oauth/start")
    assert _state_from(first.headers["location"]) != _state_from(second.headers["location"])


@pytest.mark.asyncio
async def test_callback_exchanges_code_once(http):
    async with http as client:
        start = await client.get("/oauth/start")
        state = _state_from(start.headers["location"])

        ok = await client.get(f"/oauth/callback?code=good-code&state={state}")
        replay = await client.get(f"/oauth/callback?code=good-code&state={state}")

    assert ok.status_code == 200
    data = ok.json()
    assert data["access_token"] == "good-token"
    assert data["refresh_token"] == "refresh-1"
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 3600
    assert "message" in data

    assert replay.status_code == 400
    assert replay.text == "Invalid state parameter"


@pytest.mark.asyncio
async def test_callback_rejects_unknown_state(http, hydra):
    async with http as client:
        resp = await client.get("/oauth/callback?code=good-code&state=forged")
    assert resp.status_code == 400
    assert hydra.requests == []


@pytest.mark.asyncio
async def test_callback_reports_provider_error(http):
    async with http as client:
        resp = await client.get(
            "/oauth/callback?error=access_denied&error_description=denied"
        )
    assert resp.status_code == 400
    assert "access_denied" in resp.text


@pytest.mark.asyncio
async def test_callback_missing_code(http):
    async with http as client:
        start = await client.get("/oauth/start")
        state = _state_from(start.headers["location"])
        resp = await client.get(f"/oauth/callback?state={state}")
    assert resp.status_code == 400
    assert resp.text == "Missing code parameter"


@pytest.mark.asyncio
async def test_callback_exchange_failure(http):
    async with http as client:
        start = await client.get("/oauth/start")
        state = _state_from(start.headers["location"])
        resp = await client.get(f"/oauth/callback?code=bad-code&state={state}")
    assert resp.status_code == 500
    assert resp.text == "Failed to obtain access token"


@pytest.mark.asyncio
async def test_expired_state_rejected(settings, ory, users):
    now = [1000.0]
    states = InMemoryCsrfStateStore(ttl_seconds=60, clock=lambda: now[0])
    app, _ = create_app(settings, ory=ory, users=users, states=states)
    state = await states.issue()
    now[0] += 61

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://gateway.test"
    ) as client:
        resp = await client.get(f"/oauth/callback?code=good-code&state={state}")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_refresh_grant(http):
    async with http as client:
        resp = await client.post(
            "/oauth/token",
            data={"grant_type": "refresh_token", "refresh_token": "refresh-1"},
        )
    assert resp.status_code == 200
    assert resp.json()["access_token"] == "good-token-2"
    assert resp.json()["refresh_token"] == "refresh-2"


@pytest.mark.asyncio
async def test_token_endpoint_errors(http):
    async with http as client:
        wrong_grant = await client.post("/oauth/token", data={"grant_type": "password"})
        missing = await client.post("/oauth/token", data={"grant_type": "refresh_token"})
        rejected = await client.post(
            "/oauth/token",
            data={"grant_type": "refresh_token", "refresh_token": "stale"},
        )

    assert wrong_grant.status_code == 400
    assert wrong_grant.json()["error"] == "unsupported_grant_type"
    assert missing.status_code == 400
    assert missing.json()["error"] == "invalid_request"
    assert rejected.status_code == 401
    assert rejected.json()["error"] == "invalid_grant"


@pytest.mark.asyncio
async def test_userinfo_proxy(http):
    async with http as client:
        ok = await client.get(
            "/oauth/userinfo", headers={"Authorization": "Bearer good-token"}
        )
        missing = await client.get("/oauth/userinfo")
        rejected = await client.get(
            "/oauth/userinfo", headers={"Authorization": "Bearer stale"}
        )

    assert ok.status_code == 200
    assert ok.json() == {"sub": ADMIN_EMAIL, "email": ADMIN_EMAIL}
    assert missing.status_code == 401
    assert rejected.status_code == 401


@pytest.mark.asyncio
async def test_introspect_proxy(http, hydra, settings):
    async with http as client:
        active = await client.post("/oauth/introspect", data={"token": "good-token"})
        inactive = await client.post("/oauth/introspect", data={"token": "stale"})
        missing = await client.post("/oauth/introspect", data={})
        hydra.fail("POST", settings.introspection_url, status=500)
        failed = await client.post("/oauth/introspect", data={"token": "good-token"})

    assert active.json()["active"] is True
    assert active.json()["sub"] == ADMIN_EMAIL
    assert inactive.json() == {"active": False}
    assert missing.status_code == 400
    assert failed.status_code == 200
    assert failed.json() == {"active": False}
