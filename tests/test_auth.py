"""Tests for bearer-token introspection on /mcp and the public discovery routes."""

import pytest
from conftest import ADMIN_URL

from indian_store_mcp.auth import bearer_token

INIT = {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("Bearer   abc  ") == "abc"
    assert bearer_token("Bearer ") is None
    assert bearer_token("Basic abc") is None
    assert bearer_token("bearer abc") is None
    assert bearer_token("") is None


@pytest.mark.asyncio
async def test_mcp_requires_bearer(http, hydra):
    async with http as client:
        resp = await client.post("/mcp", json=INIT)
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"].startswith("Bearer")
    assert resp.json()["error"] == "unauthorized"
    # no introspection without a token
    assert hydra.requests == []


@pytest.mark.asyncio
async def test_malformed_authorization_header_rejected(http):
    async with http as client:
        resp = await client.post(
            "/mcp", json=INIT, headers={"Authorization": "Token good-token"}
        )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_inactive_and_failed_introspection_look_the_same(http, hydra):
    async with http as client:
        inactive = await client.post(
            "/mcp", json=INIT, headers={"Authorization": "Bearer revoked"}
        )
        hydra.fail("POST", f"{ADMIN_URL}/admin/oauth2/introspect", status=500)
        failed = await client.post(
            "/mcp", json=INIT, headers={"Authorization": "Bearer good-token"}
        )

    assert inactive.status_code == failed.status_code == 401
    assert inactive.json() == failed.json()
    assert inactive.json()["error_description"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_active_token_reaches_dispatcher(http, hydra):
    async with http as client:
        resp = await client.post(
            "/mcp", json=INIT, headers={"Authorization": "Bearer good-token"}
        )
    assert resp.status_code == 200
    assert resp.json()["result"]["serverInfo"]["name"] == "indian-store-mcp-server"
    assert hydra.last("POST", "/admin/oauth2/introspect") is not None


@pytest.mark.asyncio
async def test_every_request_is_introspected(http, hydra):
    headers = {"Authorization": "Bearer good-token"}
    async with http as client:
        await client.post("/mcp", json=INIT, headers=headers)
        await client.post("/mcp", json=INIT, headers=headers)
    introspections = [r for r in hydra.requests if r.url.path == "/admin/oauth2/introspect"]
    assert len(introspections) == 2


@pytest.mark.asyncio
async def test_health_needs_no_auth(http, hydra):
    async with http as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "server": "indian-store-mcp-server"}
    assert hydra.requests == []


@pytest.mark.asyncio
async def test_discovery_metadata_uses_forwarded_headers(http):
    async with http as client:
        resp = await client.get(
            "/.well-known/oauth-authorization-server",
            headers={"X-Forwarded-Proto": "https", "X-Forwarded-Host": "mcp.example.com"},
        )
    assert resp.status_code == 200
    data = resp.json()
    assert data["issuer"] == "https://mcp.example.com"
    assert data["authorization_endpoint"] == "https://mcp.example.com/oauth2/auth"
    assert data["token_endpoint"] == "https://mcp.example.com/oauth2/token"
    assert data["registration_endpoint"] == "https://mcp.example.com/oauth/register"
    assert data["response_types_supported"] == ["code"]
    assert data["grant_types_supported"] == ["authorization_code", "refresh_token"]
    assert "offline_access" in data["scopes_supported"]


@pytest.mark.asyncio
async def test_discovery_metadata_defaults_to_request_host(http):
    async with http as client:
        resp = await client.get("/.well-known/oauth-authorization-server")
    assert resp.json()["issuer"] == "https://gateway.test"


@pytest.mark.asyncio
async def test_legacy_authorize_redirects_to_hydra(http):
    async with http as client:
        resp = await client.get(
            "/oauth/authorize?client_id=abc&state=xyz",
            headers={"X-Forwarded-Host": "mcp.example.com"},
        )
    assert resp.status_code == 302
    assert resp.headers["location"] == (
        "https://mcp.example.com/oauth2/auth?client_id=abc&state=xyz"
    )


@pytest.mark.asyncio
async def test_cors_preflight(http):
    async with http as client:
        resp = await client.options(
            "/mcp",
            headers={
                "Origin": "https://claude.ai",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Authorization, Content-Type",
            },
        )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
