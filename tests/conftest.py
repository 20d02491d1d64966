"""Shared fixtures: settings, a fake Hydra behind httpx.MockTransport, and
an application wired to both."""

from __future__ import annotations

import json
from typing import Callable
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from argon2 import PasswordHasher

from indian_store_mcp.config import Settings
from indian_store_mcp.ory_client import OryClient
from indian_store_mcp.users import InMemoryUserStore

ORY_URL = "https://ory.test"
ADMIN_URL = "http://hydra-admin.test"

ADMIN_EMAIL = "admin@indian-store.com"
ADMIN_PASSWORD = "admin123"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeHydra:
    """Minimal stand-in for Hydra's public and admin APIs.

    Routes are keyed by ``(method, url-without-query)``; tests swap a route
    for a different handler to simulate provider failures.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.active_tokens: dict[str, dict] = {
            "good-token": {"active": True, "sub": ADMIN_EMAIL, "email": ADMIN_EMAIL},
        }
        self.consent_subject = ADMIN_EMAIL
        self.routes: dict[tuple[str, str], Handler] = {
            ("POST", f"{ORY_URL}/oauth2/token"): self._token,
            ("POST", f"{ADMIN_URL}/admin/oauth2/introspect"): self._introspect,
            ("GET", f"{ORY_URL}/userinfo"): self._userinfo,
            ("PUT", f"{ADMIN_URL}/admin/oauth2/auth/requests/login/accept"): self._login_accept,
            ("GET", f"{ADMIN_URL}/admin/oauth2/auth/requests/consent"): self._consent_request,
            ("PUT", f"{ADMIN_URL}/admin/oauth2/auth/requests/consent/accept"): self._consent_accept,
            ("POST", f"{ADMIN_URL}/admin/clients"): self._create_client,
        }

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?")[0]
        route = self.routes.get((request.method, url))
        if route is None:
            return httpx.Response(404, json={"error": "not_found"})
        return route(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def last(self, method: str, path: str) -> httpx.Request:
        for request in reversed(self.requests):
            if request.method == method and request.url.path == path:
                return request
        raise AssertionError(f"no {method} {path} request recorded")

    def fail(self, method: str, url: str, status: int = 500, body: str = "boom") -> None:
        self.routes[(method, url)] = lambda request: httpx.Response(status, text=body)

    # -- default handlers -------------------------------------------------

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        grant = form["grant_type"][0]
        if grant == "authorization_code" and form.get("code") == ["good-code"]:
            return httpx.Response(
                200,
                json={
                    "access_token": "good-token",
                    "token_type": "bearer",
                    "expires_in": 3600,
                    "refresh_token": "refresh-1",
                    "scope": "openid offline_access",
                },
            )
        if grant == "refresh_token" and form.get("refresh_token") == ["refresh-1"]:
            return httpx.Response(
                200,
                json={
                    "access_token": "good-token-2",
                    "token_type": "bearer",
                    "expires_in": 3600,
                    "refresh_token": "refresh-2",
                },
            )
        return httpx.Response(400, json={"error": "invalid_grant"})

    def _introspect(self, request: httpx.Request) -> httpx.Response:
        token = parse_qs(request.content.decode())["token"][0]
        return httpx.Response(200, json=self.active_tokens.get(token, {"active": False}))

    def _userinfo(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") != "Bearer good-token":
            return httpx.Response(401, json={"error": "request_unauthorized"})
        return httpx.Response(200, json={"sub": ADMIN_EMAIL, "email": ADMIN_EMAIL})

    def _login_accept(self, request: httpx.Request) -> httpx.Response:
        challenge = request.url.params["login_challenge"]
        return httpx.Response(
            200,
            json={"redirect_to": f"{ORY_URL}/oauth2/auth?login_verifier=lv-{challenge}"},
        )

    def _consent_request(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "challenge": request.url.params["consent_challenge"],
                "subject": self.consent_subject,
                "requested_scope": ["openid", "offline_access", "email"],
                "requested_access_token_audience": [],
                "client": {"client_id": "client-1"},
                "skip": False,
            },
        )

    def _consent_accept(self, request: httpx.Request) -> httpx.Response:
        challenge = request.url.params["consent_challenge"]
        return httpx.Response(
            200,
            json={"redirect_to": f"{ORY_URL}/oauth2/auth?consent_verifier=cv-{challenge}"},
        )

    def _create_client(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(
            201,
            json={**body, "client_id": "client-abc", "client_secret": "secret-xyz"},
        )


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        ory_url=ORY_URL,
        ory_admin_url=ADMIN_URL,
        ory_internal_url="",
        ory_client_id="gateway",
        ory_client_secret="gateway-secret",
        ory_callback_url="https://gateway.test/oauth/callback",
        ory_scopes="openid offline_access",
        ory_introspection_url="",
        ory_userinfo_url="",
        http_retry_base_delay=0,
        http_max_attempts=3,
        log_dir=tmp_path / "logs",
    )


@pytest.fixture
def hydra() -> FakeHydra:
    return FakeHydra()


@pytest.fixture
def ory(settings, hydra) -> OryClient:
    return OryClient(settings, transport=hydra.transport())


@pytest_asyncio.fixture
async def users() -> InMemoryUserStore:
    store = InMemoryUserStore(
        hasher=PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1)
    )
    await store.add_user(ADMIN_EMAIL, ADMIN_PASSWORD, "Admin User")
    return store


@pytest.fixture
def app(settings, ory, users):
    from indian_store_mcp.server import create_app

    app, _ = create_app(settings, ory=ory, users=users)
    return app


@pytest.fixture
def http(app) -> httpx.AsyncClient:
    """Unopened client bound to the app; use as ``async with http as client``."""
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="https://gateway.test"
    )
