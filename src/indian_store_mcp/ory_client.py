"""Client for Ory Hydra's public OAuth2 endpoints and its admin API.

Three base URLs are involved:

- ``ORY_URL``: public endpoints (authorize, userinfo).
- ``ORY_INTERNAL_URL``: in-cluster token endpoint, preferred for code
  exchange and refresh so server-to-server calls skip the public ingress.
- ``ORY_ADMIN_URL``: admin API (introspection, login/consent, clients),
  usually reachable only from inside the deployment.

Every failure surfaces as ``UpstreamError`` carrying the provider status
and raw body. Idempotent reads are retried with capped exponential backoff
on transport errors and 5xx answers; 4xx answers are final.
"""

from __future__ import annotations

import asyncio
from typing import TypeVar
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from indian_store_mcp.audit import get_logger, truncate_for_log
from indian_store_mcp.config import Settings
from indian_store_mcp.errors import UpstreamError
from indian_store_mcp.schemas import (
    CompletedRequest,
    ConsentAcceptRequest,
    ConsentRequest,
    IntrospectionResult,
    LoginAcceptRequest,
    OAuth2Client,
    OAuth2ClientCreate,
    TokenResponse,
    UserInfo,
)

logger = get_logger("ory_client")

ModelT = TypeVar("ModelT", bound=BaseModel)


class OryClient:
    """Async wrapper around the identity provider's REST contract."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._max_attempts = max(1, settings.http_max_attempts)
        self._base_delay = settings.http_retry_base_delay
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def _client_auth(self) -> tuple[str, str]:
        return (self.settings.ory_client_id, self.settings.ory_client_secret)

    # ------------------------------------------------------------------
    # Public OAuth2 endpoints
    # ------------------------------------------------------------------

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.settings.ory_client_id,
            "redirect_uri": self.settings.ory_callback_url,
            "response_type": "code",
            "scope": self.settings.ory_scopes,
            "state": state,
        }
        return f"{self.settings.ory_url}/oauth2/auth?{urlencode(params)}"

    async def exchange_code(self, code: str) -> TokenResponse:
        response = await self._send(
            "token exchange",
            "POST",
            self.settings.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.ory_callback_url,
            },
            auth=self._client_auth,
        )
        return _decode("token exchange", response, TokenResponse)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        response = await self._send(
            "token refresh",
            "POST",
            self.settings.token_url,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            auth=self._client_auth,
        )
        return _decode("token refresh", response, TokenResponse)

    async def introspect(self, token: str) -> IntrospectionResult:
        response = await self._send(
            "introspection",
            "POST",
            self.settings.introspection_url,
            data={"token": token},
            auth=self._client_auth,
            idempotent=True,
        )
        return _decode("introspection", response, IntrospectionResult)

    async def userinfo(self, access_token: str) -> UserInfo:
        response = await self._send(
            "userinfo",
            "GET",
            self.settings.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
            idempotent=True,
        )
        return _decode("userinfo", response, UserInfo)

    # ------------------------------------------------------------------
    # Admin API
    # ------------------------------------------------------------------

    async def accept_login(self, challenge: str, subject: str) -> CompletedRequest:
        body = LoginAcceptRequest(subject=subject)
        response = await self._send(
            "login accept",
            "PUT",
            self._admin("/admin/oauth2/auth/requests/login/accept"),
            params={"login_challenge": challenge},
            json=body.model_dump(),
        )
        return _decode("login accept", response, CompletedRequest)

    async def get_consent_request(self, challenge: str) -> ConsentRequest:
        response = await self._send(
            "consent request",
            "GET",
            self._admin("/admin/oauth2/auth/requests/consent"),
            params={"consent_challenge": challenge},
            idempotent=True,
        )
        return _decode("consent request", response, ConsentRequest)

    async def accept_consent(
        self, challenge: str, body: ConsentAcceptRequest
    ) -> CompletedRequest:
        response = await self._send(
            "consent accept",
            "PUT",
            self._admin("/admin/oauth2/auth/requests/consent/accept"),
            params={"consent_challenge": challenge},
            json=body.model_dump(),
        )
        return _decode("consent accept", response, CompletedRequest)

    async def create_client(self, body: OAuth2ClientCreate) -> OAuth2Client:
        response = await self._send(
            "client registration",
            "POST",
            self._admin("/admin/clients"),
            json=body.model_dump(),
        )
        return _decode("client registration", response, OAuth2Client)

    def _admin(self, path: str) -> str:
        return f"{self.settings.ory_admin_url}{path}"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        idempotent: bool = False,
        **kwargs,
    ) -> httpx.Response:
        attempts = self._max_attempts if idempotent else 1

        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as exc:
                logger.warning(
                    "upstream_transport_error",
                    operation=operation,
                    attempt=attempt,
                    error=str(exc) or type(exc).__name__,
                )
                error = UpstreamError(f"{operation} failed: {exc!r}")
            else:
                if response.is_success:
                    return response
                error = UpstreamError(
                    f"{operation} failed",
                    upstream_status=response.status_code,
                    body=response.text,
                )
                logger.warning(
                    "upstream_error_status",
                    operation=operation,
                    attempt=attempt,
                    status=response.status_code,
                    body=truncate_for_log(response.text),
                )
                if response.status_code < 500:
                    raise error

            if attempt < attempts:
                await asyncio.sleep(self._base_delay * (2 ** (attempt - 1)))

        raise error


def _decode(operation: str, response: httpx.Response, model: type[ModelT]) -> ModelT:
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        logger.warning(
            "upstream_decode_error",
            operation=operation,
            status=response.status_code,
            body=truncate_for_log(response.text),
        )
        raise UpstreamError(
            f"failed to parse {operation} response",
            upstream_status=response.status_code,
            body=response.text,
        ) from exc
