from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from indian_store_mcp.audit import get_logger
from indian_store_mcp.errors import AuthError, UpstreamError

if TYPE_CHECKING:
    from indian_store_mcp.ory_client import OryClient

logger = get_logger("auth")

INVALID_TOKEN = "Invalid or expired token"


def bearer_token(authorization: str) -> str | None:
    """Return the token of a ``Bearer <token>`` header value, else None."""
    if not authorization.startswith("Bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


class IntrospectionAuthMiddleware:
    """ASGI middleware that requires an active Hydra access token on the
    protected paths.

    Every request is introspected again; nothing is cached. A token Hydra
    reports inactive and an introspection that fails outright are answered
    with the same 401.
    """

    def __init__(
        self,
        app: ASGIApp,
        ory: OryClient,
        protected_paths: set[str] | None = None,
    ) -> None:
        self.app = app
        self.ory = ory
        self.protected_paths = protected_paths or {"/mcp"}

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        if path not in self.protected_paths:
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        auth_value = headers.get(b"authorization", b"").decode(
            "utf-8", errors="ignore"
        )

        token = bearer_token(auth_value)
        if token is None:
            logger.info("auth_rejected", reason="missing_bearer")
            await _unauthorized("Missing or invalid Authorization header")(
                scope, receive, send
            )
            return

        try:
            result = await self.ory.introspect(token)
        except UpstreamError as exc:
            logger.warning("introspection_failed", error=str(exc))
            active = False
        else:
            active = result.active

        if not active:
            logger.info("auth_rejected", reason="inactive_token")
            await _unauthorized(INVALID_TOKEN)(scope, receive, send)
            return

        logger.info("auth_accepted", subject=result.sub, email=result.email)
        scope.setdefault("state", {})["token"] = result
        await self.app(scope, receive, send)


def _unauthorized(description: str) -> JSONResponse:
    response = AuthError(description).to_response()
    response.headers["WWW-Authenticate"] = 'Bearer error="invalid_token"'
    return response
