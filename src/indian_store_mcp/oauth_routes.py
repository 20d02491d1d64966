"""OAuth endpoints served by the gateway itself.

MCP clients talk to Hydra directly for ``/oauth2/*``; this module only
publishes discovery metadata pointing at those paths, keeps the legacy
``/oauth/authorize`` redirect, and runs the gateway's own
authorization-code client (``/oauth/start`` -> Hydra -> ``/oauth/callback``)
together with thin refresh, userinfo and introspection proxies.
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from indian_store_mcp.audit import get_logger, truncate_for_log
from indian_store_mcp.auth import bearer_token
from indian_store_mcp.errors import AuthError, UpstreamError, json_error
from indian_store_mcp.ory_client import OryClient
from indian_store_mcp.stores import CsrfStateStore

logger = get_logger("oauth_routes")


def external_base_url(request: Request) -> str:
    """Base URL as seen by the client, honouring reverse-proxy headers."""
    scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
    host = request.headers.get("x-forwarded-host") or request.headers.get(
        "host", request.url.netloc
    )
    return f"{scheme}://{host}"


async def authorization_server_metadata(request: Request) -> Response:
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    base_url = external_base_url(request)
    return JSONResponse(
        {
            "issuer": base_url,
            "authorization_endpoint": f"{base_url}/oauth2/auth",
            "token_endpoint": f"{base_url}/oauth2/token",
            "registration_endpoint": f"{base_url}/oauth/register",
            "userinfo_endpoint": f"{base_url}/oauth2/userinfo",
            "introspection_endpoint": f"{base_url}/oauth2/introspect",
            "response_types_supported": ["code"],
            "grant_types_supported": ["authorization_code", "refresh_token"],
            "token_endpoint_auth_methods_supported": [
                "client_secret_basic",
                "client_secret_post",
            ],
            "scopes_supported": ["openid", "offline_access", "email", "profile"],
            "subject_types_supported": ["public"],
        }
    )


async def legacy_authorize(request: Request) -> Response:
    """Clients that cached ``/oauth/authorize`` are sent on to Hydra."""
    host = request.headers.get("x-forwarded-host") or request.headers.get(
        "host", request.url.netloc
    )
    target = f"https://{host}/oauth2/auth?{request.url.query}"
    return RedirectResponse(target, status_code=302)


class OAuthClientRoutes:
    def __init__(self, ory: OryClient, states: CsrfStateStore) -> None:
        self.ory = ory
        self.states = states

    async def start(self, request: Request) -> Response:
        state = await self.states.issue()
        url = self.ory.authorization_url(state)
        logger.info("authorization_redirect", url=url)
        return RedirectResponse(url, status_code=302)

    async def callback(self, request: Request) -> Response:
        params = request.query_params
        error = params.get("error")
        if error:
            logger.info(
                "authorization_error",
                error=error,
                description=params.get("error_description", ""),
            )
            return PlainTextResponse(
                f"OAuth authorization failed: {error}", status_code=400
            )

        if not await self.states.consume(params.get("state", "")):
            logger.warning("invalid_state")
            return PlainTextResponse("Invalid state parameter", status_code=400)

        code = params.get("code")
        if not code:
            return PlainTextResponse("Missing code parameter", status_code=400)

        try:
            tokens = await self.ory.exchange_code(code)
        except UpstreamError as exc:
            logger.error(
                "code_exchange_failed",
                error=exc.description,
                upstream_status=exc.upstream_status,
                body=truncate_for_log(exc.body),
            )
            return PlainTextResponse("Failed to obtain access token", status_code=500)

        return JSONResponse(
            {
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token,
                "token_type": tokens.token_type,
                "expires_in": tokens.expires_in,
                "message": "Authentication successful! Use the access_token for API requests.",
            }
        )

    async def token(self, request: Request) -> Response:
        form = await request.form()
        grant_type = form.get("grant_type")
        if grant_type != "refresh_token":
            return json_error("unsupported_grant_type", "Unsupported grant_type", 400)

        refresh_token = form.get("refresh_token")
        if not refresh_token:
            return json_error("invalid_request", "refresh_token is required", 400)

        try:
            tokens = await self.ory.refresh(str(refresh_token))
        except UpstreamError as exc:
            logger.warning("token_refresh_failed", error=str(exc))
            return json_error("invalid_grant", "Failed to refresh token", 401)

        return JSONResponse(tokens.model_dump(exclude_none=True))

    async def userinfo(self, request: Request) -> Response:
        token = bearer_token(request.headers.get("authorization", ""))
        if token is None:
            return AuthError("Authorization header required").to_response()

        try:
            info = await self.ory.userinfo(token)
        except UpstreamError as exc:
            logger.warning("userinfo_failed", error=str(exc))
            return AuthError("Failed to get user info").to_response()

        return JSONResponse(info.model_dump(exclude_none=True))

    async def introspect(self, request: Request) -> Response:
        form = await request.form()
        token = form.get("token")
        if not token:
            return json_error("invalid_request", "token is required", 400)

        try:
            result = await self.ory.introspect(str(token))
        except UpstreamError as exc:
            logger.warning("introspection_failed", error=str(exc))
            return JSONResponse({"active": False})

        return JSONResponse(result.model_dump(exclude_none=True))
