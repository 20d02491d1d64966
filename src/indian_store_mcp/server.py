"""Indian Store MCP Server entry point."""

from __future__ import annotations

import asyncio
import contextlib
import sys
from typing import AsyncIterator

import uvicorn
from dotenv import load_dotenv
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from indian_store_mcp.audit import RequestContextMiddleware, get_logger, setup_logging
from indian_store_mcp.auth import IntrospectionAuthMiddleware
from indian_store_mcp.config import Settings, get_settings
from indian_store_mcp.dispatcher import SERVER_NAME, McpDispatcher
from indian_store_mcp.errors import ConfigError
from indian_store_mcp.login_consent import LoginConsentHandler
from indian_store_mcp.oauth_routes import (
    OAuthClientRoutes,
    authorization_server_metadata,
    legacy_authorize,
)
from indian_store_mcp.ory_client import OryClient
from indian_store_mcp.registration import RegistrationHandler
from indian_store_mcp.stores import (
    CsrfStateStore,
    InMemoryCsrfStateStore,
    InMemorySessionStore,
    SessionStore,
    sweep_forever,
)
from indian_store_mcp.tools import default_catalog
from indian_store_mcp.users import InMemoryUserStore, UserStore

MCP_SESSION_HEADER = "mcp-session-id"


def create_app(
    settings: Settings | None = None,
    *,
    ory: OryClient | None = None,
    users: UserStore | None = None,
    sessions: SessionStore | None = None,
    states: CsrfStateStore | None = None,
) -> tuple[Starlette, Settings]:
    """Create and configure the gateway application."""
    load_dotenv()
    settings = settings or get_settings()

    setup_logging(settings.log_dir, settings.log_level, settings.max_log_size_mb)
    logger = get_logger("server")
    logger.info("server_starting", host=settings.host, port=settings.port)

    if ory is None:
        ory = OryClient(settings)
    if users is None:
        users = InMemoryUserStore()
    if sessions is None:
        sessions = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    if states is None:
        states = InMemoryCsrfStateStore(ttl_seconds=settings.state_ttl_seconds)

    login_consent = LoginConsentHandler(ory, sessions, users)
    registration = RegistrationHandler(ory)
    oauth_client = OAuthClientRoutes(ory, states)
    dispatcher = McpDispatcher(default_catalog())

    async def mcp_endpoint(request: Request) -> Response:
        body = await request.body()
        reply = await dispatcher.handle_body(
            body, request.headers.get(MCP_SESSION_HEADER)
        )
        if reply is None:
            return Response(status_code=202)
        # JSON-RPC errors never change the HTTP status
        return JSONResponse(reply, status_code=200)

    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok", "server": SERVER_NAME})

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if isinstance(users, InMemoryUserStore):
            await users.seed_default(
                settings.seed_admin_email,
                settings.seed_admin_password,
                settings.seed_admin_name,
            )
        sweeper = asyncio.create_task(
            sweep_forever(settings.sweep_interval_seconds, sessions, states)
        )
        try:
            yield
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            await ory.aclose()
            logger.info("server_stopped")

    routes = [
        Route(
            "/.well-known/oauth-authorization-server",
            authorization_server_metadata,
            methods=["GET"],
        ),
        Route("/oauth/register", registration.register, methods=["POST"]),
        Route("/oauth/authorize", legacy_authorize, methods=["GET"]),
        Route("/oauth/start", oauth_client.start, methods=["GET"]),
        Route("/oauth/callback", oauth_client.callback, methods=["GET"]),
        Route("/oauth/token", oauth_client.token, methods=["POST"]),
        Route("/oauth/userinfo", oauth_client.userinfo, methods=["GET"]),
        Route("/oauth/introspect", oauth_client.introspect, methods=["POST"]),
        Route("/login", login_consent.login, methods=["GET", "POST"]),
        Route("/consent", login_consent.consent, methods=["GET"]),
        Route("/oauth2/fallbacks/error", login_consent.error, methods=["GET"]),
        Route("/mcp", mcp_endpoint, methods=["POST"]),
        Route("/health", health_check, methods=["GET"]),
    ]

    middleware = [
        Middleware(RequestContextMiddleware),
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization", "Mcp-Session-Id"],
            max_age=3600,
        ),
        Middleware(IntrospectionAuthMiddleware, ory=ory, protected_paths={"/mcp"}),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)

    logger.info(
        "server_configured",
        ory_url=settings.ory_url,
        ory_admin_url=settings.ory_admin_url,
        token_url=settings.token_url,
    )

    return app, settings


def main() -> None:
    """Entry point for the server."""
    try:
        app, settings = create_app()
    except ConfigError as exc:
        get_logger("server").error("invalid_configuration", error=exc.description)
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
