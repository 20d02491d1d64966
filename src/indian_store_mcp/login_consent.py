"""Hydra login and consent providers.

Hydra sends the browser here with a ``login_challenge`` or
``consent_challenge``. Nothing about a challenge is stored locally: each
request settles it against the admin API and follows the ``redirect_to``
Hydra answers with. That URL encodes the next protocol step and is never
built here.

Login has two ways to a subject: a live ``session_id`` cookie, or a
password checked against the user store (which then opens such a session).
Consent grants every requested scope and embeds ``email`` and ``name`` in
the ID token.
"""

from __future__ import annotations

from urllib.parse import unquote_plus

from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, RedirectResponse, Response

from indian_store_mcp.audit import get_logger, truncate_for_log
from indian_store_mcp.errors import UpstreamError
from indian_store_mcp.ory_client import OryClient
from indian_store_mcp.schemas import ConsentAcceptRequest, ConsentSession, IdTokenClaims
from indian_store_mcp.stores import SESSION_COOKIE, Session, SessionStore
from indian_store_mcp.templates import render_error, render_login
from indian_store_mcp.users import InvalidCredentials, UserStore

logger = get_logger("login_consent")

LOGIN_FAILED_MESSAGE = "Invalid email or password"


class LoginConsentHandler:
    def __init__(
        self,
        ory: OryClient,
        sessions: SessionStore,
        users: UserStore,
    ) -> None:
        self.ory = ory
        self.sessions = sessions
        self.users = users

    async def login(self, request: Request) -> Response:
        form = await request.form() if request.method == "POST" else None
        challenge = request.query_params.get("login_challenge") or (
            form.get("login_challenge") if form is not None else None
        )
        if not challenge:
            return PlainTextResponse("Missing login_challenge", status_code=400)

        logger.info("login_challenge_received", challenge=challenge)

        session = await self._current_session(request)
        if session is not None:
            logger.info("login_auto_accept", email=session.subject_email)
            return await self._accept_login(challenge, session.subject_email)

        if form is None:
            return HTMLResponse(render_login(challenge))

        email = str(form.get("email") or "")
        password = str(form.get("password") or "")
        try:
            user = await self.users.authenticate(email, password)
        except InvalidCredentials:
            logger.info("login_rejected", email=email)
            return HTMLResponse(
                render_login(challenge, LOGIN_FAILED_MESSAGE), status_code=401
            )

        logger.info("login_authenticated", email=user.email)
        new_session = await self.sessions.create(user.email)
        response = await self._accept_login(challenge, user.email)
        if response.status_code == 302:
            self._set_session_cookie(response, new_session)
        return response

    async def consent(self, request: Request) -> Response:
        challenge = request.query_params.get("consent_challenge")
        if not challenge:
            return PlainTextResponse("Missing consent_challenge", status_code=400)

        logger.info("consent_challenge_received", challenge=challenge)

        try:
            consent = await self.ory.get_consent_request(challenge)
        except UpstreamError as exc:
            _log_upstream("consent_request_failed", exc)
            return PlainTextResponse(
                "Error communicating with OAuth server", status_code=500
            )

        user = await self.users.get_user(consent.subject)
        if user is None:
            logger.warning("consent_unknown_subject", subject=consent.subject)
            return PlainTextResponse("User not found", status_code=401)

        body = ConsentAcceptRequest(
            grant_scope=consent.requested_scope,
            session=ConsentSession(
                id_token=IdTokenClaims(email=user.email, name=user.name)
            ),
        )
        try:
            completed = await self.ory.accept_consent(challenge, body)
        except UpstreamError as exc:
            _log_upstream("consent_accept_failed", exc)
            return PlainTextResponse("Error completing consent", status_code=500)

        logger.info(
            "consent_accepted",
            subject=consent.subject,
            client_id=consent.client.client_id,
            scopes=consent.requested_scope,
        )
        return RedirectResponse(completed.redirect_to, status_code=302)

    async def error(self, request: Request) -> Response:
        error_code = request.query_params.get("error", "")
        description = request.query_params.get("error_description") or (
            "An OAuth error occurred"
        )
        # Hydra double-encodes some descriptions
        description = unquote_plus(description)

        logger.info("oauth_error_page", error=error_code, description=description)
        return HTMLResponse(render_error(error_code, description), status_code=400)

    async def _current_session(self, request: Request) -> Session | None:
        session_id = request.cookies.get(SESSION_COOKIE)
        if not session_id:
            return None
        return await self.sessions.lookup(session_id)

    async def _accept_login(self, challenge: str, email: str) -> Response:
        try:
            completed = await self.ory.accept_login(challenge, email)
        except UpstreamError as exc:
            _log_upstream("login_accept_failed", exc)
            return PlainTextResponse("Error completing login", status_code=500)

        logger.info("login_accepted", email=email, redirect_to=completed.redirect_to)
        return RedirectResponse(completed.redirect_to, status_code=302)

    def _set_session_cookie(self, response: Response, session: Session) -> None:
        response.set_cookie(
            SESSION_COOKIE,
            session.id,
            max_age=self.sessions.ttl_seconds,
            path="/",
            secure=True,
            httponly=True,
            samesite="lax",
        )


def _log_upstream(event: str, exc: UpstreamError) -> None:
    logger.error(
        event,
        error=exc.description,
        upstream_status=exc.upstream_status,
        body=truncate_for_log(exc.body),
    )
