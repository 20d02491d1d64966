"""RFC 7591 dynamic client registration, delegated to Hydra's admin API."""

from __future__ import annotations

import json

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from indian_store_mcp.audit import get_logger, truncate_for_log
from indian_store_mcp.errors import ClientError, UpstreamError, json_error
from indian_store_mcp.ory_client import OryClient
from indian_store_mcp.schemas import (
    ClientRegistrationRequest,
    ClientRegistrationResponse,
    OAuth2ClientCreate,
)

logger = get_logger("registration")


class RegistrationHandler:
    def __init__(self, ory: OryClient) -> None:
        self.ory = ory

    async def register(self, request: Request) -> Response:
        try:
            registration = await _parse_request(request)
            client = await self.register_client(registration)
        except ClientError as exc:
            return exc.to_response()
        except UpstreamError as exc:
            logger.error(
                "client_registration_failed",
                error=exc.description,
                upstream_status=exc.upstream_status,
                body=truncate_for_log(exc.body),
            )
            return json_error("server_error", "Failed to register client", 500)

        return JSONResponse(client.model_dump(exclude_none=True), status_code=201)

    async def register_client(
        self, registration: ClientRegistrationRequest
    ) -> ClientRegistrationResponse:
        if not registration.redirect_uris:
            raise ClientError(
                "At least one redirect_uri is required",
                error_code="invalid_redirect_uri",
            )

        normalized = registration.with_defaults()
        created = await self.ory.create_client(
            OAuth2ClientCreate(
                client_name=normalized.client_name,
                redirect_uris=normalized.redirect_uris,
                grant_types=normalized.grant_types,
                response_types=normalized.response_types,
                scope=normalized.scope,
                token_endpoint_auth_method=normalized.token_endpoint_auth_method,
            )
        )

        logger.info(
            "client_registered",
            client_id=created.client_id,
            client_name=normalized.client_name,
        )
        return ClientRegistrationResponse(
            client_id=created.client_id,
            client_secret=created.client_secret or None,
            client_name=normalized.client_name or None,
            redirect_uris=normalized.redirect_uris,
            grant_types=normalized.grant_types,
            response_types=normalized.response_types,
            scope=normalized.scope,
            token_endpoint_auth_method=normalized.token_endpoint_auth_method,
            client_secret_expires_at=0,
        )


async def _parse_request(request: Request) -> ClientRegistrationRequest:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.info("registration_invalid_json", error=str(exc))
        raise ClientError("Invalid JSON in request body") from exc

    try:
        return ClientRegistrationRequest.model_validate(body)
    except ValidationError as exc:
        raise ClientError(_describe(exc)) from exc


def _describe(exc: ValidationError) -> str:
    return "\n".join(
        f"{'.'.join(str(loc) for loc in e['loc'])}: {e['msg']}" for e in exc.errors()
    )
