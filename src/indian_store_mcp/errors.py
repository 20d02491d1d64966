"""Error taxonomy shared by the OAuth gateway and the MCP endpoint.

HTTP-facing errors carry the status they map to. Unknown methods or tools and
malformed envelopes on the MCP endpoint are not exceptions: the dispatcher
answers them with JSON-RPC error objects.
"""

from __future__ import annotations

from starlette.responses import JSONResponse


class GatewayError(Exception):
    """Base class for all gateway errors."""

    status_code = 500
    error_code = "server_error"

    def __init__(self, description: str) -> None:
        super().__init__(description)
        self.description = description

    def to_response(self) -> JSONResponse:
        return json_error(self.error_code, self.description, self.status_code)


class ClientError(GatewayError):
    """Malformed request or missing required field."""

    status_code = 400
    error_code = "invalid_request"

    def __init__(self, description: str, error_code: str | None = None) -> None:
        super().__init__(description)
        if error_code:
            self.error_code = error_code


class AuthError(GatewayError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    error_code = "unauthorized"


class UpstreamError(GatewayError):
    """Non-2xx answer or transport failure talking to the identity provider.

    ``status_code`` is what the gateway answers with; ``upstream_status`` and
    ``body`` keep what the provider sent for operators.
    """

    def __init__(
        self,
        description: str,
        upstream_status: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(description)
        self.upstream_status = upstream_status
        self.body = body

    def __str__(self) -> str:
        if self.upstream_status is None:
            return self.description
        return f"{self.description}: {self.upstream_status} - {self.body}"


class ConfigError(GatewayError):
    """Required configuration is missing; the process must not start."""


def json_error(error_code: str, description: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"error": error_code, "error_description": description},
        status_code=status_code,
    )
