"""Wire structures exchanged with Ory Hydra and with registering clients.

Provider responses are validated with ``extra="ignore"`` so new Hydra fields
never break decoding; request bodies are serialized from explicit models so
the exact JSON sent upstream is visible here.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

REMEMBER_FOR_SECONDS = 86400

DEFAULT_GRANT_TYPES = ["authorization_code", "refresh_token"]
DEFAULT_RESPONSE_TYPES = ["code"]
DEFAULT_CLIENT_SCOPE = "openid offline_access email profile"
DEFAULT_AUTH_METHOD = "client_secret_basic"


class _ProviderModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Public OAuth2 endpoints
# ---------------------------------------------------------------------------


class TokenResponse(_ProviderModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 0
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None


class IntrospectionResult(_ProviderModel):
    active: bool
    sub: str | None = None
    email: str | None = None
    scope: str | None = None
    exp: int | None = None
    client_id: str | None = None


class UserInfo(_ProviderModel):
    sub: str
    email: str | None = None
    name: str | None = None


# ---------------------------------------------------------------------------
# Admin API: login / consent
# ---------------------------------------------------------------------------


class LoginAcceptRequest(BaseModel):
    subject: str
    remember: bool = True
    remember_for: int = REMEMBER_FOR_SECONDS


class ConsentClient(_ProviderModel):
    client_id: str = ""
    client_name: str | None = None


class ConsentRequest(_ProviderModel):
    challenge: str | None = None
    subject: str = ""
    requested_scope: list[str] = Field(default_factory=list)
    requested_access_token_audience: list[str] = Field(default_factory=list)
    client: ConsentClient = Field(default_factory=ConsentClient)


class IdTokenClaims(BaseModel):
    email: str
    name: str


class ConsentSession(BaseModel):
    id_token: IdTokenClaims


class ConsentAcceptRequest(BaseModel):
    grant_scope: list[str]
    grant_access_token_audience: list[str] = Field(default_factory=list)
    remember: bool = True
    remember_for: int = REMEMBER_FOR_SECONDS
    session: ConsentSession


class CompletedRequest(_ProviderModel):
    redirect_to: str


# ---------------------------------------------------------------------------
# Dynamic client registration (RFC 7591) and the admin client API
# ---------------------------------------------------------------------------


class ClientRegistrationRequest(_ProviderModel):
    client_name: str = ""
    redirect_uris: list[str] = Field(default_factory=list)
    grant_types: list[str] = Field(default_factory=list)
    response_types: list[str] = Field(default_factory=list)
    scope: str = ""
    token_endpoint_auth_method: str = ""

    def with_defaults(self) -> ClientRegistrationRequest:
        return self.model_copy(
            update={
                "grant_types": self.grant_types or list(DEFAULT_GRANT_TYPES),
                "response_types": self.response_types or list(DEFAULT_RESPONSE_TYPES),
                "scope": self.scope or DEFAULT_CLIENT_SCOPE,
                "token_endpoint_auth_method": (
                    self.token_endpoint_auth_method or DEFAULT_AUTH_METHOD
                ),
            }
        )


class OAuth2ClientCreate(BaseModel):
    """Body of ``POST /admin/clients``."""

    client_name: str
    redirect_uris: list[str]
    grant_types: list[str]
    response_types: list[str]
    scope: str
    token_endpoint_auth_method: str


class OAuth2Client(_ProviderModel):
    client_id: str = ""
    client_secret: str | None = None


class ClientRegistrationResponse(BaseModel):
    client_id: str
    client_secret: str | None = None
    client_name: str | None = None
    redirect_uris: list[str]
    grant_types: list[str]
    response_types: list[str]
    scope: str | None = None
    token_endpoint_auth_method: str | None = None
    # 0 means the secret never expires and is always sent
    client_secret_expires_at: int = 0
