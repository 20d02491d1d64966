from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from indian_store_mcp.errors import ConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    # Ory Hydra
    ory_url: str
    ory_internal_url: str = ""  # server-to-server token endpoint, skips public ingress
    ory_admin_url: str = "http://ory-hydra-admin.default.svc.cluster.local:4445"
    ory_client_id: str = ""
    ory_client_secret: str = ""
    ory_callback_url: str = "http://localhost:8080/oauth/callback"
    ory_scopes: str = "openid offline_access"
    ory_introspection_url: str = ""
    ory_userinfo_url: str = ""

    # Tokens (informational, issuance belongs to Hydra)
    jwt_secret: str = "default-secret-change-in-production"
    access_token_lifetime: int = 3600
    refresh_token_lifetime: int = 604800

    # Outbound calls
    http_timeout_seconds: float = 10.0
    http_max_attempts: int = 3
    http_retry_base_delay: float = 0.25

    # Stores
    session_ttl_seconds: int = 86400
    state_ttl_seconds: int = 600  # 0 keeps states until consumed
    sweep_interval_seconds: int = 300

    # Seed account created when the user store is empty
    seed_admin_email: str = "admin@indian-store.com"
    seed_admin_password: str = "admin123"
    seed_admin_name: str = "Admin User"

    # Logs
    log_dir: Path = Path.home() / ".local/share/indian-store-mcp"
    max_log_size_mb: int = 50

    @field_validator("ory_url")
    @classmethod
    def _require_ory_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("ORY_URL is required")
        return value

    @field_validator("ory_internal_url", "ory_admin_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def token_url(self) -> str:
        base = self.ory_internal_url or self.ory_url
        return f"{base}/oauth2/token"

    @property
    def introspection_url(self) -> str:
        return self.ory_introspection_url or f"{self.ory_admin_url}/admin/oauth2/introspect"

    @property
    def userinfo_url(self) -> str:
        return self.ory_userinfo_url or f"{self.ory_url}/userinfo"


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        try:
            _settings = Settings()  # type: ignore[call-arg]
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc
    return _settings
