from __future__ import annotations

from typing import ClassVar, final

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_PLACEHOLDER_SHARE_ID_SECRET = "share_id_secret_change_me"
_DEFAULT_PUBLIC_BASE_URL = "http://localhost:5212"


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Drive Share Backend"
    api_prefix: str = "/api/v1"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"

    # Primary env: CORS_ALLOW_ORIGINS; also accept CORS_ORIGINS as alias.
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=AliasChoices("CORS_ALLOW_ORIGINS", "CORS_ORIGINS"),
    )

    log_level: str = "INFO"

    # Site identity (used by share previews and long-form share URLs)
    public_base_url: str = _DEFAULT_PUBLIC_BASE_URL
    site_name: str = "Drive"
    site_description: str = "Your personal cloud drive"
    pwa_large_icon: str = "/static/img/logo512.png"
    pwa_medium_icon: str = "/static/img/logo192.png"

    # Sharing
    share_id_secret: str = _PLACEHOLDER_SHARE_ID_SECRET
    share_uri_scheme: str = "drive"
    share_max_id_length: int = 32
    share_max_password_length: int = 32
    share_list_max_page_size: int = 100

    # Group whose permissions apply to visitors without a session.
    anonymous_group_id: int = 3

    # Upper bound for a single store / entry resolver call while serving a share.
    share_collaborator_timeout_seconds: float = 5.0

    # Extra crawler identifiers (comma-separated, case-insensitive substrings).
    crawler_user_agents_extra: str = ""

    # Validate production settings early to fail fast on unsafe defaults.
    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        if self.environment.strip().lower() != "production":
            return self

        errors: list[str] = []

        secret = self.share_id_secret.strip()
        if not secret or secret == _PLACEHOLDER_SHARE_ID_SECRET:
            errors.append("SHARE_ID_SECRET must be set in production")

        base = self.public_base_url.strip()
        if not base or base == _DEFAULT_PUBLIC_BASE_URL:
            errors.append("PUBLIC_BASE_URL must be set in production")

        cors_v = self.cors_allow_origins.strip()
        if not cors_v or cors_v == "*":
            errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        if errors:
            raise ValueError("Invalid production settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def crawler_user_agents_extra_list(self) -> list[str]:
        return [x.lower() for x in _split_csv(self.crawler_user_agents_extra)]

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        secret = self.share_id_secret.strip()
        if not secret or secret == _PLACEHOLDER_SHARE_ID_SECRET:
            warnings.append("SHARE_ID_SECRET is missing or using placeholder value")
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        return warnings


settings = Settings()
