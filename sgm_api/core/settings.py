from __future__ import annotations

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from sgm_api.db.config.Settings, which focuses on the database layer.
    Security policy (token lifetimes, lockout and password rules) lives here.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="SGM Admin API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Administration backend for accounts and roles. "
            "Provides stateless token authentication, login throttling and password policy."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed the role catalog and the system administrator after migrations.",
    )
    SYSTEM_ADMIN_USERNAME: str = Field(default="system.admin")
    SYSTEM_ADMIN_NAME: str = Field(default="Administrador")
    SYSTEM_ADMIN_PASSWORD: Optional[str] = Field(
        default=None, description="Initial password for the seeded privileged account."
    )

    # Tokens
    JWT_BASE64_SECRET: Optional[str] = Field(
        default=None, description="Base64 encoded HMAC key used to sign tokens (>= 64 bytes for HS512)."
    )
    JWT_ALGORITHM: str = Field(default="HS512")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, ge=1)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, ge=1)

    # Login throttling
    LOGON_ATTEMPTS: int = Field(default=5, ge=1, description="Failures within the window that lock an account.")
    LOGON_ATTEMPT_WINDOW_SECONDS: int = Field(default=3600, ge=1)
    ACCOUNT_UPDATE_MAX_RETRIES: int = Field(
        default=3, ge=1, description="Optimistic concurrency retries for account mutations."
    )

    # Password rules
    PASSWORD_MIN_LENGTH: int = Field(default=7, ge=1)
    PASSWORD_HISTORY_LIMIT: int = Field(default=24, ge=1)
    PASSWORD_MAX_AGE_DAYS: int = Field(default=90, ge=1)
    PASSWORD_REGEX_NUMBER: str = Field(default=r"[0-9]")
    PASSWORD_REGEX_LOWERCASE: str = Field(default=r"[a-z]")
    PASSWORD_REGEX_UPPERCASE: str = Field(default=r"[A-Z]")
    PASSWORD_REGEX_NON_ALPHANUMERIC: str = Field(default=r"[^a-zA-Z0-9]")
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Environment label
    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Note:
      Values that must stay fixed for the process lifetime (the signing key) are
      cached separately in sgm_api.core.security.
    """
    return AppSettings()
