from functools import lru_cache
from typing import Optional

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings, sourced from environment variables or .env."""

    app_name: str = Field(default="InstallmentLedger")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./ledger.db",
        alias="DATABASE_URL",
        description="Async SQLAlchemy URL of the local key-value store.",
    )
    direct_database_url: Optional[str] = Field(
        default=None,
        alias="DIRECT_DATABASE_URL",
        description="Optional synchronous connection string used for running migrations.",
    )
    auto_run_migrations: bool = Field(default=False, alias="AUTO_RUN_MIGRATIONS")

    currency_label: str = Field(default="IQD", alias="CURRENCY_LABEL")
    seller_name: str = Field(default="Supermax", alias="SELLER_NAME")
    activity_log_limit: int = Field(default=500, alias="ACTIVITY_LOG_LIMIT", ge=1)
    auto_backup_retention: int = Field(default=7, alias="AUTO_BACKUP_RETENTION", ge=1)
    upcoming_window_days: int = Field(default=7, alias="UPCOMING_WINDOW_DAYS", ge=1)

    session_ttl_seconds: int = Field(
        default=60 * 60 * 12,
        alias="SESSION_TTL_SECONDS",
        description="Lifetime of a login session (in seconds).",
        ge=60,
    )
    remember_session_ttl_seconds: int = Field(
        default=60 * 60 * 24 * 30,
        alias="REMEMBER_SESSION_TTL_SECONDS",
        description="Lifetime of a session created with 'remember me' (in seconds).",
        ge=60,
    )
    default_username: str = Field(default="admin", alias="DEFAULT_USERNAME")
    default_password: str = Field(default="admin", alias="DEFAULT_PASSWORD", min_length=4)

    remote_mirror_url: Optional[AnyHttpUrl] = Field(
        default=None,
        alias="REMOTE_MIRROR_URL",
        description="Base URL of the realtime-tree REST endpoint; the mirror is disabled when unset.",
    )
    remote_mirror_auth_token: Optional[str] = Field(default=None, alias="REMOTE_MIRROR_AUTH_TOKEN")
    remote_mirror_timeout_seconds: float = Field(
        default=10.0, alias="REMOTE_MIRROR_TIMEOUT_SECONDS", gt=0
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached accessor so imports share a single settings instance."""
    return Settings()  # type: ignore[call-arg]
