from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    app_name: str = Field(default="Workflow Registry API", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="production",
        alias="APP_ENV",
    )
    app_debug: bool = Field(default=False, alias="APP_DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")
    secret_key: SecretStr = Field(
        default=SecretStr("change-me-in-production"),
        alias="SECRET_KEY",
    )
    admin_email: str = Field(default="admin@example.com", alias="ADMIN_EMAIL")
    admin_name: str = Field(default="Administrator", alias="ADMIN_NAME")
    admin_user_id: int = Field(default=1, ge=1, alias="ADMIN_USER_ID")
    admin_password_hash: SecretStr = Field(
        default=SecretStr(""),
        alias="ADMIN_PASSWORD_HASH",
    )

    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )

    database_url: str = Field(
        default="sqlite:///./workflows.db",
        alias="DATABASE_URL",
    )

    db_pool_size: int = Field(default=10, ge=1, le=100, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, ge=0, le=200, alias="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=30, ge=1, le=300, alias="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=1800, ge=60, alias="DB_POOL_RECYCLE")

    workflow_default_extension: str = Field(
        default="com_content",
        alias="WORKFLOW_DEFAULT_EXTENSION",
    )
    workflow_seed_extensions: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["com_content"],
        alias="WORKFLOW_SEED_EXTENSIONS",
    )
    # Strict mode refuses set_home on an unpublished workflow; lenient mode
    # records the error and still moves the default.
    workflow_set_home_strict: bool = Field(default=True, alias="WORKFLOW_SET_HOME_STRICT")
    workflow_create_initial_state: bool = Field(
        default=True,
        alias="WORKFLOW_CREATE_INITIAL_STATE",
    )
    workflow_list_limit: int = Field(default=20, ge=1, le=500, alias="WORKFLOW_LIST_LIMIT")
    workflow_list_cache_size: int = Field(default=128, ge=0, le=10000, alias="WORKFLOW_LIST_CACHE_SIZE")
    workflow_list_cache_ttl: float = Field(default=30.0, gt=0, le=3600, alias="WORKFLOW_LIST_CACHE_TTL")

    @field_validator("api_v1_prefix")
    @classmethod
    def validate_api_prefix(cls, value: str) -> str:
        """Ensure the API prefix starts with a slash and has no trailing slash."""
        normalized = value.strip()
        if not normalized.startswith("/"):
            raise ValueError("API_V1_PREFIX must start with '/'.")
        if len(normalized) > 1 and normalized.endswith("/"):
            normalized = normalized.rstrip("/")
        return normalized

    @field_validator("cors_origins", "workflow_seed_extensions", mode="before")
    @classmethod
    def parse_comma_list(cls, value: str | list[str]) -> list[str]:
        """Support comma-separated lists from environment variables."""
        if isinstance(value, str):
            if not value.strip():
                return []
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, value: str) -> str:
        """Accept PostgreSQL or SQLite SQLAlchemy connection strings."""
        lowered = value.lower()
        if not lowered.startswith(("postgresql://", "postgresql+psycopg2://", "sqlite://")):
            raise ValueError(
                "DATABASE_URL must start with postgresql://, postgresql+psycopg2:// or sqlite://"
            )
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.lower().startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings: Settings = get_settings()
