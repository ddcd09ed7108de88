"""Service settings powered by :mod:`pydantic_settings`."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from apipulse.adapters.storage.analytics_engine import DEFAULT_BASE_URL
from apipulse.core.ranking import DEFAULT_LIMIT
from apipulse.core.sql import is_identifier


class Settings(BaseSettings):
    """Configuration for the analytics dashboard service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    account_id: str = Field(
        default="",
        alias="ACCOUNT_ID",
        description="Account that owns the Analytics Engine dataset.",
    )
    api_token: str = Field(
        default="",
        alias="API_TOKEN",
        description="Bearer token with Analytics Engine read access.",
    )
    dataset: str = Field(
        default="api_usage",
        alias="ANALYTICS_DATASET",
        description="Analytics Engine dataset holding proxy telemetry.",
    )
    api_base_url: str = Field(
        default=DEFAULT_BASE_URL,
        alias="ANALYTICS_API_BASE_URL",
        description="Base URL of the Analytics Engine SQL API.",
    )
    identity_db_path: str = Field(
        default="identities.db",
        alias="IDENTITY_DB_PATH",
        description="SQLite database holding the api_keys table.",
    )
    request_timeout: float = Field(
        default=30.0,
        alias="REQUEST_TIMEOUT",
        gt=0,
        description="Seconds allowed for all store work behind one API request.",
    )
    default_limit: int = Field(
        default=DEFAULT_LIMIT,
        alias="DEFAULT_LIMIT",
        ge=1,
        description="Number of ranked entries returned when no limit is given.",
    )
    identity_cache_ttl_seconds: float = Field(
        default=0.0,
        alias="IDENTITY_CACHE_TTL_SECONDS",
        ge=0,
        description="Lifetime of cached identity lookups; 0 disables caching.",
    )
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging verbosity for the service.",
    )
    allowed_origin: str = Field(
        default="*",
        alias="ALLOWED_ORIGIN",
        description="Value of the Access-Control-Allow-Origin header.",
    )

    @field_validator("dataset")
    @classmethod
    def _validate_dataset(cls, value: str) -> str:
        if not is_identifier(value):
            raise ValueError(f"dataset must be a plain identifier, got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings loaded from the environment."""
    return Settings()
