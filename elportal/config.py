"""Configuration management using Pydantic Settings."""

import os

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        # Only load .env file in development (not Lambda/production)
        env_file=".env" if os.getenv("AWS_EXECUTION_ENV") is None else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # AWS Configuration
    aws_region: str = "eu-north-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None  # Required for temporary credentials

    @field_validator(
        "aws_access_key_id",
        "aws_secret_access_key",
        "aws_session_token",
        "admin_secret",
        "eloverblik_thirdparty_refresh_token",
        "conversion_webhook_secret",
        mode="before",
    )
    @classmethod
    def convert_empty_string_to_none(cls, v):
        """Convert empty strings to None so unset secrets behave as missing."""
        if v is None:
            return None
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    # Key-value store
    kv_backend: str = "dynamodb"  # "dynamodb" or "memory"
    dynamodb_endpoint_url: str | None = None
    dynamodb_table_kv: str = "elportal-kv"

    # Application Configuration
    log_level: str = "INFO"
    api_title: str = "DinElPortal Tracking API"
    api_version: str = "1.0.0"
    site_url: str = "https://dinelportal.dk"
    environment: str = Field(
        default="production",
        validation_alias=AliasChoices("environment", "node_env"),
    )

    # Secrets
    admin_secret: str | None = None
    eloverblik_thirdparty_refresh_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "eloverblik_thirdparty_refresh_token", "eloverblik_api_token"
        ),
    )
    conversion_webhook_secret: str | None = None

    # Partner sites: drop pixel events from inactive partners or foreign domains
    pixel_domain_validation: bool = False

    # Rate Limiting
    click_rate_limit_per_minute: int = 100
    rate_limit_window_seconds: int = 60

    # Retention (seconds)
    click_ttl_seconds: int = 90 * 24 * 60 * 60
    attribution_window_seconds: int = 90 * 24 * 60 * 60
    daily_counter_ttl_seconds: int = 30 * 24 * 60 * 60
    conversion_ttl_seconds: int = 30 * 24 * 60 * 60
    tracking_event_ttl_seconds: int = 7 * 24 * 60 * 60
    production_cache_ttl_seconds: int = 24 * 60 * 60

    # Upstream APIs
    energidataservice_base_url: str = "https://api.energidataservice.dk"
    eloverblik_base_url: str = "https://api.eloverblik.dk"
    upstream_timeout_seconds: float = 8.0
    upstream_max_attempts: int = 3
    upstream_backoff_seconds: float = 1.0
    inflight_linger_seconds: float = 0.1
    eloverblik_batch_size: int = 10

    @property
    def is_development(self) -> bool:
        """True when running with NODE_ENV/ENVIRONMENT=development."""
        return self.environment.lower() == "development"


# Global settings instance
settings = Settings()
