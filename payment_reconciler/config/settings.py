"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loaded once at process start and frozen. The instance is passed
    explicitly to the app factory, the Stripe gateway and both handlers.
    Missing Stripe credentials fail construction and abort startup.
    """

    # Stripe Configuration
    stripe_secret_key: str = Field(..., description="Stripe secret API key (sk_test_...)")
    stripe_webhook_secret: str = Field(..., min_length=1, description="Stripe webhook signing secret")
    stripe_api_version: Optional[str] = Field(
        default=None, description="Pinned Stripe API version (SDK default when unset)"
    )
    stripe_timeout_seconds: float = Field(
        default=10.0, gt=0, description="Timeout for a single Stripe API request (seconds)"
    )
    stripe_webhook_tolerance_seconds: int = Field(
        default=300, gt=0, description="Maximum age of a webhook signature timestamp (seconds)"
    )

    # Webhook Configuration
    webhook_max_body_bytes: int = Field(
        default=65536, gt=0, description="Maximum accepted webhook payload size (bytes)"
    )
    webhook_ack_unknown_payments: bool = Field(
        default=False,
        description="Acknowledge succeeded events for unknown payments with 200 instead of 404",
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./payments.db", description="SQLAlchemy async database URL"
    )
    database_pool_size: int = Field(default=5, description="Database connection pool size")
    database_max_overflow: int = Field(default=10, description="Max database connection overflow")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # Application Configuration
    app_name: str = Field(default="payment-reconciler", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, description="API port")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("stripe_secret_key")
    @classmethod
    def validate_stripe_key(cls, v: str) -> str:
        """Validate the Stripe secret key prefix."""
        if not v.startswith(("sk_test_", "sk_live_", "rk_test_", "rk_live_")):
            raise ValueError(
                "Invalid Stripe secret key format. Must start with 'sk_test_', 'sk_live_' or 'rk_'"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @property
    def is_test_mode(self) -> bool:
        """Check if using Stripe test mode."""
        return "_test_" in self.stripe_secret_key

    @property
    def is_sqlite(self) -> bool:
        """Check if the database URL points at SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Only the process entry point calls this; everything else receives
    the instance explicitly.
    """
    return Settings()
