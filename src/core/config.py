"""Application configuration via Pydantic settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration object loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Clinic Booking API"
    debug: bool = False
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    app_url: str = Field("http://localhost:3000", alias="APP_URL")

    database_url: str = Field(..., alias="DATABASE_URL")
    jwt_secret: str = Field(..., alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_audience: str | None = Field("authenticated", alias="JWT_AUDIENCE")
    # Lifetime of locally minted tokens; provider tokens carry their own `exp`.
    jwt_expires_in_minutes: int = Field(60, alias="JWT_EXPIRES_IN")

    stripe_secret_key: str | None = Field(None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str | None = Field(None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_webhook_tolerance_seconds: int = Field(300, alias="STRIPE_WEBHOOK_TOLERANCE")
    default_currency: str = Field("INR", alias="DEFAULT_CURRENCY")

    default_timezone: str = Field("Asia/Kolkata", alias="DEFAULT_TIMEZONE")
    refund_full_hours: float = Field(48, alias="REFUND_FULL_HOURS")
    refund_partial_hours: float = Field(24, alias="REFUND_PARTIAL_HOURS")
    refund_partial_percentage: int = Field(50, alias="REFUND_PARTIAL_PERCENTAGE")


@lru_cache(1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings = get_settings()
