"""Application settings and configuration."""

import sys
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "refledger"
    env: str = "development"
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    allowed_origins: str = "http://localhost:5173"

    # Database
    database_url: str = "sqlite:///./refledger.db"

    # Stripe
    stripe_webhook_secret: str | None = None

    # Referral earnings (fractions of the gross purchase amount)
    referral_tier1_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    referral_tier2_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    referral_min_gross_amount: int = Field(default=0, ge=0)  # minor units

    # Stored referral reference
    referral_cookie_name: str = "ref_code"
    referral_ttl_days: int = 90

    # Ads
    ad_dedup_window_minutes: int = 30

    # Links
    public_base_url: str = "http://localhost:5173"
    api_base_url: str = "http://localhost:8000"


# Global settings instance
settings = Settings()

# ── Production validation ────────────────────────────────────────────
if settings.env == "production" and not settings.stripe_webhook_secret:
    print(
        "\n❌  FATAL: STRIPE_WEBHOOK_SECRET is not set.\n"
        "   Purchase notifications cannot be verified without it.\n",
        file=sys.stderr,
    )
    sys.exit(1)
