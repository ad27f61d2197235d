"""Application configuration via environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

DEV_API_URL = "http://localhost:8080"


class Settings(BaseSettings):
    """Central configuration for the QuarkfinAI platform client."""

    # Application
    app_name: str = "QuarkfinAI Platform"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern=r"^(development|staging|production)$")
    log_level: str = "INFO"
    log_format: str = "json"

    # API
    api_url: str = ""
    platform_url: str = "https://app.quarkfin.ai"
    request_timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    poll_max_attempts: int = Field(default=60, ge=1)
    poll_interval_seconds: float = Field(default=2.0, ge=0)

    # Identity provider
    aws_region: str = "us-east-1"
    cognito_user_pool_id: str = ""
    cognito_client_id: str = ""

    # Features
    enable_google_auth: bool = False
    enable_phone_verification: bool = False
    enable_payments: bool = False
    require_onboarding: bool = False

    # Development backend
    allowed_origins: str = "http://localhost:3000"
    rate_limit_default: str = "100/minute"
    stub_processing_polls: int = Field(default=2, ge=0)
    stub_initial_credits: int = Field(default=10, ge=0)

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",")]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def resolved_api_url(self) -> str:
        """API origin: explicit URL, else local backend in development, else the platform's /api."""
        if self.api_url:
            return self.api_url.rstrip("/")
        if self.is_development:
            return DEV_API_URL
        return f"{self.platform_url.rstrip('/')}/api"

    @property
    def has_identity_provider(self) -> bool:
        return bool(self.cognito_user_pool_id and self.cognito_client_id)

    model_config = {"env_prefix": "QUARKFIN_", "env_file": ".env", "extra": "ignore"}


def get_settings() -> Settings:
    """Return a settings instance built from the environment."""
    return Settings()
