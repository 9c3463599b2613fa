"""
Application configuration using environment variables.
"""
import os
import secrets
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Social Planner API"
    debug: bool = False
    environment: str = "development"

    # Security
    secret_key: str = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60  # 1 hour
    refresh_token_expire_days: int = 7
    login_rate_limit: str = "5/minute"

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./social_planner.db")

    # CORS
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Scheduling
    business_timezone: str = "America/Lima"
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 60
    scheduler_tick_budget_seconds: int = 50

    # Publishing
    platform_timeout_seconds: float = 30.0
    publish_timeout_seconds: float = 120.0
    facebook_graph_url: str = "https://graph.facebook.com"
    facebook_api_version: str = "v18.0"
    linkedin_api_url: str = "https://api.linkedin.com"
    linkedin_api_version: str = "202401"

    # Object storage (S3 compatible)
    storage_endpoint: Optional[str] = None
    storage_access_key_id: Optional[str] = None
    storage_secret_access_key: Optional[str] = None
    storage_bucket: str = "social-planner-media"
    storage_public_url: Optional[str] = None

    # Notifications
    resend_api_key: Optional[str] = None
    email_from: str = "Social Planner <onboarding@resend.dev>"
    client_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Validate secret key on startup
settings = get_settings()
if settings.environment == "production" and not os.getenv("SECRET_KEY"):
    raise ValueError(
        "SECRET_KEY must be set in production! "
        "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )
