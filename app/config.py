"""
Application configuration using environment variables.
"""
import os
import secrets
from functools import lru_cache
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Quill API"
    debug: bool = False
    environment: str = "development"

    # Security
    secret_key: str = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60  # 1 hour

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./quill.db")

    # CORS
    cors_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Object storage (Cloudinary admin API)
    storage_cloud_name: str = ""
    storage_api_key: str = ""
    storage_api_secret: str = ""
    storage_api_prefix: str = "https://api.cloudinary.com"
    storage_domain_marker: str = "cloudinary.com"
    placeholder_markers: List[str] = ["pixabay.com", "placeholder"]
    storage_timeout_seconds: float = 15.0
    storage_page_size: int = 500

    # Orphan cleanup
    cleanup_batch_size: int = 100
    cleanup_batch_delay_seconds: float = 1.0
    cleanup_preview_limit: int = 50
    cleanup_schedule_enabled: bool = False
    cleanup_hour_utc: int = 2
    cleanup_min_age_days: int = 1
    cleanup_rate_limit: str = "5/hour"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def storage_configured(self) -> bool:
        return bool(self.storage_cloud_name and self.storage_api_key and self.storage_api_secret)


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
