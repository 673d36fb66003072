"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "CivicVoice"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Authentication - tokens are issued by the external identity service,
    # this service only verifies and decodes them.
    SECRET_KEY: str = ""  # Required - loaded from environment
    JWT_ALGORITHM: str = "HS256"

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    # Azure Cosmos DB
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None  # For the local emulator
    AZURE_COSMOS_DATABASE: str = "civicvoice"
    AZURE_COSMOS_DISABLE_SSL: bool = False

    # Azure Blob Storage (issue photos)
    AZURE_STORAGE_ACCOUNT_URL: str | None = None
    AZURE_STORAGE_CONNECTION_STRING: str | None = None  # For local dev only
    AZURE_STORAGE_MEDIA_CONTAINER: str = "issue-media"

    # Azure Communication Services (Email)
    AZURE_COMMUNICATION_CONNECTION_STRING: str | None = None
    AZURE_EMAIL_SENDER_ADDRESS: str | None = None
    FRONTEND_URL: str = "http://localhost:5173"

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Issue reporting
    ISSUE_MAX_IMAGES: int = 5
    ISSUE_MAX_IMAGE_BYTES: int = 5 * 1024 * 1024
    GEO_DEFAULT_RADIUS_METERS: int = 5000

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 50

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
