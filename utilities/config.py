"""
Configuration management using environment variables.
Handles database, media store and logging settings with validation and defaults.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CatalogConfig(BaseSettings):
    """
    Configuration class for the catalog services.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="book_catalog")

    # Cloudinary Configuration
    cloudinary_cloud_name: str = Field(default="")
    cloudinary_api_key: str = Field(default="")
    cloudinary_api_secret: str = Field(default="")
    cloudinary_base_url: str = Field(default="https://api.cloudinary.com/v1_1")
    media_request_timeout: int = Field(default=30)

    # Orphan cleanup: images younger than this may still be on their way to a book
    orphan_grace_period_minutes: int = Field(default=60)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Development
    debug: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("media_request_timeout")
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 1 or v > 300:
            raise ValueError("media_request_timeout must be between 1 and 300 seconds")
        return v

    @field_validator("orphan_grace_period_minutes")
    @classmethod
    def validate_grace_period(cls, v):
        """Ensure the grace period is not negative."""
        if v < 0:
            raise ValueError("orphan_grace_period_minutes must not be negative")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    def media_store_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name
            and self.cloudinary_api_key
            and self.cloudinary_api_secret
        )

    def get_user_agent(self) -> str:
        return "BookCatalog-API/1.0"


# Global configuration instance
config = CatalogConfig()
