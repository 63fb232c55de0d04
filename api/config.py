"""
API configuration settings.
"""

from typing import List

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book Catalog API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False

    # CORS Settings
    cors_origins: List[str] = ["http://localhost:4200"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Listing defaults
    default_page_size: int = 10
    max_page_size: int = 100
    default_sort_by: str = "title"
    default_sort_direction: str = "ASC"

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "API_",
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Global config instance
config = APIConfig()
