"""Shared configuration for the payment tracker."""
import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Backend
    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:5000/api")
    api_token: Optional[str] = os.getenv("API_TOKEN")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "60"))
    upload_timeout: float = float(os.getenv("UPLOAD_TIMEOUT", "120"))

    # Uploads
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    # Application
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env
    )


settings = Settings()
