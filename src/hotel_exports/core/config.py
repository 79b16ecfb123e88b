"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Export API
    api_base_url: str = Field(
        default="http://127.0.0.1:8001",
        description="Base URL of the hotel data API (without version segment)",
    )
    api_version: str = Field(
        default="v1.0",
        description="API version path segment appended to the base URL",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            msg = "api_base_url must use http or https"
            raise ValueError(msg)
        return v.rstrip("/")

    @field_validator("api_version")
    @classmethod
    def validate_api_version(cls, v: str) -> str:
        return v.strip("/")

    # Session
    api_token: str | None = Field(
        default=None,
        description="Bearer token used for authenticated export requests",
    )
    api_key: str | None = Field(
        default=None,
        description="Optional X-API-Key sent with download requests (metered accounts)",
    )

    # Transport
    request_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
        gt=0,
    )
    request_retries: int = Field(
        default=3,
        description="Transport retry count for idempotent-safe failures",
        ge=0,
    )
    retry_base_delay: float = Field(
        default=0.5,
        description="Initial transport retry delay in seconds (doubles per attempt)",
        ge=0,
    )

    # Download
    download_retries: int = Field(
        default=3,
        description="Retries for export downloads on 5xx or network errors",
        ge=0,
    )
    download_retry_delay: float = Field(
        default=1.0,
        description="Initial download retry delay in seconds (grows 1.5x per retry)",
        ge=0,
    )

    # Polling
    poll_interval_ms: int = Field(
        default=5000,
        description="Base interval between status polls for one export job",
        ge=100,
    )
    poll_max_consecutive_errors: int = Field(
        default=3,
        description="Consecutive poll failures after which a job stops being polled",
        ge=1,
    )

    # Export
    export_dir: str = Field(
        default="./exports",
        description="Directory for downloaded export files",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    @property
    def api_root_url(self) -> str:
        """Base URL joined with the API version segment."""
        if not self.api_version:
            return self.api_base_url
        return f"{self.api_base_url}/{self.api_version}"


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
