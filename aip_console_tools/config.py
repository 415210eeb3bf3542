"""
Configuration management for AIP Console Tools.

This module handles all configuration settings, environment variables,
and defaults shared by the CLI and the build-step service.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HTTP_TIMEOUT = 90


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application Settings
    app_name: str = Field(default="AIP Console Tools")
    app_version: str = Field(default="0.1.0")
    app_env: str = Field(default="development")
    debug: bool = Field(default=False)

    # Build-step service
    api_prefix: str = Field(default="/api")
    api_version: str = Field(default="v1")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    enable_docs: bool = Field(default=True)

    # AIP Console connection
    console_url: str = Field(
        default="http://localhost:8081", description="Root URL of AIP Console"
    )
    api_key: Optional[str] = Field(default=None, description="AIP Console API key")
    # Read from AIP_CONSOLE_USER only; USERNAME is the OS login on Windows
    username: Optional[str] = Field(
        default=None,
        validation_alias="AIP_CONSOLE_USER",
        description="User name, when authenticating with a user + key",
    )
    http_timeout_seconds: int = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)

    # Credentials stored in AWS Secrets Manager (optional)
    api_key_secret_name: Optional[str] = Field(default=None)
    aws_region: str = Field(default="us-east-1")

    # Polling
    poll_interval_seconds: float = Field(default=10.0, gt=0)
    pending_result_interval_seconds: float = Field(default=5.0, gt=0)
    import_pending_interval_seconds: float = Field(default=2.5, gt=0)
    pending_result_max_attempts: int = Field(default=240, ge=1)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    verbose: bool = Field(default=True)

    @field_validator("console_url")
    @classmethod
    def strip_console_url(cls, v: str) -> str:
        """Drop trailing slashes so endpoint paths can be appended."""
        return v.rstrip("/")

    @property
    def is_development(self) -> bool:
        """Check if the application is running in development mode."""
        return self.app_env.lower() in ["development", "dev", "test"]

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with the non-None overrides applied.

        Args:
            overrides: Field values given on the command line

        Returns:
            New settings instance

        Raises:
            ValidationError: If an override is out of range
        """
        values = {key: value for key, value in overrides.items() if value is not None}
        return type(self).model_validate({**self.model_dump(), **values})


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
