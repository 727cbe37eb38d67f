"""Configuration management for the Docker SDK.

This module provides a unified Settings class with flat, environment-driven
fields, plus grouped views over them.

Usage:
    from dockersdk.config import settings

    # Access grouped settings
    settings.transport.host
    settings.logging.log_level

    # Or use flat access
    settings.docker_host
    settings.log_level
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .logging import LoggingConfig
from .transport import DEFAULT_HOST, NO_TIMEOUT, TransportConfig, parse_flag, parse_timeout


class Settings(BaseSettings):
    """SDK settings with environment variable support.

    Variables follow the Docker CLI's names where one exists
    (DOCKER_HOST, DOCKER_CERT_PATH, DOCKER_TLS_VERIFY, DOCKER_API_VERSION).
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Daemon connection
    docker_host: str = Field(default=DEFAULT_HOST)
    docker_cert_path: Optional[str] = Field(default=None)
    docker_tls_verify: bool = Field(default=False)
    docker_api_version: Optional[str] = Field(
        default=None, description="Pin the API version instead of negotiating it"
    )

    # Requests
    docker_default_timeout: float = Field(
        default=100.0,
        description="Default request timeout in seconds; 0, 'none' or 'inf' disable it",
    )
    docker_user_agent: str = Field(default="dockersdk-python")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("docker_tls_verify", mode="before")
    @classmethod
    def _parse_flag(cls, v):
        return parse_flag(v)

    @field_validator("docker_default_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, v):
        return parse_timeout(v)

    @field_validator("docker_default_timeout")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be greater than zero")
        return v

    @property
    def transport(self) -> TransportConfig:
        """Access daemon connection configuration group."""
        return TransportConfig(
            host=self.docker_host,
            cert_path=self.docker_cert_path,
            tls_verify=self.docker_tls_verify,
            api_version=self.docker_api_version,
            default_timeout=self.docker_default_timeout,
            user_agent=self.docker_user_agent,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(log_level=self.log_level, log_format=self.log_format)


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    "TransportConfig",
    "LoggingConfig",
    "NO_TIMEOUT",
]
