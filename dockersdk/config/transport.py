"""Daemon connection configuration."""

import math
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_HOST = "unix:///var/run/docker.sock"

# Distinguished timeout value: wait forever
NO_TIMEOUT = math.inf


def parse_flag(value: Any) -> Any:
    """Docker treats an empty DOCKER_TLS_VERIFY as unset."""
    if isinstance(value, str) and not value.strip():
        return False
    return value


def parse_timeout(value: Any) -> Any:
    """Map the textual spellings of "no timeout" to NO_TIMEOUT."""
    if value is None:
        return NO_TIMEOUT
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("", "0", "none", "inf", "infinite"):
            return NO_TIMEOUT
        return value
    if value == 0:
        return NO_TIMEOUT
    return value


class TransportConfig(BaseSettings):
    """Where the daemon lives and how requests to it behave."""

    host: str = Field(default=DEFAULT_HOST)
    cert_path: Optional[str] = Field(default=None)
    tls_verify: bool = Field(default=False)
    api_version: Optional[str] = Field(default=None)
    default_timeout: float = Field(default=100.0)
    user_agent: str = Field(default="dockersdk-python")

    @field_validator("tls_verify", mode="before")
    @classmethod
    def _parse_flag(cls, v):
        return parse_flag(v)

    @field_validator("default_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, v):
        return parse_timeout(v)

    @field_validator("default_timeout")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be greater than zero")
        return v

    @property
    def uses_tls(self) -> bool:
        return self.tls_verify or bool(self.cert_path) or self.host.startswith("https://")

    class Config:
        env_prefix = "DOCKER_"
        extra = "ignore"
