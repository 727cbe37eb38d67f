"""Asynchronous client for the Docker daemon HTTP API."""

from .client import DockerClient
from .config import NO_TIMEOUT, settings
from .core.signals import CancellationSignal
from .models.errors import (
    DockerException,
    DockerApiError,
    DockerTransportError,
    OperationCancelledError,
    RequestTimeoutError,
)

__version__ = "0.1.0"

__all__ = [
    "DockerClient",
    "CancellationSignal",
    "NO_TIMEOUT",
    "settings",
    "DockerException",
    "DockerApiError",
    "DockerTransportError",
    "OperationCancelledError",
    "RequestTimeoutError",
]
