"""Exception classes for the Docker SDK."""

import json
from typing import Optional


class DockerException(Exception):
    """Base exception for the Docker SDK."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class DockerTransportError(DockerException):
    """The request failed below the HTTP layer (connectivity, DNS, TLS, timeout)."""


class RequestTimeoutError(DockerTransportError):
    """The request was aborted because its timeout elapsed."""

    def __init__(self, timeout: Optional[float] = None, message: Optional[str] = None):
        self.timeout = timeout
        super().__init__(
            message
            or (
                f"The request did not complete within {timeout:g} seconds"
                if timeout is not None
                else "The request timed out"
            )
        )


class OperationCancelledError(DockerException):
    """The caller cancelled the operation."""

    def __init__(self, message: str = "The operation was cancelled"):
        super().__init__(message)


class HijackNotSupportedError(DockerException):
    """The connection cannot be upgraded to a raw bidirectional stream."""

    def __init__(self, message: str = "The connection does not support hijacked streams"):
        super().__init__(message)


class StreamDecodeError(DockerException):
    """A streamed response contained data that could not be decoded."""


class DockerApiError(DockerException):
    """The daemon answered with a status code outside 200-399."""

    def __init__(
        self,
        status_code: int,
        response_body: Optional[str] = None,
        message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(
            message
            or f"Docker API responded with status code={status_code}, response={response_body}"
        )

    @property
    def message_text(self) -> str:
        """The daemon's ``message`` field, or the raw body when there is none."""
        if not self.response_body:
            return self.message
        try:
            text = json.loads(self.response_body).get("message")
        except (ValueError, AttributeError):
            return self.response_body
        return text or self.response_body


class ResourceNotFoundError(DockerApiError):
    """The daemon reported that the requested resource does not exist."""

    def __init__(self, status_code: int = 404, response_body: Optional[str] = None, message: Optional[str] = None):
        super().__init__(status_code, response_body, message)


class DockerDaemonError(DockerApiError):
    """The daemon reported an internal error."""

    def __init__(self, status_code: int = 500, response_body: Optional[str] = None, message: Optional[str] = None):
        super().__init__(status_code, response_body, message)


class DaemonNotFoundError(DockerException):
    """No Docker daemon answered at the configured endpoint."""


class DockerVersionError(DockerException):
    """The daemon and the SDK share no supported API version."""
