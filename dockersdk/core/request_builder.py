"""Fluent construction of single API calls.

    response = await (
        RequestBuilder(transport, "POST", f"containers/{cid}/start")
        .accept_status(304)
        .reject_status(409, lambda status, body: ContainerConflict(body))
        .send(signal)
    )

Handlers run in registration order; the default mapping (404 and 500 to
their domain exceptions) runs after all caller handlers.
"""

import base64
import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

import httpx

from ..models.errors import DockerDaemonError, ResourceNotFoundError
from ..models.requests import CompletionPolicy, RequestBody, RequestDescriptor
from .signals import CancellationSignal
from .streams import StreamDecoder
from .transport import DockerTransport, ErrorHandler, HijackedStream

ExceptionFactory = Callable[[int, Optional[str]], Exception]


def _default_error_mapping(status: int, body: Optional[str]) -> None:
    if status == 404:
        raise ResourceNotFoundError(status, body)
    if status == 500:
        raise DockerDaemonError(status, body)


def encode_auth_header(auth: Union[str, Dict[str, Any]]) -> str:
    """Encode registry credentials the way the daemon expects X-Registry-Auth."""
    if isinstance(auth, dict):
        auth = json.dumps(auth)
    return base64.urlsafe_b64encode(auth.encode("utf-8")).decode("ascii")


class RequestBuilder:
    """Builds and sends one request through a ``DockerTransport``."""

    def __init__(self, transport: DockerTransport, method: str, path: str):
        self.transport = transport
        self.request = RequestDescriptor(method=method, path=path)
        self._handlers: List[ErrorHandler] = []
        self._use_default_mapping = True

    def with_query(self, name: str, value: Any) -> "RequestBuilder":
        """Append a query parameter. None values are dropped when encoding."""
        self.request.query.append((name, value))
        return self

    def with_queries(self, **params: Any) -> "RequestBuilder":
        for name, value in params.items():
            self.with_query(name, value)
        return self

    def with_headers(self, **headers: str) -> "RequestBuilder":
        for name, value in headers.items():
            self.request.headers.append((name.replace("_", "-"), value))
        return self

    def with_header(self, name: str, value: str) -> "RequestBuilder":
        self.request.headers.append((name, value))
        return self

    def with_auth_header(self, auth: Union[str, Dict[str, Any]]) -> "RequestBuilder":
        return self.with_header("X-Registry-Auth", encode_auth_header(auth))

    def with_json_body(self, body: Any) -> "RequestBuilder":
        self.request.json_body = body
        self.request.body = None
        return self

    def with_body(
        self, body: RequestBody, content_type: str = "application/octet-stream"
    ) -> "RequestBuilder":
        self.request.body = body
        self.request.json_body = None
        self.request.headers = [
            (name, value)
            for name, value in self.request.headers
            if name.lower() != "content-type"
        ]
        return self.with_header("Content-Type", content_type)

    def with_timeout(self, timeout: float) -> "RequestBuilder":
        """Override the default timeout; pass ``NO_TIMEOUT`` to wait forever."""
        if timeout <= 0:
            raise ValueError("Non-positive timeouts are not allowed")
        self.request.timeout = timeout
        return self

    def on_status(self, handler: ErrorHandler) -> "RequestBuilder":
        """Register a raw ``(status, body)`` handler."""
        self._handlers.append(handler)
        return self

    def accept_status(self, *status_codes: int) -> "RequestBuilder":
        """Treat these status codes as success even when they are errors."""
        codes = set(status_codes)
        return self.on_status(lambda status, body: status in codes)

    def reject_status(
        self,
        status_code: int,
        factory: ExceptionFactory,
        when: Optional[Callable[[Optional[str]], bool]] = None,
    ) -> "RequestBuilder":
        """Raise ``factory(status, body)`` for this status (and matching body)."""

        def handler(status: int, body: Optional[str]) -> bool:
            if status == status_code and (when is None or when(body)):
                raise factory(status, body)
            return False

        return self.on_status(handler)

    def without_default_errors(self) -> "RequestBuilder":
        """Report 404 and 500 as plain DockerApiError."""
        self._use_default_mapping = False
        return self

    def _error_handlers(self) -> List[ErrorHandler]:
        handlers = list(self._handlers)
        if self._use_default_mapping:
            handlers.append(_default_error_mapping)
        return handlers

    async def send(
        self,
        signal: Optional[CancellationSignal] = None,
        policy: CompletionPolicy = CompletionPolicy.READ_FULL_BODY,
    ) -> httpx.Response:
        return await self.transport.send(
            self.request, policy, signal, self._error_handlers()
        )

    async def send_json(self, signal: Optional[CancellationSignal] = None) -> Any:
        """Send and decode the body as JSON; an empty body gives None."""
        response = await self.send(signal)
        if not response.content:
            return None
        return response.json()

    async def send_streamed(
        self, signal: Optional[CancellationSignal] = None
    ) -> httpx.Response:
        return await self.transport.send_streamed(
            self.request, signal, self._error_handlers()
        )

    async def stream_json(
        self, signal: Optional[CancellationSignal] = None
    ) -> AsyncIterator[Any]:
        """Send without a timeout and yield each framed JSON value."""
        response = await self.send_streamed(signal)
        try:
            async for value in StreamDecoder.from_response(response, signal).json_values():
                yield value
        finally:
            await response.aclose()

    async def stream_lines(
        self, signal: Optional[CancellationSignal] = None
    ) -> AsyncIterator[str]:
        response = await self.send_streamed(signal)
        try:
            async for line in StreamDecoder.from_response(response, signal).lines():
                yield line
        finally:
            await response.aclose()

    async def hijack(self, signal: Optional[CancellationSignal] = None) -> HijackedStream:
        return await self.transport.send_hijacked(
            self.request, signal, self._error_handlers()
        )
