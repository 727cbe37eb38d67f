"""HTTP transport for the Docker daemon API.

Every call goes through ``DockerTransport.send``. It builds the URL, attaches
the User-Agent header, races the exchange against a cancellation signal (with
a timer unless the effective timeout is ``NO_TIMEOUT``), and classifies the
response. Three modes are layered on top of it:

- buffered: ``send(..., CompletionPolicy.READ_FULL_BODY)``
- streamed: ``send_streamed`` returns as soon as headers arrive
- hijacked: ``send_hijacked`` upgrades the connection to a raw duplex stream
"""

import dataclasses
import math
import os
import socket
import ssl
from typing import Callable, Iterable, Optional, Tuple
from urllib.parse import urlsplit

import httpx
import structlog

from ..config import settings
from ..config.transport import NO_TIMEOUT, TransportConfig
from ..models.errors import (
    DockerApiError,
    DockerTransportError,
    HijackNotSupportedError,
)
from ..models.requests import CompletionPolicy, RequestDescriptor, encode_query
from .signals import CancellationSignal, select

logger = structlog.get_logger(__name__)

# Called with (status_code, body text or None for non-error responses).
# Return True to mark an error response as handled; raise to fail the call.
ErrorHandler = Callable[[int, Optional[str]], Optional[bool]]

UNIX_BASE_URL = "http://localhost"


def is_error_status(status_code: int) -> bool:
    return not 200 <= status_code <= 399


def resolve_endpoint(config: TransportConfig) -> Tuple[str, Optional[str]]:
    """Turn a DOCKER_HOST style address into (base_url, unix_socket_path)."""
    host = config.host.strip()
    parts = urlsplit(host)
    scheme = parts.scheme.lower()

    if scheme == "unix":
        path = parts.path or "/var/run/docker.sock"
        return UNIX_BASE_URL, path
    if scheme == "npipe":
        raise ValueError("Named pipe endpoints are not supported")
    if scheme in ("tcp", "http", "https"):
        if not parts.netloc:
            raise ValueError(f"Docker host has no address: {host}")
        use_tls = scheme == "https" or (scheme == "tcp" and config.uses_tls)
        base = f"{'https' if use_tls else 'http'}://{parts.netloc}{parts.path.rstrip('/')}"
        return base, None
    raise ValueError(f"Unsupported Docker host scheme: {host}")


def create_ssl_context(config: TransportConfig) -> ssl.SSLContext:
    """Build a TLS context from the cert.pem / key.pem / ca.pem in cert_path."""
    cert_dir = config.cert_path or os.path.join(os.path.expanduser("~"), ".docker")
    ca_file = os.path.join(cert_dir, "ca.pem")

    if config.tls_verify:
        context = ssl.create_default_context(
            cafile=ca_file if os.path.exists(ca_file) else None
        )
    else:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    cert_file = os.path.join(cert_dir, "cert.pem")
    key_file = os.path.join(cert_dir, "key.pem")
    if os.path.exists(cert_file) and os.path.exists(key_file):
        context.load_cert_chain(cert_file, key_file)
    return context


def create_http_transport(config: TransportConfig) -> httpx.AsyncBaseTransport:
    base_url, socket_path = resolve_endpoint(config)
    if socket_path is not None:
        return httpx.AsyncHTTPTransport(uds=socket_path)
    if base_url.startswith("https://"):
        return httpx.AsyncHTTPTransport(verify=create_ssl_context(config))
    return httpx.AsyncHTTPTransport()


async def _close_response(response: httpx.Response) -> None:
    await response.aclose()


class HijackedStream:
    """Raw duplex byte stream over an upgraded connection.

    The caller owns it and must close it, either with ``aclose()`` or by
    using it as an async context manager.
    """

    def __init__(self, response: httpx.Response, network_stream):
        self.response = response
        self._stream = network_stream
        self._closed = False

    async def read(self, max_bytes: int = 65536) -> bytes:
        """Read up to ``max_bytes``; an empty result means the peer closed."""
        return await self._stream.read(max_bytes)

    async def write(self, data: bytes) -> None:
        await self._stream.write(data)

    def close_write(self) -> None:
        """Half-close the connection so the daemon sees end of input."""
        sock = self._stream.get_extra_info("socket")
        if sock is None:
            raise HijackNotSupportedError("The hijacked stream cannot be half-closed")
        sock.shutdown(socket.SHUT_WR)

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._stream.aclose()
        finally:
            await self.response.aclose()

    async def __aenter__(self) -> "HijackedStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class DockerTransport:
    """Issues requests against one daemon endpoint."""

    def __init__(
        self,
        config: Optional[TransportConfig] = None,
        api_version: Optional[str] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Connection settings; defaults to ``settings.transport``
            api_version: Version path segment, e.g. ``"1.41"``; None omits it
            http_transport: Override the httpx transport (used by tests)
        """
        self.config = config or settings.transport
        self.api_version = api_version if api_version is not None else self.config.api_version
        self.base_url, _ = resolve_endpoint(self.config)

        # Timeouts are enforced by the signal race, not by httpx.
        self.client = httpx.AsyncClient(
            transport=http_transport or create_http_transport(self.config),
            timeout=None,
        )

        logger.debug(
            "Initialized Docker transport",
            host=self.config.host,
            base_url=self.base_url,
            api_version=self.api_version,
        )

    def build_url(self, path: str, query: Iterable[Tuple[str, object]] = ()) -> str:
        url = self.base_url
        if self.api_version:
            url += f"/v{self.api_version}"
        url += "/" + path.lstrip("/")
        query_string = encode_query(list(query))
        if query_string:
            url += "?" + query_string
        return url

    def _build_request(self, request: RequestDescriptor) -> httpx.Request:
        headers = [("User-Agent", self.config.user_agent)] + request.all_headers()
        return httpx.Request(
            request.method,
            self.build_url(request.path, request.query),
            headers=headers,
            content=request.content(),
        )

    def effective_timeout(self, request: RequestDescriptor) -> float:
        timeout = request.timeout if request.timeout is not None else self.config.default_timeout
        if timeout <= 0:
            raise ValueError("Non-positive timeouts are not allowed")
        return timeout

    async def send(
        self,
        request: RequestDescriptor,
        policy: CompletionPolicy = CompletionPolicy.READ_FULL_BODY,
        signal: Optional[CancellationSignal] = None,
        error_handlers: Iterable[ErrorHandler] = (),
    ) -> httpx.Response:
        """Send one request and return the classified response.

        Raises:
            OperationCancelledError: ``signal`` was cancelled first
            RequestTimeoutError: the effective timeout elapsed first
            DockerTransportError: the request failed below HTTP
            DockerApiError: the status is outside 200-399 and no handler
                marked it as handled
        """
        return await self._send(request, policy, signal, list(error_handlers))

    async def send_streamed(
        self,
        request: RequestDescriptor,
        signal: Optional[CancellationSignal] = None,
        error_handlers: Iterable[ErrorHandler] = (),
    ) -> httpx.Response:
        """Return once headers arrive, leaving the body for the caller to stream.

        Streamed calls never time out; only ``signal`` can abort them.
        """
        request = dataclasses.replace(request, timeout=NO_TIMEOUT)
        return await self._send(
            request, CompletionPolicy.READ_HEADERS_ONLY, signal, list(error_handlers)
        )

    async def send_hijacked(
        self,
        request: RequestDescriptor,
        signal: Optional[CancellationSignal] = None,
        error_handlers: Iterable[ErrorHandler] = (),
    ) -> HijackedStream:
        """Upgrade the connection and hand back the raw duplex stream."""
        request = dataclasses.replace(
            request,
            headers=list(request.headers) + [("Connection", "Upgrade"), ("Upgrade", "tcp")],
        )
        response = await self._send(
            request,
            CompletionPolicy.READ_HEADERS_ONLY,
            signal,
            list(error_handlers),
            upgrade=True,
        )
        network_stream = response.extensions.get("network_stream")
        if network_stream is None:
            await response.aclose()
            raise HijackNotSupportedError()
        return HijackedStream(response, network_stream)

    async def _send(self, request, policy, signal, error_handlers, upgrade=False):
        signal = signal or CancellationSignal()
        timeout = self.effective_timeout(request)
        http_request = self._build_request(request)

        logger.debug(
            "Sending Docker API request",
            method=http_request.method,
            url=str(http_request.url),
            timeout=None if math.isinf(timeout) else timeout,
        )

        exchange = self._exchange(http_request, policy, error_handlers, upgrade)
        if math.isinf(timeout):
            return await select(exchange, signal, discard=_close_response)
        with signal.with_timeout(timeout) as linked:
            return await select(exchange, linked, discard=_close_response)

    async def _exchange(self, http_request, policy, error_handlers, upgrade):
        try:
            response = await self.client.send(http_request, stream=True)
        except httpx.TransportError as e:
            raise DockerTransportError(f"Failed to reach the Docker daemon: {e}") from e

        try:
            return await self._classify(response, policy, error_handlers, upgrade)
        except BaseException:
            await response.aclose()
            raise

    async def _classify(self, response, policy, error_handlers, upgrade):
        status = response.status_code
        error = is_error_status(status) and not (upgrade and status == 101)

        body = None
        if error:
            try:
                await response.aread()
            except httpx.TransportError as e:
                raise DockerTransportError(f"Failed to read error response: {e}") from e
            body = response.text

        handled = False
        for handler in error_handlers:
            if handler(status, body) and error:
                handled = True
                break

        if error and not handled:
            logger.warning(
                "Docker API error",
                method=response.request.method,
                url=str(response.request.url),
                status_code=status,
            )
            raise DockerApiError(status, body)

        if not error and policy == CompletionPolicy.READ_FULL_BODY:
            try:
                await response.aread()
            except httpx.TransportError as e:
                raise DockerTransportError(f"Failed to read response body: {e}") from e
        return response

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "DockerTransport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
