"""Docker client entry point.

    async with await DockerClient.start() as client:
        client.subscribe(on_next=print)
        info = await client.build("GET", "info").send_json()
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import httpx
import structlog

from .config import settings
from .config.transport import TransportConfig
from .core.request_builder import RequestBuilder
from .core.signals import CancellationSignal, select
from .core.transport import DockerTransport, ErrorHandler
from .models.errors import DaemonNotFoundError, DockerTransportError, DockerVersionError
from .models.requests import CompletionPolicy, RequestDescriptor
from .services.events.dam import ReplayBuffer
from .services.events.listener import EventListener
from .services.events.observers import Observable, Subscription

logger = structlog.get_logger(__name__)

LIBRARY_MIN_API_VERSION = "1.41"
LIBRARY_MAX_API_VERSION = "1.41"


def parse_version(text: str) -> Tuple[int, ...]:
    return tuple(int(part) for part in text.strip().lstrip("v").split("."))


def determine_version_to_use(
    library_min: str, daemon_info: Dict[str, Any], library_max: str
) -> str:
    """Pick the highest API version both sides support.

    Raises:
        DockerVersionError: the version ranges do not overlap
    """
    daemon_max_text = daemon_info.get("ApiVersion")
    if not daemon_max_text:
        raise DockerVersionError(
            "The daemon did not report its supported API version, which likely means that it "
            f"is extremely old. The SDK only supports API versions down to v{library_min}."
        )

    daemon_max = parse_version(daemon_max_text)
    if daemon_max < parse_version(library_min):
        raise DockerVersionError(
            f"Version mismatch: The Docker daemon only supports API versions up to "
            f"v{daemon_max_text}, and the SDK only supports API versions down to v{library_min}."
        )

    daemon_min_text = daemon_info.get("MinAPIVersion") or daemon_max_text
    if parse_version(daemon_min_text) > parse_version(library_max):
        raise DockerVersionError(
            f"Version mismatch: The Docker daemon supports API versions v{daemon_min_text} "
            f"through v{daemon_max_text}, and the SDK supports API versions "
            f"v{library_min} through v{library_max}."
        )

    return daemon_max_text if daemon_max < parse_version(library_max) else library_max


class DockerClient:
    """A connection to one Docker daemon plus its event bus."""

    def __init__(self, transport: DockerTransport, listener: EventListener):
        self.transport = transport
        self.listener = listener
        self._closed = False

    @classmethod
    async def start(
        cls,
        config: Optional[TransportConfig] = None,
        signal: Optional[CancellationSignal] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        event_filters: Optional[Dict[str, List[str]]] = None,
    ) -> "DockerClient":
        """Connect, negotiate the API version and start listening for events.

        Args:
            config: Connection settings; defaults to ``settings.transport``
            signal: Cancels the start-up requests
            http_transport: Override the httpx transport (used by tests)
            event_filters: Daemon-side filters for the event stream

        Raises:
            DaemonNotFoundError: nothing answered at the configured endpoint
            DockerVersionError: no API version is supported by both sides
        """
        config = config or settings.transport
        transport = DockerTransport(config, api_version="", http_transport=http_transport)
        try:
            if config.api_version:
                transport.api_version = config.api_version
            else:
                transport.api_version = await cls._negotiate(transport, config, signal)

            listener = EventListener(transport, filters=event_filters)
            if signal is None:
                await listener.start()
            else:
                # The signal bounds the wait for the event stream headers only.
                await select(listener.start(), signal, discard=lambda _: listener.stop())
        except BaseException:
            await transport.aclose()
            raise

        logger.info("Connected to Docker daemon", host=config.host, api_version=transport.api_version)
        return cls(transport, listener)

    @staticmethod
    async def _negotiate(
        transport: DockerTransport,
        config: TransportConfig,
        signal: Optional[CancellationSignal],
    ) -> str:
        try:
            response = await transport.send(RequestDescriptor("GET", "version"), signal=signal)
        except DockerTransportError as e:
            raise DaemonNotFoundError(
                f"No Docker daemon responded at {config.host}. "
                "This typically means that the daemon is not running."
            ) from e

        version = determine_version_to_use(
            LIBRARY_MIN_API_VERSION, response.json(), LIBRARY_MAX_API_VERSION
        )
        logger.debug("Negotiated API version", api_version=version)
        return version

    @property
    def api_version(self) -> str:
        return self.transport.api_version

    def require_api_version(
        self, min_version: Optional[str] = None, max_version: Optional[str] = None
    ) -> None:
        """Raise NotImplementedError if the negotiated version is out of range."""
        version = parse_version(self.api_version)
        if min_version is not None and version < parse_version(min_version):
            raise NotImplementedError(
                f"This feature is not available until API version v{min_version}. "
                f"You are currently using API version v{self.api_version}."
            )
        if max_version is not None and version > parse_version(max_version):
            raise NotImplementedError(
                f"This feature has not been available since API version v{max_version}. "
                f"You are currently using API version v{self.api_version}."
            )

    # Events

    @property
    def events(self) -> Observable:
        return self.listener

    def subscribe(self, observer: Optional[Any] = None, **callbacks: Any) -> Subscription:
        """Receive every typed event; see ``Observable.subscribe``."""
        return self.listener.subscribe(observer, **callbacks)

    def dam(self, predicate: Optional[Callable[[Any], bool]] = None) -> ReplayBuffer:
        """A closed replay buffer fed by the event stream (optionally filtered)."""
        source = self.listener if predicate is None else self.listener.filter(predicate)
        return ReplayBuffer(source)

    # Requests

    def build(self, method: str, path: str) -> RequestBuilder:
        return RequestBuilder(self.transport, method, path)

    async def request(
        self,
        method: str,
        path: str,
        query: Optional[Iterable[Tuple[str, Any]]] = None,
        headers: Optional[Iterable[Tuple[str, str]]] = None,
        body: Any = None,
        json: Any = None,
        timeout: Optional[float] = None,
        signal: Optional[CancellationSignal] = None,
        policy: CompletionPolicy = CompletionPolicy.READ_FULL_BODY,
        error_handlers: Iterable[ErrorHandler] = (),
    ) -> httpx.Response:
        """Send a raw request; no domain error mapping is applied."""
        request = RequestDescriptor(
            method=method,
            path=path,
            query=list(query or []),
            headers=list(headers or []),
            body=body,
            json_body=json,
            timeout=timeout,
        )
        return await self.transport.send(request, policy, signal, error_handlers)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.listener.stop()
        finally:
            await self.transport.aclose()
        logger.info("Docker client closed")

    async def __aenter__(self) -> "DockerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
