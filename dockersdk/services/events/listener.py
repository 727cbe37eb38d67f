"""Background reader for the daemon's continuous event stream.

One ``EventListener`` owns one streamed ``GET /events`` call and one
``asyncio.Task`` that decodes it. Typed events are multicast to every
registered observer; observers may come and go at any time without touching
the read loop.
"""

import asyncio
from typing import Dict, List, Optional

import httpx
import structlog

from ...core.signals import CancellationSignal, LinkedSignal
from ...core.streams import StreamDecoder
from ...core.transport import DockerTransport
from ...models.errors import StreamDecodeError
from ...models.events import RawNotification
from ...models.requests import RequestDescriptor
from .decoder import decode_event
from .observers import Observable, Observer, ObserverRegistry, Subscription

logger = structlog.get_logger(__name__)


class EventListener(Observable):
    """Multicasts typed daemon events from a single background read loop."""

    def __init__(
        self,
        transport: DockerTransport,
        filters: Optional[Dict[str, List[str]]] = None,
    ):
        """
        Initialize the listener.

        Args:
            transport: Transport used to open the event stream
            filters: Daemon-side event filters, e.g. ``{"type": ["container"]}``
        """
        self.transport = transport
        self.filters = filters
        self._registry = ObserverRegistry()
        self._signal: Optional[LinkedSignal] = None
        self._task: Optional[asyncio.Task] = None
        self._error: Optional[BaseException] = None
        self._finished = False
        self.events_delivered = 0

    @property
    def started(self) -> bool:
        return self._task is not None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)

    async def start(self, signal: Optional[CancellationSignal] = None) -> None:
        """Open the event stream and start the read loop.

        Cancelling ``signal`` later has the same effect as ``stop()``.

        Raises:
            RuntimeError: the listener was already started
            DockerApiError: the daemon rejected the events request
        """
        if self._task is not None:
            raise RuntimeError("Event listener already started")

        self._signal = LinkedSignal(signal or CancellationSignal())
        request = RequestDescriptor(method="GET", path="events")
        if self.filters:
            request.query.append(("filters", self.filters))

        try:
            response = await self.transport.send_streamed(request, self._signal)
        except BaseException:
            self._signal.close()
            self._signal = None
            raise

        self._task = asyncio.create_task(self._read_loop(response))
        logger.info("Event listener started", filters=self.filters)

    async def _read_loop(self, response: httpx.Response) -> None:
        decoder = StreamDecoder.from_response(response, self._signal)
        error: Optional[BaseException] = None
        try:
            async for value in decoder.json_values():
                try:
                    raw = RawNotification.model_validate(value)
                except ValueError as e:
                    raise StreamDecodeError(f"Unexpected event record: {value!r}") from e
                event = decode_event(raw)
                if event is None:
                    continue
                self.events_delivered += 1
                self._registry.emit_next(event)
        except Exception as e:
            error = e
        finally:
            await response.aclose()

        self._error = error
        self._finished = True
        if error is not None:
            logger.error("Event stream failed", error=str(error), error_type=type(error).__name__)
            self._registry.emit_error(error)
        else:
            logger.info("Event stream ended", events_delivered=self.events_delivered)
            self._registry.emit_completed()

    async def stop(self) -> None:
        """Cancel the read loop and wait for it to deliver completion."""
        if self._signal is not None:
            self._signal.cancel()
        if self._task is not None:
            await self._task
        if self._signal is not None:
            self._signal.close()
        logger.info("Event listener stopped")

    async def wait_closed(self) -> None:
        """Wait until the stream ends on its own or is stopped."""
        if self._task is not None:
            await self._task

    def _subscribe(self, observer: Observer) -> Subscription:
        if self._task is None:
            raise RuntimeError("Event listener has not been started")
        subscription = self._registry.add(observer)
        # Late subscribers still get the terminal notification.
        if self._finished and self._registry.remove(observer):
            if self._error is not None:
                observer.on_error(self._error)
            else:
                observer.on_completed()
        return subscription
