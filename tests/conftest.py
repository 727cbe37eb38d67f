"""Pytest configuration and shared fixtures."""

import asyncio
import os
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

# Set test environment before importing config
os.environ.setdefault("DOCKER_HOST", "tcp://docker.test:2375")
os.environ.setdefault("DOCKER_DEFAULT_TIMEOUT", "5")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from dockersdk.config import TransportConfig
from dockersdk.core.transport import DockerTransport
from dockersdk.services.events.observers import Observable, Observer, ObserverRegistry, Subscription


class FeedStream(httpx.AsyncByteStream):
    """Response body the test writes to while the client reads it."""

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def feed(self, data: bytes) -> None:
        self._queue.put_nowait(data)

    def end(self) -> None:
        self._queue.put_nowait(None)

    async def __aiter__(self):
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


class ManualSource(Observable):
    """Upstream the test drives by hand."""

    def __init__(self):
        self.registry = ObserverRegistry()

    def _subscribe(self, observer: Observer) -> Subscription:
        return self.registry.add(observer)

    def next(self, value: Any) -> None:
        self.registry.emit_next(value)

    def error(self, error: BaseException) -> None:
        self.registry.emit_error(error)

    def complete(self) -> None:
        self.registry.emit_completed()


class RecordingObserver(Observer):
    """Observer that remembers everything it was told."""

    def __init__(self):
        self.values: List[Any] = []
        self.errors: List[BaseException] = []
        self.completed = 0
        self.queue: asyncio.Queue = asyncio.Queue()

    def on_next(self, value: Any) -> None:
        self.values.append(value)
        self.queue.put_nowait(("next", value))

    def on_error(self, error: BaseException) -> None:
        self.errors.append(error)
        self.queue.put_nowait(("error", error))

    def on_completed(self) -> None:
        self.completed += 1
        self.queue.put_nowait(("completed", None))

    async def next_notification(self, timeout: float = 2.0):
        return await asyncio.wait_for(self.queue.get(), timeout)


def raw_event(
    subject: str,
    action: str,
    actor_id: str = "abc123def456",
    attributes: Optional[Dict[str, str]] = None,
    time: int = 1700000000,
    time_nano: int = 1700000000123456789,
) -> Dict[str, Any]:
    """An event record as the daemon writes it."""
    return {
        "Type": subject,
        "Action": action,
        "Actor": {"ID": actor_id, "Attributes": attributes or {}},
        "scope": "local",
        "time": time,
        "timeNano": time_nano,
    }


@pytest.fixture
def transport_config():
    """Transport settings pointing at a fake TCP daemon."""
    return TransportConfig(
        host="tcp://docker.test:2375",
        default_timeout=5.0,
        user_agent="dockersdk-test",
    )


@pytest.fixture
def feed_stream():
    return FeedStream()


@pytest.fixture
def make_recorder():
    """Factory for recording observers."""
    return RecordingObserver


@pytest.fixture
def recorder():
    return RecordingObserver()


@pytest.fixture
def manual_source():
    return ManualSource()


@pytest.fixture
def event_record():
    """Factory for daemon event records."""
    return raw_event


@pytest_asyncio.fixture
async def make_transport(transport_config):
    """Factory for transports backed by an httpx.MockTransport handler."""
    created: List[DockerTransport] = []

    def factory(
        handler: Callable[[httpx.Request], Any],
        config: Optional[TransportConfig] = None,
        api_version: Optional[str] = "1.41",
    ) -> DockerTransport:
        transport = DockerTransport(
            config or transport_config,
            api_version=api_version,
            http_transport=httpx.MockTransport(handler),
        )
        created.append(transport)
        return transport

    yield factory

    for transport in created:
        await transport.aclose()
