"""Replay buffer ("dam") between one upstream and many subscribers.

A dam starts closed and queues everything the upstream sends, including the
terminal error or completion, in arrival order. ``open()`` flushes the queue
to whoever is subscribed at that moment and turns the dam into a plain
multicast. Entries queued while nobody is subscribed are dropped on open.

    dam = client.dam(lambda e: isinstance(e, ContainerEvent))
    dam.subscribe(on_next=handle)
    await start_container()
    dam.open()
"""

import threading
from collections import deque
from typing import Any, Deque, Optional, Tuple

import structlog

from .observers import Observable, Observer, ObserverRegistry, Subscription

logger = structlog.get_logger(__name__)

_NEXT = "next"
_ERROR = "error"
_COMPLETED = "completed"


class ReplayBuffer(Observable, Observer):
    """Buffers upstream notifications until ``open()`` is called."""

    def __init__(self, source: Optional[Observable] = None):
        # Guards the queue, the open flag and the terminal slot.
        self._lock = threading.RLock()
        self._queue: Deque[Tuple[str, Any]] = deque()
        self._registry = ObserverRegistry()
        self._is_open = False
        self._terminal: Optional[Tuple[str, Any]] = None
        self._terminal_delivered = False
        self._upstream: Optional[Subscription] = None
        if source is not None:
            self._upstream = source.subscribe(self)

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def completed(self) -> bool:
        return self._terminal is not None and self._terminal[0] == _COMPLETED

    @property
    def error(self) -> Optional[BaseException]:
        if self._terminal is not None and self._terminal[0] == _ERROR:
            return self._terminal[1]
        return None

    @property
    def pending(self) -> int:
        """Number of queued notifications not yet delivered."""
        return len(self._queue)

    # Upstream side

    def on_next(self, value: Any) -> None:
        self._push(_NEXT, value)

    def on_error(self, error: BaseException) -> None:
        self._push(_ERROR, error)

    def on_completed(self) -> None:
        self._push(_COMPLETED, None)

    def _push(self, kind: str, payload: Any) -> None:
        with self._lock:
            if self._terminal is not None:
                return
            if kind != _NEXT:
                self._terminal = (kind, payload)
            if not self._is_open:
                self._queue.append((kind, payload))
                return
        self._dispatch(kind, payload)

    def _dispatch(self, kind: str, payload: Any) -> None:
        if kind == _NEXT:
            self._registry.emit_next(payload)
        elif kind == _ERROR:
            self._terminal_delivered = True
            self._registry.emit_error(payload)
        else:
            self._terminal_delivered = True
            self._registry.emit_completed()

    # Downstream side

    def open(self) -> None:
        """Flush queued notifications and switch to pass-through. Idempotent."""
        with self._lock:
            if self._is_open:
                return
            flushed = 0
            while self._queue:
                kind, payload = self._queue.popleft()
                self._dispatch(kind, payload)
                flushed += 1
            self._is_open = True
        logger.debug("Replay buffer opened", flushed=flushed, observers=len(self._registry))

    def _subscribe(self, observer: Observer) -> Subscription:
        subscription = self._registry.add(observer)
        # The terminal notification may have gone out before the add landed.
        if self._terminal_delivered and self._registry.remove(observer):
            kind, payload = self._terminal
            if kind == _ERROR:
                observer.on_error(payload)
            else:
                observer.on_completed()
        return subscription

    def dispose(self) -> None:
        """Detach from the upstream and drop every subscriber and queued entry."""
        if self._upstream is not None:
            self._upstream.dispose()
            self._upstream = None
        with self._lock:
            self._queue.clear()
        self._registry.clear()

    def __enter__(self) -> "ReplayBuffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
