"""Cooperative cancellation signals and the race primitive built on them.

A ``CancellationSignal`` is a one-shot flag that an owner trips with
``cancel()``. Signals can be linked: ``with_timeout()`` derives a child that
trips when its parent trips or when a timer elapses, whichever comes first.

``select()`` races an awaitable against a signal. It is the only place
cancellation races are composed, so the transport and the stream decoder
share the same semantics.
"""

import asyncio
import math
from typing import Awaitable, Callable, List, Optional, TypeVar

from ..models.errors import OperationCancelledError, RequestTimeoutError

T = TypeVar("T")

SignalCallback = Callable[["CancellationSignal"], None]


class CancellationSignal:
    """One-shot cancellation flag with an attached reason."""

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[BaseException] = None
        self._callbacks: List[SignalCallback] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[BaseException]:
        """The exception that describes why the signal tripped."""
        return self._reason

    def cancel(self, reason: Optional[BaseException] = None) -> None:
        """Trip the signal. Later calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason or OperationCancelledError()
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    def add_callback(self, callback: SignalCallback) -> Callable[[], None]:
        """Run ``callback(signal)`` when the signal trips.

        Runs immediately if the signal has already tripped. Returns a function
        that unregisters the callback.
        """
        if self.cancelled:
            callback(self)
            return lambda: None
        self._callbacks.append(callback)

        def remove() -> None:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

        return remove

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._reason is not None:
            raise self._reason

    def with_timeout(self, timeout: float) -> "LinkedSignal":
        """Derive a signal that also trips after ``timeout`` seconds.

        Must be called from a running event loop. Close the result (or use it
        as a context manager) to release the timer.
        """
        if timeout <= 0:
            raise ValueError("Non-positive timeouts are not allowed")
        return LinkedSignal(self, timeout)


class LinkedSignal(CancellationSignal):
    """A child signal: parent's cancellation, unioned with an optional timer."""

    def __init__(self, parent: CancellationSignal, timeout: float = math.inf):
        super().__init__()
        self.timeout = timeout
        self._unlink = parent.add_callback(self._on_parent)
        self._timer: Optional[asyncio.TimerHandle] = None
        if not self.cancelled and math.isfinite(timeout):
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(timeout, self._on_timer)

    def _on_parent(self, parent: CancellationSignal) -> None:
        self.cancel(parent.reason)

    def _on_timer(self) -> None:
        self._timer = None
        self.cancel(RequestTimeoutError(self.timeout))

    @property
    def timed_out(self) -> bool:
        return isinstance(self._reason, RequestTimeoutError)

    def close(self) -> None:
        """Release the timer and the link to the parent."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._unlink()

    def __enter__(self) -> "LinkedSignal":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


async def select(
    operation: Awaitable[T],
    signal: CancellationSignal,
    discard: Optional[Callable[[T], Awaitable[None]]] = None,
) -> T:
    """Race ``operation`` against ``signal``; whichever resolves first wins.

    If the operation finishes first its result is returned (or its exception
    raised). If the signal trips first the operation is cancelled and the
    signal's reason is raised. Should the losing operation still produce a
    result, ``discard`` is awaited with it so resources are not leaked.
    """
    if signal.cancelled:
        if asyncio.iscoroutine(operation):
            operation.close()
        signal.raise_if_cancelled()

    op_task = asyncio.ensure_future(operation)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({op_task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        op_task.cancel()
        waiter.cancel()
        raise

    if op_task.done():
        waiter.cancel()
        return op_task.result()

    op_task.cancel()
    await asyncio.wait({op_task})
    # A failure while being abandoned is superseded by the cancellation.
    if not op_task.cancelled() and op_task.exception() is None and discard is not None:
        await discard(op_task.result())
    raise signal.reason
