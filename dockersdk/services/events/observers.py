"""Observer vocabulary shared by the event listener and replay buffers.

Subscribers are three-callback sinks. The ``ObserverRegistry`` keeps them in an
immutable tuple that is replaced on every add/remove, so delivery iterates a
snapshot and never contends with subscribe/unsubscribe.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Tuple, Type

import structlog

logger = structlog.get_logger(__name__)


class Observer(ABC):
    """Sink for a sequence of values ending in at most one terminal call."""

    @abstractmethod
    def on_next(self, value: Any) -> None:
        pass

    def on_error(self, error: BaseException) -> None:
        pass

    def on_completed(self) -> None:
        pass


class CallbackObserver(Observer):
    """Observer built from plain callables; missing callbacks are no-ops."""

    def __init__(
        self,
        on_next: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_completed: Optional[Callable[[], None]] = None,
    ):
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed

    def on_next(self, value: Any) -> None:
        if self._on_next is not None:
            self._on_next(value)

    def on_error(self, error: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(error)

    def on_completed(self) -> None:
        if self._on_completed is not None:
            self._on_completed()


class Subscription:
    """Handle returned by ``subscribe``. Disposing it unsubscribes."""

    def __init__(self, dispose_action: Optional[Callable[[], None]] = None):
        self._dispose_action = dispose_action
        self._lock = threading.Lock()

    @property
    def disposed(self) -> bool:
        return self._dispose_action is None

    def dispose(self) -> None:
        with self._lock:
            action, self._dispose_action = self._dispose_action, None
        if action is not None:
            action()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


def as_observer(
    observer: Optional[Any] = None,
    on_next: Optional[Callable[[Any], None]] = None,
    on_error: Optional[Callable[[BaseException], None]] = None,
    on_completed: Optional[Callable[[], None]] = None,
) -> Observer:
    if observer is None:
        return CallbackObserver(on_next, on_error, on_completed)
    if isinstance(observer, Observer):
        return observer
    if callable(observer):
        return CallbackObserver(observer, on_error, on_completed)
    raise TypeError(f"Cannot subscribe {observer!r}: expected an Observer or a callable")


class ObserverRegistry:
    """Copy-on-write set of observers with isolated delivery."""

    def __init__(self):
        self._observers: Tuple[Observer, ...] = ()
        self._write_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._observers)

    def snapshot(self) -> Tuple[Observer, ...]:
        return self._observers

    def add(self, observer: Observer) -> Subscription:
        with self._write_lock:
            self._observers = self._observers + (observer,)
        return Subscription(lambda: self.remove(observer))

    def remove(self, observer: Observer) -> bool:
        """Unregister ``observer``; False if it was not registered."""
        with self._write_lock:
            observers = list(self._observers)
            for index, existing in enumerate(observers):
                if existing is observer:
                    del observers[index]
                    self._observers = tuple(observers)
                    return True
            return False

    def clear(self) -> Tuple[Observer, ...]:
        """Remove every observer and return the ones that were registered."""
        with self._write_lock:
            observers, self._observers = self._observers, ()
        return observers

    def emit_next(self, value: Any) -> None:
        for observer in self.snapshot():
            _deliver(observer.on_next, value)

    def emit_error(self, error: BaseException) -> None:
        for observer in self.clear():
            _deliver(observer.on_error, error)

    def emit_completed(self) -> None:
        for observer in self.clear():
            _deliver(observer.on_completed)


def _deliver(callback: Callable[..., None], *args: Any) -> None:
    # One failing subscriber must not keep the others from seeing the value.
    try:
        callback(*args)
    except Exception:
        logger.exception(
            "Event subscriber raised",
            callback=getattr(callback, "__qualname__", repr(callback)),
        )


class Observable(ABC):
    """Something that can be subscribed to."""

    def subscribe(
        self,
        observer: Optional[Any] = None,
        *,
        on_next: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_completed: Optional[Callable[[], None]] = None,
    ) -> Subscription:
        """Attach an ``Observer``, a plain ``on_next`` callable, or callbacks."""
        return self._subscribe(as_observer(observer, on_next, on_error, on_completed))

    @abstractmethod
    def _subscribe(self, observer: Observer) -> Subscription:
        pass

    def filter(self, predicate: Callable[[Any], bool]) -> "Observable":
        return FilteredObservable(self, predicate)

    def of_type(self, *types: Type) -> "Observable":
        return self.filter(lambda value: isinstance(value, types))


class _FilteringObserver(Observer):
    def __init__(self, downstream: Observer, predicate: Callable[[Any], bool]):
        self.downstream = downstream
        self.predicate = predicate

    def on_next(self, value: Any) -> None:
        if self.predicate(value):
            self.downstream.on_next(value)

    def on_error(self, error: BaseException) -> None:
        self.downstream.on_error(error)

    def on_completed(self) -> None:
        self.downstream.on_completed()


class FilteredObservable(Observable):
    def __init__(self, source: Observable, predicate: Callable[[Any], bool]):
        self.source = source
        self.predicate = predicate

    def _subscribe(self, observer: Observer) -> Subscription:
        return self.source._subscribe(_FilteringObserver(observer, self.predicate))
