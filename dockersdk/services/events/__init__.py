"""Daemon event bus: decoding, multicast and replay buffering."""

from .dam import ReplayBuffer
from .decoder import decode_event
from .listener import EventListener
from .observers import CallbackObserver, Observable, Observer, ObserverRegistry, Subscription

__all__ = [
    "ReplayBuffer",
    "decode_event",
    "EventListener",
    "CallbackObserver",
    "Observable",
    "Observer",
    "ObserverRegistry",
    "Subscription",
]
