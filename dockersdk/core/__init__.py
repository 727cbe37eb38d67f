"""Request/response primitives: cancellation, transport and stream decoding."""

from .signals import CancellationSignal, LinkedSignal, select
from .transport import DockerTransport, HijackedStream
from .streams import StreamDecoder
from .request_builder import RequestBuilder

__all__ = [
    "CancellationSignal",
    "LinkedSignal",
    "select",
    "DockerTransport",
    "HijackedStream",
    "StreamDecoder",
    "RequestBuilder",
]
