"""Cancelable decoding of streamed response bodies.

The daemon streams two shapes of body: newline-delimited text (logs, build
output) and framed JSON, i.e. JSON values written back to back with nothing
but optional whitespace between them (events, pull progress).
"""

import codecs
import json
import re
from typing import Any, AsyncIterable, AsyncIterator, List, Optional, Tuple

import httpx

from ..models.errors import DockerTransportError, StreamDecodeError
from .signals import CancellationSignal, select

_WHITESPACE = re.compile(r"\s*")

# What may legitimately be left over when a chunk ends in the middle of a
# literal or a number.
_PARTIAL_TOKEN = re.compile(
    r"^(?:-?\d*(?:\.\d*)?(?:[eE][+-]?\d*)?"
    r"|t(?:r(?:ue?)?)?|f(?:a(?:l(?:se?)?)?)?|n(?:u(?:ll?)?)?)\Z"
)


def _is_truncated(error: json.JSONDecodeError, text: str) -> bool:
    if error.pos >= len(text):
        return True
    if error.msg.startswith("Unterminated string"):
        return True
    tail = text[error.pos:]
    if error.msg.startswith("Invalid \\") and len(tail) <= 6:
        return True
    return bool(_PARTIAL_TOKEN.match(tail))


class StreamDecoder:
    """Decode one streamed body into lines or JSON values.

    Every read of the next chunk is raced against ``signal``. When the signal
    wins the sequence simply ends and any partially received unit is dropped.
    A decoder can be iterated once.
    """

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        signal: Optional[CancellationSignal] = None,
        encoding: str = "utf-8",
    ):
        self._chunks = chunks.__aiter__()
        self.signal = signal or CancellationSignal()
        self.encoding = encoding
        self._consumed = False

    @classmethod
    def from_response(
        cls, response: httpx.Response, signal: Optional[CancellationSignal] = None
    ) -> "StreamDecoder":
        return cls(response.aiter_bytes(), signal)

    def _claim(self) -> None:
        if self._consumed:
            raise RuntimeError("A stream can only be decoded once")
        self._consumed = True

    async def _read(self) -> Optional[bytes]:
        try:
            return await self._chunks.__anext__()
        except StopAsyncIteration:
            return None
        except httpx.TransportError as e:
            raise DockerTransportError(f"Failed to read streamed response: {e}") from e

    async def _next_chunk(self) -> Optional[bytes]:
        """The next chunk, or None at end of stream or after cancellation."""
        if self.signal.cancelled:
            return None
        try:
            return await select(self._read(), self.signal)
        except Exception as e:
            if self.signal.cancelled and e is self.signal.reason:
                return None
            raise

    async def lines(self) -> AsyncIterator[str]:
        """Yield lines without their ``\\n`` or ``\\r\\n`` terminators."""
        self._claim()
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        buffer = ""
        while True:
            chunk = await self._next_chunk()
            if chunk is None:
                break
            buffer += decoder.decode(chunk)
            while not self.signal.cancelled:
                index = buffer.find("\n")
                if index < 0:
                    break
                line, buffer = buffer[:index], buffer[index + 1:]
                if line.endswith("\r"):
                    line = line[:-1]
                yield line

        if self.signal.cancelled:
            return
        buffer += decoder.decode(b"", final=True)
        if buffer:
            yield buffer

    async def json_values(self) -> AsyncIterator[Any]:
        """Yield each JSON value of a framed JSON stream.

        Raises:
            StreamDecodeError: on malformed JSON, or if the stream ends in the
                middle of a value
        """
        self._claim()
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        text = ""
        while True:
            chunk = await self._next_chunk()
            if chunk is None:
                break
            text += decoder.decode(chunk)
            values, text, error = _split_values(text, final=False)
            for value in values:
                if self.signal.cancelled:
                    return
                yield value
            if error is not None:
                raise error

        if self.signal.cancelled:
            return
        text += decoder.decode(b"", final=True)
        values, _, error = _split_values(text, final=True)
        for value in values:
            yield value
        if error is not None:
            raise error


def _split_values(
    text: str, final: bool
) -> Tuple[List[Any], str, Optional[StreamDecodeError]]:
    """Parse every complete value out of ``text``.

    Returns the values, the unparsed rest, and the error that stopped parsing
    (values before a malformed one are still returned).
    """
    decoder = json.JSONDecoder()
    values = []
    pos = _WHITESPACE.match(text, 0).end()
    while pos < len(text):
        try:
            value, end = decoder.raw_decode(text, pos)
        except json.JSONDecodeError as e:
            truncated = _is_truncated(e, text)
            if truncated and not final:
                break
            error = StreamDecodeError(
                "Stream ended inside a JSON value"
                if truncated
                else f"Malformed JSON in stream: {e}"
            )
            error.__cause__ = e
            return values, text[pos:], error
        # A number that runs to the end of the buffer may continue in the
        # next chunk, even when a prefix of it already parses ("1.5e").
        if (
            not final
            and isinstance(value, (int, float))
            and not isinstance(value, bool)
            and _PARTIAL_TOKEN.match(text[pos:])
        ):
            break
        values.append(value)
        pos = _WHITESPACE.match(text, end).end()
    return values, text[pos:], None
