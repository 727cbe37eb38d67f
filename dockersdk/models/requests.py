"""Request descriptor models for the transport layer."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlencode

RequestBody = Union[bytes, str, AsyncIterable[bytes]]


class CompletionPolicy(str, Enum):
    """How much of a successful response to read before returning."""

    READ_FULL_BODY = "read_full_body"
    READ_HEADERS_ONLY = "read_headers_only"


@dataclass
class RequestDescriptor:
    """Everything needed to build one outbound request.

    ``timeout`` of None means the configured default; ``NO_TIMEOUT`` disables
    the timeout for this call.
    """

    method: str
    path: str
    query: List[Tuple[str, Any]] = field(default_factory=list)
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: Optional[RequestBody] = None
    json_body: Any = None
    timeout: Optional[float] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if self.body is not None and self.json_body is not None:
            raise ValueError("A request cannot have both a raw body and a JSON body")

    def content(self) -> Optional[RequestBody]:
        """The body to send, encoding ``json_body`` when present."""
        if self.json_body is not None:
            return json.dumps(self.json_body).encode("utf-8")
        return self.body

    def all_headers(self) -> List[Tuple[str, str]]:
        """Caller headers plus a JSON content type when a JSON body is set."""
        headers = list(self.headers)
        if self.json_body is not None and not any(
            name.lower() == "content-type" for name, _ in headers
        ):
            headers.append(("Content-Type", "application/json"))
        return headers


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def encode_query(query: Sequence[Tuple[str, Any]]) -> str:
    """URL-encode query pairs in order, dropping pairs whose value is None."""
    pairs = [(key, _query_value(value)) for key, value in query if value is not None]
    return urlencode(pairs)
