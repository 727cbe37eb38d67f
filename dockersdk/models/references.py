"""Minimal name grammars for populating optional event fields."""

import re
from dataclasses import dataclass
from typing import Optional

_CONTAINER_NAME = re.compile(r"^/?[a-zA-Z0-9][a-zA-Z0-9_.-]+$")

# [registry[:port]/]path[:tag][@digest]
_IMAGE_NAME = re.compile(
    r"^(?:(?P<registry>[a-zA-Z0-9.-]+(?::[0-9]+)?)/)?"
    r"(?P<path>[a-z0-9]+(?:[._-]+[a-z0-9]+)*(?:/[a-z0-9]+(?:[._-]+[a-z0-9]+)*)*)"
    r"(?::(?P<tag>[\w][\w.-]{0,127}))?"
    r"(?:@(?P<digest>[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}))?$"
)


@dataclass(frozen=True)
class ContainerName:
    """A container name, stored without its leading slash."""

    value: str

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["ContainerName"]:
        if not text or not _CONTAINER_NAME.match(text):
            return None
        return cls(text.lstrip("/"))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NetworkName:
    value: str

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["NetworkName"]:
        if text is None:
            return None
        text = text.split("\0", 1)[0]
        if not text.strip():
            return None
        return cls(text)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ImageName:
    """An image reference split into its parts."""

    path: str
    registry: Optional[str] = None
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["ImageName"]:
        if not text:
            return None
        match = _IMAGE_NAME.match(text)
        if match is None:
            return None
        registry = match.group("registry")
        path = match.group("path")
        # "localhost" or anything with a dot or port is a registry, otherwise
        # the first segment belongs to the repository path.
        if registry and not (
            "." in registry or ":" in registry or registry == "localhost"
        ):
            path = f"{registry}/{path}"
            registry = None
        return cls(
            path=path,
            registry=registry,
            tag=match.group("tag"),
            digest=match.group("digest"),
        )

    def __str__(self) -> str:
        text = f"{self.registry}/{self.path}" if self.registry else self.path
        if self.tag:
            text += f":{self.tag}"
        if self.digest:
            text += f"@{self.digest}"
        return text


@dataclass(frozen=True)
class ObjectName:
    """Name of a volume, daemon or swarm object. Any non-empty string."""

    value: str

    @classmethod
    def try_parse(cls, text: Optional[str]) -> Optional["ObjectName"]:
        if not text:
            return None
        return cls(text)

    def __str__(self) -> str:
        return self.value
