"""Daemon event models.

``RawNotification`` mirrors one record from ``GET /events``. The typed events
below are what subscribers receive; they are built by
``dockersdk.services.events.decoder``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .references import ContainerName, ImageName, NetworkName, ObjectName

NANOS_PER_SECOND = 1_000_000_000


class Actor(BaseModel):
    """The object an event concerns."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(default="", alias="ID")
    attributes: Dict[str, str] = Field(default_factory=dict, alias="Attributes")

    @field_validator("attributes", mode="before")
    @classmethod
    def _stringify_attributes(cls, v: Any) -> Dict[str, str]:
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        return {str(key): "" if value is None else str(value) for key, value in v.items()}


class RawNotification(BaseModel):
    """One record from the daemon's event stream."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    subject_type: str = Field(default="", alias="Type")
    action: str = Field(default="", alias="Action")
    actor: Actor = Field(default_factory=Actor, alias="Actor")
    time: int = Field(default=0, description="Unix time in seconds")
    time_nano: int = Field(default=0, alias="timeNano", description="Unix time in nanoseconds")

    @field_validator("subject_type", "action", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def timestamp_nanos_fraction(self) -> int:
        if self.time_nano < NANOS_PER_SECOND:
            return self.time_nano
        return self.time_nano % NANOS_PER_SECOND

    @property
    def timestamp(self) -> datetime:
        return datetime.fromtimestamp(self.time, tz=timezone.utc) + timedelta(
            microseconds=self.timestamp_nanos_fraction // 1000
        )


class EventSubjectType(str, Enum):
    CONTAINER = "container"
    IMAGE = "image"
    NETWORK = "network"
    VOLUME = "volume"
    DAEMON = "daemon"
    SERVICE = "service"
    NODE = "node"
    SECRET = "secret"
    CONFIG = "config"


class ContainerEventType(str, Enum):
    CREATED = "created"
    DELETED = "deleted"
    EXITED = "exited"
    PAUSED = "paused"
    RESTART_COMPLETED = "restart_completed"
    SIGNALLED = "signalled"
    STARTED = "started"
    STOP_COMPLETED = "stop_completed"
    UNPAUSED = "unpaused"


class ImageEventType(str, Enum):
    DELETED = "deleted"
    IMPORTED = "imported"
    LOADED = "loaded"
    PULLED = "pulled"
    PUSHED = "pushed"
    SAVED = "saved"
    TAGGED = "tagged"
    UNTAGGED = "untagged"


class NetworkEventType(str, Enum):
    CREATED = "created"
    ATTACHED = "attached"
    DELETED = "deleted"
    DETACHED = "detached"
    REMOVED = "removed"


class VolumeEventType(str, Enum):
    CREATED = "created"
    DELETED = "deleted"
    MOUNTED = "mounted"
    UNMOUNTED = "unmounted"


class DaemonEventType(str, Enum):
    RELOADED = "reloaded"


class SwarmEventType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class Event:
    """Base for all typed events."""

    subject_type: EventSubjectType
    action: str
    actor_id: str
    actor_attributes: Mapping[str, str]
    timestamp: datetime


@dataclass(frozen=True)
class ContainerEvent(Event):
    event_type: ContainerEventType
    container_name: Optional[ContainerName] = None
    image: Optional[ImageName] = None
    exit_code: Optional[int] = None
    signal: Optional[int] = None

    @property
    def container_id(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class ImageEvent(Event):
    event_type: ImageEventType
    image_name: Optional[ImageName] = None

    @property
    def image_id(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class NetworkEvent(Event):
    event_type: NetworkEventType
    network_name: Optional[NetworkName] = None
    container_id: Optional[str] = None

    @property
    def network_id(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class VolumeEvent(Event):
    event_type: VolumeEventType
    driver: Optional[str] = None
    container_id: Optional[str] = None

    @property
    def volume_name(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class DaemonEvent(Event):
    event_type: DaemonEventType
    daemon_name: Optional[ObjectName] = None

    @property
    def daemon_id(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class SwarmEvent(Event):
    """Base for service, node, secret and config events."""

    event_type: SwarmEventType
    resource_name: Optional[ObjectName] = None

    @property
    def resource_id(self) -> str:
        return self.actor_id


@dataclass(frozen=True)
class ServiceEvent(SwarmEvent):
    pass


@dataclass(frozen=True)
class NodeEvent(SwarmEvent):
    pass


@dataclass(frozen=True)
class SecretEvent(SwarmEvent):
    pass


@dataclass(frozen=True)
class ConfigEvent(SwarmEvent):
    pass
