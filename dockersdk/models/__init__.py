"""Data models for the Docker SDK."""

from .errors import (
    DockerException,
    DockerTransportError,
    RequestTimeoutError,
    OperationCancelledError,
    HijackNotSupportedError,
    StreamDecodeError,
    DockerApiError,
    ResourceNotFoundError,
    DockerDaemonError,
    DaemonNotFoundError,
    DockerVersionError,
)
from .events import (
    RawNotification,
    Actor,
    EventSubjectType,
    Event,
    ContainerEvent,
    ContainerEventType,
    ImageEvent,
    ImageEventType,
    NetworkEvent,
    NetworkEventType,
    VolumeEvent,
    VolumeEventType,
    DaemonEvent,
    DaemonEventType,
    SwarmEvent,
    SwarmEventType,
    ServiceEvent,
    NodeEvent,
    SecretEvent,
    ConfigEvent,
)
from .references import ContainerName, ImageName, NetworkName, ObjectName
from .requests import CompletionPolicy, RequestDescriptor, encode_query

__all__ = [
    # Errors
    "DockerException",
    "DockerTransportError",
    "RequestTimeoutError",
    "OperationCancelledError",
    "HijackNotSupportedError",
    "StreamDecodeError",
    "DockerApiError",
    "ResourceNotFoundError",
    "DockerDaemonError",
    "DaemonNotFoundError",
    "DockerVersionError",
    # Events
    "RawNotification",
    "Actor",
    "EventSubjectType",
    "Event",
    "ContainerEvent",
    "ContainerEventType",
    "ImageEvent",
    "ImageEventType",
    "NetworkEvent",
    "NetworkEventType",
    "VolumeEvent",
    "VolumeEventType",
    "DaemonEvent",
    "DaemonEventType",
    "SwarmEvent",
    "SwarmEventType",
    "ServiceEvent",
    "NodeEvent",
    "SecretEvent",
    "ConfigEvent",
    # Names
    "ContainerName",
    "ImageName",
    "NetworkName",
    "ObjectName",
    # Requests
    "CompletionPolicy",
    "RequestDescriptor",
    "encode_query",
]
