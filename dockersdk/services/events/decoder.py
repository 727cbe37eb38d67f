"""RawNotification to typed event conversion.

Dispatch is table driven: the subject string selects an action table and a
builder, the action string selects the event kind. Anything not in the tables
is an event this SDK does not model and decodes to None.
"""

from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from ...models.events import (
    ConfigEvent,
    ContainerEvent,
    ContainerEventType,
    DaemonEvent,
    DaemonEventType,
    Event,
    EventSubjectType,
    ImageEvent,
    ImageEventType,
    NetworkEvent,
    NetworkEventType,
    NodeEvent,
    RawNotification,
    SecretEvent,
    ServiceEvent,
    SwarmEventType,
    VolumeEvent,
    VolumeEventType,
)
from ...models.references import ContainerName, ImageName, NetworkName, ObjectName

_SWARM_ACTIONS = {
    "create": SwarmEventType.CREATED,
    "update": SwarmEventType.UPDATED,
    "remove": SwarmEventType.REMOVED,
}

ACTIONS: Dict[EventSubjectType, Dict[str, Any]] = {
    EventSubjectType.CONTAINER: {
        "create": ContainerEventType.CREATED,
        "destroy": ContainerEventType.DELETED,
        "rm": ContainerEventType.DELETED,
        "die": ContainerEventType.EXITED,
        "kill": ContainerEventType.SIGNALLED,
        "pause": ContainerEventType.PAUSED,
        "restart": ContainerEventType.RESTART_COMPLETED,
        "start": ContainerEventType.STARTED,
        "stop": ContainerEventType.STOP_COMPLETED,
        "unpause": ContainerEventType.UNPAUSED,
    },
    EventSubjectType.IMAGE: {
        "delete": ImageEventType.DELETED,
        "import": ImageEventType.IMPORTED,
        "load": ImageEventType.LOADED,
        "pull": ImageEventType.PULLED,
        "push": ImageEventType.PUSHED,
        "save": ImageEventType.SAVED,
        "tag": ImageEventType.TAGGED,
        "untag": ImageEventType.UNTAGGED,
    },
    EventSubjectType.NETWORK: {
        "create": NetworkEventType.CREATED,
        "connect": NetworkEventType.ATTACHED,
        "destroy": NetworkEventType.DELETED,
        "disconnect": NetworkEventType.DETACHED,
        "remove": NetworkEventType.REMOVED,
    },
    EventSubjectType.VOLUME: {
        "create": VolumeEventType.CREATED,
        "destroy": VolumeEventType.DELETED,
        "mount": VolumeEventType.MOUNTED,
        "unmount": VolumeEventType.UNMOUNTED,
    },
    EventSubjectType.DAEMON: {
        "reload": DaemonEventType.RELOADED,
    },
    EventSubjectType.SERVICE: _SWARM_ACTIONS,
    EventSubjectType.NODE: _SWARM_ACTIONS,
    EventSubjectType.SECRET: _SWARM_ACTIONS,
    EventSubjectType.CONFIG: _SWARM_ACTIONS,
}


def parse_int(text: Optional[str]) -> Optional[int]:
    """Parse an integer attribute, treating anything unparsable as absent."""
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def _container(common: Dict[str, Any], kind: Any, attrs: Mapping[str, str]) -> Event:
    return ContainerEvent(
        **common,
        event_type=kind,
        container_name=ContainerName.try_parse(attrs.get("name")),
        image=ImageName.try_parse(attrs.get("image")),
        exit_code=parse_int(attrs.get("exitCode")) if kind == ContainerEventType.EXITED else None,
        signal=parse_int(attrs.get("signal")) if kind == ContainerEventType.SIGNALLED else None,
    )


def _image(common: Dict[str, Any], kind: Any, attrs: Mapping[str, str]) -> Event:
    return ImageEvent(**common, event_type=kind, image_name=ImageName.try_parse(attrs.get("name")))


def _network(common: Dict[str, Any], kind: Any, attrs: Mapping[str, str]) -> Event:
    attached = kind in (NetworkEventType.ATTACHED, NetworkEventType.DETACHED)
    return NetworkEvent(
        **common,
        event_type=kind,
        network_name=NetworkName.try_parse(attrs.get("name")),
        container_id=(attrs.get("container") or None) if attached else None,
    )


def _volume(common: Dict[str, Any], kind: Any, attrs: Mapping[str, str]) -> Event:
    return VolumeEvent(
        **common,
        event_type=kind,
        driver=attrs.get("driver") or None,
        container_id=attrs.get("container") or None,
    )


def _daemon(common: Dict[str, Any], kind: Any, attrs: Mapping[str, str]) -> Event:
    return DaemonEvent(**common, event_type=kind, daemon_name=ObjectName.try_parse(attrs.get("name")))


def _swarm(event_class: type) -> Callable[[Dict[str, Any], Any, Mapping[str, str]], Event]:
    def build(common: Dict[str, Any], kind: Any, attrs: Mapping[str, str]) -> Event:
        return event_class(**common, event_type=kind, resource_name=ObjectName.try_parse(attrs.get("name")))

    return build


BUILDERS: Dict[EventSubjectType, Callable[[Dict[str, Any], Any, Mapping[str, str]], Event]] = {
    EventSubjectType.CONTAINER: _container,
    EventSubjectType.IMAGE: _image,
    EventSubjectType.NETWORK: _network,
    EventSubjectType.VOLUME: _volume,
    EventSubjectType.DAEMON: _daemon,
    EventSubjectType.SERVICE: _swarm(ServiceEvent),
    EventSubjectType.NODE: _swarm(NodeEvent),
    EventSubjectType.SECRET: _swarm(SecretEvent),
    EventSubjectType.CONFIG: _swarm(ConfigEvent),
}


def lookup(subject_type: str, action: str) -> Optional[Tuple[EventSubjectType, Any]]:
    """Resolve (subject, kind) for a subject/action pair, or None."""
    try:
        subject = EventSubjectType(subject_type)
    except ValueError:
        return None
    kind = ACTIONS[subject].get(action)
    if kind is None:
        return None
    return subject, kind


def decode_event(raw: RawNotification) -> Optional[Event]:
    """Convert one raw notification into a typed event, or None if unmodeled."""
    resolved = lookup(raw.subject_type, raw.action)
    if resolved is None:
        return None
    subject, kind = resolved

    attributes = MappingProxyType(dict(raw.actor.attributes))
    common = dict(
        subject_type=subject,
        action=raw.action,
        actor_id=raw.actor.id,
        actor_attributes=attributes,
        timestamp=raw.timestamp,
    )
    return BUILDERS[subject](common, kind, attributes)
