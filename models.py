"""
Smart Device Management event models.

Pub/Sub delivers one of two notification shapes: a relation update (a device
was added to, removed from or moved between rooms/structures) or a resource
update (trait changes and device events keyed by event-type string).

``classify`` turns a decoded ``DeviceEvent`` into one of the closed variants
``RelationChange`` or ``CameraActivity``; every other shape is rejected with
``UnsupportedEventError``.
"""

import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class EventDecodeError(ValueError):
    """Message payload could not be decoded into a device event."""


class UnsupportedEventError(ValueError):
    """Device event does not carry a shape this consumer handles."""


class EventType(str, Enum):
    DOORBELL_CHIME = "sdm.devices.events.DoorbellChime.Chime"
    CAMERA_MOTION = "sdm.devices.events.CameraMotion.Motion"
    CAMERA_PERSON = "sdm.devices.events.CameraPerson.Person"
    CAMERA_CLIP_PREVIEW = "sdm.devices.events.CameraClipPreview.ClipPreview"


class _SdmModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class RelationUpdate(_SdmModel):
    # CREATED, DELETED or UPDATED
    type: str = ""
    # empty when a structure/room itself changed
    subject: str = ""
    object: str = ""


class ResourceUpdate(_SdmModel):
    name: str = ""
    traits: Dict[str, Any] = Field(default_factory=dict)
    events: Dict[str, Any] = Field(default_factory=dict)


class DeviceEvent(_SdmModel):
    event_id: str = Field("", alias="eventId")
    timestamp: Optional[datetime.datetime] = None
    relation_update: Optional[RelationUpdate] = Field(None, alias="relationUpdate")
    resource_update: Optional[ResourceUpdate] = Field(None, alias="resourceUpdate")
    resource_group: List[str] = Field(default_factory=list, alias="resourceGroup")
    event_thread_id: Optional[str] = Field(None, alias="eventThreadId")
    event_thread_state: Optional[str] = Field(None, alias="eventThreadState")
    user_id: str = Field("", alias="userId")

    def describe(self):
        return f"DeviceEvent(user_id={self.user_id}, event_id={self.event_id}, timestamp={self.timestamp})"


class _SessionEvent(_SdmModel):
    event_type: ClassVar[EventType]
    label: ClassVar[str]

    event_session_id: str = Field(alias="eventSessionId")
    event_id: str = Field("", alias="eventId")

    def describe(self):
        return f"{self.label}(event_session_id={self.event_session_id}, event_id={self.event_id})"


class DoorbellChimeEvent(_SessionEvent):
    event_type: ClassVar[EventType] = EventType.DOORBELL_CHIME
    label: ClassVar[str] = "DoorbellChime"


class CameraMotionEvent(_SessionEvent):
    event_type: ClassVar[EventType] = EventType.CAMERA_MOTION
    label: ClassVar[str] = "CameraMotion"


class CameraPersonEvent(_SessionEvent):
    event_type: ClassVar[EventType] = EventType.CAMERA_PERSON
    label: ClassVar[str] = "CameraPerson"


class ClipPreviewEvent(_SdmModel):
    """A short clip exported by the device, downloadable from a time-limited URL."""

    event_session_id: str = Field(alias="eventSessionId")
    preview_url: str = Field(alias="previewUrl")

    def describe(self):
        return f"ClipPreview(event_session_id={self.event_session_id})"


TriggerEvent = Union[DoorbellChimeEvent, CameraMotionEvent, CameraPersonEvent]

# Checked in order; the first key present wins.
TRIGGER_EVENTS = (DoorbellChimeEvent, CameraMotionEvent, CameraPersonEvent)


class RelationChange(_SdmModel):
    event: DeviceEvent
    update: RelationUpdate


class CameraActivity(_SdmModel):
    event: DeviceEvent
    device_name: str
    trigger: TriggerEvent
    clip_preview: Optional[ClipPreviewEvent] = None


Notification = Union[RelationChange, CameraActivity]


def parse_device_event(data: bytes) -> DeviceEvent:
    """Decode a raw Pub/Sub message body."""
    try:
        return DeviceEvent.model_validate_json(data)
    except ValidationError as e:
        raise EventDecodeError(f"Failed to decode device event: {e}") from e


def _decode_clip_preview(events: Dict[str, Any]) -> Optional[ClipPreviewEvent]:
    raw = events.get(EventType.CAMERA_CLIP_PREVIEW.value)
    if raw is None:
        return None
    try:
        return ClipPreviewEvent.model_validate(raw)
    except ValidationError:
        # A broken preview does not invalidate the trigger event
        return None


def classify(event: DeviceEvent) -> Notification:
    """
    Map a device event onto the notification variant it represents.

    Raises:
        EventDecodeError: a trigger event payload is malformed
        UnsupportedEventError: no update, or a resource update without a known trigger
    """
    if event.resource_update is not None:
        resource_update = event.resource_update
        for trigger_cls in TRIGGER_EVENTS:
            raw = resource_update.events.get(trigger_cls.event_type.value)
            if raw is None:
                continue
            try:
                trigger = trigger_cls.model_validate(raw)
            except ValidationError as e:
                raise EventDecodeError(f"Failed to decode {trigger_cls.label} payload: {e}") from e
            return CameraActivity(
                event=event,
                device_name=resource_update.name,
                trigger=trigger,
                clip_preview=_decode_clip_preview(resource_update.events),
            )

        raise UnsupportedEventError(
            "unsupported resource update event:"
            f"\n\t* user id({event.user_id})"
            f"\n\t* events({','.join(resource_update.events)})"
            f"\n\t* traits({','.join(resource_update.traits)})"
        )

    if event.relation_update is not None:
        return RelationChange(event=event, update=event.relation_update)

    raise UnsupportedEventError(f"Unsupported event: {event.describe()}")
