"""
Doorbell event dispatch.

Classifies each device event and, for chime/motion/person activity carrying a
clip preview, hands the preview to the downloader. Relation updates (devices
added, removed or moved between rooms) are logged and otherwise ignored.
"""

import os

from models import CameraActivity, RelationChange, UnsupportedEventError, classify
from tools import logger


class EventProcessor:
    """Routes decoded device events to the clip downloader."""

    def __init__(self, doorbell_device_name, downloader, output_dir):
        self.doorbell_device_name = doorbell_device_name
        self.downloader = downloader
        self.output_dir = output_dir

    def init(self):
        os.makedirs(self.output_dir, exist_ok=True)

    def process(self, event):
        """
        Handle one device event.

        Returns:
            Path of the stored clip, or None when the event carried nothing to store

        Raises:
            EventDecodeError: the trigger payload is malformed
            UnsupportedEventError: the event shape is not handled
            requests.RequestException, OSError: the clip could not be stored
        """
        notification = classify(event)

        if isinstance(notification, CameraActivity):
            return self._process_camera_activity(notification)
        if isinstance(notification, RelationChange):
            return self._process_relation_change(notification)
        raise UnsupportedEventError(f"Unsupported notification: {notification!r}")

    def _process_camera_activity(self, activity):
        clip_preview = activity.clip_preview
        logger.info(
            f"{activity.trigger.describe()} from {activity.device_name or 'unknown device'}, "
            f"{clip_preview.describe() if clip_preview else 'no clip preview'}"
        )
        if activity.device_name and activity.device_name != self.doorbell_device_name:
            logger.debug(f"Event came from {activity.device_name}, not the doorbell {self.doorbell_device_name}")

        if clip_preview is None:
            return None
        return self.downloader.download(clip_preview)

    def _process_relation_change(self, change):
        update = change.update
        logger.info(f"Relation update {update.type}: {update.object or '-'} -> {update.subject or '-'}")
        return None
