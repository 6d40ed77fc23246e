"""Tests for the device event dispatcher."""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from event_processor import EventProcessor
from models import EventDecodeError, EventType, UnsupportedEventError, parse_device_event
from tests.test_models import DEVICE_NAME, clip_payload, resource_update_message, session_payload


class TestEventProcessor(unittest.TestCase):

    def setUp(self):
        self.output_dir = os.path.join(tempfile.mkdtemp(), "output")
        self.addCleanup(lambda: shutil.rmtree(os.path.dirname(self.output_dir), ignore_errors=True))
        self.downloader = MagicMock()
        self.downloader.download.return_value = Path("2024/02/07/19/s_0.mp4")
        self.processor = EventProcessor(DEVICE_NAME, self.downloader, self.output_dir)

    def test_init_creates_output_dir(self):
        self.processor.init()
        self.assertTrue(os.path.isdir(self.output_dir))

    def test_trigger_with_clip_preview_is_downloaded(self):
        for event_type in (EventType.DOORBELL_CHIME, EventType.CAMERA_MOTION, EventType.CAMERA_PERSON):
            with self.subTest(event_type=event_type):
                self.downloader.download.reset_mock()
                event = parse_device_event(resource_update_message({
                    event_type.value: session_payload(),
                    EventType.CAMERA_CLIP_PREVIEW.value: clip_payload(session_id="s"),
                }))

                stored = self.processor.process(event)

                self.assertEqual(stored, Path("2024/02/07/19/s_0.mp4"))
                self.downloader.download.assert_called_once()
                preview = self.downloader.download.call_args.args[0]
                self.assertEqual(preview.event_session_id, "s")

    def test_trigger_without_clip_preview_stores_nothing(self):
        event = parse_device_event(resource_update_message({EventType.CAMERA_MOTION.value: session_payload()}))
        self.assertIsNone(self.processor.process(event))
        self.downloader.download.assert_not_called()

    def test_broken_clip_preview_stores_nothing(self):
        event = parse_device_event(resource_update_message({
            EventType.DOORBELL_CHIME.value: session_payload(),
            EventType.CAMERA_CLIP_PREVIEW.value: {"previewUrl": 42},
        }))
        self.assertIsNone(self.processor.process(event))
        self.downloader.download.assert_not_called()

    def test_relation_update_is_a_no_op(self):
        event = parse_device_event(b'{"relationUpdate": {"type": "UPDATED", "subject": "s", "object": "o"}}')
        self.assertIsNone(self.processor.process(event))
        self.downloader.download.assert_not_called()

    def test_unsupported_event_writes_no_file(self):
        event = parse_device_event(resource_update_message(
            {"sdm.devices.events.CameraSound.Sound": session_payload()},
            traits={"sdm.devices.traits.Info": {}},
        ))
        with self.assertRaises(UnsupportedEventError) as ctx:
            self.processor.process(event)
        self.assertIn("sdm.devices.events.CameraSound.Sound", str(ctx.exception))
        self.downloader.download.assert_not_called()

    def test_malformed_trigger_propagates(self):
        event = parse_device_event(resource_update_message({EventType.CAMERA_PERSON.value: []}))
        with self.assertRaises(EventDecodeError):
            self.processor.process(event)

    def test_download_failure_propagates(self):
        self.downloader.download.side_effect = OSError("disk full")
        event = parse_device_event(resource_update_message({
            EventType.DOORBELL_CHIME.value: session_payload(),
            EventType.CAMERA_CLIP_PREVIEW.value: clip_payload(),
        }))
        with self.assertRaises(OSError):
            self.processor.process(event)


if __name__ == "__main__":
    unittest.main()
