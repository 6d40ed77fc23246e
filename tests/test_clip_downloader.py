"""Tests for clip preview download, naming and storage."""

import datetime
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

from clip_downloader import UNKNOWN_EXTENSION, ClipDownloader, extension_for
from models import ClipPreviewEvent

NOW = datetime.datetime(2024, 2, 7, 19, 32, 25)


def make_response(body=b"clip-bytes", content_type="video/mp4", status_code=200, fail_after=None):
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"Content-Type": content_type} if content_type is not None else {}
    response.__enter__.return_value = response
    response.__exit__.return_value = False

    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")

    def iter_content(chunk_size=1):
        for i in range(0, len(body), 4):
            if fail_after is not None and i >= fail_after:
                raise requests.ConnectionError("connection reset")
            yield body[i:i + 4]

    response.iter_content.side_effect = iter_content
    return response


def clip(session_id="session-1"):
    return ClipPreviewEvent(eventSessionId=session_id, previewUrl="https://previewurl.example/clip?token=abc")


class TestExtensionFor(unittest.TestCase):

    def test_known_type(self):
        self.assertEqual(extension_for("video/mp4"), ".mp4")

    def test_parameters_are_ignored(self):
        self.assertEqual(extension_for("video/mp4; codecs=avc1"), ".mp4")

    def test_unknown_type(self):
        self.assertEqual(extension_for("application/x-nest-unheard-of"), UNKNOWN_EXTENSION)

    def test_missing_header(self):
        self.assertEqual(extension_for(None), UNKNOWN_EXTENSION)


class TestClipDownloader(unittest.TestCase):

    def setUp(self):
        self.output_dir = tempfile.mkdtemp()
        self.addCleanup(lambda: shutil.rmtree(self.output_dir, ignore_errors=True))
        self.session = MagicMock()
        self.downloader = ClipDownloader(
            session=self.session,
            output_dir=self.output_dir,
            output_file_path_format="%Y/%m/%d/%H/{eventSessionId}",
        )

    def _partial_files(self):
        partial_dir = Path(self.output_dir) / ".partial"
        if not partial_dir.exists():
            return []
        return list(partial_dir.iterdir())

    def test_writes_clip_under_date_path(self):
        self.session.get.return_value = make_response(b"first clip")

        path = self.downloader.download(clip(), now=NOW)

        self.assertEqual(path, Path(self.output_dir) / "2024/02/07/19/session-1_0.mp4")
        self.assertEqual(path.read_bytes(), b"first clip")
        self.session.get.assert_called_once_with(
            "https://previewurl.example/clip?token=abc", stream=True, timeout=60
        )
        self.assertEqual(self._partial_files(), [])

    def test_collisions_get_increasing_suffixes(self):
        paths = []
        for body in (b"clip a", b"clip b", b"clip c"):
            self.session.get.return_value = make_response(body)
            paths.append(self.downloader.download(clip(), now=NOW))

        self.assertEqual(
            [p.name for p in paths],
            ["session-1_0.mp4", "session-1_1.mp4", "session-1_2.mp4"],
        )
        self.assertEqual(paths[2].read_bytes(), b"clip c")

    def test_redelivered_clip_is_not_stored_twice(self):
        self.session.get.return_value = make_response(b"same clip")
        first = self.downloader.download(clip(), now=NOW)
        self.session.get.return_value = make_response(b"same clip")
        second = self.downloader.download(clip(), now=NOW)

        self.assertEqual(first, second)
        self.assertEqual(sorted(os.listdir(first.parent)), ["session-1_0.mp4"])
        self.assertEqual(self._partial_files(), [])

    def test_unknown_content_type_uses_sentinel_extension(self):
        self.session.get.return_value = make_response(content_type="application/x-unheard-of")
        path = self.downloader.download(clip(), now=NOW)
        self.assertTrue(path.name.endswith("session-1_0" + UNKNOWN_EXTENSION))

    def test_http_error_writes_nothing(self):
        self.session.get.return_value = make_response(status_code=403)
        with self.assertRaises(requests.HTTPError):
            self.downloader.download(clip(), now=NOW)
        self.assertFalse((Path(self.output_dir) / "2024").exists())

    def test_interrupted_body_leaves_no_files(self):
        self.session.get.return_value = make_response(b"0123456789abcdef", fail_after=8)
        with self.assertRaises(requests.ConnectionError):
            self.downloader.download(clip(), now=NOW)
        self.assertFalse((Path(self.output_dir) / "2024").exists())
        self.assertEqual(self._partial_files(), [])

    def test_leading_slash_stays_under_output_dir(self):
        downloader = ClipDownloader(self.session, self.output_dir, "/clips/{eventSessionId}")
        self.session.get.return_value = make_response()
        path = downloader.download(clip(), now=NOW)
        self.assertEqual(path, Path(self.output_dir) / "clips/session-1_0.mp4")

    def test_format_without_placeholder_is_rejected(self):
        with self.assertRaises(ValueError):
            ClipDownloader(self.session, self.output_dir, "%Y/%m/%d/%H/clip")


if __name__ == "__main__":
    unittest.main()
