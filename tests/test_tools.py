"""Tests for log masking of credentials and signed URLs."""

import logging
import unittest

from tools import SensitiveDataFilter


def make_record(msg, args=()):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


class TestSensitiveDataFilter(unittest.TestCase):

    def setUp(self):
        self.filter = SensitiveDataFilter()

    def test_masks_access_token(self):
        record = make_record("Bearer ya29.a0AfB_byC1234567890abcdefghijklmnopqrstuvwxyz")
        self.filter.filter(record)
        self.assertEqual(record.getMessage(), "Bearer ya29.a0AfB_[oauth-access-token-masked]")

    def test_masks_refresh_token(self):
        record = make_record("refresh %s", ("1//0gAbCdEfGhIjKlMnOpQrStUvWxYz0123456789",))
        self.filter.filter(record)
        self.assertEqual(record.getMessage(), "refresh 1//0gAbCd[oauth-refresh-token-masked]")

    def test_masks_signed_url_query(self):
        record = make_record("GET https://previewurl.example/clip/abc?token=secret&exp=123 failed")
        self.filter.filter(record)
        self.assertEqual(
            record.getMessage(),
            "GET https://previewurl.example/clip/abc?[signed-query-masked] failed",
        )

    def test_plain_messages_untouched(self):
        record = make_record("Found %d device(s)", (3,))
        self.filter.filter(record)
        self.assertEqual(record.getMessage(), "Found 3 device(s)")


if __name__ == "__main__":
    unittest.main()
