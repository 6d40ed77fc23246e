"""
Logging configuration with sensitive data filtering.

Provides a configured logger with automatic masking of OAuth credentials and
signed clip URLs in log output (access tokens, refresh tokens, the query string
of time-limited preview URLs).
"""

import logging
import os
import re

log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
numeric_level = getattr(logging, log_level, logging.INFO)

VERBOSE = os.getenv('VERBOSE', 'false').lower() in ('true', '1')


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that masks sensitive credentials in log output.

    Automatically detects and masks:
    - OAuth access tokens (shows first 6 chars)
    - OAuth refresh tokens (shows the "1//" prefix and first 6 chars)
    - Signed URL query strings (keeps scheme, host and path)

    Uses regex patterns to find and replace sensitive strings while preserving
    enough context to identify which token or clip is being referenced.
    """

    def __init__(self):
        super().__init__()
        self.patterns = [
            (re.compile(r'(ya29\.[A-Za-z0-9_-]{6})[A-Za-z0-9_\-\.]{20,}'), r'\1[oauth-access-token-masked]'),
            (re.compile(r'(1//[A-Za-z0-9_-]{6})[A-Za-z0-9_\-]{20,}'), r'\1[oauth-refresh-token-masked]'),
            (re.compile(r'(https://[^\s?"\']+)\?[^\s"\')]+'), r'\1?[signed-query-masked]'),
        ]

    def mask(self, text):
        for pattern, replacement in self.patterns:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args:
            new_args = []
            for arg in record.args if isinstance(record.args, tuple) else [record.args]:
                if isinstance(arg, str):
                    arg = self.mask(arg)
                new_args.append(arg)
            record.args = tuple(new_args) if isinstance(record.args, tuple) else new_args[0]

        return True


logging.basicConfig(
    level=numeric_level,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

sensitive_filter = SensitiveDataFilter()
root_logger = logging.getLogger()
root_logger.addFilter(sensitive_filter)

# Add filter to all handlers to catch library loggers
for handler in root_logger.handlers:
    handler.addFilter(sensitive_filter)

logger = logging.getLogger(__name__)
