"""
Clip preview download and storage.

Fetches the clip behind a preview URL and stores it under the output
directory, named from the configured strftime format:

    %Y/%m/%d/%H/{eventSessionId}  ->  2024/02/07/19/<session id>_0.mp4

The numeric suffix is bumped until an unused name is found. The body is first
streamed into ``<output_dir>/.partial/`` while hashing it, so a redelivered
notification whose clip is already stored (same session id, same bytes) maps
onto the existing file instead of producing a second copy.
"""

import datetime
import hashlib
import mimetypes
import os
import shutil
import tempfile
from pathlib import Path

from tools import logger

SESSION_PLACEHOLDER = "{eventSessionId}"
UNKNOWN_EXTENSION = ".video.unknown"
PARTIAL_DIR_NAME = ".partial"

DEFAULT_DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 64 * 1024


def extension_for(content_type):
    """File extension for a Content-Type header value, or the unknown-type sentinel."""
    mime_type = (content_type or "").split(";", 1)[0].strip().lower()
    extension = mimetypes.guess_extension(mime_type) if mime_type else None
    if not extension:
        logger.warning(f"Failed to get extension type from content type({content_type!r})")
        return UNKNOWN_EXTENSION
    return extension


def _file_sha256(path):
    digest = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b''):
            digest.update(chunk)
    return digest.hexdigest()


class ClipDownloader:
    """Downloads clip previews into a date-bucketed file hierarchy."""

    def __init__(self, session, output_dir, output_file_path_format, timezone=None,
                 timeout=DEFAULT_DOWNLOAD_TIMEOUT):
        """
        Args:
            session: requests-compatible session used for the GET (authorized)
            output_dir: Root of the clip hierarchy
            output_file_path_format: strftime format containing {eventSessionId}
            timezone: tzinfo used to resolve the format; local time when None
            timeout: Seconds before the clip request is abandoned
        """
        if SESSION_PLACEHOLDER not in output_file_path_format:
            raise ValueError(f"output file path format must contain {SESSION_PLACEHOLDER}")

        self._session = session
        self.output_dir = Path(output_dir)
        self.output_file_path_format = output_file_path_format
        self._timezone = timezone
        self._timeout = timeout

    @property
    def partial_dir(self):
        return self.output_dir / PARTIAL_DIR_NAME

    def _now(self):
        if self._timezone is None:
            return datetime.datetime.now()
        return datetime.datetime.now(self._timezone)

    def candidate_path(self, resolved_format, event_session_id, index, extension):
        relative = resolved_format.replace(SESSION_PLACEHOLDER, f"{event_session_id}_{index}") + extension
        return self.output_dir / relative.lstrip("/" + os.sep)

    def _stream_to_partial(self, response):
        """Write the response body to a temp file; returns (path, sha256 hex, size)."""
        self.partial_dir.mkdir(parents=True, exist_ok=True)
        digest = hashlib.sha256()
        size = 0
        tmp = tempfile.NamedTemporaryFile(dir=self.partial_dir, suffix=".part", delete=False)
        try:
            with tmp:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    tmp.write(chunk)
                    digest.update(chunk)
                    size += len(chunk)
        except BaseException:
            os.unlink(tmp.name)
            raise
        return Path(tmp.name), digest.hexdigest(), size

    def _claim_path(self, resolved_format, event_session_id, extension, digest):
        """
        Probe suffixes _0, _1, ... for the first unused name.

        Returns (path, is_duplicate). Not atomic across processes.
        """
        index = 0
        while True:
            candidate = self.candidate_path(resolved_format, event_session_id, index, extension)
            if not candidate.exists():
                return candidate, False
            if candidate.is_file() and _file_sha256(candidate) == digest:
                return candidate, True
            index += 1
            logger.debug(f"{index} - {candidate} already exists")

    def download(self, clip_preview, now=None):
        """
        Download a clip preview and store it.

        Args:
            clip_preview: ClipPreviewEvent with session id and signed URL
            now: Timestamp used to resolve the path format (defaults to the current time)

        Returns:
            Path of the stored (or already present) clip

        Raises:
            requests.RequestException: the GET failed or returned an error status
            OSError: the clip could not be written
        """
        if now is None:
            now = self._now()

        response = self._session.get(clip_preview.preview_url, stream=True, timeout=self._timeout)
        with response:
            response.raise_for_status()
            extension = extension_for(response.headers.get("Content-Type"))
            tmp_path, digest, size = self._stream_to_partial(response)

        try:
            resolved_format = now.strftime(self.output_file_path_format)
            target, is_duplicate = self._claim_path(
                resolved_format, clip_preview.event_session_id, extension, digest
            )
            if is_duplicate:
                logger.info(
                    f"Clip preview for event session {clip_preview.event_session_id} "
                    f"already stored as {target}, skipping"
                )
                return target

            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(tmp_path), str(target))
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        logger.info(
            f"Wrote clip preview for event session {clip_preview.event_session_id} "
            f"as {target} (bytes: {size})"
        )
        return target
