"""
Clip Server

Serves the clip hierarchy written by the consumer to a dashboard:

    GET /list?from=<unix>&to=<unix>   JSON array of file paths relative to the root
    GET /file/<relative path>         raw file bytes

``from`` defaults to 24 hours ago and ``to`` to ``from`` + 24 hours.
"""

from dotenv import load_dotenv

load_dotenv()

import datetime
import os
import re
import sys

from flask import Flask, jsonify, request, send_from_directory

from calendar_buckets import list_target_directories
from config import ConfigError, parse_server_config
from tools import logger

DEFAULT_WINDOW = datetime.timedelta(hours=24)

_UNIX_TS = re.compile(r"[+-]?\d+", re.ASCII)


def parse_unix_time_or_default(value, default, tz):
    """
    Parse unix seconds into an aware datetime in ``tz``.

    Empty values give ``default()``, which is only evaluated then.
    """
    if not value:
        return default()
    if not _UNIX_TS.fullmatch(value):
        raise ValueError(f"invalid unix timestamp: {value!r}")
    return datetime.datetime.fromtimestamp(int(value), tz)


def walk_regular_files(root, prefix):
    """
    Yield '/'-separated paths, relative to ``root``, of regular files under ``prefix``.

    Missing prefixes yield nothing. Other filesystem errors propagate.
    """
    top = os.path.join(root, *prefix.split("/"))
    if not os.path.isdir(top):
        return

    def _raise(error):
        raise error

    for dirpath, dirnames, filenames in os.walk(top, onerror=_raise):
        dirnames.sort()
        for filename in sorted(filenames):
            path = os.path.join(dirpath, filename)
            if os.path.islink(path) or not os.path.isfile(path):
                continue
            yield os.path.relpath(path, root).replace(os.sep, "/")


def list_files(root, from_ts, to_ts):
    result = []
    for prefix in list_target_directories(from_ts, to_ts):
        result.extend(walk_regular_files(root, prefix))
    return result


def create_app(config):
    """Create Flask app serving ``config.directory``."""
    app = Flask(__name__)
    root = os.path.abspath(config.directory)
    tz = config.tzinfo

    @app.route('/list')
    def list_clips():
        """List stored files bucketed within [from, to)."""
        now = datetime.datetime.now(tz)
        try:
            from_ts = parse_unix_time_or_default(request.args.get('from'), lambda: now - DEFAULT_WINDOW, tz)
            to_ts = parse_unix_time_or_default(request.args.get('to'), lambda: from_ts + DEFAULT_WINDOW, tz)
        except (ValueError, OverflowError, OSError) as e:
            return str(e), 400
        if not from_ts < to_ts:
            return "from should be less than to", 400

        # bucket directories follow wall-clock time in the configured zone
        from_local = from_ts.astimezone(tz)
        to_local = to_ts.astimezone(tz)
        try:
            files = list_files(root, from_local, to_local)
        except OSError as e:
            logger.error(f"Failed to list clips between {from_local} and {to_local}: {e}")
            return str(e), 500

        logger.debug(f"Listed {len(files)} file(s) between {from_local} and {to_local}")
        return jsonify(files)

    @app.route('/file/<path:filename>')
    def serve_file(filename):
        """Serve a stored file by its path relative to the root."""
        return send_from_directory(root, filename)

    return app


def main(argv=None):
    try:
        config = parse_server_config(argv)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    app = create_app(config)
    logger.info(f"Serving {config.directory} on port {config.port}...")
    app.run(host="0.0.0.0", port=config.port, threaded=True)


if __name__ == "__main__":
    main()
