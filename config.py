"""
Command line and environment configuration.

Each executable builds one immutable config object at startup and passes it to
the components that need it. Flags keep their historical single-dash spelling
(``-output-dir``); the double-dash form is accepted too.
"""

import argparse
import os
from typing import Optional

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator

from clip_downloader import SESSION_PLACEHOLDER
from tools import logger

DEFAULT_OUTPUT_FILE_PATH_FORMAT = "%Y/%m/%d/%H/" + SESSION_PLACEHOLDER


class ConfigError(ValueError):
    """Invalid or missing configuration."""


def resolve_timezone(name=None):
    """
    Timezone used to bucket clips by date.

    Falls back to the host's local zone, then UTC, when ``name`` is empty or unknown.
    """
    if name:
        try:
            return pytz.timezone(name)
        except pytz.UnknownTimeZoneError:
            logger.warning(f"Invalid TIMEZONE '{name}', falling back to auto-detect")

    try:
        import tzlocal
        return pytz.timezone(str(tzlocal.get_localzone()))
    except Exception:
        return pytz.UTC


class ConsumerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    nest_project_id: str = Field(min_length=1)
    smart_device_cred_path: str = "credentials.json"
    pubsub_project_id: str = Field(min_length=1)
    pubsub_cred_path: str = ""
    pubsub_subscription_id: str = "test-subscription"
    output_dir: str = "output"
    output_file_path_format: str = DEFAULT_OUTPUT_FILE_PATH_FORMAT
    token_path: str = "token.json"
    timezone: Optional[str] = None

    @field_validator("output_file_path_format")
    @classmethod
    def _has_session_placeholder(cls, v):
        if SESSION_PLACEHOLDER not in v:
            raise ValueError(f"must contain {SESSION_PLACEHOLDER}")
        return v

    @property
    def tzinfo(self):
        return resolve_timezone(self.timezone)


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int = Field(8080, ge=1, le=65535)
    directory: str = Field(min_length=1)
    timezone: Optional[str] = None

    @property
    def tzinfo(self):
        return resolve_timezone(self.timezone)


def _add_flag(parser, name, **kwargs):
    parser.add_argument(f"-{name}", f"--{name}", dest=name.replace("-", "_"), **kwargs)


def _build(config_cls, parser, argv):
    args = parser.parse_args(argv)
    try:
        return config_cls(timezone=os.getenv("TIMEZONE") or None, **vars(args))
    except ValueError as e:
        raise ConfigError(str(e)) from e


def parse_consumer_config(argv=None):
    parser = argparse.ArgumentParser(description="Store Nest doorbell clip previews delivered via Pub/Sub.")
    _add_flag(parser, "nest-project-id", default=os.getenv("NEST_PROJECT_ID", ""),
              help="Device Access project id, e.g. enterprises/<project_id>")
    _add_flag(parser, "smart-device-cred-path", default="credentials.json",
              help="OAuth client credential JSON for the Smart Device Management API")
    _add_flag(parser, "pubsub-project-id", default=os.getenv("PUBSUB_PROJECT_ID", ""),
              help="Cloud project id owning the Pub/Sub subscription")
    _add_flag(parser, "pubsub-cred-path", default=os.getenv("PUBSUB_CRED_PATH", ""),
              help="Service account JSON for Pub/Sub (application default credentials when empty)")
    _add_flag(parser, "pubsub-subscription-id", default="test-subscription",
              help="Pub/Sub subscription id")
    _add_flag(parser, "output-dir", default="output", help="Output directory")
    _add_flag(parser, "output-file-path-format", default=DEFAULT_OUTPUT_FILE_PATH_FORMAT,
              help="strftime format for the output path; may contain sub directories and "
                   f"must contain {SESSION_PLACEHOLDER}")
    _add_flag(parser, "token-path", default="token.json",
              help="Where the Smart Device Management OAuth token is cached")
    return _build(ConsumerConfig, parser, argv)


def parse_server_config(argv=None):
    parser = argparse.ArgumentParser(description="Serve stored clips and time-range listings.")
    _add_flag(parser, "port", type=int, default=8080, help="Server port to listen on")
    _add_flag(parser, "directory", required=True, help="Directory containing the stored clips")
    return _build(ServerConfig, parser, argv)
