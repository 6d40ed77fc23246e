"""
Nest Doorbell Clip Archiver

Entry point for the event consumer. Authorizes against the Smart Device
Management API, locates the doorbell, then subscribes to the Device Access
Pub/Sub subscription and stores the clip preview attached to every chime,
motion or person event under a date-bucketed output directory.
"""

from dotenv import load_dotenv

load_dotenv()

from tools import logger
from config import ConfigError, parse_consumer_config
from google_auth_wrapper import load_credentials
from nest_sdm_api import SDMClient
from clip_downloader import ClipDownloader
from event_processor import EventProcessor
from pubsub_listener import NestEventListener

import sys

__version__ = "1.0"


def build_processor(config, sdm_client, doorbell_device_name):
    downloader = ClipDownloader(
        session=sdm_client.session,
        output_dir=config.output_dir,
        output_file_path_format=config.output_file_path_format,
        timezone=config.tzinfo,
    )
    processor = EventProcessor(
        doorbell_device_name=doorbell_device_name,
        downloader=downloader,
        output_dir=config.output_dir,
    )
    processor.init()
    return processor


def main(argv=None):
    """
    Initialize and run the consumer.

    Any failure before the subscription is running is fatal.
    """
    logger.info("Welcome to the Nest Doorbell Clip Archiver")
    logger.info(f"Version: {__version__}")

    try:
        config = parse_consumer_config(argv)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    try:
        logger.info("Authorizing against the Smart Device Management API")
        credentials = load_credentials(config.smart_device_cred_path, config.token_path, config.nest_project_id)
        sdm_client = SDMClient(config.nest_project_id, credentials)

        logger.info("Looking up the doorbell device")
        doorbell_device_name = sdm_client.find_doorbell_device()

        processor = build_processor(config, sdm_client, doorbell_device_name)
        logger.info(f"Storing clips under {config.output_dir} as {config.output_file_path_format}")

        listener = NestEventListener(
            project_id=config.pubsub_project_id,
            subscription_id=config.pubsub_subscription_id,
            credentials_file=config.pubsub_cred_path,
            processor=processor,
        )
    except Exception as e:
        logger.error(f"Startup failed: {e}")
        sys.exit(1)

    try:
        listener.start_listening()
    except (KeyboardInterrupt, SystemExit):
        pass
    except Exception as e:
        logger.error(f"Pub/Sub subscription stopped: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
