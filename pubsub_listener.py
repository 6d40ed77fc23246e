"""
Google Cloud Pub/Sub Event Listener

Listens for real-time Nest device events on an existing Pub/Sub subscription
and hands each decoded event to a processor.

A message is acknowledged once it has been handled, or when it can never be
handled (undecodable or unsupported payload, or a preview URL the server
refuses with a 4xx). Other download and write failures nack the message so
Pub/Sub redelivers it.
"""

import json
from concurrent.futures import TimeoutError as ConnectionTimeoutError

import requests
from google.cloud import pubsub_v1
from google.oauth2 import service_account

from models import EventDecodeError, UnsupportedEventError, parse_device_event
from tools import VERBOSE, logger


class NestEventListener:
    """Listens for Nest events via Google Cloud Pub/Sub"""

    def __init__(self, project_id, subscription_id, credentials_file, processor, subscriber=None):
        """
        Initialize Pub/Sub listener

        Args:
            project_id: Cloud project that owns the subscription
            subscription_id: Subscription id (not the full path)
            credentials_file: Service account JSON; application default credentials when empty
            processor: Object with process(DeviceEvent)
            subscriber: Optional preconfigured SubscriberClient
        """
        self.processor = processor

        if subscriber is None:
            credentials = None
            if credentials_file:
                credentials = service_account.Credentials.from_service_account_file(credentials_file)
            subscriber = pubsub_v1.SubscriberClient(credentials=credentials)
        self.subscriber = subscriber

        self.subscription_name = self.subscriber.subscription_path(project_id, subscription_id)

        logger.info("Pub/Sub listener initialized")
        logger.info(f"  Subscription: {self.subscription_name}")

    def handle_message(self, message):
        """
        Callback function for received Pub/Sub messages

        Args:
            message: Pub/Sub message object
        """
        logger.debug(f"Received Pub/Sub message ID: {message.message_id}")
        if VERBOSE:
            logger.debug(f"Received Pub/Sub message: {describe_message(message)}")

        try:
            event = parse_device_event(message.data)
            stored = self.processor.process(event)
        except (EventDecodeError, UnsupportedEventError) as e:
            logger.error(f"Failed to process message {message.message_id}: {e}")
            logger.debug(f"Raw message data: {message.data!r}")
            message.ack()
            return
        except requests.HTTPError as e:
            if is_client_error(e):
                # expired or revoked preview URL, redelivery cannot help
                logger.error(f"Clip for message {message.message_id} is no longer available: {e}")
                message.ack()
                return
            logger.error(f"Failed to store clip for message {message.message_id}, requesting redelivery: {e}")
            message.nack()
            return
        except (requests.RequestException, OSError) as e:
            logger.error(f"Failed to store clip for message {message.message_id}, requesting redelivery: {e}")
            message.nack()
            return

        if stored is not None:
            logger.debug(f"Message {message.message_id} stored as {stored}")
        message.ack()
        logger.debug(f"Message acknowledged: {message.message_id}")

    def start_listening(self):
        """
        Start listening for Pub/Sub messages

        This is a blocking call that runs indefinitely.
        """
        logger.info("Starting Pub/Sub listener...")
        logger.info("Waiting for real-time events...")

        streaming_pull_future = self.subscriber.subscribe(
            self.subscription_name,
            callback=self.handle_message
        )

        with self.subscriber:
            try:
                streaming_pull_future.result()

            except KeyboardInterrupt:
                logger.info("Stopping Pub/Sub listener (keyboard interrupt)...")
                streaming_pull_future.cancel()
                streaming_pull_future.result()

            except ConnectionTimeoutError:
                logger.warning("Pub/Sub connection timeout")
                streaming_pull_future.cancel()
                raise

            except Exception as e:
                logger.error(f"Pub/Sub listener error: {e}")
                streaming_pull_future.cancel()
                raise


def is_client_error(error):
    """True for an HTTPError carrying a 4xx response."""
    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None)
    return isinstance(status_code, int) and 400 <= status_code < 500


def describe_message(message):
    """Pretty-print a message body for debugging; falls back to the raw bytes."""
    try:
        return json.dumps(json.loads(message.data.decode('utf-8')), indent=2)
    except (UnicodeDecodeError, ValueError):
        return repr(message.data)
