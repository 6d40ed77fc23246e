"""
Google Smart Device Management API Client

Lists the devices shared with the Device Access project and locates the
doorbell. The authorized session is shared with the clip downloader, so clip
preview URLs are fetched with the same OAuth credentials.
"""

from google.auth.transport.requests import AuthorizedSession

from google_auth_wrapper import bare_project_id
from tools import logger

DOORBELL_DEVICE_TYPE = "sdm.devices.types.DOORBELL"


class DoorbellNotFoundError(LookupError):
    """No doorbell device is shared with the Device Access project."""


class SDMClient:
    """Client for interacting with Google Smart Device Management API"""

    API_BASE = "https://smartdevicemanagement.googleapis.com/v1"

    def __init__(self, project_id, credentials, session=None):
        """
        Initialize SDM API client

        Args:
            project_id: SDM Project ID from Device Access Console
            credentials: OAuth credentials carrying the sdm.service scope
            session: Optional requests session; defaults to an AuthorizedSession
        """
        self.project_id = bare_project_id(project_id)
        self.credentials = credentials
        self.session = session if session is not None else AuthorizedSession(credentials)

    def _make_request(self, method, endpoint, **kwargs):
        """
        Make an authenticated request to the SDM API

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments for requests

        Returns:
            Response JSON data
        """
        url = f"{self.API_BASE}/{endpoint}"
        logger.debug(f"SDM API Request: {method} {url}")

        kwargs.setdefault("timeout", 30)
        response = self.session.request(method, url, **kwargs)
        response.raise_for_status()

        return response.json()

    def list_devices(self):
        """
        List all devices in the project

        Returns:
            List of device objects with metadata
        """
        data = self._make_request("GET", f"enterprises/{self.project_id}/devices")
        devices = data.get("devices", [])

        logger.info(f"Found {len(devices)} device(s) in SDM project")

        for device in devices:
            device_name = device.get("name", "Unknown")
            device_type = device.get("type", "Unknown")
            display_name = device.get("traits", {}).get("sdm.devices.traits.Info", {}).get("customName", "No Name")
            logger.info(f"  - {device_name} ({device_type}) - Display name: {display_name}")

        return devices

    def find_doorbell_device(self):
        """
        Return the full resource name of the doorbell

        When several doorbells are shared, the last one listed wins.

        Raises:
            DoorbellNotFoundError: when no device has the doorbell type
        """
        doorbell_name = None
        for device in self.list_devices():
            if device.get("type") == DOORBELL_DEVICE_TYPE:
                doorbell_name = device.get("name")

        if doorbell_name is None:
            raise DoorbellNotFoundError("Doorbell device not found in the account")

        logger.info(f"Found doorbell {doorbell_name}")
        return doorbell_name
