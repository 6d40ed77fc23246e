"""
OAuth credentials for the Smart Device Management API.

Loads the user's cached access/refresh token from a JSON file, refreshing it
when expired. When no usable token is cached, runs the authorization-code flow
through the Device Access partner-connections page (which lets the user pick
the Nest devices to share), then caches the resulting token.

Token lifecycle:
- Cached in ``token_path`` (mode 0600) after the first authorization
- Refreshed with the refresh token when the access token expires
- Re-authorized interactively only when the cache is missing or revoked
"""

import json
import os

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from tools import logger

SCOPES = ['https://www.googleapis.com/auth/sdm.service']

PARTNER_AUTH_URI = "https://nestservices.google.com/partnerconnections/{project_id}/auth"

# The page the user lands on after consenting; the code is copied from its URL
REDIRECT_URI = "https://www.google.com"


def bare_project_id(project_id):
    """Accept both ``<id>`` and ``enterprises/<id>``."""
    if project_id.startswith("enterprises/"):
        return project_id.split("/", 1)[1]
    return project_id


def load_client_config(client_secrets_path, project_id):
    """
    Read the OAuth client JSON downloaded from the Cloud console and point its
    authorization endpoint at the Device Access partner-connections page.
    """
    with open(client_secrets_path, 'r') as f:
        client_config = json.load(f)

    client_type = "web" if "web" in client_config else "installed"
    if client_type not in client_config:
        raise ValueError(f"{client_secrets_path} is not an OAuth client secrets file")

    client_config[client_type]["auth_uri"] = PARTNER_AUTH_URI.format(project_id=bare_project_id(project_id))
    return client_config


def token_from_file(token_path):
    """Return cached credentials, or None when no token has been saved yet."""
    if not os.path.exists(token_path):
        return None
    try:
        return Credentials.from_authorized_user_file(token_path, SCOPES)
    except ValueError as e:
        logger.warning(f"Ignoring unreadable token file {token_path}: {e}")
        return None


def save_token(token_path, credentials):
    logger.info(f"Saving credential file to: {token_path}")
    fd = os.open(token_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w') as f:
        f.write(credentials.to_json())


def get_token_from_web(client_config, input_func=input):
    """Run the authorization-code flow on the console and return new credentials."""
    flow = Flow.from_client_config(client_config, scopes=SCOPES, redirect_uri=REDIRECT_URI)
    auth_url, _ = flow.authorization_url(access_type="offline", prompt="consent")

    print("=" * 80)
    print("Go to the following link in your browser, allow access to your devices,")
    print("then paste the 'code' parameter of the page you are redirected to:")
    print()
    print(auth_url)
    print("=" * 80)

    code = input_func("Authorization code: ").strip()
    flow.fetch_token(code=code)
    return flow.credentials


def load_credentials(client_secrets_path, token_path, project_id, input_func=input):
    """
    Return valid SDM credentials, authorizing interactively if needed.

    Args:
        client_secrets_path: OAuth client JSON from the Cloud console
        token_path: Where the user's token is cached
        project_id: Device Access project id (bare or ``enterprises/<id>``)
        input_func: Reads the pasted authorization code

    Returns:
        google.oauth2.credentials.Credentials
    """
    credentials = token_from_file(token_path)

    if credentials is not None and not credentials.valid and credentials.refresh_token:
        try:
            logger.debug("Refreshing SDM API access token...")
            credentials.refresh(Request())
            save_token(token_path, credentials)
            logger.debug("SDM API access token refreshed successfully")
        except RefreshError as e:
            logger.warning(f"Cached SDM token could not be refreshed, re-authorizing: {e}")
            credentials = None

    if credentials is None or not credentials.valid:
        client_config = load_client_config(client_secrets_path, project_id)
        credentials = get_token_from_web(client_config, input_func=input_func)
        save_token(token_path, credentials)

    return credentials
