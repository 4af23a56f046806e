"""
Credential loading for Google API clients.

Two credential sources are supported:

1. A service account key file (GOOGLE_SERVICE_ACCOUNT_FILE), optionally
   impersonating the requesting user via domain-wide delegation.
2. Authorized-user tokens stored as ``<email>.json`` in the credentials
   directory. Expired tokens are refreshed and written back.

Obtaining the initial authorized-user token is outside this server.
"""

import json
import logging
import os
from typing import List, Optional

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from core.config import (
    get_credentials_dir,
    get_service_account_file,
    is_service_account_impersonation_enabled,
)

logger = logging.getLogger(__name__)


class GoogleAuthenticationError(Exception):
    """Raised when no usable credentials exist for a user."""


def _credentials_path(user_google_email: str, credentials_dir: Optional[str]) -> str:
    return os.path.join(credentials_dir or get_credentials_dir(), f"{user_google_email}.json")


def _save_credentials(credentials: Credentials, path: str):
    """Persist refreshed authorized-user credentials."""
    try:
        with open(path, "w") as f:
            f.write(credentials.to_json())
        os.chmod(path, 0o600)
        logger.debug(f"Saved refreshed credentials to {path}")
    except OSError as e:
        logger.warning(f"Could not save refreshed credentials to {path}: {e}")


def load_user_credentials(
    user_google_email: str,
    required_scopes: List[str],
    credentials_dir: Optional[str] = None,
) -> Credentials:
    """
    Load stored authorized-user credentials, refreshing them if expired.

    Raises:
        GoogleAuthenticationError: If no token exists, it lacks required scopes,
            or it cannot be refreshed.
    """
    path = _credentials_path(user_google_email, credentials_dir)
    if not os.path.exists(path):
        raise GoogleAuthenticationError(
            f"No stored credentials for {user_google_email}. Place an authorized-user "
            f"token at {path} or configure GOOGLE_SERVICE_ACCOUNT_FILE."
        )

    with open(path) as f:
        info = json.load(f)
    credentials = Credentials.from_authorized_user_info(info)

    granted = set(credentials.scopes or [])
    missing = [scope for scope in required_scopes if scope not in granted]
    if granted and missing:
        raise GoogleAuthenticationError(
            f"Stored credentials for {user_google_email} are missing scopes: {', '.join(missing)}"
        )

    if not credentials.valid:
        if credentials.expired and credentials.refresh_token:
            logger.info(f"[load_user_credentials] Refreshing token for {user_google_email}")
            credentials.refresh(Request())
            _save_credentials(credentials, path)
        else:
            raise GoogleAuthenticationError(
                f"Stored credentials for {user_google_email} are invalid and cannot be refreshed."
            )

    return credentials


def load_service_account_credentials(
    key_file: str, required_scopes: List[str], user_google_email: Optional[str] = None
) -> service_account.Credentials:
    """Load service account credentials, delegating to the user when impersonation is enabled."""
    credentials = service_account.Credentials.from_service_account_file(
        key_file, scopes=required_scopes
    )
    if user_google_email and is_service_account_impersonation_enabled():
        credentials = credentials.with_subject(user_google_email)
    return credentials


def get_credentials(
    user_google_email: str,
    required_scopes: List[str],
    credentials_dir: Optional[str] = None,
):
    """Resolve credentials for a user from the configured source."""
    key_file = get_service_account_file()
    if key_file:
        logger.debug(f"[get_credentials] Using service account key file {key_file}")
        return load_service_account_credentials(
            key_file, required_scopes, user_google_email
        )
    return load_user_credentials(user_google_email, required_scopes, credentials_dir)


def build_google_service(
    service_name: str, version: str, user_google_email: str, required_scopes: List[str]
):
    """Build a googleapiclient Resource for the given API with the user's credentials."""
    credentials = get_credentials(user_google_email, required_scopes)
    return build(service_name, version, credentials=credentials, cache_discovery=False)
