import asyncio
import functools
import logging
import os
import ssl
from typing import Optional

from fastmcp.exceptions import ToolError
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from core.config import get_credentials_dir

logger = logging.getLogger(__name__)


class UserInputError(Exception):
    """Raised for user-facing input/validation errors that shouldn't be retried."""


API_ENABLEMENT_LINKS = {
    "sheets": "https://console.cloud.google.com/flows/enableapi?apiid=sheets.googleapis.com",
    "drive": "https://console.cloud.google.com/flows/enableapi?apiid=drive.googleapis.com",
}


def check_credentials_directory_permissions(credentials_dir: Optional[str] = None):
    """
    Check that the credentials directory exists (creating it if needed) and is writable.

    Raises:
        PermissionError: If the directory is not readable/writable.
        OSError: If the directory cannot be created.
    """
    if credentials_dir is None:
        credentials_dir = get_credentials_dir()

    if not os.path.exists(credentials_dir):
        os.makedirs(credentials_dir, mode=0o700, exist_ok=True)
        logger.info(f"Created credentials directory: {credentials_dir}")

    test_file = os.path.join(credentials_dir, ".permission_test")
    try:
        with open(test_file, "w") as f:
            f.write("test")
        os.remove(test_file)
    except (PermissionError, OSError) as e:
        raise PermissionError(
            f"Credentials directory {credentials_dir} is not writable: {e}"
        ) from e

    if not os.access(credentials_dir, os.R_OK):
        raise PermissionError(f"Credentials directory {credentials_dir} is not readable")

    logger.debug(f"Credentials directory permissions OK: {credentials_dir}")


def get_api_enablement_message(error_details: str, service_type: Optional[str]) -> str:
    """Build a helpful message when a Google API has not been enabled for the project."""
    link = API_ENABLEMENT_LINKS.get(service_type or "")
    message = (
        f"The Google {(service_type or 'API').title()} API is not enabled for this project."
    )
    if link:
        message += f" Enable it here: {link}"
    return f"{message}\n\nDetails: {error_details}"


def handle_http_errors(
    tool_name: str, is_read_only: bool = False, service_type: Optional[str] = None
):
    """
    A decorator to handle Google API HttpErrors and transient SSL errors in a standardized way.

    It wraps a tool function, catches HttpError, logs a detailed error message,
    and raises a ToolError with a user-friendly message.

    If is_read_only is True, it will also catch ssl.SSLError and retry with
    exponential backoff. After exhausting retries, it raises a ToolError.

    Args:
        tool_name (str): The name of the tool being decorated (e.g., 'read_sheet_values').
        is_read_only (bool): If True, the operation is considered safe to retry on
                             transient network errors. Defaults to False.
        service_type (str): Optional. The Google service type (e.g., 'sheets', 'drive').
                           Used to provide API enablement links when an API is disabled.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            max_retries = 3
            base_delay = 1

            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except ssl.SSLError as e:
                    if is_read_only and attempt < max_retries - 1:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            f"SSL error in {tool_name} on attempt {attempt + 1}: {e}. Retrying in {delay} seconds..."
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"SSL error in {tool_name} on final attempt: {e}. Raising exception."
                        )
                        raise ToolError(
                            f"A transient SSL error occurred in '{tool_name}' after {attempt + 1} attempts. "
                            "This is likely a temporary network or certificate issue. Please try again shortly."
                        ) from e
                except UserInputError as e:
                    message = f"Input error in {tool_name}: {e}"
                    logger.warning(message)
                    raise ToolError(message) from e
                except RefreshError as e:
                    user_google_email = kwargs.get("user_google_email", "N/A")
                    message = (
                        f"Authentication error in {tool_name}: {e}. The stored credentials for "
                        f"{user_google_email} could not be refreshed and must be re-issued."
                    )
                    logger.error(message)
                    raise ToolError(message) from e
                except HttpError as error:
                    user_google_email = kwargs.get("user_google_email", "N/A")
                    error_details = str(error)

                    if (
                        error.resp.status == 403
                        and "accessNotConfigured" in error_details
                    ):
                        message = get_api_enablement_message(
                            error_details, service_type
                        )
                        logger.error(f"API disabled in {tool_name}: {message}")
                    elif error.resp.status in (401, 403):
                        message = (
                            f"API error in {tool_name}: {error}. "
                            f"You might need to re-authenticate for user '{user_google_email}' "
                            f"or grant the missing {service_type or 'Google'} scopes."
                        )
                        logger.error(message, exc_info=True)
                    else:
                        message = f"API error in {tool_name}: {error}"
                        logger.error(message, exc_info=True)
                    raise ToolError(message) from error
                except ToolError:
                    raise
                except Exception as e:
                    message = f"An unexpected error occurred in {tool_name}: {e}"
                    logger.exception(message)
                    raise ToolError(message) from e

        return wrapper

    return decorator
