"""
Shared configuration for the Google Sheets MCP server.

Values are read from the environment (optionally populated from a .env file by
main.py) so that every module sees the same settings.
"""

import os

# Default user email, used when a tool call omits user_google_email
USER_GOOGLE_EMAIL = os.getenv("USER_GOOGLE_EMAIL", None)

# Upper bound on the number of structural edits accepted in one dimension batch
DEFAULT_MAX_DIMENSION_OPERATIONS = 1000

_current_transport_mode = "stdio"


def set_transport_mode(mode: str):
    """Set the current transport mode ("stdio" or "streamable-http")."""
    global _current_transport_mode
    _current_transport_mode = mode


def get_transport_mode() -> str:
    """Get the current transport mode."""
    return _current_transport_mode


def _parse_bool_env(value: str) -> bool:
    """Parse environment variable string to boolean."""
    return value.strip().lower() in ("1", "true", "yes", "on")


def is_stateless_mode() -> bool:
    """Stateless mode disables file-based logging and the credentials directory check."""
    return _parse_bool_env(os.getenv("WORKSPACE_MCP_STATELESS_MODE", "false"))


def get_credentials_dir() -> str:
    """
    Resolve the directory holding stored authorized-user tokens.

    Checks WORKSPACE_MCP_CREDENTIALS_DIR, then GOOGLE_MCP_CREDENTIALS_DIR, then
    falls back to ~/.google_workspace_mcp/credentials.
    """
    workspace_creds_dir = os.getenv("WORKSPACE_MCP_CREDENTIALS_DIR")
    if workspace_creds_dir:
        return os.path.expanduser(workspace_creds_dir)
    google_creds_dir = os.getenv("GOOGLE_MCP_CREDENTIALS_DIR")
    if google_creds_dir:
        return os.path.expanduser(google_creds_dir)
    return os.path.join(os.path.expanduser("~"), ".google_workspace_mcp", "credentials")


def get_service_account_file() -> str | None:
    """Path to a service account key file, if one is configured."""
    path = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE", "").strip()
    return os.path.expanduser(path) if path else None


def is_service_account_impersonation_enabled() -> bool:
    """Whether service account credentials should act on behalf of the requesting user."""
    return _parse_bool_env(os.getenv("GOOGLE_SERVICE_ACCOUNT_IMPERSONATE", "false"))


def get_max_dimension_operations() -> int:
    """Maximum number of operations accepted by batch_update_dimensions."""
    raw = os.getenv("SHEETS_MCP_MAX_DIMENSION_OPERATIONS", "").strip()
    if not raw:
        return DEFAULT_MAX_DIMENSION_OPERATIONS
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_DIMENSION_OPERATIONS
    return value if value > 0 else DEFAULT_MAX_DIMENSION_OPERATIONS
