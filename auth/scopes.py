"""
Google OAuth scope definitions for the Sheets MCP server.

Tools declare a scope group (e.g. "sheets_write") through
@require_google_service; this module resolves groups to scope URLs and tracks
read-only mode.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)

# Base OAuth scopes
USERINFO_EMAIL_SCOPE = "https://www.googleapis.com/auth/userinfo.email"
OPENID_SCOPE = "openid"

# Google Sheets API scopes
SHEETS_READONLY_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
SHEETS_WRITE_SCOPE = "https://www.googleapis.com/auth/spreadsheets"

# Google Drive API scopes (spreadsheet discovery)
DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"

BASE_SCOPES = [USERINFO_EMAIL_SCOPE, OPENID_SCOPE]

SCOPE_GROUPS = {
    "sheets_read": SHEETS_READONLY_SCOPE,
    "sheets_write": SHEETS_WRITE_SCOPE,
    "drive_read": DRIVE_READONLY_SCOPE,
    "drive": DRIVE_SCOPE,
}

READ_ONLY_SCOPES = [SHEETS_READONLY_SCOPE, DRIVE_READONLY_SCOPE]

_read_only_mode = False


def set_read_only(enabled: bool):
    """Enable or disable read-only mode (only read-only scopes are requested)."""
    global _read_only_mode
    _read_only_mode = enabled
    logger.info(f"Read-only mode set to: {enabled}")


def is_read_only_mode() -> bool:
    return _read_only_mode


def get_all_read_only_scopes() -> List[str]:
    """All scopes that are considered safe in read-only mode."""
    return list(set(BASE_SCOPES + READ_ONLY_SCOPES))


def resolve_scope_group(scope_group: str) -> str:
    """Translate a scope group name into a scope URL; full URLs pass through unchanged."""
    if scope_group in SCOPE_GROUPS:
        return SCOPE_GROUPS[scope_group]
    if scope_group.startswith("https://") or scope_group == OPENID_SCOPE:
        return scope_group
    raise ValueError(f"Unknown scope group: {scope_group}")
