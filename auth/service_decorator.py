"""
Service injection decorator for Google API tools.

``@require_google_service("sheets", "sheets_write")`` builds an authenticated
client for the caller and passes it as the tool's first ``service`` argument.
The ``service`` parameter is removed from the exposed signature so FastMCP
never asks the client for it.
"""

import asyncio
import inspect
import logging
from functools import wraps
from typing import Dict, Optional

from fastmcp.exceptions import ToolError

from auth.google_auth import GoogleAuthenticationError, build_google_service
from auth.scopes import BASE_SCOPES, resolve_scope_group
from core.config import USER_GOOGLE_EMAIL

logger = logging.getLogger(__name__)

SERVICE_CONFIGS: Dict[str, Dict[str, str]] = {
    "sheets": {"service": "sheets", "version": "v4"},
    "drive": {"service": "drive", "version": "v3"},
}


def require_google_service(service_type: str, scopes: str, version: Optional[str] = None):
    """
    Decorator that injects an authenticated Google API service client.

    Args:
        service_type: Key into SERVICE_CONFIGS ("sheets" or "drive").
        scopes: Scope group name (e.g. "sheets_read") or a full scope URL.
        version: Optional API version override.
    """
    if service_type not in SERVICE_CONFIGS:
        raise ValueError(f"Unknown service type: {service_type}")

    config = SERVICE_CONFIGS[service_type]
    service_name = config["service"]
    service_version = version or config["version"]
    resolved_scopes = [resolve_scope_group(scopes)]

    def decorator(func):
        original_sig = inspect.signature(func)
        params = list(original_sig.parameters.values())
        if not params or params[0].name != "service":
            raise TypeError(
                f"@require_google_service requires '{func.__name__}' to take 'service' as its first parameter"
            )
        wrapper_sig = original_sig.replace(parameters=params[1:])

        @wraps(func)
        async def wrapper(*args, **kwargs):
            bound = wrapper_sig.bind_partial(*args, **kwargs)
            user_google_email = bound.arguments.get("user_google_email") or USER_GOOGLE_EMAIL
            if not user_google_email:
                raise ToolError(
                    f"'{func.__name__}' requires user_google_email (or USER_GOOGLE_EMAIL in the environment)."
                )
            if "user_google_email" in wrapper_sig.parameters:
                bound.arguments["user_google_email"] = user_google_email

            try:
                service = await asyncio.to_thread(
                    build_google_service,
                    service_name,
                    service_version,
                    user_google_email,
                    BASE_SCOPES + resolved_scopes,
                )
            except GoogleAuthenticationError as e:
                logger.warning(f"[{func.__name__}] Authentication unavailable: {e}")
                raise ToolError(str(e)) from e

            return await func(service, *bound.args, **bound.kwargs)

        wrapper.__signature__ = wrapper_sig
        wrapper._required_google_scopes = resolved_scopes
        return wrapper

    return decorator
