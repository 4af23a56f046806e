"""
Tool Registry for read-only filtering

Tracks every tool registered through @server.tool() and, in read-only mode,
removes the tools whose required scopes are not all read-only.
"""

import logging
from typing import Callable, List

from auth.scopes import is_read_only_mode, get_all_read_only_scopes

logger = logging.getLogger(__name__)


def wrap_server_tool_method(server):
    """
    Track tool registrations so they can be filtered post-registration.
    """
    original_tool = server.tool
    server._tracked_tools = []

    def tracking_tool(*args, **kwargs):
        original_decorator = original_tool(*args, **kwargs)

        def wrapper_decorator(func: Callable) -> Callable:
            server._tracked_tools.append(func.__name__)
            return original_decorator(func)

        return wrapper_decorator

    server.tool = tracking_tool


def _required_scopes_for(tool_obj) -> List[str]:
    # FastMCP wraps functions in Tool objects; the decorated function lives on .fn
    func_to_check = getattr(tool_obj, "fn", tool_obj)
    return getattr(func_to_check, "_required_google_scopes", [])


def filter_server_tools(server) -> int:
    """Remove write tools from the server when read-only mode is enabled.

    Returns:
        Number of tools removed.
    """
    if not is_read_only_mode():
        return 0

    tool_manager = getattr(server, "_tool_manager", None)
    tool_registry = getattr(tool_manager, "_tools", None)
    if tool_registry is None:
        logger.warning("Read-only mode: tool registry not accessible, no tools filtered")
        return 0

    allowed_scopes = set(get_all_read_only_scopes())
    tools_to_remove = set()
    for tool_name, tool_obj in tool_registry.items():
        required_scopes = _required_scopes_for(tool_obj)
        if required_scopes and not all(
            scope in allowed_scopes for scope in required_scopes
        ):
            logger.info(
                f"Read-only mode: Disabling tool '{tool_name}' (requires write scopes: {required_scopes})"
            )
            tools_to_remove.add(tool_name)

    for tool_name in tools_to_remove:
        del tool_registry[tool_name]

    if tools_to_remove:
        logger.info(
            f"Tool filtering: removed {len(tools_to_remove)} tools, {len(tool_registry)} remain. Mode: Read-Only"
        )
    return len(tools_to_remove)
