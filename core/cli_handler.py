"""
CLI Handler for the Google Sheets MCP server

Invokes registered tools directly from the command line without running the
server transport.

Usage:
    sheets-mcp --cli                          # List available tools
    sheets-mcp --cli <tool_name> --help       # Show tool details
    sheets-mcp --cli <tool_name> --args '{"key": "value"}'
    echo '{"key": "value"}' | sheets-mcp --cli <tool_name>
"""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, List

from core.config import set_transport_mode

logger = logging.getLogger(__name__)


def get_registered_tools(server) -> Dict[str, Any]:
    """Map tool names to the FastMCP Tool objects registered on the server."""
    tool_manager = getattr(server, "_tool_manager", None)
    return dict(getattr(tool_manager, "_tools", {}) or {})


def _first_doc_line(tool) -> str:
    description = getattr(tool, "description", None)
    if not description:
        fn = getattr(tool, "fn", None)
        description = (fn.__doc__ if fn else None) or ""
    for line in description.strip().split("\n"):
        line = line.strip()
        if line:
            return line
    return "(no description)"


def list_tools(server, output_format: str = "text") -> str:
    tools = get_registered_tools(server)

    if output_format == "json":
        return json.dumps(
            {
                "tools": [
                    {"name": name, "description": _first_doc_line(tool)}
                    for name, tool in sorted(tools.items())
                ]
            },
            indent=2,
        )

    lines = [f"Available tools ({len(tools)}):", ""]
    for name, tool in sorted(tools.items()):
        first_line = _first_doc_line(tool)
        if len(first_line) > 70:
            first_line = first_line[:67] + "..."
        lines.append(f"  {name}")
        lines.append(f"    {first_line}")
    lines.append("")
    lines.append("Use --cli <tool_name> --help for detailed tool information")
    return "\n".join(lines)


def show_tool_help(server, tool_name: str) -> str:
    tools = get_registered_tools(server)
    if tool_name not in tools:
        available = ", ".join(sorted(tools.keys()))
        return f"Error: Tool '{tool_name}' not found.\n\nAvailable tools: {available}"

    tool = tools[tool_name]
    fn = getattr(tool, "fn", None)
    docstring = (fn.__doc__ if fn else None) or "(no documentation)"
    lines = [f"Tool: {tool_name}", "=" * (len(tool_name) + 6), "", docstring.strip(), ""]

    schema = getattr(tool, "parameters", None)
    if isinstance(schema, dict) and schema.get("properties"):
        required = set(schema.get("required", []))
        lines.append("Parameters:")
        for name, prop in schema["properties"].items():
            req = "(required)" if name in required else "(optional)"
            lines.append(f"  {name}: {prop.get('type', 'any')} {req}")

    lines.extend(["", "Example usage:", f"  sheets-mcp --cli {tool_name} --args '{{\"param\": \"value\"}}'"])
    return "\n".join(lines)


async def run_tool(server, tool_name: str, args: Dict[str, Any]) -> str:
    """Execute a tool with the provided arguments and return its output as text."""
    tools = get_registered_tools(server)
    if tool_name not in tools:
        raise ValueError(f"Tool '{tool_name}' not found")

    fn = getattr(tools[tool_name], "fn", None)
    if fn is None:
        raise ValueError(f"Tool '{tool_name}' has no callable function")

    logger.debug(f"[CLI] Executing tool: {tool_name} with args: {list(args.keys())}")
    if asyncio.iscoroutinefunction(fn):
        result = await fn(**args)
    else:
        result = fn(**args)

    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, default=str)


def parse_cli_args(args: List[str]) -> Dict[str, Any]:
    """
    Parse the arguments that follow --cli.

    Returns:
        Dictionary with command ("list", "help" or "run"), tool_name,
        tool_args and output_format.
    """
    result = {
        "command": "list",
        "tool_name": None,
        "tool_args": {},
        "output_format": "text",
    }

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("list", "-l", "--list"):
            result["command"] = "list"
        elif arg in ("--json", "-j"):
            result["output_format"] = "json"
        elif arg in ("help", "--help", "-h"):
            if result["tool_name"]:
                result["command"] = "help"
            elif i + 1 < len(args) and not args[i + 1].startswith("-"):
                result["tool_name"] = args[i + 1]
                result["command"] = "help"
                i += 1
        elif arg in ("--args", "-a") and i + 1 < len(args):
            try:
                result["tool_args"] = json.loads(args[i + 1])
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in --args: {e}") from e
            i += 1
        elif not arg.startswith("-") and not result["tool_name"]:
            result["tool_name"] = arg
            result["command"] = "run"
        i += 1

    return result


def read_stdin_args() -> Dict[str, Any]:
    """Read JSON arguments from stdin unless it is a TTY."""
    if sys.stdin.isatty():
        return {}
    stdin_data = sys.stdin.read().strip()
    if not stdin_data:
        return {}
    try:
        return json.loads(stdin_data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON from stdin: {e}") from e


async def handle_cli_mode(server, cli_args: List[str]) -> int:
    """
    Main entry point for CLI mode.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    set_transport_mode("stdio")

    try:
        parsed = parse_cli_args(cli_args)

        if parsed["command"] == "list":
            print(list_tools(server, parsed["output_format"]))
            return 0

        if parsed["command"] == "help":
            print(show_tool_help(server, parsed["tool_name"]))
            return 0

        args = read_stdin_args()
        args.update(parsed["tool_args"])
        print(await run_tool(server, parsed["tool_name"], args))
        return 0
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"[CLI] Error: {e}", exc_info=True)
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1
