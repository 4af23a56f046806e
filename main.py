import argparse
import logging
import os
import socket
import sys
from dotenv import load_dotenv

# Load .env before importing modules that read configuration at import time
dotenv_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), ".env")
load_dotenv(dotenv_path=dotenv_path)

from core.config import (  # noqa: E402
    get_credentials_dir,
    get_max_dimension_operations,
    get_service_account_file,
    is_service_account_impersonation_enabled,
    is_stateless_mode,
)
from core.log_formatter import EnhancedLogFormatter, configure_file_logging  # noqa: E402
from core.utils import check_credentials_directory_permissions  # noqa: E402
from core.server import server, set_transport_mode, get_server_version  # noqa: E402
from core.tool_registry import wrap_server_tool_method, filter_server_tools  # noqa: E402

_CLI_MODE = "--cli" in sys.argv

# Suppress googleapiclient discovery cache warning
logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

# Suppress httpx/httpcore INFO logs that leak access tokens in URLs
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

configure_file_logging()


def safe_print(text):
    # Don't print in CLI mode - we want clean output
    if _CLI_MODE:
        return

    # Printing to stderr under an MCP client (no TTY) can break JSON parsing
    if not sys.stderr.isatty():
        logger.debug(f"[MCP Server] {text}")
        return

    try:
        print(text, file=sys.stderr)
    except UnicodeEncodeError:
        print(text.encode("ascii", errors="replace").decode(), file=sys.stderr)


def configure_safe_logging():
    class SafeEnhancedFormatter(EnhancedLogFormatter):
        """Enhanced ASCII formatter with additional Windows safety."""

        def format(self, record):
            try:
                return super().format(record)
            except UnicodeEncodeError:
                service_prefix = self._get_ascii_prefix(record.name, record.levelname)
                safe_msg = (
                    str(record.getMessage())
                    .encode("ascii", errors="replace")
                    .decode("ascii")
                )
                return f"{service_prefix} {safe_msg}"

    # Only console handlers; file handlers keep the detailed format
    for handler in logging.root.handlers:
        if isinstance(handler, logging.StreamHandler) and getattr(
            handler.stream, "name", None
        ) in ["<stderr>", "<stdout>"]:
            handler.setFormatter(SafeEnhancedFormatter(use_colors=True))


def main():
    """
    Main entry point for the Google Sheets MCP server.
    Uses FastMCP's native streamable-http transport.
    Supports CLI mode for direct tool invocation without running the server.
    """
    if _CLI_MODE:
        # Keep CLI output clean
        logging.getLogger().setLevel(logging.ERROR)
        logging.getLogger("auth").setLevel(logging.ERROR)
        logging.getLogger("core").setLevel(logging.ERROR)
        logging.getLogger("gsheets").setLevel(logging.ERROR)

    configure_safe_logging()

    parser = argparse.ArgumentParser(description="Google Sheets MCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="stdio",
        help="Transport mode: stdio (default) or streamable-http",
    )
    parser.add_argument(
        "--read-only",
        action="store_true",
        help="Run in read-only mode - requests only read-only scopes and disables tools requiring write permissions",
    )
    parser.add_argument(
        "--cli",
        nargs=argparse.REMAINDER,
        metavar="COMMAND",
        help="Run in CLI mode for direct tool invocation. Use --cli to list tools, --cli <tool_name> to run a tool.",
    )
    args = parser.parse_args()

    if args.cli is not None:
        args.cli = [a for a in args.cli if a]

    port = int(os.getenv("PORT", os.getenv("WORKSPACE_MCP_PORT", 8000)))
    base_uri = os.getenv("WORKSPACE_MCP_BASE_URI", "http://localhost")
    host = os.getenv("WORKSPACE_MCP_HOST", "0.0.0.0")

    safe_print("🔧 Google Sheets MCP Server")
    safe_print("=" * 35)
    safe_print("📋 Server Information:")
    safe_print(f"   📦 Version: {get_server_version()}")
    safe_print(f"   🌐 Transport: {args.transport}")
    if args.transport == "streamable-http":
        safe_print(f"   🔗 URL: {base_uri}:{port}")
    if args.read_only:
        safe_print("   🔒 Read-Only: Enabled")
    safe_print(f"   🐍 Python: {sys.version.split()[0]}")
    safe_print("")

    service_account_file = get_service_account_file()
    config_vars = {
        "USER_GOOGLE_EMAIL": os.getenv("USER_GOOGLE_EMAIL", "Not Set"),
        "CREDENTIALS_DIR": get_credentials_dir(),
        "GOOGLE_SERVICE_ACCOUNT_FILE": service_account_file or "Not Set",
        "GOOGLE_SERVICE_ACCOUNT_IMPERSONATE": str(
            is_service_account_impersonation_enabled()
        ).lower(),
        "WORKSPACE_MCP_STATELESS_MODE": str(is_stateless_mode()).lower(),
        "SHEETS_MCP_MAX_DIMENSION_OPERATIONS": get_max_dimension_operations(),
    }
    safe_print("⚙️ Active Configuration:")
    for key, value in config_vars.items():
        safe_print(f"   - {key}: {value}")
    safe_print("")

    wrap_server_tool_method(server)

    from auth.scopes import set_read_only

    if args.read_only:
        set_read_only(True)

    # Import tool module to register tools with the MCP server via decorators
    import gsheets.sheets_tools  # noqa: F401

    safe_print(f"🛠️  Registered {len(server._tracked_tools)} Sheets tools")
    removed = filter_server_tools(server)
    if removed:
        safe_print(f"   🔒 {removed} write tools disabled (read-only)")
    safe_print("")

    if args.cli is not None:
        import asyncio
        from core.cli_handler import handle_cli_mode

        exit_code = asyncio.run(handle_cli_mode(server, args.cli))
        sys.exit(exit_code)

    # Service accounts don't need a writable token directory
    if is_stateless_mode() or service_account_file:
        safe_print("🔍 Skipping credentials directory check")
        safe_print("")
    else:
        try:
            safe_print("🔍 Checking credentials directory permissions...")
            check_credentials_directory_permissions()
            safe_print("✅ Credentials directory permissions verified")
            safe_print("")
        except (PermissionError, OSError) as e:
            safe_print(f"❌ Credentials directory permission check failed: {e}")
            logger.error(f"Failed credentials directory permission check: {e}")
            sys.exit(1)

    try:
        set_transport_mode(args.transport)

        if args.transport == "streamable-http":
            safe_print(f"🚀 Starting HTTP server on {base_uri}:{port}")
        else:
            safe_print("🚀 Starting STDIO server")
        safe_print("✅ Ready for MCP connections")
        safe_print("")

        if args.transport == "streamable-http":
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.bind((host, port))
            except OSError as e:
                safe_print(f"Socket error: {e}")
                safe_print(
                    f"❌ Port {port} is already in use. Cannot start HTTP server."
                )
                sys.exit(1)

            server.run(transport="streamable-http", host=host, port=port)
        else:
            server.run()
    except KeyboardInterrupt:
        safe_print("\n👋 Server shutdown requested")
        sys.exit(0)
    except Exception as e:
        safe_print(f"\n❌ Server error: {e}")
        logger.error(f"Unexpected error running server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
