"""
Enhanced Log Formatter for the Google Sheets MCP server

Provides ASCII service prefixes and optional ANSI colors for console output,
plus an optional debug log file.
"""

import logging
import os

from core.config import is_stateless_mode


class EnhancedLogFormatter(logging.Formatter):
    """Custom log formatter that adds ASCII prefixes and optional colors to log messages."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
    }

    def __init__(self, use_colors: bool = True, *args, **kwargs):
        """
        Initialize the formatter.

        Args:
            use_colors: Whether to use ANSI colors in the output.
        """
        super().__init__(*args, **kwargs)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        service_prefix = self._get_ascii_prefix(record.name, record.levelname)
        formatted_msg = self._enhance_message(record.getMessage())

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            reset = self.COLORS["RESET"]
            return f"{color}{service_prefix}{reset} {formatted_msg}"
        return f"{service_prefix} {formatted_msg}"

    @staticmethod
    def _get_ascii_prefix(logger_name: str, level_name: str) -> str:
        """Get ASCII-safe prefix for a logger name, falling back to the level name."""
        top_level = logger_name.split(".", 1)[0]
        ascii_prefixes = {
            "gsheets": "[SHEETS]",
            "core": "[CORE]",
            "auth": "[AUTH]",
            "main": "[MAIN]",
            "googleapiclient": "[GOOGLE]",
        }
        return ascii_prefixes.get(top_level, f"[{level_name}]")

    @staticmethod
    def _enhance_message(message: str) -> str:
        """Collapse redundant whitespace so multi-line API errors stay on one console line."""
        return " ".join(message.split()) if "\n" in message else message


def configure_file_logging(logger_name: str = None) -> bool:
    """
    Add a detailed debug file handler to the root (or named) logger.

    Skipped in stateless mode, where no files may be written.

    Returns:
        True if file logging was configured, False otherwise.
    """
    if is_stateless_mode():
        logging.getLogger(logger_name).debug(
            "File logging disabled in stateless mode"
        )
        return False

    target_logger = logging.getLogger(logger_name)
    try:
        log_file_dir = os.path.dirname(os.path.abspath(__file__))
        log_file_path = os.path.join(
            os.path.dirname(log_file_dir), "mcp_server_debug.log"
        )

        file_handler = logging.FileHandler(log_file_path, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(process)d - %(threadName)s "
            "[%(module)s.%(funcName)s:%(lineno)d] - %(message)s"
        )
        file_handler.setFormatter(file_formatter)
        target_logger.addHandler(file_handler)

        target_logger.debug(f"Detailed file logging configured to: {log_file_path}")
        return True
    except OSError as e:
        target_logger.warning(f"Could not set up file logging: {e}")
        return False
