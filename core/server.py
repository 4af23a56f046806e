import logging
from importlib import metadata

from fastapi.responses import JSONResponse
from starlette.requests import Request

from fastmcp import FastMCP

from core.config import (
    get_transport_mode,
    set_transport_mode as _set_transport_mode,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

server = FastMCP(name="google_sheets")


def set_transport_mode(mode: str):
    """Sets the transport mode for the server."""
    _set_transport_mode(mode)
    logger.info(f"Transport: {mode}")


def get_server_version() -> str:
    try:
        return metadata.version("sheets-mcp")
    except metadata.PackageNotFoundError:
        return "dev"


@server.custom_route("/", methods=["GET"])
@server.custom_route("/health", methods=["GET"])
async def health_check(request: Request):
    return JSONResponse(
        {
            "status": "healthy",
            "service": "sheets-mcp",
            "version": get_server_version(),
            "transport": get_transport_mode(),
        }
    )
