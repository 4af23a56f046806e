"""
Unit tests for the handle_http_errors decorator
"""

import pytest
import ssl
import sys
import os

import httplib2
from fastmcp.exceptions import ToolError
from googleapiclient.errors import HttpError

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.utils import UserInputError, handle_http_errors


def make_http_error(status, message):
    resp = httplib2.Response({"status": status})
    content = ('{"error": {"message": "%s"}}' % message).encode("utf-8")
    return HttpError(resp, content)


@pytest.mark.asyncio
async def test_passes_through_return_value():
    @handle_http_errors("demo_tool")
    async def tool(user_google_email):
        return {"ok": True}

    assert await tool(user_google_email="a@example.com") == {"ok": True}


@pytest.mark.asyncio
async def test_user_input_error_becomes_tool_error():
    @handle_http_errors("demo_tool")
    async def tool():
        raise UserInputError("bad sheet_id")

    with pytest.raises(ToolError, match="Input error in demo_tool: bad sheet_id"):
        await tool()


@pytest.mark.asyncio
async def test_http_error_becomes_api_error():
    @handle_http_errors("demo_tool", service_type="sheets")
    async def tool(user_google_email):
        raise make_http_error(400, "Invalid requests[0]")

    with pytest.raises(ToolError, match="API error in demo_tool"):
        await tool(user_google_email="a@example.com")


@pytest.mark.asyncio
async def test_auth_http_error_mentions_user():
    @handle_http_errors("demo_tool", service_type="sheets")
    async def tool(user_google_email):
        raise make_http_error(403, "The caller does not have permission")

    with pytest.raises(ToolError) as exc_info:
        await tool(user_google_email="a@example.com")

    assert "re-authenticate for user 'a@example.com'" in str(exc_info.value)


@pytest.mark.asyncio
async def test_disabled_api_gets_enablement_link():
    @handle_http_errors("demo_tool", service_type="sheets")
    async def tool():
        raise make_http_error(403, "accessNotConfigured: Sheets API has not been used")

    with pytest.raises(ToolError, match="sheets.googleapis.com"):
        await tool()


@pytest.mark.asyncio
async def test_unexpected_error_is_wrapped():
    @handle_http_errors("demo_tool")
    async def tool():
        raise KeyError("replies")

    with pytest.raises(ToolError, match="An unexpected error occurred in demo_tool"):
        await tool()


@pytest.mark.asyncio
async def test_tool_error_is_not_rewrapped():
    @handle_http_errors("demo_tool")
    async def tool():
        raise ToolError("already friendly")

    with pytest.raises(ToolError, match="^already friendly$"):
        await tool()


@pytest.mark.asyncio
async def test_read_only_tools_retry_ssl_errors(monkeypatch):
    sleeps = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr("core.utils.asyncio.sleep", fake_sleep)
    attempts = []

    @handle_http_errors("demo_tool", is_read_only=True)
    async def tool():
        attempts.append(1)
        if len(attempts) < 3:
            raise ssl.SSLError("handshake")
        return "done"

    assert await tool() == "done"
    assert sleeps == [1, 2]


@pytest.mark.asyncio
async def test_write_tools_do_not_retry_ssl_errors():
    attempts = []

    @handle_http_errors("demo_tool")
    async def tool():
        attempts.append(1)
        raise ssl.SSLError("handshake")

    with pytest.raises(ToolError, match="transient SSL error"):
        await tool()
    assert len(attempts) == 1
