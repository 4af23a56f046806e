"""
Unit tests for the CLI handler
"""

import json
import pytest
from unittest.mock import Mock
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.cli_handler import list_tools, parse_cli_args, run_tool


def test_parse_defaults_to_list():
    assert parse_cli_args([]) == {
        "command": "list",
        "tool_name": None,
        "tool_args": {},
        "output_format": "text",
    }


def test_parse_tool_with_args():
    parsed = parse_cli_args(
        ["batch_update_dimensions", "--args", '{"spreadsheet_id": "abc", "sheet_id": 0}']
    )

    assert parsed["command"] == "run"
    assert parsed["tool_name"] == "batch_update_dimensions"
    assert parsed["tool_args"] == {"spreadsheet_id": "abc", "sheet_id": 0}


def test_parse_tool_help():
    assert parse_cli_args(["move_dimension", "--help"])["command"] == "help"
    parsed = parse_cli_args(["help", "rename_sheet"])
    assert parsed["command"] == "help"
    assert parsed["tool_name"] == "rename_sheet"


def test_parse_rejects_invalid_json():
    with pytest.raises(ValueError, match="Invalid JSON in --args"):
        parse_cli_args(["rename_sheet", "--args", "{oops"])


def _fake_server(tools):
    server = Mock()
    server._tool_manager._tools = tools
    return server


def test_list_tools_json():
    tool = Mock()
    tool.description = "Renames a sheet.\n\nMore text."
    server = _fake_server({"rename_sheet": tool})

    assert json.loads(list_tools(server, "json")) == {
        "tools": [{"name": "rename_sheet", "description": "Renames a sheet."}]
    }


@pytest.mark.asyncio
async def test_run_tool_serializes_dict_results():
    async def fn(**kwargs):
        return {"totalOperations": 1, "echo": kwargs}

    tool = Mock()
    tool.fn = fn
    server = _fake_server({"batch_update_dimensions": tool})

    output = await run_tool(server, "batch_update_dimensions", {"sheet_id": 0})

    assert json.loads(output) == {"totalOperations": 1, "echo": {"sheet_id": 0}}


@pytest.mark.asyncio
async def test_run_tool_unknown_name():
    server = _fake_server({})

    with pytest.raises(ValueError, match="Tool 'nope' not found"):
        await run_tool(server, "nope", {})
