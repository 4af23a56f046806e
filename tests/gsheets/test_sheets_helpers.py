"""
Unit tests for Google Sheets helper functions
"""

import pytest
from unittest.mock import Mock
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.utils import UserInputError
from gsheets.sheets_helpers import (
    _describe_dimension_span,
    _fetch_sheet_context,
    _index_to_column,
    _parse_json_list,
    _parse_sheet_id,
    _parse_values_matrix,
    _quote_sheet_title_for_a1,
    _select_sheet_by_id,
    _sheet_url,
)


@pytest.mark.parametrize(
    "index,expected",
    [(0, "A"), (25, "Z"), (26, "AA"), (51, "AZ"), (701, "ZZ"), (702, "AAA")],
)
def test_index_to_column(index, expected):
    """Test zero-based column indices convert to letters."""
    assert _index_to_column(index) == expected


def test_index_to_column_rejects_negative():
    """Test negative column indices are rejected."""
    with pytest.raises(UserInputError):
        _index_to_column(-1)


def test_quote_sheet_title():
    """Test sheet titles are quoted for A1 notation when needed."""
    assert _quote_sheet_title_for_a1("Sheet1") == "Sheet1"
    assert _quote_sheet_title_for_a1("Q1 Budget") == "'Q1 Budget'"
    assert _quote_sheet_title_for_a1("Bob's") == "'Bob''s'"


def test_describe_dimension_span():
    """Test labels for row and column spans."""
    assert _describe_dimension_span("ROWS", 0, 1) == "row 1"
    assert _describe_dimension_span("ROWS", 2, 5) == "rows 3-5"
    assert _describe_dimension_span("COLUMNS", 1, 2) == "column B"
    assert _describe_dimension_span("COLUMNS", 1, 4) == "columns B:D"


def test_parse_sheet_id():
    """Test sheet IDs are parsed from ints and digit strings."""
    assert _parse_sheet_id(5) == 5
    assert _parse_sheet_id(" 123 ") == 123
    for bad in (True, -1, "abc", "-3", 1.5):
        with pytest.raises(UserInputError):
            _parse_sheet_id(bad)


def test_select_sheet_by_id_lists_available_sheets():
    """Test the not-found error lists available sheets."""
    sheets = [
        {"properties": {"sheetId": 0, "title": "Sheet1"}},
        {"properties": {"sheetId": 42, "title": "Data"}},
    ]

    assert _select_sheet_by_id(sheets, 42)["properties"]["title"] == "Data"
    with pytest.raises(UserInputError) as exc_info:
        _select_sheet_by_id(sheets, 7)
    assert "Sheet1 (0), Data (42)" in str(exc_info.value)


def test_parse_json_list():
    """Test lists are accepted directly or as JSON strings."""
    assert _parse_json_list(None, "ids") is None
    assert _parse_json_list("[1, 2]", "ids") == [1, 2]
    assert _parse_json_list([3], "ids") == [3]
    with pytest.raises(UserInputError, match="Invalid JSON format for ids"):
        _parse_json_list("[1,", "ids")
    with pytest.raises(UserInputError, match="ids must be a list"):
        _parse_json_list('{"a": 1}', "ids")


def test_parse_values_matrix_requires_rows_as_lists():
    """Test every row of a values matrix must be a list."""
    assert _parse_values_matrix('[["a", 1]]') == [["a", 1]]
    with pytest.raises(UserInputError, match="row 1 must be a list"):
        _parse_values_matrix([["a"], "b"])


@pytest.mark.asyncio
async def test_fetch_sheet_context():
    """Test sheet context is built from one spreadsheets.get call."""
    mock_service = Mock()
    mock_service.spreadsheets.return_value.get.return_value.execute.return_value = {
        "properties": {"title": "Plan"},
        "sheets": [
            {
                "properties": {
                    "sheetId": 9,
                    "title": "Tasks",
                    "gridProperties": {"rowCount": 50, "columnCount": 8},
                }
            }
        ],
    }

    context = await _fetch_sheet_context(mock_service, "xyz", 9)

    assert context["spreadsheet_title"] == "Plan"
    assert context["spreadsheet_url"] == "https://docs.google.com/spreadsheets/d/xyz/edit"
    assert context["sheet_title"] == "Tasks"
    assert context["sheet_url"] == _sheet_url("xyz", 9)
    assert context["sheet_properties"]["gridProperties"]["rowCount"] == 50
