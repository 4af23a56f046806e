"""
Unit tests for the batch_update_dimensions tool implementation
"""

import pytest
from unittest.mock import Mock
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.utils import UserInputError
from gsheets.dimension_engine import DimensionValidationError
from gsheets.sheets_tools import _batch_update_dimensions_impl


def create_mock_service(grid_properties=None, sheet_id=0):
    """Create a mock Sheets service with one sheet of the given size."""
    mock_service = Mock()

    sheet_props = {"sheetId": sheet_id, "title": "Budget 2024", "index": 0}
    if grid_properties is not None:
        sheet_props["gridProperties"] = grid_properties
    mock_metadata = {
        "spreadsheetId": "abc123",
        "spreadsheetUrl": "https://docs.google.com/spreadsheets/d/abc123/edit",
        "properties": {"title": "Finance"},
        "sheets": [
            {"properties": sheet_props},
            {"properties": {"sheetId": 99, "title": "Archive"}},
        ],
    }
    spreadsheets = mock_service.spreadsheets.return_value
    spreadsheets.get.return_value.execute.return_value = mock_metadata
    spreadsheets.batchUpdate.return_value.execute.return_value = {}

    return mock_service


@pytest.mark.asyncio
async def test_batch_update_returns_identifiers_and_projection():
    """Test the mixed batch returns sheet identifiers and the 901x26 projection."""
    mock_service = create_mock_service({"rowCount": 1000, "columnCount": 26})

    result = await _batch_update_dimensions_impl(
        service=mock_service,
        spreadsheet_id="abc123",
        sheet_id="0",
        requests=[
            {"operation": "deleteDimension", "dimension": "ROWS", "startIndex": 500, "endIndex": 600},
            {"operation": "deleteDimension", "dimension": "COLUMNS", "startIndex": 1, "endIndex": 3},
            {"operation": "insertDimension", "dimension": "COLUMNS", "startIndex": 1, "endIndex": 3},
            {"operation": "appendDimension", "dimension": "ROWS"},
        ],
    )

    assert result["spreadsheetId"] == "abc123"
    assert result["spreadsheetTitle"] == "Finance"
    assert result["spreadsheetUrl"] == "https://docs.google.com/spreadsheets/d/abc123/edit"
    assert result["sheetId"] == 0
    assert result["sheetTitle"] == "Budget 2024"
    assert result["sheetUrl"] == "https://docs.google.com/spreadsheets/d/abc123/edit#gid=0"
    assert result["totalOperations"] == 4
    assert result["updatedDimensions"] == {"rows": 901, "columns": 26}
    assert [r["rank"] for r in result["operationResults"]] == [1, 2, 3, 4]
    assert "failures" not in result

    get_call = mock_service.spreadsheets.return_value.get.call_args
    assert get_call.kwargs["spreadsheetId"] == "abc123"
    assert mock_service.spreadsheets.return_value.batchUpdate.call_count == 4


@pytest.mark.asyncio
async def test_batch_update_uses_default_grid_size_when_missing():
    """Test that a sheet without gridProperties starts from 1000x26."""
    mock_service = create_mock_service(grid_properties=None)

    result = await _batch_update_dimensions_impl(
        service=mock_service,
        spreadsheet_id="abc123",
        sheet_id=0,
        requests='[{"operation": "appendDimension", "dimension": "COLUMNS"}]',
    )

    assert result["updatedDimensions"] == {"rows": 1000, "columns": 27}


@pytest.mark.asyncio
async def test_invalid_batch_makes_no_api_calls():
    """Test that a malformed batch is rejected before any API call."""
    mock_service = create_mock_service({"rowCount": 10, "columnCount": 10})

    with pytest.raises(DimensionValidationError, match="endIndex"):
        await _batch_update_dimensions_impl(
            service=mock_service,
            spreadsheet_id="abc123",
            sheet_id=0,
            requests=[
                {"operation": "appendDimension", "dimension": "ROWS"},
                {"operation": "deleteDimension", "dimension": "ROWS", "startIndex": 4, "endIndex": 2},
            ],
        )

    mock_service.spreadsheets.return_value.get.assert_not_called()
    mock_service.spreadsheets.return_value.batchUpdate.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_sheet_fails_before_any_mutation():
    """Test that an unknown sheet ID is rejected before any batchUpdate."""
    mock_service = create_mock_service({"rowCount": 10, "columnCount": 10})

    with pytest.raises(UserInputError, match="Sheet ID 7 not found"):
        await _batch_update_dimensions_impl(
            service=mock_service,
            spreadsheet_id="abc123",
            sheet_id=7,
            requests=[{"operation": "appendDimension", "dimension": "ROWS"}],
        )

    mock_service.spreadsheets.return_value.batchUpdate.assert_not_called()


@pytest.mark.asyncio
async def test_batch_size_limit_from_environment(monkeypatch):
    """Test that SHEETS_MCP_MAX_DIMENSION_OPERATIONS caps the batch size."""
    monkeypatch.setenv("SHEETS_MCP_MAX_DIMENSION_OPERATIONS", "2")
    mock_service = create_mock_service({"rowCount": 10, "columnCount": 10})

    with pytest.raises(DimensionValidationError, match="exceeds the maximum of 2"):
        await _batch_update_dimensions_impl(
            service=mock_service,
            spreadsheet_id="abc123",
            sheet_id=0,
            requests=[{"operation": "appendDimension", "dimension": "ROWS"}] * 3,
        )


@pytest.mark.asyncio
async def test_failures_reported_alongside_applied_operations():
    """Test that a failed operation is reported while later ones still apply."""
    mock_service = create_mock_service({"rowCount": 10, "columnCount": 5})
    mock_service.spreadsheets.return_value.batchUpdate.return_value.execute.side_effect = [
        RuntimeError("backend unavailable"),
        {},
    ]

    result = await _batch_update_dimensions_impl(
        service=mock_service,
        spreadsheet_id="abc123",
        sheet_id=0,
        requests=[
            {"operation": "insertDimension", "dimension": "ROWS", "startIndex": 0, "endIndex": 4},
            {"operation": "appendDimension", "dimension": "COLUMNS"},
        ],
    )

    assert [r["status"] for r in result["operationResults"]] == ["failed", "applied"]
    assert result["failures"][0]["error"] == "backend unavailable"
    assert result["failures"][0]["affectedCount"] == 0
    assert result["operationResults"][1]["affectedCount"] == 1
    assert result["updatedDimensions"] == {"rows": 10, "columns": 6}
