"""
Google Sheets Helper Functions

Shared utilities for Google Sheets tools: sheet lookup by ID, resource URLs,
A1 notation helpers and parsing of JSON-string parameters.
"""

import asyncio
import json
import re
from typing import Any, List, Optional, Union

from core.utils import UserInputError


SHEET_TITLE_SAFE_RE = re.compile(r"^[A-Za-z0-9_]+$")
SPREADSHEET_URL_TEMPLATE = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/edit"

SHEET_CONTEXT_FIELDS = (
    "spreadsheetId,spreadsheetUrl,properties(title),"
    "sheets(properties(sheetId,title,index,gridProperties(rowCount,columnCount)))"
)


def _index_to_column(index: int) -> str:
    """
    Convert a zero-based column index to column letters (0 -> A, 25 -> Z, 26 -> AA).
    """
    if index < 0:
        raise UserInputError(f"Column index must be non-negative, got {index}.")

    result = []
    index += 1  # Convert to 1-based for calculation
    while index:
        index, remainder = divmod(index - 1, 26)
        result.append(chr(ord("A") + remainder))
    return "".join(reversed(result))


def _quote_sheet_title_for_a1(sheet_title: str) -> str:
    """
    Quote a sheet title for use in A1 notation if necessary.

    Titles with spaces or special characters are wrapped in single quotes, and
    embedded single quotes are doubled, as required by Google Sheets.
    """
    if SHEET_TITLE_SAFE_RE.match(sheet_title or ""):
        return sheet_title
    escaped = (sheet_title or "").replace("'", "''")
    return f"'{escaped}'"


def _describe_dimension_span(dimension: str, start_index: int, end_index: int) -> str:
    """
    Human-readable label for a half-open dimension range.

    ROWS are shown 1-based ("rows 3-5"), COLUMNS as letters ("columns B:D").
    """
    if dimension == "COLUMNS":
        start_label = _index_to_column(start_index)
        end_label = _index_to_column(end_index - 1)
        if start_label == end_label:
            return f"column {start_label}"
        return f"columns {start_label}:{end_label}"
    if end_index - start_index == 1:
        return f"row {start_index + 1}"
    return f"rows {start_index + 1}-{end_index}"


def _spreadsheet_url(spreadsheet_id: str) -> str:
    return SPREADSHEET_URL_TEMPLATE.format(spreadsheet_id=spreadsheet_id)


def _sheet_url(spreadsheet_id: str, sheet_id: int) -> str:
    return f"{_spreadsheet_url(spreadsheet_id)}#gid={sheet_id}"


def _parse_sheet_id(sheet_id: Union[int, str]) -> int:
    """
    Normalize a sheet ID (the "gid" in sheet URLs) to an int.

    MCP clients often pass IDs as strings; booleans and negative values are rejected.
    """
    if isinstance(sheet_id, bool):
        raise UserInputError(f"sheet_id must be an integer, got {sheet_id!r}.")
    if isinstance(sheet_id, str):
        stripped = sheet_id.strip()
        if not stripped.isdigit():
            raise UserInputError(f"sheet_id must be an integer, got '{sheet_id}'.")
        return int(stripped)
    if not isinstance(sheet_id, int) or sheet_id < 0:
        raise UserInputError(f"sheet_id must be a non-negative integer, got {sheet_id!r}.")
    return sheet_id


def _select_sheet_by_id(sheets: List[dict], sheet_id: int) -> dict:
    """
    Find a sheet by its numeric sheetId.
    """
    for sheet in sheets:
        if sheet.get("properties", {}).get("sheetId") == sheet_id:
            return sheet

    available = [
        f"{sheet.get('properties', {}).get('title', 'Untitled')} ({sheet.get('properties', {}).get('sheetId')})"
        for sheet in sheets
    ]
    available_list = ", ".join(available) if available else "none"
    raise UserInputError(
        f"Sheet ID {sheet_id} not found in spreadsheet. Available sheets: {available_list}."
    )


async def _fetch_sheet_context(service, spreadsheet_id: str, sheet_id: int) -> dict:
    """
    Fetch spreadsheet title/URL and the target sheet's properties in one request.

    Returns:
        Dictionary with keys: spreadsheet_title, spreadsheet_url, sheet_title,
        sheet_url, sheet_properties.
    """
    spreadsheet = await asyncio.to_thread(
        service.spreadsheets()
        .get(spreadsheetId=spreadsheet_id, fields=SHEET_CONTEXT_FIELDS)
        .execute
    )
    sheet = _select_sheet_by_id(spreadsheet.get("sheets", []) or [], sheet_id)
    sheet_props = sheet.get("properties", {})

    return {
        "spreadsheet_title": spreadsheet.get("properties", {}).get("title", ""),
        "spreadsheet_url": spreadsheet.get("spreadsheetUrl")
        or _spreadsheet_url(spreadsheet_id),
        "sheet_title": sheet_props.get("title", str(sheet_id)),
        "sheet_url": _sheet_url(spreadsheet_id, sheet_id),
        "sheet_properties": sheet_props,
    }


def _parse_json_list(value: Any, param_name: str) -> Optional[list]:
    """
    Accept a Python list or a JSON string encoding one (MCP passes parameters as JSON strings).
    """
    if value is None:
        return None
    parsed = value
    if isinstance(parsed, str):
        try:
            parsed = json.loads(parsed)
        except json.JSONDecodeError as e:
            raise UserInputError(f"Invalid JSON format for {param_name}: {e}") from e
    if not isinstance(parsed, list):
        raise UserInputError(
            f"{param_name} must be a list, got {type(parsed).__name__}."
        )
    return parsed


def _parse_values_matrix(values: Any) -> Optional[List[list]]:
    """Parse a 2D values argument, validating that every row is a list."""
    parsed = _parse_json_list(values, "values")
    if parsed is None:
        return None
    for i, row in enumerate(parsed):
        if not isinstance(row, list):
            raise UserInputError(
                f"Invalid values structure: row {i} must be a list, got {type(row).__name__}."
            )
    return parsed
