"""
Google Sheets MCP Tools

MCP tools for Google Sheets. Sheets are addressed by their numeric sheet ID
(the "gid" in a sheet URL); titles are resolved per call so that renamed
sheets keep working.
"""

import logging
import asyncio
from typing import Any, Dict, List, Optional, Union

from auth.service_decorator import require_google_service
from core.config import get_max_dimension_operations
from core.server import server
from core.utils import handle_http_errors, UserInputError
from gsheets.dimension_engine import (
    GridState,
    normalize_operations,
    run_dimension_batch,
)
from gsheets.sheets_helpers import (
    _describe_dimension_span,
    _fetch_sheet_context,
    _parse_json_list,
    _parse_sheet_id,
    _parse_values_matrix,
    _quote_sheet_title_for_a1,
    _sheet_url,
    _spreadsheet_url,
)

logger = logging.getLogger(__name__)

MAX_SHEET_DELETE_BATCH = 1000
MAX_DISPLAY_ROWS = 50
SPREADSHEET_MIME_TYPE = "application/vnd.google-apps.spreadsheet"
VALUE_RENDER_OPTIONS = ("FORMATTED_VALUE", "UNFORMATTED_VALUE", "FORMULA")
VALUE_INPUT_OPTIONS = ("RAW", "USER_ENTERED")


def _sheet_range(sheet_title: str, range_name: Optional[str]) -> str:
    """Prefix an A1 range with the (quoted) sheet title; no range means the whole sheet."""
    quoted = _quote_sheet_title_for_a1(sheet_title)
    if not range_name:
        return quoted
    if "!" in range_name:
        raise UserInputError(
            f"range_name '{range_name}' must not include a sheet name; the sheet is chosen by sheet_id."
        )
    return f"{quoted}!{range_name}"


def _check_value_input_option(value_input_option: str):
    if value_input_option not in VALUE_INPUT_OPTIONS:
        raise UserInputError(
            f"value_input_option must be one of {', '.join(VALUE_INPUT_OPTIONS)}."
        )


def _escape_drive_query(text: str) -> str:
    return text.replace("\\", "\\\\").replace("'", "\\'")


@server.tool()
@handle_http_errors("list_spreadsheets", is_read_only=True, service_type="drive")
@require_google_service("drive", "drive_read")
async def list_spreadsheets(
    service,
    user_google_email: str,
    name_contains: Optional[str] = None,
    max_results: int = 25,
) -> str:
    """
    Lists spreadsheets in Google Drive, most recently modified first.

    Args:
        user_google_email (str): The user's Google email address. Required.
        name_contains (Optional[str]): Only return spreadsheets whose name contains this text.
        max_results (int): Maximum number of spreadsheets to return. Defaults to 25.

    Returns:
        str: One line per spreadsheet with its title, ID, modified time and URL.
    """
    logger.info(
        f"[list_spreadsheets] Invoked. Email: '{user_google_email}', Name filter: {name_contains!r}"
    )

    query = f"mimeType='{SPREADSHEET_MIME_TYPE}' and trashed=false"
    if name_contains:
        query += f" and name contains '{_escape_drive_query(name_contains)}'"

    response = await asyncio.to_thread(
        service.files()
        .list(
            q=query,
            pageSize=max_results,
            fields="files(id,name,modifiedTime)",
            orderBy="modifiedTime desc",
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        )
        .execute
    )

    files = response.get("files", [])
    if not files:
        return f"No spreadsheets found for {user_google_email}."

    lines = [f"Found {len(files)} spreadsheets for {user_google_email}:"]
    for item in files:
        lines.append(
            f'- "{item.get("name", "Untitled")}" (ID: {item["id"]}) | '
            f'Modified: {item.get("modifiedTime", "Unknown")} | {_spreadsheet_url(item["id"])}'
        )
    logger.info(f"[list_spreadsheets] Returned {len(files)} spreadsheets.")
    return "\n".join(lines)


@server.tool()
@handle_http_errors("get_spreadsheet_info", is_read_only=True, service_type="sheets")
@require_google_service("sheets", "sheets_read")
async def get_spreadsheet_info(
    service,
    user_google_email: str,
    spreadsheet_id: str,
) -> str:
    """
    Gets a spreadsheet's title and locale plus every sheet's ID, size and URL.

    Use the sheet IDs returned here with the other sheet tools.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.

    Returns:
        str: Spreadsheet summary followed by one line per sheet.
    """
    logger.info(
        f"[get_spreadsheet_info] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}"
    )

    spreadsheet = await asyncio.to_thread(
        service.spreadsheets()
        .get(
            spreadsheetId=spreadsheet_id,
            fields="properties(title,locale),sheets(properties(sheetId,title,index,gridProperties(rowCount,columnCount)))",
        )
        .execute
    )

    props = spreadsheet.get("properties", {})
    sheets = spreadsheet.get("sheets", []) or []
    lines = [
        f'"{props.get("title", "Untitled")}" (ID: {spreadsheet_id}) | Locale: {props.get("locale", "Unknown")} '
        f"| {_spreadsheet_url(spreadsheet_id)}",
        f"Sheets ({len(sheets)}):",
    ]
    for sheet in sheets:
        sheet_props = sheet.get("properties", {})
        grid = sheet_props.get("gridProperties", {})
        gid = sheet_props.get("sheetId")
        lines.append(
            f'  - "{sheet_props.get("title", "Untitled")}" (sheet ID: {gid}) '
            f'| {grid.get("rowCount", "?")} rows x {grid.get("columnCount", "?")} columns '
            f"| {_sheet_url(spreadsheet_id, gid)}"
        )
    return "\n".join(lines)


async def _read_sheet_values_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    range_name: Optional[str] = None,
    value_render_option: str = "FORMATTED_VALUE",
) -> Dict[str, Any]:
    if value_render_option not in VALUE_RENDER_OPTIONS:
        raise UserInputError(
            f"value_render_option must be one of {', '.join(VALUE_RENDER_OPTIONS)}."
        )
    gid = _parse_sheet_id(sheet_id)
    context = await _fetch_sheet_context(service, spreadsheet_id, gid)
    full_range = _sheet_range(context["sheet_title"], range_name)

    result = await asyncio.to_thread(
        service.spreadsheets()
        .values()
        .get(
            spreadsheetId=spreadsheet_id,
            range=full_range,
            valueRenderOption=value_render_option,
        )
        .execute
    )
    return {
        "range": result.get("range", full_range),
        "rows": result.get("values", []) or [],
    }


@server.tool()
@handle_http_errors("read_sheet_values", is_read_only=True, service_type="sheets")
@require_google_service("sheets", "sheets_read")
async def read_sheet_values(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    range_name: Optional[str] = None,
    value_render_option: str = "FORMATTED_VALUE",
) -> str:
    """
    Reads cell values from a sheet.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        range_name (Optional[str]): A1 range within the sheet, without a sheet name (e.g. "A1:D10", "B:B", "5:5"). Defaults to the whole sheet.
        value_render_option (str): FORMATTED_VALUE, UNFORMATTED_VALUE or FORMULA. Defaults to FORMATTED_VALUE.

    Returns:
        str: The rows read, one per line (at most 50 shown).
    """
    logger.info(
        f"[read_sheet_values] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, "
        f"Sheet: {sheet_id}, Range: {range_name}"
    )

    result = await _read_sheet_values_impl(
        service, spreadsheet_id, sheet_id, range_name, value_render_option
    )
    rows = result["rows"]
    if not rows:
        return f"No values in {result['range']}."

    lines = [f"{len(rows)} rows from {result['range']}:"]
    for number, row in enumerate(rows[:MAX_DISPLAY_ROWS], 1):
        lines.append(f"Row {number:2d}: {row}")
    if len(rows) > MAX_DISPLAY_ROWS:
        lines.append(f"... and {len(rows) - MAX_DISPLAY_ROWS} more rows")
    return "\n".join(lines)


async def _write_sheet_values_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    range_name: str,
    values: Union[str, List[List[Any]]],
    value_input_option: str = "USER_ENTERED",
) -> Dict[str, Any]:
    parsed_values = _parse_values_matrix(values)
    if not parsed_values:
        raise UserInputError("values must contain at least one row.")
    if not range_name:
        raise UserInputError("range_name is required.")
    _check_value_input_option(value_input_option)

    gid = _parse_sheet_id(sheet_id)
    context = await _fetch_sheet_context(service, spreadsheet_id, gid)
    full_range = _sheet_range(context["sheet_title"], range_name)

    result = await asyncio.to_thread(
        service.spreadsheets()
        .values()
        .update(
            spreadsheetId=spreadsheet_id,
            range=full_range,
            valueInputOption=value_input_option,
            body={"values": parsed_values},
        )
        .execute
    )
    return {
        "updated_range": result.get("updatedRange", full_range),
        "updated_cells": result.get("updatedCells", 0),
        "sheet_url": context["sheet_url"],
    }


@server.tool()
@handle_http_errors("write_sheet_values", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def write_sheet_values(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    range_name: str,
    values: Union[str, List[List[Any]]],
    value_input_option: str = "USER_ENTERED",
) -> str:
    """
    Writes a 2D block of values into a sheet, overwriting existing cells.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        range_name (str): A1 range within the sheet, without a sheet name (e.g. "A1:C3"). Required.
        values (Union[str, List[List[Any]]]): 2D array of values, or a JSON string encoding one. Required.
        value_input_option (str): "RAW" or "USER_ENTERED". Defaults to "USER_ENTERED".

    Returns:
        str: The updated range and cell count.
    """
    logger.info(
        f"[write_sheet_values] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, "
        f"Sheet: {sheet_id}, Range: {range_name}"
    )

    result = await _write_sheet_values_impl(
        service, spreadsheet_id, sheet_id, range_name, values, value_input_option
    )
    return (
        f"Updated {result['updated_cells']} cells in {result['updated_range']} "
        f"for {user_google_email}. URL: {result['sheet_url']}"
    )


async def _clear_sheet_values_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    ranges: Union[str, List[str]],
) -> List[str]:
    parsed_ranges = _parse_json_list(ranges, "ranges")
    if not parsed_ranges:
        raise UserInputError("At least one range must be provided.")
    if not all(isinstance(r, str) and r for r in parsed_ranges):
        raise UserInputError("Every range must be a non-empty A1 string.")

    gid = _parse_sheet_id(sheet_id)
    context = await _fetch_sheet_context(service, spreadsheet_id, gid)
    full_ranges = [_sheet_range(context["sheet_title"], r) for r in parsed_ranges]

    result = await asyncio.to_thread(
        service.spreadsheets()
        .values()
        .batchClear(spreadsheetId=spreadsheet_id, body={"ranges": full_ranges})
        .execute
    )
    return result.get("clearedRanges", full_ranges)


@server.tool()
@handle_http_errors("clear_sheet_values", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def clear_sheet_values(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    ranges: Union[str, List[str]],
) -> str:
    """
    Clears cell values in one or more ranges of a sheet. Formatting is kept.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        ranges (Union[str, List[str]]): A1 ranges within the sheet (e.g. ["A1:B5", "D:D"]), as a list or JSON list. Required.

    Returns:
        str: The ranges that were cleared.
    """
    logger.info(
        f"[clear_sheet_values] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, Sheet: {sheet_id}"
    )

    cleared = await _clear_sheet_values_impl(service, spreadsheet_id, sheet_id, ranges)
    return f"Cleared {len(cleared)} ranges for {user_google_email}: {', '.join(cleared)}"


async def _append_rows_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    rows: Union[str, List[List[Any]]],
    value_input_option: str = "USER_ENTERED",
) -> Dict[str, Any]:
    """Append rows after the last row with data, inserting new rows for them."""
    parsed_rows = _parse_values_matrix(rows)
    if not parsed_rows:
        raise UserInputError("rows must contain at least one row.")
    _check_value_input_option(value_input_option)

    gid = _parse_sheet_id(sheet_id)
    context = await _fetch_sheet_context(service, spreadsheet_id, gid)
    target_range = _sheet_range(context["sheet_title"], "A1")

    result = await asyncio.to_thread(
        service.spreadsheets()
        .values()
        .append(
            spreadsheetId=spreadsheet_id,
            range=target_range,
            valueInputOption=value_input_option,
            insertDataOption="INSERT_ROWS",
            body={"values": parsed_rows},
        )
        .execute
    )

    updates = result.get("updates", {}) or {}
    return {
        "sheet_title": context["sheet_title"],
        "updated_range": updates.get("updatedRange", target_range),
        "updated_rows": updates.get("updatedRows", len(parsed_rows)),
        "updated_cells": updates.get("updatedCells", 0),
    }


@server.tool()
@handle_http_errors("append_rows", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def append_rows(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    rows: Union[str, List[List[Any]]],
    value_input_option: str = "USER_ENTERED",
) -> str:
    """
    Appends rows of values after the last row with data in a sheet.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        rows (Union[str, List[List[Any]]]): 2D array of values, or a JSON string encoding one. Required.
        value_input_option (str): "RAW" or "USER_ENTERED". Defaults to "USER_ENTERED".

    Returns:
        str: Confirmation with the range that received the new rows.
    """
    logger.info(
        f"[append_rows] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, Sheet: {sheet_id}"
    )

    result = await _append_rows_impl(
        service=service,
        spreadsheet_id=spreadsheet_id,
        sheet_id=sheet_id,
        rows=rows,
        value_input_option=value_input_option,
    )

    logger.info(
        f"Appended {result['updated_rows']} rows to '{result['sheet_title']}' for {user_google_email}."
    )
    return (
        f"Appended {result['updated_rows']} rows ({result['updated_cells']} cells) to sheet "
        f"'{result['sheet_title']}' in spreadsheet {spreadsheet_id} for {user_google_email}. "
        f"Range: {result['updated_range']}"
    )


@server.tool()
@handle_http_errors("create_spreadsheet", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def create_spreadsheet(
    service,
    user_google_email: str,
    title: str,
    sheet_titles: Optional[Union[str, List[str]]] = None,
) -> str:
    """
    Creates a new spreadsheet.

    Args:
        user_google_email (str): The user's Google email address. Required.
        title (str): Title of the new spreadsheet. Required.
        sheet_titles (Optional[Union[str, List[str]]]): Titles for the initial sheets. Defaults to a single "Sheet1".

    Returns:
        str: The new spreadsheet's ID and URL, and the sheet IDs it was created with.
    """
    logger.info(f"[create_spreadsheet] Invoked. Email: '{user_google_email}', Title: {title}")

    if not title or not title.strip():
        raise UserInputError("title must not be empty.")
    body: Dict[str, Any] = {"properties": {"title": title}}
    parsed_titles = _parse_json_list(sheet_titles, "sheet_titles")
    if parsed_titles:
        body["sheets"] = [{"properties": {"title": str(t)}} for t in parsed_titles]

    spreadsheet = await asyncio.to_thread(
        service.spreadsheets()
        .create(
            body=body,
            fields="spreadsheetId,spreadsheetUrl,sheets(properties(sheetId,title))",
        )
        .execute
    )

    new_id = spreadsheet.get("spreadsheetId")
    sheet_summary = ", ".join(
        f'"{s["properties"].get("title")}" ({s["properties"].get("sheetId")})'
        for s in spreadsheet.get("sheets", [])
    )
    logger.info(f"[create_spreadsheet] Created {new_id} for {user_google_email}.")
    return (
        f"Created spreadsheet '{title}' (ID: {new_id}) for {user_google_email}. "
        f"URL: {spreadsheet.get('spreadsheetUrl') or _spreadsheet_url(new_id)} | Sheets: {sheet_summary}"
    )


@server.tool()
@handle_http_errors("create_sheet", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def create_sheet(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_title: str,
) -> str:
    """
    Adds a new sheet (tab) to an existing spreadsheet.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_title (str): Title of the new sheet. Required.

    Returns:
        str: The new sheet's ID and URL.
    """
    logger.info(
        f"[create_sheet] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, Title: {sheet_title}"
    )

    if not sheet_title or not sheet_title.strip():
        raise UserInputError("sheet_title must not be empty.")

    response = await asyncio.to_thread(
        service.spreadsheets()
        .batchUpdate(
            spreadsheetId=spreadsheet_id,
            body={"requests": [{"addSheet": {"properties": {"title": sheet_title.strip()}}}]},
        )
        .execute
    )

    replies = response.get("replies") or [{}]
    new_gid = replies[0].get("addSheet", {}).get("properties", {}).get("sheetId")
    if new_gid is None:
        raise ValueError("Sheets API response did not include the new sheet ID")

    return (
        f"Created sheet '{sheet_title.strip()}' (sheet ID: {new_gid}) in spreadsheet {spreadsheet_id} "
        f"for {user_google_email}. URL: {_sheet_url(spreadsheet_id, new_gid)}"
    )


async def _rename_sheet_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    new_title: str,
) -> Dict[str, Any]:
    if not new_title or not new_title.strip():
        raise UserInputError("new_title must not be empty.")

    gid = _parse_sheet_id(sheet_id)
    context = await _fetch_sheet_context(service, spreadsheet_id, gid)

    request_body = {
        "requests": [
            {
                "updateSheetProperties": {
                    "properties": {"sheetId": gid, "title": new_title},
                    "fields": "title",
                }
            }
        ]
    }
    await asyncio.to_thread(
        service.spreadsheets()
        .batchUpdate(spreadsheetId=spreadsheet_id, body=request_body)
        .execute
    )

    return {
        "old_title": context["sheet_title"],
        "new_title": new_title,
        "sheet_url": context["sheet_url"],
    }


@server.tool()
@handle_http_errors("rename_sheet", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def rename_sheet(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    new_title: str,
) -> str:
    """
    Renames a sheet within a spreadsheet.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        new_title (str): The new sheet title. Required.

    Returns:
        str: Confirmation with the old and new titles.
    """
    logger.info(
        f"[rename_sheet] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, Sheet: {sheet_id}"
    )

    result = await _rename_sheet_impl(service, spreadsheet_id, sheet_id, new_title)
    return (
        f"Renamed sheet '{result['old_title']}' to '{result['new_title']}' in spreadsheet "
        f"{spreadsheet_id} for {user_google_email}. URL: {result['sheet_url']}"
    )


async def _delete_sheets_impl(
    service,
    spreadsheet_id: str,
    sheet_ids: Union[str, List[Union[int, str]]],
) -> Dict[str, Any]:
    """
    Delete sheets one request at a time, continuing past individual failures.

    Returns:
        Dictionary with keys: requested, deleted (list of IDs), failures
        (list of {"sheet_id", "error"}).
    """
    parsed_ids = _parse_json_list(sheet_ids, "sheet_ids")
    if not parsed_ids:
        raise UserInputError("At least one sheet ID must be provided.")
    if len(parsed_ids) > MAX_SHEET_DELETE_BATCH:
        raise UserInputError(
            f"Maximum {MAX_SHEET_DELETE_BATCH} sheets can be deleted in a batch."
        )
    gids = [_parse_sheet_id(sid) for sid in parsed_ids]

    deleted: List[int] = []
    failures: List[Dict[str, Any]] = []
    for gid in gids:
        request_body = {"requests": [{"deleteSheet": {"sheetId": gid}}]}
        try:
            await asyncio.to_thread(
                service.spreadsheets()
                .batchUpdate(spreadsheetId=spreadsheet_id, body=request_body)
                .execute
            )
        except Exception as exc:
            logger.warning(
                "[delete_sheets] Failed deleting sheet %s from %s: %s",
                gid,
                spreadsheet_id,
                exc,
            )
            failures.append({"sheet_id": gid, "error": str(exc) or type(exc).__name__})
        else:
            deleted.append(gid)

    return {"requested": len(gids), "deleted": deleted, "failures": failures}


@server.tool()
@handle_http_errors("delete_sheets", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def delete_sheets(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_ids: Union[str, List[Union[int, str]]],
) -> str:
    """
    Permanently deletes sheets from a spreadsheet. The last remaining sheet cannot be deleted.

    Each sheet is deleted with its own request; a failure on one sheet does not stop the others.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_ids (Union[str, List[Union[int, str]]]): Sheet IDs to delete, as a list or JSON list. Required.

    Returns:
        str: Summary of deleted sheets and any per-sheet failures.
    """
    logger.info(
        f"[delete_sheets] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}"
    )

    result = await _delete_sheets_impl(service, spreadsheet_id, sheet_ids)
    deleted_count = len(result["deleted"])
    total = result["requested"]

    if not result["failures"]:
        summary = f"Permanently deleted {deleted_count} sheet{'s' if deleted_count != 1 else ''}"
    else:
        summary = f"Deleted {deleted_count} of {total} sheets ({len(result['failures'])} failed)"

    lines = [
        f"{summary} in spreadsheet {spreadsheet_id} for {user_google_email}. URL: {_spreadsheet_url(spreadsheet_id)}"
    ]
    for failure in result["failures"]:
        lines.append(f"  - Sheet {failure['sheet_id']}: {failure['error']}")

    logger.info(f"[delete_sheets] {summary} for {user_google_email}.")
    return "\n".join(lines)


async def _move_dimension_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    dimension: str,
    start_index: int,
    end_index: int,
    destination_index: int,
) -> Dict[str, Any]:
    if dimension not in ("ROWS", "COLUMNS"):
        raise UserInputError("dimension must be ROWS or COLUMNS.")
    for name, value in (
        ("start_index", start_index),
        ("end_index", end_index),
        ("destination_index", destination_index),
    ):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise UserInputError(f"{name} must be a non-negative integer.")
    if start_index >= end_index:
        raise UserInputError(
            f"start_index ({start_index}) must be less than end_index ({end_index})."
        )
    if start_index < destination_index < end_index:
        raise UserInputError(
            f"destination_index ({destination_index}) cannot be within the source range ({start_index}-{end_index})."
        )

    gid = _parse_sheet_id(sheet_id)
    context = await _fetch_sheet_context(service, spreadsheet_id, gid)

    request_body = {
        "requests": [
            {
                "moveDimension": {
                    "source": {
                        "sheetId": gid,
                        "dimension": dimension,
                        "startIndex": start_index,
                        "endIndex": end_index,
                    },
                    "destinationIndex": destination_index,
                }
            }
        ]
    }
    await asyncio.to_thread(
        service.spreadsheets()
        .batchUpdate(spreadsheetId=spreadsheet_id, body=request_body)
        .execute
    )

    return {
        "sheet_title": context["sheet_title"],
        "sheet_url": context["sheet_url"],
        "source": _describe_dimension_span(dimension, start_index, end_index),
        "moved_count": end_index - start_index,
        "destination_index": destination_index,
    }


@server.tool()
@handle_http_errors("move_dimension", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def move_dimension(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    dimension: str,
    start_index: int,
    end_index: int,
    destination_index: int,
) -> str:
    """
    Moves a range of rows or columns to a new position within a sheet.

    Indices are 0-based and the source range is half-open [start_index, end_index).

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        dimension (str): ROWS or COLUMNS. Required.
        start_index (int): First index of the range to move. Required.
        end_index (int): Index after the last one to move. Required.
        destination_index (int): Index the range is moved to, measured before the move. Required.

    Returns:
        str: Confirmation with the moved range and count.
    """
    logger.info(
        f"[move_dimension] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, "
        f"Sheet: {sheet_id}, {dimension} {start_index}-{end_index} -> {destination_index}"
    )

    result = await _move_dimension_impl(
        service,
        spreadsheet_id,
        sheet_id,
        dimension,
        start_index,
        end_index,
        destination_index,
    )
    return (
        f"Moved {result['source']} ({result['moved_count']} total) to index {result['destination_index']} "
        f"on sheet '{result['sheet_title']}' in spreadsheet {spreadsheet_id} for {user_google_email}. "
        f"URL: {result['sheet_url']}"
    )


async def _batch_update_dimensions_impl(
    service,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    requests: Union[str, List[Dict[str, Any]]],
    max_batch_size: Optional[int] = None,
) -> Dict[str, Any]:
    """Internal implementation for batch_update_dimensions.

    Validates the whole batch before any API call, reads the sheet's current
    size once, then applies the operations one at a time.

    Returns:
        Dictionary with resource identifiers, totalOperations,
        operationResults (execution order), updatedDimensions and, when any
        operation failed, failures.
    """
    if max_batch_size is None:
        max_batch_size = get_max_dimension_operations()
    operations = normalize_operations(requests, max_batch_size)
    gid = _parse_sheet_id(sheet_id)

    context = await _fetch_sheet_context(service, spreadsheet_id, gid)
    initial_state = GridState.from_grid_properties(
        context["sheet_properties"].get("gridProperties")
    )

    outcome = await run_dimension_batch(
        service, spreadsheet_id, gid, operations, initial_state
    )

    return {
        "spreadsheetId": spreadsheet_id,
        "spreadsheetTitle": context["spreadsheet_title"],
        "spreadsheetUrl": context["spreadsheet_url"],
        "sheetId": gid,
        "sheetTitle": context["sheet_title"],
        "sheetUrl": context["sheet_url"],
        **outcome.to_dict(),
    }


@server.tool()
@handle_http_errors("batch_update_dimensions", service_type="sheets")
@require_google_service("sheets", "sheets_write")
async def batch_update_dimensions(
    service,
    user_google_email: str,
    spreadsheet_id: str,
    sheet_id: Union[int, str],
    requests: Union[str, List[Dict[str, Any]]],
) -> Dict[str, Any]:
    """
    Inserts, deletes, or appends rows/columns in one sheet as a single batch.

    Operations are reordered before they run, which fixes what each index means:
    - Deletes run first, highest startIndex first. Their indices refer to the
      sheet as it was when the batch was submitted.
    - Inserts run next, lowest startIndex first. Their indices refer to the
      sheet after all deletes and after every earlier (lower) insert. For
      example, [delete rows 0-5, insert row 10] inserts at original row 15.
    - Appends run last and always add one row/column at the end.
    Each operation is applied separately; if one fails the rest still run,
    and the result reports every operation's status.

    Args:
        user_google_email (str): The user's Google email address. Required.
        spreadsheet_id (str): The ID of the spreadsheet. Required.
        sheet_id (Union[int, str]): The numeric sheet ID (the "gid" in the sheet URL). Required.
        requests (Union[str, List[Dict[str, Any]]]): Operations, as a list or JSON list. Each has:
            - operation: "insertDimension", "deleteDimension" or "appendDimension"
            - dimension: "ROWS" or "COLUMNS" (upper case)
            - startIndex / endIndex: 0-based half-open range, required for insert/delete,
              not allowed for append (which always adds one row/column at the end)
            - inheritFromBefore (optional, insert only): copy formatting from the preceding row/column

    Returns:
        dict: totalOperations, operationResults (with status and affectedCount,
            which is 0 for failed operations), updatedDimensions {rows, columns} projected from the applied
            operations, failures (if any), and spreadsheet/sheet identifiers.
    """
    logger.info(
        f"[batch_update_dimensions] Invoked. Email: '{user_google_email}', Spreadsheet: {spreadsheet_id}, Sheet: {sheet_id}"
    )

    result = await _batch_update_dimensions_impl(
        service=service,
        spreadsheet_id=spreadsheet_id,
        sheet_id=sheet_id,
        requests=requests,
    )

    failures = result.get("failures", [])
    logger.info(
        f"[batch_update_dimensions] Applied {result['totalOperations'] - len(failures)}/"
        f"{result['totalOperations']} operations on '{result['sheetTitle']}' for {user_google_email}. "
        f"Projected size: {result['updatedDimensions']}"
    )
    return result
