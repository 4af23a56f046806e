"""
Batch Dimension Mutation Engine

Applies an ordered batch of row/column inserts, deletes and appends to a
single sheet:

1. ``normalize_operations`` validates raw request dicts and turns them into
   ``DimensionOperation`` values. Any violation rejects the whole batch before
   a single API call is made.
2. ``schedule_operations`` orders them: deletes (highest start index first),
   then inserts (lowest start index first), then appends, with submission
   order breaking ties.
3. ``execute_schedule`` issues one ``spreadsheets.batchUpdate`` call per
   operation, strictly one after another. A failed call is recorded and the
   batch continues.
4. ``OutcomeAggregator`` folds each result into a projected sheet size.

The projected ``updatedDimensions`` is computed, not re-read from the API.
Failed operations are excluded from it, so a call that partially applied
before failing makes the projection undercount.

Known limitation: no lock is taken on the sheet. If another editor changes
its structure between two operations of a batch the outcome is undefined.
An interrupted batch is not resumed; operations already applied stay applied.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from googleapiclient.errors import HttpError

from core.utils import UserInputError

logger = logging.getLogger(__name__)

APPEND_LENGTH = 1

# Sheets defaults for sheets whose metadata omits gridProperties
DEFAULT_ROW_COUNT = 1000
DEFAULT_COLUMN_COUNT = 26

# Sheets hard limits
MAX_ROW_COUNT = 10_000_000
MAX_COLUMN_COUNT = 18278


class DimensionKind(Enum):
    INSERT = "insertDimension"
    DELETE = "deleteDimension"
    APPEND = "appendDimension"


class Dimension(Enum):
    ROWS = "ROWS"
    COLUMNS = "COLUMNS"


class OperationStatus(Enum):
    APPLIED = "applied"
    FAILED = "failed"


class DimensionValidationError(UserInputError):
    """A malformed dimension batch. Raised before any API call is made."""

    def __init__(self, position: Optional[int], message: str):
        self.position = position
        prefix = f"requests[{position}]: " if position is not None else ""
        super().__init__(f"{prefix}{message}")


@dataclass(frozen=True)
class DimensionOperation:
    kind: DimensionKind
    dimension: Dimension
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    inherit_from_before: Optional[bool] = None

    @property
    def affected_count(self) -> int:
        """Rows or columns added or removed when this operation is applied."""
        if self.kind is DimensionKind.INSERT or self.kind is DimensionKind.DELETE:
            return self.end_index - self.start_index
        elif self.kind is DimensionKind.APPEND:
            return APPEND_LENGTH
        raise ValueError(f"Unsupported dimension operation: {self.kind}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "operation": self.kind.value,
            "dimension": self.dimension.value,
        }
        if self.start_index is not None:
            data["startIndex"] = self.start_index
        if self.end_index is not None:
            data["endIndex"] = self.end_index
        if self.inherit_from_before is not None:
            data["inheritFromBefore"] = self.inherit_from_before
        return data


@dataclass(frozen=True)
class ScheduledOperation:
    operation: DimensionOperation
    submission_index: int
    rank: int


@dataclass
class OperationResult:
    """Outcome of one scheduled operation. affected_count is 0 when the call failed."""

    scheduled: ScheduledOperation
    affected_count: int
    status: OperationStatus
    error: Optional[str] = None

    @property
    def operation(self) -> DimensionOperation:
        return self.scheduled.operation

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "rank": self.scheduled.rank,
            "submissionIndex": self.scheduled.submission_index,
            **self.operation.to_dict(),
            "affectedCount": self.affected_count,
            "status": self.status.value,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class GridState:
    row_count: int
    column_count: int

    @classmethod
    def from_grid_properties(cls, grid_properties: Optional[dict]) -> "GridState":
        grid_properties = grid_properties or {}
        return cls(
            row_count=grid_properties.get("rowCount", DEFAULT_ROW_COUNT),
            column_count=grid_properties.get("columnCount", DEFAULT_COLUMN_COUNT),
        )

    def to_dict(self) -> Dict[str, int]:
        return {"rows": self.row_count, "columns": self.column_count}


@dataclass
class BatchOutcome:
    total_operations: int
    operation_results: List[OperationResult]
    updated_dimensions: GridState
    failures: List[OperationResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "totalOperations": self.total_operations,
            "operationResults": [r.to_dict() for r in self.operation_results],
            "updatedDimensions": self.updated_dimensions.to_dict(),
        }
        if self.failures:
            result["failures"] = [r.to_dict() for r in self.failures]
        return result


_KINDS_BY_NAME = {kind.value: kind for kind in DimensionKind}
_DIMENSIONS_BY_NAME = {dimension.value: dimension for dimension in Dimension}
_INDEX_FIELDS = ("startIndex", "endIndex")


def _load_request_list(requests: Union[str, List[Any]]) -> List[Any]:
    """Accept a list or a JSON-encoded list (MCP clients may pass JSON strings)."""
    parsed = requests
    if isinstance(parsed, str):
        try:
            parsed = json.loads(parsed)
        except json.JSONDecodeError as exc:
            raise DimensionValidationError(
                None, f"requests must be a list or a JSON-encoded list: {exc}"
            ) from exc
    if not isinstance(parsed, list):
        raise DimensionValidationError(
            None, f"requests must be a list, got {type(parsed).__name__}."
        )
    return parsed


def _require_index(raw: dict, field_name: str, position: int) -> int:
    value = raw.get(field_name)
    if value is None:
        raise DimensionValidationError(position, f"{field_name} is required.")
    # bool is an int subclass and is never a valid index
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise DimensionValidationError(
            position, f"{field_name} must be a non-negative integer, got {value!r}."
        )
    return value


def _normalize_operation(raw: Any, position: int) -> DimensionOperation:
    if not isinstance(raw, dict):
        raise DimensionValidationError(
            position, f"each request must be an object, got {type(raw).__name__}."
        )

    operation_name = raw.get("operation")
    kind = _KINDS_BY_NAME.get(operation_name) if isinstance(operation_name, str) else None
    if kind is None:
        raise DimensionValidationError(
            position,
            f"operation must be one of {sorted(_KINDS_BY_NAME)}, got {operation_name!r}.",
        )

    dimension_name = raw.get("dimension")
    dimension = _DIMENSIONS_BY_NAME.get(dimension_name) if isinstance(dimension_name, str) else None
    if dimension is None:
        raise DimensionValidationError(
            position, f"dimension must be ROWS or COLUMNS, got {dimension_name!r}."
        )

    inherit_from_before = raw.get("inheritFromBefore")
    if inherit_from_before is not None and not isinstance(inherit_from_before, bool):
        raise DimensionValidationError(
            position, f"inheritFromBefore must be a boolean, got {inherit_from_before!r}."
        )

    if kind is DimensionKind.APPEND:
        present = [name for name in _INDEX_FIELDS if raw.get(name) is not None]
        if present:
            raise DimensionValidationError(
                position,
                f"appendDimension always targets the end of the sheet and must not set {', '.join(present)}.",
            )
        return DimensionOperation(kind=kind, dimension=dimension)
    elif kind is DimensionKind.INSERT or kind is DimensionKind.DELETE:
        start_index = _require_index(raw, "startIndex", position)
        end_index = _require_index(raw, "endIndex", position)
        if end_index <= start_index:
            raise DimensionValidationError(
                position,
                f"endIndex ({end_index}) must be greater than startIndex ({start_index}).",
            )
        return DimensionOperation(
            kind=kind,
            dimension=dimension,
            start_index=start_index,
            end_index=end_index,
            inherit_from_before=(
                bool(inherit_from_before) if kind is DimensionKind.INSERT else None
            ),
        )
    raise ValueError(f"Unsupported dimension operation: {kind}")


def normalize_operations(
    requests: Union[str, List[Any]], max_batch_size: int
) -> List[DimensionOperation]:
    """
    Validate a raw dimension batch and canonicalize each entry.

    Args:
        requests: List (or JSON-encoded list) of request dicts with keys
            operation, dimension, startIndex, endIndex, inheritFromBefore.
        max_batch_size: Largest accepted batch.

    Returns:
        DimensionOperations in submission order.

    Raises:
        DimensionValidationError: On the first invalid entry, or when the batch
            is empty or larger than max_batch_size.
    """
    raw_requests = _load_request_list(requests)
    if not raw_requests:
        raise DimensionValidationError(None, "at least one request must be provided.")
    if len(raw_requests) > max_batch_size:
        raise DimensionValidationError(
            None,
            f"batch of {len(raw_requests)} operations exceeds the maximum of {max_batch_size}.",
        )
    return [_normalize_operation(raw, i) for i, raw in enumerate(raw_requests)]


_KIND_PRIORITY = {
    DimensionKind.DELETE: 0,
    DimensionKind.INSERT: 1,
    DimensionKind.APPEND: 2,
}


def _schedule_key(operation: DimensionOperation, submission_index: int) -> tuple:
    kind = operation.kind
    if kind is DimensionKind.DELETE:
        # Highest start first, so pending lower-anchored deletes keep their indices
        index_key = -operation.start_index
    elif kind is DimensionKind.INSERT:
        index_key = operation.start_index
    elif kind is DimensionKind.APPEND:
        index_key = 0
    else:
        raise ValueError(f"Unsupported dimension operation: {kind}")
    return (_KIND_PRIORITY[kind], index_key, submission_index)


def schedule_operations(
    operations: List[DimensionOperation],
) -> List[ScheduledOperation]:
    """Order operations for sequential execution and assign 1-based ranks."""
    ordered = sorted(
        enumerate(operations), key=lambda item: _schedule_key(item[1], item[0])
    )
    return [
        ScheduledOperation(operation=operation, submission_index=submission_index, rank=rank)
        for rank, (submission_index, operation) in enumerate(ordered, 1)
    ]


def build_dimension_request(operation: DimensionOperation, sheet_id: int) -> dict:
    """Build the single Sheets API request for one operation."""
    kind = operation.kind
    if kind is DimensionKind.APPEND:
        return {
            "appendDimension": {
                "sheetId": sheet_id,
                "dimension": operation.dimension.value,
                "length": APPEND_LENGTH,
            }
        }

    dimension_range = {
        "sheetId": sheet_id,
        "dimension": operation.dimension.value,
        "startIndex": operation.start_index,
        "endIndex": operation.end_index,
    }
    if kind is DimensionKind.INSERT:
        return {
            "insertDimension": {
                "range": dimension_range,
                "inheritFromBefore": bool(operation.inherit_from_before),
            }
        }
    elif kind is DimensionKind.DELETE:
        return {"deleteDimension": {"range": dimension_range}}
    raise ValueError(f"Unsupported dimension operation: {kind}")


def _remote_error_message(exc: Exception) -> str:
    if isinstance(exc, HttpError):
        reason = getattr(exc, "reason", None) or str(exc)
        return f"HTTP {exc.resp.status}: {reason}"
    return str(exc) or type(exc).__name__


class OutcomeAggregator:
    """Running size projection and result list for one batch."""

    def __init__(self, initial_state: GridState, total_operations: int):
        self._state = GridState(initial_state.row_count, initial_state.column_count)
        self._total_operations = total_operations
        self._results: List[OperationResult] = []

    @property
    def current_state(self) -> GridState:
        return GridState(self._state.row_count, self._state.column_count)

    def record(self, result: OperationResult):
        self._results.append(result)

        if result.status is OperationStatus.FAILED:
            return
        elif result.status is not OperationStatus.APPLIED:
            raise ValueError(f"Unsupported operation status: {result.status}")

        kind = result.operation.kind
        if kind is DimensionKind.DELETE:
            delta = -result.affected_count
        elif kind is DimensionKind.INSERT or kind is DimensionKind.APPEND:
            delta = result.affected_count
        else:
            raise ValueError(f"Unsupported dimension operation: {kind}")

        if result.operation.dimension is Dimension.ROWS:
            self._state.row_count = max(0, self._state.row_count + delta)
        else:
            self._state.column_count = max(0, self._state.column_count + delta)

    def finalize(self) -> BatchOutcome:
        final_state = self.current_state
        if final_state.row_count > MAX_ROW_COUNT:
            logger.warning(
                "Projected row count %d exceeds the Sheets maximum of %d",
                final_state.row_count,
                MAX_ROW_COUNT,
            )
        if final_state.column_count > MAX_COLUMN_COUNT:
            logger.warning(
                "Projected column count %d exceeds the Sheets maximum of %d",
                final_state.column_count,
                MAX_COLUMN_COUNT,
            )
        return BatchOutcome(
            total_operations=self._total_operations,
            operation_results=list(self._results),
            updated_dimensions=final_state,
            failures=[r for r in self._results if r.status is OperationStatus.FAILED],
        )


async def execute_schedule(
    service,
    spreadsheet_id: str,
    sheet_id: int,
    schedule: List[ScheduledOperation],
    aggregator: OutcomeAggregator,
):
    """
    Apply scheduled operations one at a time, in rank order.

    Each call is awaited before the next is issued, since every operation's
    indices assume the sheet already reflects all earlier ranks. Failures are
    recorded on the aggregator and do not stop the batch. Nothing is retried.
    """
    for scheduled in schedule:
        operation = scheduled.operation
        request_body = {"requests": [build_dimension_request(operation, sheet_id)]}
        try:
            await asyncio.to_thread(
                service.spreadsheets()
                .batchUpdate(spreadsheetId=spreadsheet_id, body=request_body)
                .execute
            )
        except Exception as exc:
            message = _remote_error_message(exc)
            logger.warning(
                "[execute_schedule] Operation %d/%d (%s %s %s-%s) failed: %s",
                scheduled.rank,
                len(schedule),
                operation.kind.value,
                operation.dimension.value,
                operation.start_index,
                operation.end_index,
                message,
            )
            result = OperationResult(
                scheduled=scheduled,
                affected_count=0,
                status=OperationStatus.FAILED,
                error=message,
            )
        else:
            result = OperationResult(
                scheduled=scheduled,
                affected_count=operation.affected_count,
                status=OperationStatus.APPLIED,
            )
        aggregator.record(result)


async def run_dimension_batch(
    service,
    spreadsheet_id: str,
    sheet_id: int,
    operations: List[DimensionOperation],
    initial_state: GridState,
) -> BatchOutcome:
    """Schedule, execute and aggregate an already-normalized batch."""
    schedule = schedule_operations(operations)
    logger.debug(
        "[run_dimension_batch] Scheduled %d operations for sheet %s: %s",
        len(schedule),
        sheet_id,
        [s.operation.to_dict() for s in schedule],
    )

    aggregator = OutcomeAggregator(initial_state, total_operations=len(schedule))
    await execute_schedule(service, spreadsheet_id, sheet_id, schedule, aggregator)
    return aggregator.finalize()
