"""Optimistic inline editing with per-row commit and rollback.

Pending values live in ``edited_rows`` (``{row_id: {column: value}}``)
and are never written into fetched rows: what the user sees is the
fetched row overlaid with its pending values.  Each row moves through a
small state machine::

    CLEAN -> DIRTY -> COMMITTING -> CLEAN
                          |
                          +-----> ERROR (pending values kept)

A row in ``ERROR`` shows its last fetched values until it is edited
again (back to ``DIRTY``) or cancelled.
"""

from __future__ import annotations

import copy
import enum
import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Mapping, Union

from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.exceptions import (
    AdvancedTableError,
    CommitError,
    ValidationError,
)
from reflex_advanced_table.models import (
    BulkError,
    BulkOperationResult,
    ColumnDefinition,
    GetRowId,
    row_id_getter,
)
from reflex_advanced_table.validation import validate_changes

logger = logging.getLogger(__name__)

MaybeAwaitable = Union[Any, Awaitable[Any]]
CellEditCallback = Callable[[str, str, Any], MaybeAwaitable]
SaveRowCallback = Callable[[str, dict[str, Any]], MaybeAwaitable]
SaveAllCallback = Callable[[dict[str, dict[str, Any]]], MaybeAwaitable]


class RowEditState(str, enum.Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    COMMITTING = "committing"
    ERROR = "error"


async def _call(callback: Callable[..., Any] | None, *args: Any) -> Any:
    if callback is None:
        return None
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class TableEditor:
    """Owner of the pending edits of one table.

    Args:
        columns: Column definitions used for parsing, the editable check
            and validation.  Columns not listed are accepted as-is.
        get_row_id: Extracts the stable id of a fetched row.
        on_cell_edit: Called after every cell edit.
        on_save_row: Persists one row's changes.  Without it commits only
            clear the pending values (local editing).
        on_cancel_row: Called after a row's edits are discarded.
        on_save_all: Persists every pending change at once.  It may return
            a :class:`BulkOperationResult` to report per-row failures.
        on_cancel_all: Called after every edit is discarded.
    """

    def __init__(
        self,
        columns: Iterable[ColumnDefinition] | Mapping[str, ColumnDefinition] = (),
        *,
        get_row_id: GetRowId | None = None,
        on_cell_edit: CellEditCallback | None = None,
        on_save_row: SaveRowCallback | None = None,
        on_cancel_row: Callable[[str], Any] | None = None,
        on_save_all: SaveAllCallback | None = None,
        on_cancel_all: Callable[[], Any] | None = None,
    ) -> None:
        if isinstance(columns, Mapping):
            self.columns = dict(columns)
        else:
            self.columns = {column.key: column for column in columns}
        self.get_row_id = get_row_id or row_id_getter()
        self.on_cell_edit = on_cell_edit
        self.on_save_row = on_save_row
        self.on_cancel_row = on_cancel_row
        self.on_save_all = on_save_all
        self.on_cancel_all = on_cancel_all

        self._edited: dict[str, dict[str, Any]] = {}
        self._states: dict[str, RowEditState] = {}
        self._errors: dict[str, AdvancedTableError] = {}

    @classmethod
    def from_data_source(
        cls,
        source: DataSource,
        columns: Iterable[ColumnDefinition] | Mapping[str, ColumnDefinition] = (),
        **kwargs: Any,
    ) -> TableEditor:
        """An editor that saves through *source*.

        Rows are saved with ``update``; ``commit_all`` uses
        ``batch_update`` when the source has it and row-by-row saves
        otherwise.
        """
        if source.supports("update"):
            kwargs.setdefault("on_save_row", source.update)
        if source.supports("batch_update"):
            kwargs.setdefault("on_save_all", source.batch_update)
        return cls(columns, **kwargs)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def edited_rows(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self._edited)

    @property
    def has_edits(self) -> bool:
        return bool(self._edited)

    def is_row_edited(self, row_id: str) -> bool:
        return str(row_id) in self._edited

    def row_state(self, row_id: str) -> RowEditState:
        return self._states.get(str(row_id), RowEditState.CLEAN)

    def row_error(self, row_id: str) -> AdvancedTableError | None:
        return self._errors.get(str(row_id))

    def pending_changes(self, row_id: str) -> dict[str, Any]:
        return dict(self._edited.get(str(row_id), {}))

    def overlay(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """The display version of a fetched *row*; *row* itself is not modified."""
        row_id = self.get_row_id(row)
        pending = self._edited.get(row_id)
        if not pending or self._states.get(row_id) is RowEditState.ERROR:
            return dict(row)
        return {**row, **pending}

    def overlay_rows(self, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        return [self.overlay(row) for row in rows]

    def display_value(self, row: Mapping[str, Any], key: str) -> Any:
        return self.overlay(row).get(key)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _parse(self, key: str, value: Any) -> Any:
        column = self.columns.get(key)
        if column is None:
            return value
        if not column.editable:
            raise ValueError(f"Column {key!r} is not editable")
        if column.parse is not None and isinstance(value, str):
            return column.parse(value)
        return value

    async def edit_cell(self, row_id: str, key: str, value: Any) -> None:
        """Record a pending value for one cell.

        Editing a cell back to its fetched value still leaves the row
        ``DIRTY``; cancel the row to drop its edits.
        """
        row_id = str(row_id)
        value = self._parse(key, value)
        self._edited.setdefault(row_id, {})[key] = value
        if self._states.get(row_id) is not RowEditState.COMMITTING:
            self._states[row_id] = RowEditState.DIRTY
        self._errors.pop(row_id, None)
        logger.debug("edit %s.%s", row_id, key)
        await _call(self.on_cell_edit, row_id, key, value)

    def _validate(self, row_id: str, changes: Mapping[str, Any]) -> None:
        try:
            validate_changes(self.columns, changes, row_id=row_id)
        except ValidationError as exc:
            self._errors[row_id] = exc
            raise

    def _finish_commit(self, row_id: str, committed: Mapping[str, Any]) -> None:
        """Drop committed values, keeping those edited while the save was in flight."""
        current = self._edited.get(row_id)
        if current is None:
            self._states.pop(row_id, None)
            return
        remaining = {
            key: value
            for key, value in current.items()
            if key not in committed or committed[key] is not value
        }
        if remaining:
            self._edited[row_id] = remaining
            self._states[row_id] = RowEditState.DIRTY
        else:
            del self._edited[row_id]
            self._states.pop(row_id, None)
        self._errors.pop(row_id, None)

    def _fail_commit(self, row_id: str, error: AdvancedTableError) -> None:
        if row_id in self._edited:
            self._states[row_id] = RowEditState.ERROR
            self._errors[row_id] = error
        else:
            # Cancelled while the save was in flight.
            self._states.pop(row_id, None)

    async def commit_row(self, row_id: str) -> None:
        """Validate and save one row's pending values.

        Does nothing when the row has no pending values.

        Raises:
            ValidationError: A value failed its column rules.  Nothing is
                saved and the row stays ``DIRTY``.
            CommitError: ``on_save_row`` failed.  The row moves to
                ``ERROR`` and keeps its pending values.
        """
        row_id = str(row_id)
        changes = self._edited.get(row_id)
        if not changes:
            return
        changes = dict(changes)
        self._validate(row_id, changes)

        self._states[row_id] = RowEditState.COMMITTING
        self._errors.pop(row_id, None)
        try:
            await _call(self.on_save_row, row_id, dict(changes))
        except CommitError as exc:
            self._fail_commit(row_id, exc)
            logger.debug("commit of row %s failed: %s", row_id, exc)
            raise
        except Exception as exc:
            error = CommitError(row_id, exc)
            self._fail_commit(row_id, error)
            logger.debug("commit of row %s failed: %s", row_id, exc)
            raise error from exc
        self._finish_commit(row_id, changes)
        logger.debug("committed row %s", row_id)

    def cancel_row(self, row_id: str) -> None:
        """Discard a row's pending values without saving anything."""
        row_id = str(row_id)
        self._edited.pop(row_id, None)
        self._states.pop(row_id, None)
        self._errors.pop(row_id, None)
        if self.on_cancel_row is not None:
            self.on_cancel_row(row_id)

    async def commit_all(self) -> BulkOperationResult:
        """Save every pending row; failures are reported, not raised.

        Rows that fail validation are left ``DIRTY`` and rows whose save
        fails move to ``ERROR``.  With no pending edits the result is a
        successful no-op.
        """
        if not self._edited:
            return BulkOperationResult(success=True, affected=0)
        if self.on_save_all is None:
            return await self._commit_sequentially()

        errors: list[BulkError] = []
        batch: dict[str, dict[str, Any]] = {}
        for row_id, changes in list(self._edited.items()):
            if self._states.get(row_id) is RowEditState.COMMITTING:
                continue
            try:
                self._validate(row_id, changes)
            except ValidationError as exc:
                errors.append(BulkError(id=row_id, message=str(exc)))
                continue
            batch[row_id] = dict(changes)

        if not batch:
            return BulkOperationResult.from_outcomes(0, errors)

        for row_id in batch:
            self._states[row_id] = RowEditState.COMMITTING
            self._errors.pop(row_id, None)
        try:
            outcome = await _call(self.on_save_all, copy.deepcopy(batch))
        except Exception as exc:
            for row_id in batch:
                self._fail_commit(row_id, CommitError(row_id, exc))
                errors.append(BulkError(id=row_id, message=str(exc) or type(exc).__name__))
            logger.debug("save of %d rows failed: %s", len(batch), exc)
            return BulkOperationResult.from_outcomes(0, errors)

        failed: dict[str, str] = {}
        if isinstance(outcome, BulkOperationResult):
            if outcome.errors:
                failed = {err.id: err.message for err in outcome.errors}
            elif not outcome.success:
                failed = dict.fromkeys(batch, "save reported no success")
        affected = 0
        for row_id, changes in batch.items():
            if row_id in failed:
                self._fail_commit(row_id, CommitError(row_id, RuntimeError(failed[row_id])))
                errors.append(BulkError(id=row_id, message=failed[row_id]))
            else:
                self._finish_commit(row_id, changes)
                affected += 1
        return BulkOperationResult.from_outcomes(affected, errors)

    async def _commit_sequentially(self) -> BulkOperationResult:
        affected = 0
        errors: list[BulkError] = []
        for row_id in list(self._edited):
            if self._states.get(row_id) is RowEditState.COMMITTING:
                continue
            try:
                await self.commit_row(row_id)
            except AdvancedTableError as exc:
                errors.append(BulkError(id=row_id, message=str(exc)))
            else:
                affected += 1
        return BulkOperationResult.from_outcomes(affected, errors)

    def cancel_all(self) -> None:
        self._edited.clear()
        self._states.clear()
        self._errors.clear()
        if self.on_cancel_all is not None:
            self.on_cancel_all()
