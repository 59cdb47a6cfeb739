"""The table engine: state, fetching, selection and editing wired together."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping

from reflex_advanced_table.config import TableOptions
from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.editing import TableEditor
from reflex_advanced_table.exceptions import UnsupportedOperation
from reflex_advanced_table.fetcher import FetchOrchestrator
from reflex_advanced_table.models import (
    BulkOperationResult,
    ColumnDefinition,
    DataSourceResult,
    GetRowId,
    row_id_getter,
)
from reflex_advanced_table.repository import bulk_delete_with_fallback
from reflex_advanced_table.schema import SchemaProvider
from reflex_advanced_table.selection import RowSelection
from reflex_advanced_table.state import TableStateController

logger = logging.getLogger(__name__)


class AdvancedTable:
    """One table instance.

    Example::

        table = AdvancedTable(InMemoryDataSource(rows), schema)
        await table.load()
        table.controller.set_filter("status", "active")
        await table.settle()
        table.visible_rows()

    Args:
        source: Where rows come from and edits go to.
        schema: Column definitions.
        options: Feature switches; defaults to :class:`TableOptions()`.
        get_row_id: Stable id of a row; defaults to its ``"id"`` field.
        **editor_callbacks: Extra keyword arguments for
            :meth:`TableEditor.from_data_source` (``on_cell_edit``, ...).
    """

    def __init__(
        self,
        source: DataSource,
        schema: SchemaProvider | None = None,
        options: TableOptions | None = None,
        *,
        get_row_id: GetRowId | None = None,
        **editor_callbacks: Any,
    ) -> None:
        self.source = source
        self.schema = schema
        self.options = options or TableOptions()
        self.get_row_id = get_row_id or row_id_getter()

        self.controller = TableStateController(
            page_size=self.options.page_size,
            preserve_selection=self.options.preserve_selection,
            max_sort_keys=self.options.max_sort_keys,
        )
        self.fetcher = FetchOrchestrator(
            source,
            self.controller,
            search_debounce=self.options.search_debounce,
        )
        self.selection = RowSelection(
            self.controller,
            get_row_id=self.get_row_id,
            multiple=self.options.multi_select,
        )
        self.editor = TableEditor.from_data_source(
            source,
            self.columns_by_key(),
            get_row_id=self.get_row_id,
            **editor_callbacks,
        )

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def columns(self) -> list[ColumnDefinition]:
        columns = self.schema.get_columns() if self.schema is not None else []
        if not self.options.editing:
            return [_read_only(c) for c in columns]
        return columns

    def columns_by_key(self) -> dict[str, ColumnDefinition]:
        return {column.key: column for column in self.columns()}

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    async def load(self) -> DataSourceResult | None:
        """Fetch the current page and wait for it."""
        return await self.fetcher.load()

    async def settle(self) -> None:
        await self.fetcher.settle()

    def visible_rows(self) -> list[dict[str, Any]]:
        """The current page with pending edits overlaid."""
        return self.editor.overlay_rows(self.fetcher.rows)

    async def create_row(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Create a row through the data source and refetch."""
        created = await self.source.create(data)
        logger.debug("created row %s", created.get("id") if isinstance(created, Mapping) else created)
        await self.fetcher.load()
        return created

    async def delete_selected(self) -> BulkOperationResult:
        """Delete every selected row, then refetch.

        Uses the source's bulk delete when it has one and row-by-row
        deletes otherwise.  Deleted ids leave the selection and lose any
        pending edits; ids that failed stay selected.

        Raises:
            UnsupportedOperation: The source can delete nothing.
        """
        ids = sorted(self.controller.selection)
        if not ids:
            return BulkOperationResult(success=True, affected=0)
        if not (self.source.supports("bulk_delete") or self.source.supports("delete")):
            raise UnsupportedOperation("bulk_delete", self.source)

        result = await bulk_delete_with_fallback(self.source, ids)
        failed = set(result.failed_ids)
        if result.success and not failed:
            deleted = set(ids)
        else:
            deleted = set(ids) - failed if result.affected else set()
        for row_id in deleted:
            self.editor.cancel_row(row_id)
        self.selection.deselect(*deleted)
        logger.debug("deleted %d of %d selected rows", result.affected, len(ids))
        await self.fetcher.load()
        return result

    def close(self) -> None:
        self.fetcher.close()


def _read_only(column: ColumnDefinition) -> ColumnDefinition:
    if not column.editable:
        return column
    return replace(column, editable=False)
