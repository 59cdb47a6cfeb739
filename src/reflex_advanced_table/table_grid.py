"""Reflex state mixin that drives an :class:`AdvancedTable` from the browser.

Users inherit from :class:`AdvancedTableMixin` **and** ``rx.State``,
call :meth:`AdvancedTableMixin.set_data_source` from an event handler,
and wire the ``handle_table_*`` handlers to their grid component's
pagination, sort, filter, selection and edit events.

``AdvancedTableMixin`` is a Reflex **state mixin** (``mixin=True``):
every subclass gets its own ``table_*`` vars, so several tables on one
page do not interfere.

The MUI X DataGrid event payloads (sort model, filter model, pagination
model, row selection model) are accepted as-is and converted with
:func:`sort_model_to_sorting`, :func:`filter_model_to_filters` and
:func:`pagination_model_to_page`.

Typical usage::

    class ProductsState(AdvancedTableMixin, rx.State):
        async def load(self):
            source = InMemoryDataSource.from_file("products.csv")
            async for _ in self.set_data_source(source):
                yield

    def index():
        return rx.foreach(ProductsState.table_rows, render_row)
"""

import logging
from collections import OrderedDict
from typing import Any

import reflex as rx

from reflex_advanced_table.config import TableOptions
from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.exceptions import AdvancedTableError
from reflex_advanced_table.models import SortSpec
from reflex_advanced_table.schema import SchemaProvider, to_grid_columns
from reflex_advanced_table.table import AdvancedTable

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE: int = 20


# ---------------------------------------------------------------------------
# MUI model converters
# ---------------------------------------------------------------------------

def sort_model_to_sorting(sort_model: list[dict[str, Any]]) -> list[SortSpec]:
    """``[{"field": "price", "sort": "desc"}]`` -> ``[SortSpec("price", "desc")]``.

    Items without a field or with a null ``sort`` are skipped.
    """
    sorting: list[SortSpec] = []
    for item in sort_model or []:
        field = item.get("field")
        direction = item.get("sort")
        if not field or direction not in ("asc", "desc"):
            continue
        sorting.append(SortSpec(field=field, direction=direction))
    return sorting


_LOWER_BOUND_OPS: dict[str, str] = {
    ">": "min",
    ">=": "min",
    "after": "from",
    "onOrAfter": "from",
}
_UPPER_BOUND_OPS: dict[str, str] = {
    "<": "max",
    "<=": "max",
    "before": "to",
    "onOrBefore": "to",
}
_EQUALITY_OPS: frozenset[str] = frozenset({"is", "equals", "=", "contains"})


def filter_model_to_filters(filter_model: dict[str, Any]) -> dict[str, Any]:
    """Convert a MUI filter model into raw table filter values.

    * ``is`` / ``equals`` / ``=`` / ``contains`` -> scalar
    * ``isAnyOf`` -> list
    * ``>`` / ``>=`` -> ``{"min": v}``, ``<`` / ``<=`` -> ``{"max": v}``
    * ``after`` / ``onOrAfter`` -> ``{"from": v}``,
      ``before`` / ``onOrBefore`` -> ``{"to": v}``

    Bounds on the same field are merged into one range.  Items without
    a value and unsupported operators are ignored.
    """
    filters: dict[str, Any] = {}
    for item in (filter_model or {}).get("items", []):
        field = item.get("field")
        operator = item.get("operator")
        value = item.get("value")
        if not field or value is None or value == "" or value == []:
            continue
        if operator == "isAnyOf":
            filters[field] = list(value) if isinstance(value, (list, tuple)) else [value]
        elif operator in _EQUALITY_OPS:
            filters[field] = value
        elif operator in _LOWER_BOUND_OPS or operator in _UPPER_BOUND_OPS:
            key = _LOWER_BOUND_OPS.get(operator) or _UPPER_BOUND_OPS[operator]
            existing = filters.get(field)
            bounds = dict(existing) if isinstance(existing, dict) else {}
            bounds[key] = value
            filters[field] = bounds
        else:
            logger.debug("ignoring unsupported filter operator %r on %s", operator, field)
    return filters


def merge_filter_model(existing: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Accumulate single-item filter models into one multi-column model.

    The community DataGrid sends one filter item at a time.  An item with
    a value replaces the previous item for its field; an item without a
    value leaves that field alone; an empty item list clears everything.
    """
    incoming_items: list[dict[str, Any]] = incoming.get("items", []) if incoming else []
    if not incoming_items:
        return {"items": []}

    by_field: dict[str, dict[str, Any]] = {
        item["field"]: item for item in (existing or {}).get("items", []) if item.get("field")
    }
    for item in incoming_items:
        field = item.get("field")
        if field and item.get("value") is not None:
            by_field[field] = item
    return {"items": list(by_field.values()), "logicOperator": incoming.get("logicOperator", "and")}


def pagination_model_to_page(model: dict[str, Any]) -> tuple[int, int]:
    """``{"page": 0, "pageSize": 20}`` (zero-based) -> ``(1, 20)``."""
    page = int(model.get("page", 0)) + 1
    page_size = int(model.get("pageSize", _DEFAULT_PAGE_SIZE))
    return max(page, 1), page_size


def selection_model_to_ids(model: Any, page_ids: list[str]) -> tuple[set[str], set[str]]:
    """Split a row selection model into ``(selected, deselected)`` ids of the page.

    Accepts a plain id list or the v8 ``{"type": "include"|"exclude",
    "ids": [...]}`` shape.
    """
    if isinstance(model, dict):
        ids = {str(i) for i in model.get("ids", [])}
        if model.get("type") == "exclude":
            selected = {i for i in page_ids if i not in ids}
            return selected, set(page_ids) - selected
    else:
        ids = {str(i) for i in model or []}
    return ids, {i for i in page_ids if i not in ids}


# ---------------------------------------------------------------------------
# Module-level engine registry
# ---------------------------------------------------------------------------

class _TableCache:
    """Holds the engine outside Reflex state.

    Data sources and engines are not JSON-serialisable, so they cannot
    live inside ``rx.State``.  They are kept in a module-level registry
    keyed by state class and client token.  The registry holds at most
    ``_MAX_CACHED_TABLES`` engines; the least recently used one is closed
    and evicted first, and its session reloads on the next
    ``set_data_source``.
    """

    def __init__(self, table: AdvancedTable) -> None:
        self.table = table


_MAX_CACHED_TABLES: int = 64

_cache_registry: OrderedDict[str, _TableCache] = OrderedDict()


def _drop_cache(cache_id: str) -> None:
    entry = _cache_registry.pop(cache_id, None)
    if entry is not None:
        entry.table.close()


def _store_cache(cache_id: str, table: AdvancedTable) -> None:
    _drop_cache(cache_id)
    _cache_registry[cache_id] = _TableCache(table)
    while len(_cache_registry) > _MAX_CACHED_TABLES:
        evicted_id, entry = _cache_registry.popitem(last=False)
        logger.debug("evicting table engine %s", evicted_id)
        entry.table.close()


def _lookup_cache(cache_id: str) -> _TableCache | None:
    entry = _cache_registry.get(cache_id)
    if entry is not None:
        _cache_registry.move_to_end(cache_id)
    return entry


class AdvancedTableMixin(rx.State, mixin=True):
    """Reflex state mixin exposing one table's state as ``table_*`` vars.

    .. important::

       Subclasses **must** also inherit from ``rx.State`` so that
       Reflex's metaclass registers the vars on the child::

           class MyTable(AdvancedTableMixin, rx.State):
               ...
    """

    # -- Frontend state vars --
    table_rows: list[dict[str, Any]] = []
    table_columns: list[dict[str, Any]] = []
    table_row_count: int = 0
    table_total_pages: int = 0
    table_loading: bool = False
    table_loaded: bool = False
    table_error: str = ""
    table_status: str = ""
    table_search: str = ""
    table_filter_model: dict[str, Any] = {"items": []}
    table_sort_model: list[dict[str, Any]] = []
    table_pagination_model: dict[str, int] = {"page": 0, "pageSize": _DEFAULT_PAGE_SIZE}
    table_page_size_options: list[int] = []
    table_selection: list[str] = []
    table_edited_row_ids: list[str] = []
    table_row_errors: dict[str, str] = {}
    table_can_delete: bool = False

    # -- Backend-only vars --
    _table_cache_id: str = ""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def _get_table(self) -> AdvancedTable | None:
        entry = _lookup_cache(self._table_cache_id)
        return entry.table if entry is not None else None

    async def set_data_source(
        self,
        source: DataSource,
        schema: SchemaProvider | None = None,
        options: TableOptions | None = None,
        **table_kwargs: Any,
    ):
        """Attach a data source and load its first page.

        This is an **async generator**: iterate it from your event handler
        (``async for _ in self.set_data_source(...): yield``) so the
        loading state reaches the frontend before the first fetch.
        """
        self.table_loading = True  # type: ignore[assignment]
        self.table_status = "Loading..."  # type: ignore[assignment]
        yield

        cache_id = f"{type(self).__name__}:{self.router.session.client_token}"
        table = AdvancedTable(source, schema, options, **table_kwargs)
        _store_cache(cache_id, table)
        self._table_cache_id = cache_id  # type: ignore[assignment]

        self.table_columns = [c.dict() for c in to_grid_columns(table.columns())]  # type: ignore[assignment]
        self.table_page_size_options = list(table.options.page_size_options)  # type: ignore[assignment]
        self.table_can_delete = source.supports("bulk_delete") or source.supports("delete")  # type: ignore[assignment]
        self.table_search = ""  # type: ignore[assignment]
        self.table_filter_model = {"items": []}  # type: ignore[assignment]
        self.table_sort_model = []  # type: ignore[assignment]

        await table.load()
        self.table_loaded = True  # type: ignore[assignment]
        self._sync_table_vars(table)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def handle_table_pagination(self, pagination_model: dict[str, Any]):
        """Handle a page or page-size change."""
        table = self._get_table()
        if table is None:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        page, page_size = pagination_model_to_page(pagination_model)
        if page_size != table.controller.page_size:
            table.controller.set_page_size(page_size)
        else:
            table.controller.set_page(page)
        await table.settle()
        self._sync_table_vars(table)

    async def handle_table_sort(self, sort_model: list[dict[str, Any]]):
        """Handle a sort model change; ignored when sorting is disabled."""
        table = self._get_table()
        if table is None or not table.options.sorting:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        self.table_sort_model = sort_model  # type: ignore[assignment]
        table.controller.set_sorting(sort_model_to_sorting(sort_model))
        await table.settle()
        self._sync_table_vars(table)

    async def handle_table_filter(self, filter_model: dict[str, Any]):
        """Handle a filter model change, accumulating one column at a time."""
        table = self._get_table()
        if table is None or not table.options.filtering:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        merged = merge_filter_model(self.table_filter_model, filter_model)
        self.table_filter_model = merged  # type: ignore[assignment]
        table.controller.set_filters(filter_model_to_filters(merged))
        await table.settle()
        self._sync_table_vars(table)

    async def clear_table_filters(self):
        table = self._get_table()
        if table is None:
            return
        self.table_filter_model = {"items": []}  # type: ignore[assignment]
        table.controller.clear_filters()
        await table.settle()
        self._sync_table_vars(table)

    async def set_table_search(self, value: str):
        """Update the free-text search.  The fetch waits for the debounce."""
        table = self._get_table()
        if table is None or not table.options.filtering:
            return
        self.table_search = value  # type: ignore[assignment]
        self.table_loading = True  # type: ignore[assignment]
        yield

        table.controller.set_search(value)
        await table.settle()
        self._sync_table_vars(table)

    def handle_table_row_selection(self, selection_model: Any) -> None:
        """Apply a row selection change from the current page.

        Rows selected on other pages are kept.
        """
        table = self._get_table()
        if table is None:
            return
        page_ids = [table.get_row_id(row) for row in table.fetcher.rows]
        selected, deselected = selection_model_to_ids(selection_model, page_ids)
        if not table.options.multi_select:
            table.selection.set_from_state({row_id: True for row_id in sorted(selected)})
        else:
            table.selection.deselect(*deselected)
            table.selection.select(*selected)
        self._sync_table_vars(table)

    def toggle_table_row(self, row_id: str) -> None:
        table = self._get_table()
        if table is None:
            return
        table.selection.toggle_row(row_id)
        self._sync_table_vars(table)

    def toggle_table_select_all(self) -> None:
        table = self._get_table()
        if table is None:
            return
        table.selection.toggle_select_all_on_page(table.fetcher.rows)
        self._sync_table_vars(table)

    async def handle_table_cell_edit(self, row_id: str, field: str, value: Any) -> None:
        table = self._get_table()
        if table is None or not table.options.editing:
            return
        try:
            await table.editor.edit_cell(row_id, field, value)
        except ValueError as exc:
            self.table_error = str(exc)  # type: ignore[assignment]
            return
        self._sync_table_vars(table)

    async def save_table_row(self, row_id: str):
        table = self._get_table()
        if table is None:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        try:
            await table.editor.commit_row(row_id)
        except AdvancedTableError as exc:
            logger.debug("saving row %s failed: %s", row_id, exc)
            self._sync_table_vars(table)
            return
        await table.fetcher.load()
        self._sync_table_vars(table)

    def cancel_table_row(self, row_id: str) -> None:
        table = self._get_table()
        if table is None:
            return
        table.editor.cancel_row(row_id)
        self._sync_table_vars(table)

    async def save_all_table_rows(self):
        table = self._get_table()
        if table is None:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        result = await table.editor.commit_all()
        if result.affected:
            await table.fetcher.load()
        self._sync_table_vars(table)
        if result.errors:
            self.table_status = f"Saved {result.affected} rows, {len(result.errors)} failed"  # type: ignore[assignment]

    def cancel_all_table_rows(self) -> None:
        table = self._get_table()
        if table is None:
            return
        table.editor.cancel_all()
        self._sync_table_vars(table)

    async def delete_selected_table_rows(self):
        table = self._get_table()
        if table is None:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        try:
            result = await table.delete_selected()
        except AdvancedTableError as exc:
            self._sync_table_vars(table)
            self.table_error = str(exc)  # type: ignore[assignment]
            return
        self._sync_table_vars(table)
        self.table_status = f"Deleted {result.affected} rows"  # type: ignore[assignment]

    async def refetch_table(self):
        table = self._get_table()
        if table is None:
            return
        self.table_loading = True  # type: ignore[assignment]
        yield

        await table.fetcher.load()
        self._sync_table_vars(table)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sync_table_vars(self, table: AdvancedTable) -> None:
        """Mirror the engine into the ``table_*`` vars."""
        fetcher = table.fetcher
        controller = table.controller
        editor = table.editor

        self.table_rows = table.visible_rows()  # type: ignore[assignment]
        self.table_row_count = fetcher.total  # type: ignore[assignment]
        self.table_total_pages = fetcher.total_pages  # type: ignore[assignment]
        self.table_loading = fetcher.is_loading  # type: ignore[assignment]
        self.table_pagination_model = {  # type: ignore[assignment]
            "page": controller.page - 1,
            "pageSize": controller.page_size,
        }
        self.table_selection = sorted(controller.selection)  # type: ignore[assignment]

        edited_ids = sorted(editor.edited_rows)
        self.table_edited_row_ids = edited_ids  # type: ignore[assignment]
        self.table_row_errors = {  # type: ignore[assignment]
            row_id: str(error)
            for row_id in edited_ids
            if (error := editor.row_error(row_id)) is not None
        }

        self.table_error = str(fetcher.error) if fetcher.error is not None else ""  # type: ignore[assignment]
        self.table_status = (  # type: ignore[assignment]
            f"{fetcher.total:,} rows | page {controller.page} of {max(fetcher.total_pages, 1)}"
            f" | {len(controller.selection)} selected"
        )
