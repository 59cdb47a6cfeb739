"""The table's query state and the controller that owns it.

Every other component reads :attr:`TableStateController.state` (a
snapshot) and proposes changes through the controller's setters.  A
change to ``filters`` or ``search`` always puts the table back on page 1
before listeners hear about it, so a refetch never asks for a page index
that belonged to a different result set.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from reflex_advanced_table.models import DataSourceParams, Pagination, SortSpec

logger = logging.getLogger(__name__)

# Fields whose change requires new data from the data source.
DATA_FIELDS: frozenset[str] = frozenset({"pagination", "sorting", "filters", "search"})

StateListener = Callable[["TableState", frozenset[str]], None]


@dataclass
class TableState:
    pagination: Pagination = field(default_factory=Pagination)
    sorting: list[SortSpec] = field(default_factory=list)
    filters: dict[str, Any] = field(default_factory=dict)
    search: str = ""
    selection: set[str] = field(default_factory=set)

    def to_params(self) -> DataSourceParams:
        """The fetch parameters implied by this state."""
        return DataSourceParams(
            pagination=self.pagination,
            sorting=tuple(self.sorting),
            filters=copy.deepcopy(self.filters),
            search=self.search,
        )


def _to_sort_spec(entry: SortSpec | Mapping[str, Any] | tuple[str, str]) -> SortSpec:
    if isinstance(entry, SortSpec):
        return entry
    if isinstance(entry, Mapping):
        return SortSpec(field=entry["field"], direction=entry.get("direction", "asc"))
    field_name, direction = entry
    return SortSpec(field=field_name, direction=direction)  # type: ignore[arg-type]


def _same_value(a: Any, b: Any) -> bool:
    """Equality that keeps ``False``/``0`` and ``True``/``1`` apart."""
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return a.keys() == b.keys() and all(_same_value(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(_same_value(x, y) for x, y in zip(a, b))
    return a == b


class TableStateController:
    """Single owner of a :class:`TableState`.

    Args:
        page_size: Initial page size.
        preserve_selection: When ``False``, changing filters or the search
            also clears the selection.
        max_sort_keys: Optional cap on the number of sort keys kept.
    """

    def __init__(
        self,
        *,
        page_size: int = 20,
        preserve_selection: bool = True,
        max_sort_keys: int | None = None,
    ) -> None:
        self._state = TableState(pagination=Pagination(page=1, page_size=page_size))
        self._initial_page_size = page_size
        self._preserve_selection = preserve_selection
        self._max_sort_keys = max_sort_keys
        self._listeners: list[StateListener] = []
        self._generation = 0

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> TableState:
        """A copy of the current state; mutating it has no effect."""
        return copy.deepcopy(self._state)

    @property
    def generation(self) -> int:
        """Incremented on every change that requires new data."""
        return self._generation

    @property
    def page(self) -> int:
        return self._state.pagination.page

    @property
    def page_size(self) -> int:
        return self._state.pagination.page_size

    @property
    def selection(self) -> frozenset[str]:
        return frozenset(self._state.selection)

    def params(self) -> DataSourceParams:
        return self._state.to_params()

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, changed: set[str]) -> None:
        if not changed:
            return
        if changed & DATA_FIELDS:
            self._generation += 1
        frozen = frozenset(changed)
        logger.debug("table state changed: %s (generation %d)", sorted(frozen), self._generation)
        snapshot = self.state
        for listener in list(self._listeners):
            listener(snapshot, frozen)

    def _on_query_change(self, changed: set[str]) -> None:
        if self._state.pagination.page != 1:
            self._state.pagination = Pagination(page=1, page_size=self._state.pagination.page_size)
            changed.add("pagination")
        if not self._preserve_selection and self._state.selection:
            self._state.selection = set()
            changed.add("selection")

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_page(self, page: int) -> None:
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if page == self._state.pagination.page:
            return
        self._state.pagination = Pagination(page=page, page_size=self._state.pagination.page_size)
        self._commit({"pagination"})

    def set_page_size(self, page_size: int) -> None:
        """Change the page size, keeping the first visible row on screen."""
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        current = self._state.pagination
        if page_size == current.page_size:
            return
        page = current.offset // page_size + 1
        self._state.pagination = Pagination(page=page, page_size=page_size)
        self._commit({"pagination"})

    def set_sorting(
        self,
        sorting: Iterable[SortSpec | Mapping[str, Any] | tuple[str, str]],
    ) -> None:
        specs = [_to_sort_spec(entry) for entry in sorting]
        if self._max_sort_keys is not None:
            specs = specs[: self._max_sort_keys]
        if specs == self._state.sorting:
            return
        self._state.sorting = specs
        self._commit({"sorting"})

    def set_filter(self, column_key: str, value: Any) -> None:
        """Set one column's filter; ``None`` removes it.

        Only ``None`` removes the key, so falsy values such as ``False`` or
        ``0`` are real filters.
        """
        filters = self._state.filters
        if value is None:
            if column_key not in filters:
                return
            del filters[column_key]
        else:
            if column_key in filters and _same_value(filters[column_key], value):
                return
            filters[column_key] = copy.deepcopy(value)
        changed = {"filters"}
        self._on_query_change(changed)
        self._commit(changed)

    def set_filters(self, filters: Mapping[str, Any]) -> None:
        """Replace every filter at once.  ``None`` values are dropped."""
        new_filters = {k: copy.deepcopy(v) for k, v in filters.items() if v is not None}
        current = self._state.filters
        if new_filters.keys() == current.keys() and all(
            _same_value(current[key], value) for key, value in new_filters.items()
        ):
            return
        self._state.filters = new_filters
        changed = {"filters"}
        self._on_query_change(changed)
        self._commit(changed)

    def clear_filters(self) -> None:
        self.set_filters({})

    def set_search(self, search: str) -> None:
        search = search or ""
        if search == self._state.search:
            return
        self._state.search = search
        changed = {"search"}
        self._on_query_change(changed)
        self._commit(changed)

    def set_selection(self, selection: Iterable[str]) -> None:
        new_selection = {str(row_id) for row_id in selection}
        if new_selection == self._state.selection:
            return
        self._state.selection = new_selection
        self._commit({"selection"})

    def reset(self) -> None:
        """Back to page 1 of the initial page size with no sorting, filters, search or selection."""
        fresh = TableState(pagination=Pagination(page=1, page_size=self._initial_page_size))
        changed = {
            name
            for name in ("pagination", "sorting", "filters", "search", "selection")
            if getattr(fresh, name) != getattr(self._state, name)
        }
        self._state = fresh
        self._commit(changed)
