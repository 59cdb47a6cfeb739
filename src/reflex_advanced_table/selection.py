"""Row selection by stable row id.

Selection is stored as a set of ids on the :class:`TableStateController`,
so it survives page changes, re-sorting and refetches: a row that leaves
the current page stays selected, and comes back selected.
"""

from __future__ import annotations

from typing import Any, Iterable, Literal, Mapping

from reflex_advanced_table.models import GetRowId, row_id_getter
from reflex_advanced_table.state import TableStateController

SelectAllState = Literal["none", "some", "all"]


class RowSelection:
    """Selection operations over a controller's ``selection`` field.

    Args:
        controller: Owner of the selection set.
        get_row_id: Extracts the stable id of a row.
        multiple: ``False`` keeps at most one selected id.
    """

    def __init__(
        self,
        controller: TableStateController,
        *,
        get_row_id: GetRowId | None = None,
        multiple: bool = True,
    ) -> None:
        self.controller = controller
        self.get_row_id = get_row_id or row_id_getter()
        self.multiple = multiple

    @property
    def selected_ids(self) -> frozenset[str]:
        return self.controller.selection

    def _page_ids(self, rows: Iterable[Mapping[str, Any]]) -> list[str]:
        return [self.get_row_id(row) for row in rows]

    def is_selected(self, row_id: str) -> bool:
        return str(row_id) in self.controller.selection

    def select(self, *row_ids: str) -> None:
        ids = [str(i) for i in row_ids]
        if not ids:
            return
        if not self.multiple:
            self.controller.set_selection(ids[-1:])
            return
        self.controller.set_selection(self.controller.selection | set(ids))

    def deselect(self, *row_ids: str) -> None:
        self.controller.set_selection(self.controller.selection - {str(i) for i in row_ids})

    def toggle_row(self, row_id: str) -> None:
        if self.is_selected(row_id):
            self.deselect(row_id)
        else:
            self.select(row_id)

    def clear(self) -> None:
        self.controller.set_selection(())

    def selected_on_page(self, rows: Iterable[Mapping[str, Any]]) -> list[str]:
        selection = self.controller.selection
        return [row_id for row_id in self._page_ids(rows) if row_id in selection]

    def is_all_page_selected(self, rows: Iterable[Mapping[str, Any]]) -> bool:
        page_ids = self._page_ids(rows)
        selection = self.controller.selection
        return bool(page_ids) and all(row_id in selection for row_id in page_ids)

    def is_some_page_selected(self, rows: Iterable[Mapping[str, Any]]) -> bool:
        """At least one, but not every, row of the page is selected."""
        rows = list(rows)
        return bool(self.selected_on_page(rows)) and not self.is_all_page_selected(rows)

    def page_selection_state(self, rows: Iterable[Mapping[str, Any]]) -> SelectAllState:
        rows = list(rows)
        if self.is_all_page_selected(rows):
            return "all"
        if self.selected_on_page(rows):
            return "some"
        return "none"

    def toggle_select_all_on_page(self, rows: Iterable[Mapping[str, Any]]) -> None:
        """Select every row of the page, or deselect them if all already are.

        Only ids of *rows* are added or removed; rows selected on other
        pages are left alone.
        """
        rows = list(rows)
        page_ids = set(self._page_ids(rows))
        if not page_ids:
            return
        if self.is_all_page_selected(rows):
            self.controller.set_selection(self.controller.selection - page_ids)
        elif self.multiple:
            self.controller.set_selection(self.controller.selection | page_ids)

    def row_selection_state(self, rows: Iterable[Mapping[str, Any]]) -> dict[str, bool]:
        """``{row_id: True}`` for the selected rows of the page."""
        return {row_id: True for row_id in self.selected_on_page(rows)}

    def set_from_state(self, state: Mapping[str, bool]) -> None:
        """Replace the selection from a ``{row_id: bool}`` mapping."""
        ids = [str(row_id) for row_id, selected in state.items() if selected]
        if not self.multiple:
            ids = ids[-1:]
        self.controller.set_selection(ids)

    def prune(self, existing_ids: Iterable[str]) -> None:
        """Drop selected ids that are not in *existing_ids* (e.g. after a delete)."""
        existing = {str(i) for i in existing_ids}
        self.controller.set_selection(self.controller.selection & existing)
