"""Engine options and their defaults."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Mapping

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE: int = 20
_DEFAULT_PAGE_SIZE_OPTIONS: tuple[int, ...] = (10, 20, 50, 100)
_DEFAULT_SEARCH_DEBOUNCE: float = 0.3


@dataclass(frozen=True)
class TableOptions:
    """Feature switches and tuning knobs for one table.

    Attributes:
        page_size: Initial number of rows per page.
        page_size_options: Page sizes offered to the user.
        search_debounce: Seconds to wait for free-text input to quiesce
            before fetching.  ``0`` fetches on every keystroke.
        multi_select: Allow more than one selected row.
        preserve_selection: Keep the selection when filters or the search
            change.  When ``False`` those changes clear it.
        editing: Enable inline editing.
        sorting: Enable sorting.
        filtering: Enable column filters and search.
        max_sort_keys: Cap on the number of sort keys (``None`` = no cap).
    """

    page_size: int = _DEFAULT_PAGE_SIZE
    page_size_options: tuple[int, ...] = _DEFAULT_PAGE_SIZE_OPTIONS
    search_debounce: float = _DEFAULT_SEARCH_DEBOUNCE
    multi_select: bool = True
    preserve_selection: bool = True
    editing: bool = True
    sorting: bool = True
    filtering: bool = True
    max_sort_keys: int | None = None

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")
        if self.search_debounce < 0:
            raise ValueError(f"search_debounce must be >= 0, got {self.search_debounce}")
        if self.max_sort_keys is not None and self.max_sort_keys < 1:
            raise ValueError(f"max_sort_keys must be >= 1, got {self.max_sort_keys}")
        if not isinstance(self.page_size_options, tuple):
            object.__setattr__(self, "page_size_options", tuple(self.page_size_options))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> TableOptions:
        """Build options from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            logger.warning("Ignoring unknown table options: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in values.items() if k in known})
