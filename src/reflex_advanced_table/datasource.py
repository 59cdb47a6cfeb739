"""The data source contract and the helpers adapters share.

A data source must implement :meth:`DataSource.fetch`.  ``create``,
``update``, ``delete``, ``bulk_delete`` and ``batch_update`` are optional:
the base implementations raise :class:`UnsupportedOperation`, and
:meth:`DataSource.supports` tells callers up front whether a capability
exists.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

from reflex_advanced_table.exceptions import UnsupportedOperation
from reflex_advanced_table.models import (
    BulkOperationResult,
    DataSourceParams,
    DataSourceResult,
)

OPTIONAL_OPERATIONS: tuple[str, ...] = (
    "create",
    "update",
    "delete",
    "bulk_delete",
    "batch_update",
)

# Alternate names accepted in response envelopes, first present wins.
ROWS_ALIASES: tuple[str, ...] = ("items", "data", "results")
TOTAL_ALIASES: tuple[str, ...] = ("total", "totalCount", "count")
PAGE_ALIASES: tuple[str, ...] = ("page", "currentPage", "pageNumber")
PAGE_SIZE_ALIASES: tuple[str, ...] = ("limit", "pageSize", "perPage")
TOTAL_PAGES_ALIASES: tuple[str, ...] = ("totalPages",)

_DEFAULT_PAGE: int = 1
_DEFAULT_PAGE_SIZE: int = 10


class DataSource(ABC):
    """Pluggable backend access for a table."""

    @abstractmethod
    async def fetch(self, params: DataSourceParams) -> DataSourceResult:
        """Return one page of rows for *params*."""

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        raise UnsupportedOperation("create", self)

    async def update(self, row_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        raise UnsupportedOperation("update", self)

    async def delete(self, row_id: str) -> None:
        raise UnsupportedOperation("delete", self)

    async def bulk_delete(self, ids: list[str]) -> BulkOperationResult:
        raise UnsupportedOperation("bulk_delete", self)

    async def batch_update(self, updates: Mapping[str, Mapping[str, Any]]) -> BulkOperationResult:
        raise UnsupportedOperation("batch_update", self)

    def supports(self, operation: str) -> bool:
        """Whether this source implements the optional *operation*."""
        if operation == "fetch":
            return True
        if operation not in OPTIONAL_OPERATIONS:
            raise ValueError(f"Unknown data source operation: {operation!r}")
        return getattr(type(self), operation) is not getattr(DataSource, operation)

    def capabilities(self) -> frozenset[str]:
        return frozenset(op for op in OPTIONAL_OPERATIONS if self.supports(op))


# ---------------------------------------------------------------------------
# Response envelope normalisation
# ---------------------------------------------------------------------------

def _first_present(payload: Mapping[str, Any], aliases: tuple[str, ...]) -> Any:
    for name in aliases:
        if payload.get(name) is not None:
            return payload[name]
    return None


def normalize_response(
    payload: Mapping[str, Any] | list[Any],
    *,
    to_domain: Callable[[Any], dict[str, Any]] | None = None,
    default_page: int = _DEFAULT_PAGE,
    default_page_size: int = _DEFAULT_PAGE_SIZE,
) -> DataSourceResult:
    """Normalise a backend response envelope into a :class:`DataSourceResult`.

    Each logical field may arrive under several names; the first one
    present wins, in this order:

    * rows: ``items``, ``data``, ``results``
    * total: ``total``, ``totalCount``, ``count``
    * page: ``page``, ``currentPage``, ``pageNumber``
    * page size: ``limit``, ``pageSize``, ``perPage``

    ``totalPages`` overrides the computed page count when present (some
    backends report incomplete totals).  A bare list is treated as a
    single complete page.

    Args:
        payload: The decoded response body.
        to_domain: Optional per-row transform applied to every row.
        default_page: Page used when the envelope carries none.
        default_page_size: Page size used when the envelope carries none.
    """
    if isinstance(payload, list):
        rows = list(payload)
        total = len(rows)
        page = default_page
        page_size = max(total, default_page_size)
        total_pages = None
    else:
        rows = list(_first_present(payload, ROWS_ALIASES) or [])
        total = _first_present(payload, TOTAL_ALIASES)
        total = int(total) if total is not None else len(rows)
        page = int(_first_present(payload, PAGE_ALIASES) or default_page)
        page_size = int(_first_present(payload, PAGE_SIZE_ALIASES) or default_page_size)
        total_pages = _first_present(payload, TOTAL_PAGES_ALIASES)
        total_pages = int(total_pages) if total_pages is not None else None

    if to_domain is not None:
        rows = [to_domain(row) for row in rows]

    return DataSourceResult.build(
        rows,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


# ---------------------------------------------------------------------------
# Query parameter translation
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def translate_filters(filters: Mapping[str, Any]) -> dict[str, Any]:
    """Flatten raw filter values into query parameters.

    * ``{"min", "max"}`` -> ``<key>_min`` / ``<key>_max``
    * ``{"from", "to"}`` -> ``<key>_from`` / ``<key>_to``
    * lists -> comma-joined string
    * scalars -> unchanged

    Empty values (``None``, ``""``, empty lists) are skipped.  Booleans are
    kept, so ``False`` is a real filter.
    """
    query: dict[str, Any] = {}
    for key, value in filters.items():
        if _is_blank(value):
            continue
        if isinstance(value, (list, tuple, set)):
            if value:
                query[key] = ",".join(str(v) for v in value)
        elif isinstance(value, Mapping) and ("min" in value or "max" in value):
            if not _is_blank(value.get("min")):
                query[f"{key}_min"] = value["min"]
            if not _is_blank(value.get("max")):
                query[f"{key}_max"] = value["max"]
        elif isinstance(value, Mapping) and ("from" in value or "to" in value):
            if not _is_blank(value.get("from")):
                query[f"{key}_from"] = value["from"]
            if not _is_blank(value.get("to")):
                query[f"{key}_to"] = value["to"]
        else:
            query[key] = value
    return query


def build_query_params(params: DataSourceParams) -> dict[str, Any]:
    """Translate fetch parameters into a flat REST query mapping.

    The first sort key is sent as ``sort_by``/``sort_order``; every key is
    also sent as ``sort`` (``"field:direction,..."``) for backends that
    accept multiple keys.
    """
    query: dict[str, Any] = {}

    if params.pagination is not None:
        query["page"] = params.pagination.page
        query["limit"] = params.pagination.page_size

    if params.sorting:
        first = params.sorting[0]
        query["sort_by"] = first.field
        query["sort_order"] = first.direction
        query["sort"] = ",".join(f"{s.field}:{s.direction}" for s in params.sorting)

    if params.search:
        query["q"] = params.search

    if params.filters:
        query.update(translate_filters(params.filters))

    return query
