"""Column definitions, fetch parameters and result shapes used by the table engine."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping

import reflex as rx
from reflex.components.props import PropsBase

FieldType = Literal[
    "text",
    "number",
    "date",
    "datetime",
    "boolean",
    "currency",
    "select",
    "multi-select",
    "email",
    "url",
    "custom",
]

FIELD_TYPES: tuple[str, ...] = (
    "text",
    "number",
    "date",
    "datetime",
    "boolean",
    "currency",
    "select",
    "multi-select",
    "email",
    "url",
    "custom",
)

SortDirection = Literal["asc", "desc"]


# ---------------------------------------------------------------------------
# Column metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SelectOption:
    """One entry of an enumerated (select / multi-select) column."""

    value: str | int | float
    label: str
    disabled: bool = False


@dataclass(frozen=True)
class ValidationRules:
    """Validation applied to a column's pending value before a commit.

    ``custom`` receives the value and returns ``True`` when valid, or
    ``False`` / an error message string when not.
    """

    required: bool = False
    min: float | None = None
    max: float | None = None
    pattern: str | re.Pattern[str] | None = None
    custom: Callable[[Any], bool | str] | None = None


@dataclass(frozen=True)
class ColumnDefinition:
    """Static per-column metadata supplied by a schema provider.

    Instances are built once per session and never mutated.  ``format``
    turns a value into display text, ``parse`` turns editor text input
    back into a value.
    """

    key: str
    header: str
    type: FieldType = "text"
    sortable: bool = True
    filterable: bool = True
    editable: bool = False
    options: tuple[SelectOption, ...] = ()
    format: Callable[[Any], str] | None = None
    parse: Callable[[str], Any] | None = None
    validation: ValidationRules | None = None
    width: int | None = None
    hidden: bool = False
    description: str | None = None

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(
                f"Unknown field type {self.type!r} for column {self.key!r}. "
                f"Expected one of: {', '.join(FIELD_TYPES)}"
            )
        # Accept lists for convenience; store an immutable tuple.
        if not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))

    @property
    def option_values(self) -> list[Any]:
        return [opt.value for opt in self.options]


class ColumnDef(PropsBase):
    """Column definition for the MUI X DataGrid, maps to GridColDef.

    Attributes are automatically converted from snake_case to camelCase
    when serialized to JavaScript props via PropsBase.
    """

    field: str
    header_name: str | None = None
    width: int | None = None
    type: Literal["string", "number", "date", "dateTime", "boolean", "singleSelect"] | None = None
    editable: bool | rx.Var[bool] = False
    sortable: bool | rx.Var[bool] = True
    filterable: bool | rx.Var[bool] = True
    hide: bool | rx.Var[bool] = False
    description: str | None = None
    value_options: list[Any] | None = None


# ---------------------------------------------------------------------------
# Fetch parameters and results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Pagination:
    page: int = 1
    page_size: int = 20

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass(frozen=True)
class SortSpec:
    field: str
    direction: SortDirection = "asc"

    def __post_init__(self) -> None:
        if self.direction not in ("asc", "desc"):
            raise ValueError(f"Sort direction must be 'asc' or 'desc', got {self.direction!r}")


@dataclass(frozen=True)
class DataSourceParams:
    """What a data source receives on every fetch.

    ``filters`` are passed raw (untransformed); each source translates
    them into its own query shape.
    """

    pagination: Pagination | None = None
    sorting: tuple[SortSpec, ...] = ()
    filters: dict[str, Any] = field(default_factory=dict)
    search: str = ""


def compute_total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return math.ceil(total / page_size)


@dataclass(frozen=True)
class DataSourceResult:
    rows: list[dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(
        cls,
        rows: list[dict[str, Any]],
        *,
        total: int,
        page: int,
        page_size: int,
        total_pages: int | None = None,
    ) -> DataSourceResult:
        """Build a result, deriving ``total_pages`` unless the source overrides it."""
        if total_pages is None:
            total_pages = compute_total_pages(total, page_size)
        return cls(
            rows=list(rows),
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
        )


@dataclass(frozen=True)
class BulkError:
    id: str
    message: str


@dataclass(frozen=True)
class BulkOperationResult:
    """Outcome of a bulk delete / batch update.

    ``errors`` is ``None`` when every item succeeded.
    """

    success: bool
    affected: int
    errors: list[BulkError] | None = None

    @classmethod
    def from_outcomes(cls, affected: int, errors: list[BulkError]) -> BulkOperationResult:
        """Aggregate per-item outcomes of a sequential fallback."""
        return cls(
            success=affected > 0,
            affected=affected,
            errors=list(errors) if errors else None,
        )

    @property
    def failed_ids(self) -> list[str]:
        return [err.id for err in self.errors or []]


GetRowId = Callable[[Mapping[str, Any]], str]


def row_id_getter(id_field: str = "id") -> GetRowId:
    """Return a ``get_row_id`` callable reading *id_field* as a string."""

    def get_row_id(row: Mapping[str, Any]) -> str:
        return str(row[id_field])

    return get_row_id
