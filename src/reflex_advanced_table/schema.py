"""Schema providers: where a table's column definitions come from."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping

import polars as pl

from reflex_advanced_table.models import (
    ColumnDef,
    ColumnDefinition,
    FieldType,
    SelectOption,
    ValidationRules,
)
from reflex_advanced_table.polars_utils import polars_dtype_to_field_type

# Field type -> MUI DataGrid column type.
_GRID_TYPES: dict[str, str] = {
    "text": "string",
    "number": "number",
    "currency": "number",
    "date": "date",
    "datetime": "dateTime",
    "boolean": "boolean",
    "select": "singleSelect",
    "multi-select": "string",
    "email": "string",
    "url": "string",
    "custom": "string",
}


def _humanize_field_name(field: str) -> str:
    """Convert a snake_case or raw field name to a human-friendly header.

    Examples:
        ``"first_name"`` -> ``"First Name"``
        ``"price"`` -> ``"Price"``
    """
    return field.strip("_").replace("_", " ").title()


class SchemaProvider(ABC):
    """Supplies the ordered column definitions of a table."""

    @abstractmethod
    def get_columns(self) -> list[ColumnDefinition]:
        ...

    def get_column(self, key: str) -> ColumnDefinition | None:
        for column in self.get_columns():
            if column.key == key:
                return column
        return None

    def get_field_type(self, key: str) -> FieldType:
        column = self.get_column(key)
        return column.type if column is not None else "text"

    def columns_by_key(self) -> dict[str, ColumnDefinition]:
        return {column.key: column for column in self.get_columns()}

    def editable_keys(self) -> list[str]:
        return [column.key for column in self.get_columns() if column.editable]


class ManualSchemaProvider(SchemaProvider):
    """Columns declared by hand."""

    def __init__(self, columns: Iterable[ColumnDefinition]) -> None:
        self._columns = list(columns)
        keys = [c.key for c in self._columns]
        duplicates = sorted({k for k in keys if keys.count(k) > 1})
        if duplicates:
            raise ValueError(f"Duplicate column keys: {', '.join(duplicates)}")

    def get_columns(self) -> list[ColumnDefinition]:
        return list(self._columns)

    @classmethod
    def from_dicts(cls, specs: Iterable[Mapping[str, Any]]) -> ManualSchemaProvider:
        """Build columns from plain mappings.

        Each mapping has the shape ``{"key", "header"?, "type"?,
        "sortable"?, "filterable"?, "editable"?, "options"?,
        "validation"?}``.  Options may be plain values or
        ``{"value", "label"}`` mappings; validation is a mapping of
        :class:`ValidationRules` fields.
        """
        columns: list[ColumnDefinition] = []
        for spec in specs:
            spec = dict(spec)
            key = spec.pop("key")
            header = spec.pop("header", None) or _humanize_field_name(key)
            options = tuple(_to_option(o) for o in spec.pop("options", None) or ())
            validation = spec.pop("validation", None)
            if isinstance(validation, Mapping):
                validation = ValidationRules(**validation)
            columns.append(
                ColumnDefinition(
                    key=key,
                    header=header,
                    options=options,
                    validation=validation,
                    **spec,
                )
            )
        return cls(columns)


def _to_option(raw: Any) -> SelectOption:
    if isinstance(raw, SelectOption):
        return raw
    if isinstance(raw, Mapping):
        return SelectOption(
            value=raw["value"],
            label=str(raw.get("label", raw["value"])),
            disabled=bool(raw.get("disabled", False)),
        )
    return SelectOption(value=raw, label=str(raw))


class PolarsSchemaProvider(SchemaProvider):
    """Infer column definitions from a polars schema without collecting data.

    Args:
        schema: A polars ``Schema`` (e.g. ``lf.collect_schema()``).
        value_options_map: Pre-computed allowed values per column.  Columns
            present here become ``select`` columns.
        column_descriptions: Optional ``{column: description}`` mapping.
        id_field: Name of the row identifier column.  Hidden and not
            editable.
        editable: Column names that may be edited inline.  ``None`` makes
            every column except *id_field* editable.
    """

    def __init__(
        self,
        schema: pl.Schema | Mapping[str, pl.DataType],
        *,
        value_options_map: Mapping[str, list[Any]] | None = None,
        column_descriptions: Mapping[str, str] | None = None,
        id_field: str | None = "id",
        editable: Iterable[str] | None = None,
    ) -> None:
        value_options_map = value_options_map or {}
        column_descriptions = column_descriptions or {}
        editable_set = set(editable) if editable is not None else None

        columns: list[ColumnDefinition] = []
        for col_name, dtype in schema.items():
            field_type = polars_dtype_to_field_type(dtype)
            options: tuple[SelectOption, ...] = ()
            if col_name in value_options_map:
                options = tuple(_to_option(v) for v in value_options_map[col_name])
                if field_type != "multi-select":
                    field_type = "select"
            elif isinstance(dtype, pl.Enum):
                options = tuple(_to_option(v) for v in dtype.categories.to_list())

            is_id = col_name == id_field
            if editable_set is None:
                is_editable = not is_id
            else:
                is_editable = col_name in editable_set and not is_id

            columns.append(
                ColumnDefinition(
                    key=col_name,
                    header=_humanize_field_name(col_name),
                    type=field_type,  # type: ignore[arg-type]
                    editable=is_editable,
                    options=options,
                    hidden=is_id,
                    description=column_descriptions.get(col_name),
                )
            )
        self._columns = columns

    def get_columns(self) -> list[ColumnDefinition]:
        return list(self._columns)


def format_value(column: ColumnDefinition, value: Any) -> str:
    """Display text for a cell value: the column's ``format`` or a default."""
    if column.format is not None:
        return column.format(value)
    if value is None:
        return "-"
    if column.type in ("select", "multi-select") and column.options:
        labels = {str(opt.value): opt.label for opt in column.options}
        if isinstance(value, (list, tuple)):
            return ", ".join(labels.get(str(v), str(v)) for v in value)
        return labels.get(str(value), str(value))
    if column.type == "currency" and isinstance(value, (int, float)):
        return f"{value:,.2f}"
    if column.type == "boolean":
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def to_grid_columns(columns: Iterable[ColumnDefinition]) -> list[ColumnDef]:
    """Convert column definitions into MUI DataGrid ``ColumnDef``s."""
    grid_columns: list[ColumnDef] = []
    for column in columns:
        value_options: list[Any] | None = None
        if column.options and column.type == "select":
            value_options = [{"value": o.value, "label": o.label} for o in column.options]
        grid_columns.append(
            ColumnDef(
                field=column.key,
                header_name=column.header,
                width=column.width,
                type=_GRID_TYPES[column.type],
                editable=column.editable,
                sortable=column.sortable,
                filterable=column.filterable,
                hide=column.hidden,
                description=column.description,
                value_options=value_options,
            )
        )
    return grid_columns
