"""Polars helpers behind the in-memory data sources.

Translates the engine's raw filter values, free-text search and sort
keys into polars expressions over a ``LazyFrame``, and converts result
slices into JSON-safe row dicts.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable

import polars as pl

from reflex_advanced_table.models import SortSpec


def polars_dtype_to_field_type(dtype: pl.DataType) -> str:
    """Map a polars DataType to the closest column field type.

    Returns:
        One of ``"text"``, ``"number"``, ``"boolean"``, ``"date"``,
        ``"datetime"``, ``"select"`` or ``"multi-select"``.
    """
    if isinstance(dtype, pl.Boolean):
        return "boolean"
    if dtype.is_numeric():
        return "number"
    if isinstance(dtype, pl.Date):
        return "date"
    if isinstance(dtype, pl.Datetime):
        return "datetime"
    if isinstance(dtype, (pl.Categorical, pl.Enum)):
        return "select"
    if isinstance(dtype, (pl.List, pl.Array)):
        return "multi-select"
    return "text"


def _col_to_str_expr(col: pl.Expr, dtype: pl.DataType) -> pl.Expr:
    """Convert a column expression to a String, joining List/Array values."""
    if isinstance(dtype, (pl.List, pl.Array)):
        return col.cast(pl.List(pl.String)).list.join(",")
    return col.cast(pl.String)


def _coerce_numeric(value: Any) -> int | float | None:
    """Try to coerce *value* to a number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        for conv in (int, float):
            try:  # noqa: SIM105
                return conv(value)
            except ValueError:
                continue
    return None


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
    if isinstance(value, int):
        return bool(value)
    return None


def _coerce_temporal(value: Any, dtype: pl.DataType) -> date | datetime | None:
    if isinstance(value, datetime):
        return value.date() if isinstance(dtype, pl.Date) else value
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            if isinstance(dtype, pl.Date):
                return date.fromisoformat(text[:10])
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def _is_empty_filter(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value == "":
        return True
    if isinstance(value, (list, tuple, set)) and len(value) == 0:
        return True
    return False


def _bound_expr(col: pl.Expr, dtype: pl.DataType, bound: Any, op: str) -> pl.Expr | None:
    """Build ``col >= bound`` / ``col <= bound`` with type-aware coercion."""
    if _is_empty_filter(bound):
        return None
    if isinstance(dtype, (pl.Date, pl.Datetime)):
        lit = _coerce_temporal(bound, dtype)
        if lit is None:
            return None
    elif dtype.is_numeric():
        lit = _coerce_numeric(bound)
        if lit is None:
            return None
    else:
        # ISO-8601 strings sort lexicographically.
        lit = str(bound)
    return col >= lit if op == ">=" else col <= lit


def build_filter_expr(field: str, value: Any, schema: pl.Schema) -> pl.Expr | None:
    """Translate one raw filter value into a polars expression.

    Value shapes:

    * ``{"min": .., "max": ..}`` -- inclusive numeric range
    * ``{"from": .., "to": ..}`` -- inclusive date range
    * list -- any-of (for list columns: row contains any of the values)
    * scalar -- equality; case-insensitive for text columns

    Returns:
        A polars expression, or ``None`` if the filter is empty or the
        field is not part of *schema*.
    """
    if field not in schema or _is_empty_filter(value):
        return None

    col = pl.col(field)
    dtype = schema[field]

    if isinstance(value, dict):
        if "min" in value or "max" in value:
            lower = _bound_expr(col, dtype, value.get("min"), ">=")
            upper = _bound_expr(col, dtype, value.get("max"), "<=")
        elif "from" in value or "to" in value:
            lower = _bound_expr(col, dtype, value.get("from"), ">=")
            upper = _bound_expr(col, dtype, value.get("to"), "<=")
        else:
            return None
        parts = [e for e in (lower, upper) if e is not None]
        if not parts:
            return None
        expr = parts[0] if len(parts) == 1 else parts[0] & parts[1]
        return expr.fill_null(False)

    if isinstance(value, (list, tuple, set)):
        wanted = [str(v) for v in value]
        if isinstance(dtype, (pl.List, pl.Array)):
            return (
                col.cast(pl.List(pl.String))
                .list.eval(pl.element().is_in(wanted))
                .list.any()
                .fill_null(False)
            )
        return col.cast(pl.String).is_in(wanted).fill_null(False)

    if isinstance(dtype, pl.Boolean):
        flag = _coerce_bool(value)
        if flag is None:
            return None
        return (col == flag).fill_null(False)

    if dtype.is_numeric():
        number = _coerce_numeric(value)
        if number is None:
            return None
        return (col == number).fill_null(False)

    str_col = _col_to_str_expr(col, dtype)
    return (str_col.str.to_lowercase() == str(value).lower()).fill_null(False)


def apply_filters(
    lf: pl.LazyFrame,
    filters: dict[str, Any],
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """AND together every filter in *filters* -- **no collect**."""
    if not filters:
        return lf
    if schema is None:
        schema = lf.collect_schema()

    exprs = [
        expr
        for field, value in filters.items()
        if (expr := build_filter_expr(field, value, schema)) is not None
    ]
    if not exprs:
        return lf

    combined = exprs[0]
    for e in exprs[1:]:
        combined = combined & e
    return lf.filter(combined)


def apply_search(
    lf: pl.LazyFrame,
    search: str,
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Keep rows where any column contains *search* (case-insensitive)."""
    needle = search.strip().lower()
    if not needle:
        return lf
    if schema is None:
        schema = lf.collect_schema()
    if len(schema) == 0:
        return lf

    matches = [
        _col_to_str_expr(pl.col(name), dtype)
        .str.to_lowercase()
        .str.contains(needle, literal=True)
        .fill_null(False)
        for name, dtype in schema.items()
    ]
    return lf.filter(pl.any_horizontal(matches))


def apply_sorting(
    lf: pl.LazyFrame,
    sorting: Iterable[SortSpec],
    schema: pl.Schema | None = None,
) -> pl.LazyFrame:
    """Sort by every key in order; unknown fields are skipped, nulls go last."""
    sorting = list(sorting)
    if not sorting:
        return lf
    if schema is None:
        schema = lf.collect_schema()

    by: list[str] = []
    descending: list[bool] = []
    for spec in sorting:
        if spec.field not in schema:
            continue
        by.append(spec.field)
        descending.append(spec.direction == "desc")

    if not by:
        return lf
    return lf.sort(by=by, descending=descending, nulls_last=True, maintain_order=True)


def dataframe_to_dicts(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Convert a DataFrame to a list of JSON-safe dicts.

    Temporal columns become ISO-8601 strings and struct columns are cast
    to String.  List columns stay Python lists (multi-select values).
    """
    to_string: set[str] = set()
    for name, dtype in df.schema.items():
        if isinstance(dtype, (pl.Date, pl.Datetime, pl.Time, pl.Duration, pl.Struct)):
            to_string.add(name)

    if not to_string:
        return df.to_dicts()

    exprs = [
        pl.col(c).cast(pl.String) if c in to_string else pl.col(c)
        for c in df.columns
    ]
    return df.select(exprs).to_dicts()


def load_frame(path: Path) -> pl.DataFrame:
    """Read a tabular file into a DataFrame, picking the reader by extension.

    Supports ``.csv``, ``.tsv``, ``.parquet``/``.pq``, ``.json``,
    ``.ndjson``/``.jsonl`` and ``.ipc``/``.arrow``/``.feather``.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file extension is not recognised.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".parquet", ".pq"):
        return pl.read_parquet(path)
    if suffix == ".csv":
        return pl.read_csv(path, try_parse_dates=True)
    if suffix == ".tsv":
        return pl.read_csv(path, separator="\t", try_parse_dates=True)
    if suffix == ".json":
        return pl.read_json(path)
    if suffix in (".ndjson", ".jsonl"):
        return pl.read_ndjson(path)
    if suffix in (".ipc", ".arrow", ".feather"):
        return pl.read_ipc(path)

    raise ValueError(
        f"Unsupported file extension: {suffix!r}. "
        "Supported: .csv, .tsv, .parquet, .pq, .json, .ndjson, .jsonl, "
        ".ipc, .arrow, .feather"
    )
