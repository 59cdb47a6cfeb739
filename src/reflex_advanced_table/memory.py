"""Data sources that keep every row in process.

:class:`InMemoryDataSource` answers each fetch by running the search,
filters, sort and page slice as a polars ``LazyFrame`` query over its
rows.  :class:`JsonFileDataSource` uses the same engine and writes every
mutation back to a JSON file.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Iterable, Mapping

import polars as pl

from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.models import (
    BulkError,
    BulkOperationResult,
    DataSourceParams,
    DataSourceResult,
)
from reflex_advanced_table.polars_utils import (
    apply_filters,
    apply_search,
    apply_sorting,
    dataframe_to_dicts,
    load_frame,
)

logger = logging.getLogger(__name__)

_DEFAULT_PAGE_SIZE: int = 20


def _new_local_id() -> str:
    return f"local-{uuid.uuid4().hex[:12]}"


def _not_found(row_id: str) -> BulkError:
    return BulkError(id=row_id, message=f"Row with id {row_id!r} not found")


class InMemoryDataSource(DataSource):
    """A mutable list of row dicts queried with polars.

    Args:
        rows: Initial rows.  They are copied; the caller's list is never
            mutated.
        id_field: Name of the row identifier field.
        delay: Seconds to sleep before every operation, handy for
            exercising loading states.
    """

    def __init__(
        self,
        rows: Iterable[Mapping[str, Any]] = (),
        *,
        id_field: str = "id",
        delay: float = 0.0,
    ) -> None:
        self.id_field = id_field
        self.delay = delay
        self._rows: list[dict[str, Any]] = [dict(row) for row in rows]

    @classmethod
    def from_frame(cls, df: pl.DataFrame, **kwargs: Any) -> InMemoryDataSource:
        return cls(dataframe_to_dicts(df), **kwargs)

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> InMemoryDataSource:
        """Load rows from any file :func:`load_frame` understands."""
        return cls.from_frame(load_frame(Path(path)), **kwargs)

    @property
    def rows(self) -> list[dict[str, Any]]:
        """A copy of every stored row, in insertion order."""
        return copy.deepcopy(self._load())

    # ------------------------------------------------------------------
    # Storage hooks (overridden by persisted subclasses)
    # ------------------------------------------------------------------

    def _load(self) -> list[dict[str, Any]]:
        return self._rows

    def _save(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _simulate_delay(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    def _row_id(self, row: Mapping[str, Any]) -> str:
        return str(row.get(self.id_field))

    def _index_of(self, rows: list[dict[str, Any]], row_id: str) -> int:
        for i, row in enumerate(rows):
            if self._row_id(row) == str(row_id):
                return i
        raise KeyError(f"Row with id {row_id!r} not found")

    def _frame(self, rows: list[dict[str, Any]]) -> pl.LazyFrame:
        if not rows:
            return pl.LazyFrame()
        return pl.DataFrame(rows, infer_schema_length=None).lazy()

    # ------------------------------------------------------------------
    # DataSource
    # ------------------------------------------------------------------

    async def fetch(self, params: DataSourceParams) -> DataSourceResult:
        await self._simulate_delay()

        lf = self._frame(self._load())
        schema = lf.collect_schema()

        lf = apply_search(lf, params.search, schema)
        lf = apply_filters(lf, params.filters, schema)
        total = lf.select(pl.len()).collect().item() if len(schema) else 0
        lf = apply_sorting(lf, params.sorting, schema)

        if params.pagination is not None:
            page = params.pagination.page
            page_size = params.pagination.page_size
            lf = lf.slice(params.pagination.offset, page_size)
        else:
            page, page_size = 1, max(total, _DEFAULT_PAGE_SIZE)

        rows = dataframe_to_dicts(lf.collect()) if len(schema) else []
        logger.debug(
            "in-memory fetch page=%d size=%d matched=%d returned=%d",
            page, page_size, total, len(rows),
        )
        return DataSourceResult.build(rows, total=total, page=page, page_size=page_size)

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        await self._simulate_delay()
        rows = self._load()
        row = dict(data)
        if row.get(self.id_field) in (None, ""):
            row[self.id_field] = _new_local_id()
        elif any(self._row_id(r) == self._row_id(row) for r in rows):
            raise ValueError(f"Row with id {row[self.id_field]!r} already exists")
        rows.append(row)
        self._save(rows)
        return dict(row)

    async def update(self, row_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        await self._simulate_delay()
        rows = self._load()
        index = self._index_of(rows, row_id)
        rows[index] = {**rows[index], **data}
        self._save(rows)
        return dict(rows[index])

    async def delete(self, row_id: str) -> None:
        await self._simulate_delay()
        rows = self._load()
        del rows[self._index_of(rows, row_id)]
        self._save(rows)

    async def bulk_delete(self, ids: list[str]) -> BulkOperationResult:
        """Delete every row whose id is in *ids*; unknown ids are reported as errors."""
        await self._simulate_delay()
        wanted = {str(i) for i in ids}
        rows = self._load()
        kept = [row for row in rows if self._row_id(row) not in wanted]
        found = {self._row_id(row) for row in rows}
        errors = [_not_found(row_id) for row_id in dict.fromkeys(map(str, ids)) if row_id not in found]
        self._save(kept)
        return BulkOperationResult.from_outcomes(len(rows) - len(kept), errors)

    async def batch_update(self, updates: Mapping[str, Mapping[str, Any]]) -> BulkOperationResult:
        """Merge each change set into its row; unknown ids are reported as errors."""
        await self._simulate_delay()
        rows = self._load()
        positions = {self._row_id(row): i for i, row in enumerate(rows)}
        affected = 0
        errors: list[BulkError] = []
        for row_id, changes in updates.items():
            index = positions.get(str(row_id))
            if index is None:
                errors.append(_not_found(str(row_id)))
                continue
            rows[index] = {**rows[index], **changes}
            affected += 1
        self._save(rows)
        return BulkOperationResult.from_outcomes(affected, errors)


class JsonFileDataSource(InMemoryDataSource):
    """Rows persisted as a JSON array in *path*.

    The file is read on every operation and rewritten after every
    mutation.  A missing or unreadable file counts as empty.  When
    *default_rows* are given and the file holds no rows, they are written
    immediately.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        id_field: str = "id",
        default_rows: Iterable[Mapping[str, Any]] | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(id_field=id_field, delay=delay)
        self.path = Path(path)
        if default_rows is not None and not self._load():
            self._save([dict(row) for row in default_rows])

    def _load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable table file %s: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring table file %s: expected a JSON array", self.path)
            return []
        return [dict(row) for row in data if isinstance(row, dict)]

    def _save(self, rows: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(rows, default=str, indent=2), encoding="utf-8")

    def clear(self) -> None:
        """Remove the backing file."""
        self.path.unlink(missing_ok=True)
