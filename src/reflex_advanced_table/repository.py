"""Repository layer: map backend DTOs to table rows and back.

:class:`RepositoryDataSource` wraps any :class:`DataSource` and passes
every row through a :class:`Transformer`.  Bulk operations use the inner
source's atomic endpoint when there is one and otherwise fall back to
one request per row.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterable, Mapping

from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.models import (
    BulkError,
    BulkOperationResult,
    DataSourceParams,
    DataSourceResult,
)

logger = logging.getLogger(__name__)


class Transformer(ABC):
    """Converts between backend records (DTOs) and table rows."""

    @abstractmethod
    def to_domain(self, dto: Mapping[str, Any]) -> dict[str, Any]:
        ...

    @abstractmethod
    def to_api(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Convert a possibly partial row; only fields present are emitted."""


class IdentityTransformer(Transformer):
    def to_domain(self, dto: Mapping[str, Any]) -> dict[str, Any]:
        return dict(dto)

    def to_api(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return dict(row)


class FieldMapTransformer(Transformer):
    """Rename fields according to a ``{domain_name: api_name}`` mapping.

    Fields missing from the mapping keep their name.  Both directions only
    emit the fields present in their input, so a partial edit serialises
    to a partial DTO.

    Args:
        field_map: Domain field name to API field name.
        defaults: Domain values filled in by :meth:`to_domain` when the
            DTO lacks the field.
    """

    def __init__(
        self,
        field_map: Mapping[str, str],
        *,
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        self.field_map = dict(field_map)
        self.reverse_map = {api: domain for domain, api in self.field_map.items()}
        if len(self.reverse_map) != len(self.field_map):
            raise ValueError("field_map must not map two domain fields to the same API field")
        self.defaults = dict(defaults or {})

    def to_domain(self, dto: Mapping[str, Any]) -> dict[str, Any]:
        row = {self.reverse_map.get(key, key): value for key, value in dto.items()}
        for key, value in self.defaults.items():
            row.setdefault(key, value)
        return row

    def to_api(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {self.field_map.get(key, key): value for key, value in row.items()}


async def _sequential(
    ids: Iterable[str],
    operation: Callable[[str], Awaitable[Any]],
    label: str,
) -> BulkOperationResult:
    affected = 0
    errors: list[BulkError] = []
    for row_id in ids:
        try:
            await operation(row_id)
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s of %s failed: %s", label, row_id, exc)
            errors.append(BulkError(id=str(row_id), message=str(exc) or type(exc).__name__))
        else:
            affected += 1
    return BulkOperationResult.from_outcomes(affected, errors)


async def bulk_delete_with_fallback(source: DataSource, ids: list[str]) -> BulkOperationResult:
    """Delete *ids* atomically if *source* can, otherwise one by one.

    The sequential path never raises for a single failing row: failures
    are collected in ``errors`` and ``success`` is true when at least one
    row was deleted.
    """
    if source.supports("bulk_delete"):
        return await source.bulk_delete(list(ids))
    return await _sequential(ids, source.delete, "delete")


async def batch_update_with_fallback(
    source: DataSource,
    updates: Mapping[str, Mapping[str, Any]],
) -> BulkOperationResult:
    """Apply *updates* atomically if *source* can, otherwise row by row."""
    if source.supports("batch_update"):
        return await source.batch_update(updates)
    return await _sequential(updates, lambda row_id: source.update(row_id, updates[row_id]), "update")


class RepositoryDataSource(DataSource):
    """Decorates *source* with a :class:`Transformer`.

    Rows returned by ``fetch``, ``create`` and ``update`` go through
    ``to_domain``; data sent by ``create``, ``update`` and
    ``batch_update`` goes through ``to_api``.
    """

    def __init__(self, source: DataSource, transformer: Transformer | None = None) -> None:
        self.source = source
        self.transformer = transformer or IdentityTransformer()

    def supports(self, operation: str) -> bool:
        if operation == "bulk_delete":
            return self.source.supports("bulk_delete") or self.source.supports("delete")
        if operation == "batch_update":
            return self.source.supports("batch_update") or self.source.supports("update")
        return self.source.supports(operation)

    async def fetch(self, params: DataSourceParams) -> DataSourceResult:
        result = await self.source.fetch(params)
        return DataSourceResult.build(
            [self.transformer.to_domain(row) for row in result.rows],
            total=result.total,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
        )

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        created = await self.source.create(self.transformer.to_api(data))
        return self.transformer.to_domain(created)

    async def update(self, row_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        updated = await self.source.update(row_id, self.transformer.to_api(data))
        return self.transformer.to_domain(updated)

    async def delete(self, row_id: str) -> None:
        await self.source.delete(row_id)

    async def bulk_delete(self, ids: list[str]) -> BulkOperationResult:
        return await bulk_delete_with_fallback(self.source, ids)

    async def batch_update(self, updates: Mapping[str, Mapping[str, Any]]) -> BulkOperationResult:
        api_updates = {row_id: self.transformer.to_api(changes) for row_id, changes in updates.items()}
        return await batch_update_with_fallback(self.source, api_updates)
