"""REST-backed data source over an injected transport.

The HTTP client itself is not part of this package: callers pass any
object with an async ``request`` method (see :class:`Transport`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from reflex_advanced_table.datasource import (
    DataSource,
    build_query_params,
    normalize_response,
)
from reflex_advanced_table.exceptions import UnsupportedOperation
from reflex_advanced_table.models import (
    BulkOperationResult,
    DataSourceParams,
    DataSourceResult,
)

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded response body."""
        ...


@dataclass(frozen=True)
class ApiEndpoints:
    """URL templates of a REST resource.

    ``:id`` in ``update`` and ``delete`` is replaced with the row id.
    Operations whose endpoint is ``None`` are unsupported.
    """

    list: str
    create: str | None = None
    update: str | None = None
    delete: str | None = None
    bulk_delete: str | None = None
    batch_update: str | None = None

    def url_for(self, operation: str, row_id: str | None = None) -> str:
        template = getattr(self, operation)
        if template is None:
            raise UnsupportedOperation(operation)
        if row_id is not None:
            template = template.replace(":id", str(row_id))
        return template


class ApiDataSource(DataSource):
    """Data source that talks to a REST API.

    Args:
        transport: Object performing the actual HTTP requests.
        endpoints: Resource URLs.
        base_params: Query parameters sent with every list request.
        to_params: Override for :func:`build_query_params`.
        from_response: Override for :func:`normalize_response`.
    """

    def __init__(
        self,
        transport: Transport,
        endpoints: ApiEndpoints,
        *,
        base_params: Mapping[str, Any] | None = None,
        to_params: Callable[[DataSourceParams], dict[str, Any]] | None = None,
        from_response: Callable[[Any], DataSourceResult] | None = None,
    ) -> None:
        self.transport = transport
        self.endpoints = endpoints
        self.base_params = dict(base_params or {})
        self._to_params = to_params or build_query_params
        self._from_response = from_response or normalize_response

    def supports(self, operation: str) -> bool:
        if operation == "fetch":
            return True
        super().supports(operation)  # validates the name
        return getattr(self.endpoints, operation) is not None

    def _require(self, operation: str, row_id: str | None = None) -> str:
        try:
            return self.endpoints.url_for(operation, row_id)
        except UnsupportedOperation:
            raise UnsupportedOperation(operation, self) from None

    async def fetch(self, params: DataSourceParams) -> DataSourceResult:
        query = {**self.base_params, **self._to_params(params)}
        logger.debug("GET %s %s", self.endpoints.list, query)
        payload = await self.transport.request("GET", self.endpoints.list, params=query)
        return self._from_response(payload)

    async def create(self, data: Mapping[str, Any]) -> dict[str, Any]:
        url = self._require("create")
        return await self.transport.request("POST", url, json=dict(data))

    async def update(self, row_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        url = self._require("update", row_id)
        return await self.transport.request("PUT", url, json=dict(data))

    async def delete(self, row_id: str) -> None:
        url = self._require("delete", row_id)
        await self.transport.request("DELETE", url)

    async def bulk_delete(self, ids: list[str]) -> BulkOperationResult:
        url = self._require("bulk_delete")
        response = await self.transport.request("DELETE", url, json={"ids": list(ids)})
        return BulkOperationResult(success=True, affected=int(_count(response, "deleted", len(ids))))

    async def batch_update(self, updates: Mapping[str, Mapping[str, Any]]) -> BulkOperationResult:
        url = self._require("batch_update")
        body = {"updates": {str(k): dict(v) for k, v in updates.items()}}
        response = await self.transport.request("PATCH", url, json=body)
        return BulkOperationResult(success=True, affected=int(_count(response, "updated", len(updates))))


def _count(response: Any, key: str, default: int) -> Any:
    if isinstance(response, Mapping):
        for name in (key, "affected"):
            if response.get(name) is not None:
                return response[name]
    return default
