"""Shared fixtures for the table engine tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from reflex_advanced_table.datasource import DataSource
from reflex_advanced_table.memory import InMemoryDataSource
from reflex_advanced_table.models import DataSourceParams, DataSourceResult

CATEGORIES = ("books", "games", "tools")


def make_products(count: int = 57) -> list[dict[str, Any]]:
    return [
        {
            "id": f"p{i:03d}",
            "name": f"Product {i}",
            "category": CATEGORIES[i % len(CATEGORIES)],
            "price": float(i * 5),
            "stock": i % 7,
            "active": i % 2 == 0,
            "created": f"2024-{(i % 12) + 1:02d}-15",
        }
        for i in range(1, count + 1)
    ]


@pytest.fixture()
def products() -> list[dict[str, Any]]:
    return make_products()


@pytest.fixture()
def memory_source(products) -> InMemoryDataSource:
    return InMemoryDataSource(products)


class FakeTransport:
    """Records requests and replays canned responses per (method, url)."""

    def __init__(self, responses: dict[tuple[str, str], Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.requests: list[dict[str, Any]] = []

    async def request(self, method, url, params=None, json=None):
        self.requests.append({"method": method, "url": url, "params": params, "json": json})
        response = self.responses.get((method, url))
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


class ControlledSource(DataSource):
    """Fetches block until the test releases them, in any order."""

    def __init__(self) -> None:
        self.calls: list[DataSourceParams] = []
        self.pending: list[asyncio.Future] = []

    async def fetch(self, params: DataSourceParams) -> DataSourceResult:
        self.calls.append(params)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    def resolve(self, index: int, rows: list[dict[str, Any]], total: int | None = None) -> None:
        params = self.calls[index]
        page = params.pagination.page if params.pagination else 1
        page_size = params.pagination.page_size if params.pagination else 20
        self.pending[index].set_result(
            DataSourceResult.build(
                rows,
                total=len(rows) if total is None else total,
                page=page,
                page_size=page_size,
            )
        )

    def reject(self, index: int, error: Exception) -> None:
        self.pending[index].set_exception(error)


@pytest.fixture()
def controlled_source() -> ControlledSource:
    return ControlledSource()


async def drain() -> None:
    """Let every ready task run."""
    for _ in range(5):
        await asyncio.sleep(0)
