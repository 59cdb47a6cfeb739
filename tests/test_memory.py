"""Tests for the in-memory and JSON file data sources."""

import json

import polars as pl
import pytest

from reflex_advanced_table.memory import InMemoryDataSource, JsonFileDataSource
from reflex_advanced_table.models import DataSourceParams, Pagination, SortSpec


def _params(page=1, page_size=20, **kwargs):
    return DataSourceParams(pagination=Pagination(page=page, page_size=page_size), **kwargs)


@pytest.mark.asyncio
async def test_fetch_pages(memory_source):
    result = await memory_source.fetch(_params(page=3, page_size=20))
    assert result.total == 57
    assert result.total_pages == 3
    assert [row["id"] for row in result.rows] == [f"p{i:03d}" for i in range(41, 58)]


@pytest.mark.asyncio
async def test_fetch_scalar_filter_is_case_insensitive(memory_source):
    result = await memory_source.fetch(_params(filters={"category": "BOOKS"}))
    assert result.total == 19
    assert {row["category"] for row in result.rows} == {"books"}


@pytest.mark.asyncio
async def test_fetch_boolean_false_filter(memory_source):
    result = await memory_source.fetch(_params(filters={"active": False}, page_size=100))
    assert result.total == 29
    assert all(row["active"] is False for row in result.rows)


@pytest.mark.asyncio
async def test_fetch_range_and_any_of(memory_source):
    result = await memory_source.fetch(
        _params(
            filters={"price": {"min": 50, "max": 100}, "category": ["games", "tools"]},
            page_size=100,
        )
    )
    prices = [row["price"] for row in result.rows]
    assert prices and all(50 <= p <= 100 for p in prices)
    assert {row["category"] for row in result.rows} <= {"games", "tools"}


@pytest.mark.asyncio
async def test_fetch_search_and_sort(memory_source):
    result = await memory_source.fetch(
        _params(search="product 1", sorting=(SortSpec("price", "desc"),), page_size=100)
    )
    # "Product 1", "Product 10".."Product 19"
    assert result.total == 11
    prices = [row["price"] for row in result.rows]
    assert prices == sorted(prices, reverse=True)


@pytest.mark.asyncio
async def test_fetch_unknown_filter_field_is_ignored(memory_source):
    result = await memory_source.fetch(_params(filters={"nope": "x"}))
    assert result.total == 57


@pytest.mark.asyncio
async def test_fetch_empty_source():
    result = await InMemoryDataSource([]).fetch(_params())
    assert result.rows == []
    assert result.total == 0
    assert result.total_pages == 0


@pytest.mark.asyncio
async def test_crud(memory_source):
    created = await memory_source.create({"name": "New", "price": 1.0})
    assert created["id"].startswith("local-")

    updated = await memory_source.update(created["id"], {"price": 2.0})
    assert updated["price"] == 2.0
    assert updated["name"] == "New"

    await memory_source.delete(created["id"])
    assert all(row["id"] != created["id"] for row in memory_source.rows)


@pytest.mark.asyncio
async def test_missing_rows_raise(memory_source):
    with pytest.raises(KeyError):
        await memory_source.update("missing", {"price": 1})
    with pytest.raises(KeyError):
        await memory_source.delete("missing")


@pytest.mark.asyncio
async def test_create_rejects_duplicate_id(memory_source):
    with pytest.raises(ValueError):
        await memory_source.create({"id": "p001"})


@pytest.mark.asyncio
async def test_bulk_operations(memory_source):
    result = await memory_source.bulk_delete(["p001", "p002", "missing"])
    assert result.success
    assert result.affected == 2
    assert result.failed_ids == ["missing"]
    assert len(memory_source.rows) == 55

    result = await memory_source.batch_update({"p003": {"stock": 99}, "missing": {"stock": 1}})
    assert result.affected == 1
    assert result.failed_ids == ["missing"]
    assert next(r for r in memory_source.rows if r["id"] == "p003")["stock"] == 99


def test_caller_rows_are_not_mutated(products):
    source = InMemoryDataSource(products)
    source.rows[0]["name"] = "changed"
    assert source.rows[0]["name"] == "Product 1"


def test_from_frame():
    df = pl.DataFrame({"id": ["a", "b"], "price": [1.0, 2.0]})
    source = InMemoryDataSource.from_frame(df)
    assert source.rows == [{"id": "a", "price": 1.0}, {"id": "b", "price": 2.0}]


@pytest.mark.asyncio
async def test_json_file_source_persists(tmp_path, products):
    path = tmp_path / "rows.json"
    source = JsonFileDataSource(path, default_rows=products[:3])
    assert len(json.loads(path.read_text())) == 3

    await source.update("p001", {"name": "Renamed"})
    reopened = JsonFileDataSource(path, default_rows=products)
    assert len(reopened.rows) == 3
    assert reopened.rows[0]["name"] == "Renamed"

    result = await reopened.fetch(_params(filters={"name": "renamed"}))
    assert result.total == 1

    reopened.clear()
    assert not path.exists()
    assert reopened.rows == []


def test_json_file_source_ignores_corrupt_file(tmp_path):
    path = tmp_path / "rows.json"
    path.write_text("{not json")
    assert JsonFileDataSource(path).rows == []
