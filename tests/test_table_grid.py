"""Tests for the MUI model converters and engine registry of the Reflex mixin."""

from unittest.mock import Mock

import pytest

from reflex_advanced_table import table_grid
from reflex_advanced_table.models import SortSpec
from reflex_advanced_table.table_grid import (
    filter_model_to_filters,
    merge_filter_model,
    pagination_model_to_page,
    selection_model_to_ids,
    sort_model_to_sorting,
)


def test_sort_model_to_sorting():
    model = [
        {"field": "price", "sort": "desc"},
        {"field": "name", "sort": "asc"},
        {"field": "stock", "sort": None},
    ]
    assert sort_model_to_sorting(model) == [SortSpec("price", "desc"), SortSpec("name", "asc")]
    assert sort_model_to_sorting([]) == []


def test_filter_model_to_filters():
    model = {
        "items": [
            {"field": "status", "operator": "is", "value": "active"},
            {"field": "category", "operator": "isAnyOf", "value": ["books", "games"]},
            {"field": "price", "operator": ">=", "value": 10},
            {"field": "price", "operator": "<", "value": 20},
            {"field": "created", "operator": "onOrAfter", "value": "2024-01-01"},
            {"field": "name", "operator": "startsWith", "value": "x"},
            {"field": "stock", "operator": "=", "value": None},
        ]
    }
    assert filter_model_to_filters(model) == {
        "status": "active",
        "category": ["books", "games"],
        "price": {"min": 10, "max": 20},
        "created": {"from": "2024-01-01"},
    }


def test_filter_model_keeps_false():
    model = {"items": [{"field": "active", "operator": "is", "value": False}]}
    assert filter_model_to_filters(model) == {"active": False}


def test_merge_filter_model_accumulates():
    merged = merge_filter_model({}, {"items": [{"field": "a", "operator": "is", "value": 1}]})
    merged = merge_filter_model(merged, {"items": [{"field": "b", "operator": "is", "value": 2}]})
    merged = merge_filter_model(merged, {"items": [{"field": "a", "operator": "is", "value": None}]})
    assert [(i["field"], i["value"]) for i in merged["items"]] == [("a", 1), ("b", 2)]
    assert merge_filter_model(merged, {"items": []}) == {"items": []}


@pytest.mark.parametrize(
    "model, expected",
    [
        ({"page": 0, "pageSize": 20}, (1, 20)),
        ({"page": 4, "pageSize": 50}, (5, 50)),
        ({}, (1, 20)),
    ],
)
def test_pagination_model_to_page(model, expected):
    assert pagination_model_to_page(model) == expected


def test_selection_model_shapes():
    page = ["a", "b", "c"]
    assert selection_model_to_ids(["a"], page) == ({"a"}, {"b", "c"})
    assert selection_model_to_ids({"type": "include", "ids": ["b", "x"]}, page) == ({"b", "x"}, {"a", "c"})
    assert selection_model_to_ids({"type": "exclude", "ids": ["a"]}, page) == ({"b", "c"}, {"a"})


def test_engine_registry_evicts_least_recently_used(monkeypatch):
    monkeypatch.setattr(table_grid, "_MAX_CACHED_TABLES", 2)
    monkeypatch.setattr(table_grid, "_cache_registry", table_grid.OrderedDict())
    first, second, third = Mock(), Mock(), Mock()

    table_grid._store_cache("S:a", first)
    table_grid._store_cache("S:b", second)
    assert table_grid._lookup_cache("S:a").table is first
    table_grid._store_cache("S:c", third)

    assert list(table_grid._cache_registry) == ["S:a", "S:c"]
    second.close.assert_called_once_with()
    first.close.assert_not_called()


def test_engine_registry_replaces_session_entry(monkeypatch):
    monkeypatch.setattr(table_grid, "_cache_registry", table_grid.OrderedDict())
    old, new = Mock(), Mock()
    table_grid._store_cache("S:a", old)
    table_grid._store_cache("S:a", new)
    old.close.assert_called_once_with()
    assert table_grid._lookup_cache("S:a").table is new
    assert table_grid._lookup_cache("S:missing") is None
