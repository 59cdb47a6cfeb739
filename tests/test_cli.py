"""Tests for the command-line interface."""

import json

import pytest
from conftest import make_products
from typer.testing import CliRunner

from reflex_advanced_table.cli import _build_app_code, _parse_filters, app

runner = CliRunner()


@pytest.fixture
def products_file(tmp_path):
    path = tmp_path / "products.json"
    path.write_text(json.dumps(make_products(30)))
    return path


def test_query_pages_and_sorts(products_file):
    result = runner.invoke(
        app,
        ["query", str(products_file), "--page", "2", "--page-size", "5", "--sort", "price:desc"],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["total"] == 30
    assert payload["total_pages"] == 6
    assert [row["price"] for row in payload["rows"]] == [125.0, 120.0, 115.0, 110.0, 105.0]


def test_query_filters_and_search(products_file):
    result = runner.invoke(
        app,
        [
            "query", str(products_file),
            "--filter", "category=books,games",
            "--filter", "price=50..100",
            "--search", "product",
            "--page-size", "100",
        ],
    )
    assert result.exit_code == 0, result.output
    rows = json.loads(result.output)["rows"]
    assert rows
    assert all(row["category"] in ("books", "games") and 50 <= row["price"] <= 100 for row in rows)


def test_query_missing_file(tmp_path):
    result = runner.invoke(app, ["query", str(tmp_path / "nope.csv")])
    assert result.exit_code == 1


def test_query_bad_sort_direction(products_file):
    result = runner.invoke(app, ["query", str(products_file), "--sort", "price:sideways"])
    assert result.exit_code != 0


def test_parse_filters():
    assert _parse_filters(["a=1", "b=2..", "c=x,y"]) == {
        "a": "1",
        "b": {"min": "2", "max": None},
        "c": ["x", "y"],
    }


def test_build_app_code(tmp_path):
    code = _build_app_code(tmp_path / "data.csv", 50, 'My "table"', "sku")
    assert "TableOptions(page_size=50)" in code
    assert 'id_field="sku"' in code
    assert 'My \\"table\\"' in code
    assert "__" + "SAFE_PATH__" not in code
