"""Tests for the polars query helpers."""

from datetime import date

import polars as pl
import pytest

from reflex_advanced_table.models import SortSpec
from reflex_advanced_table.polars_utils import (
    apply_filters,
    apply_search,
    apply_sorting,
    build_filter_expr,
    dataframe_to_dicts,
    load_frame,
)


@pytest.fixture
def frame():
    return pl.DataFrame(
        {
            "id": [1, 2, 3, 4],
            "name": ["Lamp", "Desk", "Chair", None],
            "price": [10.0, 250.0, 80.0, 5.0],
            "tags": [["home"], ["office", "home"], ["office"], []],
            "bought": [date(2024, 1, 5), date(2024, 2, 1), date(2024, 3, 9), None],
        }
    )


def _ids(lf):
    return lf.collect()["id"].to_list()


def test_date_range(frame):
    lf = apply_filters(frame.lazy(), {"bought": {"from": "2024-01-10", "to": "2024-03-09"}})
    assert _ids(lf) == [2, 3]


def test_list_column_any_of(frame):
    lf = apply_filters(frame.lazy(), {"tags": ["office"]})
    assert _ids(lf) == [2, 3]


def test_filters_are_anded(frame):
    lf = apply_filters(frame.lazy(), {"tags": ["home"], "price": {"max": 100}})
    assert _ids(lf) == [1]


def test_empty_and_unknown_filters_are_skipped(frame):
    assert build_filter_expr("name", "", frame.schema) is None
    assert build_filter_expr("missing", "x", frame.schema) is None
    assert _ids(apply_filters(frame.lazy(), {"name": None})) == [1, 2, 3, 4]


def test_search_handles_nulls(frame):
    assert _ids(apply_search(frame.lazy(), "  DESK ")) == [2]


def test_multi_key_sort_nulls_last(frame):
    lf = apply_sorting(frame.lazy(), [SortSpec("name", "asc"), SortSpec("missing")])
    assert _ids(lf) == [3, 2, 1, 4]


def test_dataframe_to_dicts_stringifies_dates(frame):
    row = dataframe_to_dicts(frame.head(1))[0]
    assert row["bought"] == "2024-01-05"
    assert row["tags"] == ["home"]


def test_load_frame(tmp_path):
    path = tmp_path / "rows.csv"
    path.write_text("id,when\n1,2024-01-02\n")
    df = load_frame(path)
    assert df.schema["when"] == pl.Date

    sheet = tmp_path / "rows.xlsx"
    sheet.write_text("")
    with pytest.raises(ValueError, match="Unsupported"):
        load_frame(sheet)
    with pytest.raises(FileNotFoundError):
        load_frame(tmp_path / "missing.csv")
