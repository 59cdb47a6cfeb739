"""Tests for column validation rules."""

import re

import pytest

from reflex_advanced_table.exceptions import ValidationError
from reflex_advanced_table.models import ColumnDefinition, SelectOption, ValidationRules
from reflex_advanced_table.validation import validate_changes, validate_value


def column(**kwargs):
    kwargs.setdefault("key", "field")
    kwargs.setdefault("header", "Field")
    return ColumnDefinition(**kwargs)


@pytest.mark.parametrize(
    "col, value",
    [
        (column(validation=ValidationRules(required=True)), ""),
        (column(validation=ValidationRules(required=True)), None),
        (column(validation=ValidationRules(min=1)), 0),
        (column(validation=ValidationRules(max=10)), "11"),
        (column(validation=ValidationRules(min=0)), "abc"),
        (column(validation=ValidationRules(pattern=r"^[A-Z]{3}$")), "abcd"),
        (column(validation=ValidationRules(custom=lambda v: v != "bad")), "bad"),
        (column(type="email"), "not-an-email"),
        (column(type="url"), "ftp://example.com"),
        (column(type="select", options=[SelectOption("a", "A")]), "b"),
        (column(type="multi-select", options=[SelectOption("a", "A")]), ["a", "z"]),
    ],
)
def test_invalid_values(col, value):
    with pytest.raises(ValidationError) as info:
        validate_value(col, value, row_id="r1")
    assert info.value.column_key == "field"
    assert info.value.row_id == "r1"


@pytest.mark.parametrize(
    "col, value",
    [
        (column(validation=ValidationRules(min=1, max=5)), 3),
        (column(validation=ValidationRules(min=1)), ""),
        (column(validation=ValidationRules(pattern=re.compile(r"^\d+$"))), "123"),
        (column(type="email"), "ada@example.com"),
        (column(type="url"), "https://example.com/x"),
        (column(type="select", options=[SelectOption(1, "One")]), "1"),
    ],
)
def test_valid_values(col, value):
    validate_value(col, value)


def test_custom_message():
    col = column(validation=ValidationRules(custom=lambda v: "too short" if len(v) < 3 else True))
    with pytest.raises(ValidationError) as info:
        validate_value(col, "ab")
    assert info.value.reason == "too short"


def test_validate_changes_skips_unknown_columns():
    columns = {"price": column(key="price", validation=ValidationRules(min=0))}
    validate_changes(columns, {"other": -1})
    with pytest.raises(ValidationError):
        validate_changes(columns, {"price": -1})
