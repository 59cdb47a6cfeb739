"""Column validation rules, checked before edits are committed."""

from __future__ import annotations

import re
from typing import Any, Mapping

from reflex_advanced_table.exceptions import ValidationError
from reflex_advanced_table.models import ColumnDefinition

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    if isinstance(value, (list, tuple, set)) and not value:
        return True
    return False


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def validate_value(column: ColumnDefinition, value: Any, *, row_id: str | None = None) -> None:
    """Check *value* against *column*'s rules.

    Type checks for ``email``, ``url`` and enumerated columns are applied
    even without explicit rules.  Empty values skip every check except
    ``required``.

    Raises:
        ValidationError: On the first failing rule.
    """
    rules = column.validation

    if _is_blank(value):
        if rules is not None and rules.required:
            raise ValidationError(column.key, "value is required", row_id=row_id)
        return

    if column.type == "email" and not _EMAIL_RE.match(str(value)):
        raise ValidationError(column.key, f"{value!r} is not a valid email address", row_id=row_id)
    if column.type == "url" and not _URL_RE.match(str(value)):
        raise ValidationError(column.key, f"{value!r} is not a valid URL", row_id=row_id)

    if column.options and column.type in ("select", "multi-select"):
        allowed = {str(v) for v in column.option_values}
        values = value if isinstance(value, (list, tuple, set)) else [value]
        bad = [v for v in values if str(v) not in allowed]
        if bad:
            raise ValidationError(
                column.key, f"{bad[0]!r} is not one of the allowed options", row_id=row_id,
            )

    if rules is None:
        return

    if rules.min is not None or rules.max is not None:
        number = _as_number(value)
        if number is None:
            raise ValidationError(column.key, f"{value!r} is not a number", row_id=row_id)
        if rules.min is not None and number < rules.min:
            raise ValidationError(column.key, f"must be >= {rules.min}", row_id=row_id)
        if rules.max is not None and number > rules.max:
            raise ValidationError(column.key, f"must be <= {rules.max}", row_id=row_id)

    if rules.pattern is not None:
        pattern = rules.pattern if isinstance(rules.pattern, re.Pattern) else re.compile(rules.pattern)
        if not pattern.search(str(value)):
            raise ValidationError(column.key, f"{value!r} does not match the expected format", row_id=row_id)

    if rules.custom is not None:
        outcome = rules.custom(value)
        if isinstance(outcome, str):
            raise ValidationError(column.key, outcome, row_id=row_id)
        if outcome is False:
            raise ValidationError(column.key, f"{value!r} is not valid", row_id=row_id)


def validate_changes(
    columns: Mapping[str, ColumnDefinition],
    changes: Mapping[str, Any],
    *,
    row_id: str | None = None,
) -> None:
    """Validate every changed field that has a known column."""
    for key, value in changes.items():
        column = columns.get(key)
        if column is not None:
            validate_value(column, value, row_id=row_id)
