"""
Row-level validation and column mapping.

Validation never raises for bad cell values: every problem found in a row is
returned as an ErrorDescriptor so the caller can show it next to the row.
Mapping is best-effort and assumes validation has already reported values
it cannot coerce.
"""
import math
import numbers
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from sheet_config import DateRule, NumberRule, Schema, StringRule

Row = Mapping[str, Any]
MappedRow = Dict[str, Any]


class ErrorDescriptor(BaseModel):
    """
    One validation failure tied to a worksheet row.

    Attributes:
        row: 1-based worksheet row number the error belongs to
        error: Human-readable message
    """
    model_config = ConfigDict(frozen=True)

    row: int = Field(ge=1)
    error: str


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    return isinstance(value, float) and math.isnan(value)


def parse_number(value: Any) -> Optional[float]:
    """
    Parse a cell value as a float.

    Args:
        value: Raw cell value

    Returns:
        Optional[float]: The parsed number, or None when the value is not a
        finite number
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        # float() accepts "1_000"
        if "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a cell value as a naive local datetime.

    Worksheet date cells arrive as datetime objects; text cells are parsed
    with pandas. Numbers are not treated as dates.

    Args:
        value: Raw cell value

    Returns:
        Optional[datetime]: The parsed datetime, or None when the value is not a date
    """
    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        parsed = value.to_pydatetime() if isinstance(value, pd.Timestamp) else value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            stamp = pd.to_datetime(text)
        except (ValueError, TypeError, OverflowError):
            return None
        if pd.isna(stamp):
            return None
        parsed = stamp.to_pydatetime()
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def _format_number(number: float) -> str:
    if float(number).is_integer():
        return str(int(number))
    return str(number)


def _check_string(value: Any, rule: StringRule, now: datetime) -> Optional[str]:
    if not isinstance(value, str):
        return "must be a string."
    return None


def _check_number(value: Any, rule: NumberRule, now: datetime) -> Optional[str]:
    number = parse_number(value)
    if number is None:
        return "must be numeric."
    if rule.min is not None and number < rule.min:
        return f"must be greater than {_format_number(rule.min)}."
    return None


def _check_date(value: Any, rule: DateRule, now: datetime) -> Optional[str]:
    parsed = parse_date(value)
    if parsed is None:
        return "must be a valid date."
    if rule.current_month and (parsed.month, parsed.year) != (now.month, now.year):
        return "must be within the current month."
    return None


_TYPE_CHECKS: Dict[type, Callable[[Any, Any, datetime], Optional[str]]] = {
    StringRule: _check_string,
    NumberRule: _check_number,
    DateRule: _check_date,
}

_COERCERS: Dict[type, Callable[[Any], Any]] = {
    NumberRule: parse_number,
    DateRule: parse_date,
}


def validate_row(row: Row, schema: Schema, row_number: int, now: Optional[datetime] = None) -> List[ErrorDescriptor]:
    """
    Check one row against every rule of a schema.

    Args:
        row: Source column header -> raw cell value
        schema: Schema whose rules are applied
        row_number: 1-based worksheet row number used in messages
        now: Evaluation instant for current-month checks (defaults to local now)

    Returns:
        List[ErrorDescriptor]: All errors for the row, in rule order
    """
    now = now or datetime.now()
    errors: List[ErrorDescriptor] = []

    def report(column: str, message: str) -> None:
        errors.append(ErrorDescriptor(row=row_number, error=f'Row {row_number}: "{column}" {message}'))

    for column, rule in schema.validation_rules.items():
        value = row.get(column)

        if is_empty(value):
            if rule.required:
                report(column, "is required.")
            continue

        type_error = _TYPE_CHECKS[type(rule)](value, rule, now)
        if type_error:
            report(column, type_error)

        if rule.allowed_values is not None and value not in rule.allowed_values:
            report(column, f"must be one of {', '.join(rule.allowed_values)}.")

    return errors


def map_row(row: Row, schema: Schema) -> MappedRow:
    """Rename a row's columns to canonical fields, coercing numbers and dates."""
    mapped: MappedRow = {}
    for source, field in schema.column_mapping.items():
        value = row.get(source)
        coerce = _COERCERS.get(type(schema.validation_rules[source]))
        if coerce is not None and value:
            value = coerce(value)
        mapped[field] = value
    return mapped
