"""Per-type value coercion used by the field mapper."""

from __future__ import annotations

import math
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

from ehrmap.core.types import DataType

# Accepted textual date layouts, tried in order before ISO datetime parsing
DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%Y/%m/%d"]


def is_empty(value: Any) -> bool:
    """Return True for None and blank strings."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def utc_today() -> date:
    """Return the current calendar date in UTC."""
    return datetime.now(timezone.utc).date()


def parse_date(value: str) -> date:
    """Parse a date or datetime string into a calendar date.

    Raises:
        ValueError: If the string matches none of the accepted layouts.
    """
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as err:
        raise ValueError(f"unrecognized date {value!r}") from err
    return _calendar_date(parsed)


def _calendar_date(value: date) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def to_string(value: Any) -> str:
    """Convert value to string."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def to_date_string(value: Any) -> str:
    """Convert value to a calendar date in YYYY-MM-DD format."""
    return to_date(value).isoformat()


def to_date(value: Any) -> date:
    """Convert a date, datetime or date string to a calendar date."""
    if isinstance(value, date):
        return _calendar_date(value)
    if isinstance(value, str):
        return parse_date(value)
    raise TypeError(f"expected a date or date string, got {type(value).__name__}")


def to_boolean(value: Any) -> bool:
    """Convert value to boolean by truthiness."""
    return bool(value)


def to_number(value: Any) -> int | float:
    """Convert value to a number.

    Empty strings become 0 and integer text stays an int.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        result: int | float = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            result = float(text)
    else:
        raise TypeError(f"expected a number or numeric string, got {type(value).__name__}")
    if not math.isfinite(result):
        raise ValueError("not a finite number")
    return result


def passthrough(value: Any) -> Any:
    return value


# Forward coercion: internal value -> vendor value
FORWARD_COERCERS: dict[DataType, Callable[[Any], Any]] = {
    DataType.STRING: to_string,
    DataType.DATE: to_date_string,
    DataType.BOOLEAN: to_boolean,
    DataType.NUMBER: to_number,
}

# Reverse coercion: vendor value -> internal value
REVERSE_COERCERS: dict[DataType, Callable[[Any], Any]] = {
    DataType.STRING: passthrough,
    DataType.DATE: to_date,
    DataType.BOOLEAN: passthrough,
    DataType.NUMBER: passthrough,
}


def default_for(data_type: DataType, today: date | None = None) -> Any:
    """Return the value inserted for a required field that has no value."""
    if data_type is DataType.STRING:
        return ""
    if data_type is DataType.NUMBER:
        return 0
    if data_type is DataType.BOOLEAN:
        return False
    return (today or utc_today()).isoformat()
