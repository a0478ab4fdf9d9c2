from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any, List, Optional, Sequence


def to_float(value: Any, default: float = 0.0) -> float:
    """Parse a driver value (``Decimal``, ``str``, number or ``None``) into a float."""
    if value is None or value == "":
        return default
    return float(value)


def to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return int(float(value))
    return int(value)


def to_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_str_list(value: Any) -> List[str]:
    # JSON columns on SQLite may come back as encoded text.
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [item.strip() for item in value.strip("{}").split(",") if item.strip()]
    if isinstance(value, Sequence) and not isinstance(value, str):
        return [str(item) for item in value]
    return [str(value)]


def month_key(year: Any, month: Any) -> str:
    return f"{to_int(year):04d}-{to_int(month):02d}"
