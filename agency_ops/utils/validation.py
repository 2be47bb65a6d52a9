"""
Request payload parsing helpers.

All parsers raise ValueError with a user-facing message; routes turn that into
a VALIDATION_ERROR response through handle_exception.
"""

import re
from datetime import datetime, date
from typing import Any, Iterable, List, Optional

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def parse_amount(value: Any, field: str = 'amount', allow_none: bool = False) -> Optional[float]:
    """Parse a money value as float; no currency scale is applied."""
    if value is None or value == '':
        if allow_none:
            return None
        raise ValueError(f"{field} is required")
    if isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be a number")
    if amount != amount or amount in (float('inf'), float('-inf')):
        raise ValueError(f"{field} must be a finite number")
    return amount


def parse_date(value: Any, field: str = 'date') -> Optional[date]:
    """Parse an ISO date (a datetime string is truncated to its date)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValueError(f"{field} must be an ISO date (YYYY-MM-DD)")


def parse_datetime(value: Any, field: str = 'timestamp') -> Optional[datetime]:
    """Parse an ISO timestamp into a naive UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"{field} must be an ISO timestamp")
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def parse_choice(value: Any, choices: Iterable[str], field: str, default: Optional[str] = None) -> Optional[str]:
    if value is None or value == '':
        return default
    choices = tuple(choices)
    if value not in choices:
        raise ValueError(f"Invalid {field} '{value}'. Allowed: {', '.join(choices)}")
    return value


def parse_skills(value: Any) -> List[str]:
    """Accept a list of strings or comma-separated text."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ValueError("skills must be a list or comma-separated text")
    return [str(item).strip() for item in items if str(item).strip()]
