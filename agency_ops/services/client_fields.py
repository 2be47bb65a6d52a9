"""
Shape handling for the semi-structured client columns.

The database stores onboarding_checklist, budget, timeline, tracking_results,
hired_people and video_folder as opaque JSON. Two entry points exist:

- ``repair_client_fields`` runs on read. Missing, unparsable or wrongly shaped
  values are replaced with fixed defaults and well-shaped containers are
  upgraded key by key. Nothing is written back.
- ``validate_json_field`` runs on write. Containers, items and known keys of
  the wrong type are rejected, numeric text is converted to numbers, and keys
  the API does not know about are stored untouched.

Non-finite numbers (NaN, Infinity) are never stored or returned.
"""

import json
import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

import pytz
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = 'USD'

DEFAULT_CHECKLIST_TITLES = (
    'Discovery call completed',
    'Contract signed',
    'Initial invoice paid',
    'Channel access granted',
    'Brand assets collected',
    'Goals and KPIs agreed',
    'Content strategy approved',
    'Posting schedule confirmed',
    'Reporting cadence agreed',
    'Kickoff meeting held',
)

# (title, days from today, description)
DEFAULT_TIMELINE_EVENTS = (
    ('Onboarding complete', 7, 'All onboarding checklist items closed'),
    ('First content delivery', 14, 'First batch of content delivered for review'),
    ('First performance review', 16, 'Review early tracking results with the client'),
)

TRACKING_METRICS = ('views', 'engagement', 'followers', 'conversions')

# Expected container type per JSON column
FIELD_CONTAINERS = {
    'onboarding_checklist': list,
    'budget': dict,
    'timeline': list,
    'tracking_results': list,
    'hired_people': list,
    'video_folder': dict,
}

_MISSING = object()


def business_today() -> date:
    """Today's date in the configured business timezone."""
    tz_name = current_app.config.get('BUSINESS_TIMEZONE', 'UTC') if has_app_context() else 'UTC'
    try:
        tz = pytz.timezone(tz_name)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.warning(f"Unknown BUSINESS_TIMEZONE '{tz_name}', using UTC")
        tz = pytz.UTC
    return datetime.now(tz).date()


# Scalar coercion. With strict=True a value of the wrong type raises
# ValueError naming the offending key; otherwise the default is used.

def _to_number(value: Any, default: float = 0, strict: bool = False, label: str = 'value') -> float:
    if value is None:
        return default
    number = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            number = None
    if number is None or not math.isfinite(number):
        if strict:
            raise ValueError(f"{label} must be a finite number")
        return default
    return number


def _to_text(value: Any, default: str = '', strict: bool = False, label: str = 'value') -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if strict:
        raise ValueError(f"{label} must be text")
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return str(value)
    return default


def _to_flag(value: Any, default: bool = False, strict: bool = False, label: str = 'value') -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if strict:
        raise ValueError(f"{label} must be true or false")
    return bool(value)


def _container(value: Any, kind: type, strict: bool, label: str) -> Any:
    """A nested list/dict, or an empty one when absent or (leniently) malformed."""
    if value is None:
        return kind()
    if isinstance(value, kind):
        return value
    if strict:
        raise ValueError(f"{label} must be {'a list' if kind is list else 'an object'}")
    return kind()


def _objects(items: list, strict: bool, label: str):
    """Yield (index, item) for the dict items of a list."""
    for i, item in enumerate(items):
        if isinstance(item, dict):
            yield i, item
        elif strict:
            raise ValueError(f"{label}[{i}] must be an object")


def _finite(value: Any, strict: bool, label: str) -> Any:
    """Copy a decoded JSON value, dropping or rejecting NaN and Infinity."""
    if isinstance(value, float) and not math.isfinite(value):
        if strict:
            raise ValueError(f"{label} must be a finite number")
        return None
    if isinstance(value, dict):
        return {key: _finite(item, strict, f"{label}.{key}") for key, item in value.items()}
    if isinstance(value, list):
        return [_finite(item, strict, f"{label}[{i}]") for i, item in enumerate(value)]
    return value


def _load(value: Any) -> Any:
    """Decode JSON stored as text; undecodable text becomes _MISSING."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return _MISSING
    if value is None:
        return _MISSING
    return value


def _item_id(item: Dict[str, Any], index: int) -> str:
    value = item.get('id')
    if value is None or value == '':
        return str(index + 1)
    return str(value)


# Defaults

def default_onboarding_checklist() -> List[Dict[str, Any]]:
    return [
        {'id': str(i + 1), 'title': title, 'completed': False}
        for i, title in enumerate(DEFAULT_CHECKLIST_TITLES)
    ]


def default_budget() -> Dict[str, Any]:
    return {'total': 0, 'currency': DEFAULT_CURRENCY, 'breakdown': [], 'notes': ''}


def default_timeline(today: Optional[date] = None) -> List[Dict[str, Any]]:
    today = today or business_today()
    return [
        {
            'id': str(i + 1),
            'title': title,
            'date': (today + timedelta(days=offset)).isoformat(),
            'end_date': None,
            'status': 'pending',
            'description': description
        }
        for i, (title, offset, description) in enumerate(DEFAULT_TIMELINE_EVENTS)
    ]


def default_video_folder() -> Dict[str, Any]:
    return {'path': '', 'links': [], 'notes': ''}


# Normalizers for values that already have the right container type.
# Known keys are coerced; any other keys of an object are kept as they are.

def _normalize_checklist(items: list, strict: bool = False, label: str = 'onboarding_checklist') -> list:
    return [
        {
            **item,
            'id': _item_id(item, i),
            'title': _to_text(item.get('title'), strict=strict, label=f"{label}[{i}].title"),
            'completed': _to_flag(item.get('completed'), strict=strict, label=f"{label}[{i}].completed")
        }
        for i, item in _objects(items, strict, label)
    ]


def _normalize_budget(value: dict, strict: bool = False, label: str = 'budget') -> dict:
    breakdown = _container(value.get('breakdown'), list, strict, f"{label}.breakdown")
    return {
        **value,
        'total': _to_number(value.get('total'), strict=strict, label=f"{label}.total"),
        'currency': _to_text(value.get('currency'), DEFAULT_CURRENCY, strict, f"{label}.currency") or DEFAULT_CURRENCY,
        'breakdown': [
            {
                **item,
                'category': _to_text(item.get('category'), strict=strict, label=f"{label}.breakdown[{i}].category"),
                'amount': _to_number(item.get('amount'), strict=strict, label=f"{label}.breakdown[{i}].amount")
            }
            for i, item in _objects(breakdown, strict, f"{label}.breakdown")
        ],
        'notes': _to_text(value.get('notes'), strict=strict, label=f"{label}.notes")
    }


def _normalize_timeline(items: list, strict: bool = False, label: str = 'timeline') -> list:
    normalized = []
    for i, item in _objects(items, strict, label):
        prefix = f"{label}[{i}]"
        normalized.append({
            **item,
            'id': _item_id(item, i),
            'title': _to_text(item.get('title'), strict=strict, label=f"{prefix}.title"),
            'date': _to_text(item.get('date'), strict=strict, label=f"{prefix}.date") or None,
            'end_date': _to_text(item.get('end_date'), strict=strict, label=f"{prefix}.end_date") or None,
            'status': _to_text(item.get('status'), 'pending', strict, f"{prefix}.status") or 'pending',
            'description': _to_text(item.get('description'), strict=strict, label=f"{prefix}.description")
        })
    return normalized


def _normalize_tracking_results(items: list, strict: bool = False, label: str = 'tracking_results') -> list:
    normalized = []
    for i, item in _objects(items, strict, label):
        prefix = f"{label}[{i}]"
        metrics = _container(item.get('metrics'), dict, strict, f"{prefix}.metrics")
        normalized.append({
            **item,
            'id': _item_id(item, i),
            'date': _to_text(item.get('date'), strict=strict, label=f"{prefix}.date") or None,
            'title': _to_text(item.get('title'), strict=strict, label=f"{prefix}.title"),
            'metrics': {
                **metrics,
                **{
                    name: _to_number(metrics.get(name), strict=strict, label=f"{prefix}.metrics.{name}")
                    for name in TRACKING_METRICS
                }
            }
        })
    return normalized


def _normalize_hired_people(items: list, strict: bool = False, label: str = 'hired_people') -> list:
    normalized = []
    for i, item in _objects(items, strict, label):
        prefix = f"{label}[{i}]"
        team_member_id = _to_text(item.get('team_member_id'), strict=strict, label=f"{prefix}.team_member_id") or None
        external = item.get('external')
        normalized.append({
            **item,
            'id': _item_id(item, i),
            'name': _to_text(item.get('name'), strict=strict, label=f"{prefix}.name"),
            'role': _to_text(item.get('role'), strict=strict, label=f"{prefix}.role"),
            'team_member_id': team_member_id,
            'external': _to_flag(external, team_member_id is None, strict, f"{prefix}.external"),
            'rate': _to_number(item.get('rate'), strict=strict, label=f"{prefix}.rate"),
            'notes': _to_text(item.get('notes'), strict=strict, label=f"{prefix}.notes")
        })
    return normalized


def _normalize_video_folder(value: dict, strict: bool = False, label: str = 'video_folder') -> dict:
    links = _container(value.get('links'), list, strict, f"{label}.links")
    if strict:
        for i, link in enumerate(links):
            if not isinstance(link, str):
                raise ValueError(f"{label}.links[{i}] must be text")
    return {
        **value,
        'path': _to_text(value.get('path'), strict=strict, label=f"{label}.path"),
        'links': [link for link in links if isinstance(link, str)],
        'notes': _to_text(value.get('notes'), strict=strict, label=f"{label}.notes")
    }


_NORMALIZERS = {
    'onboarding_checklist': _normalize_checklist,
    'budget': _normalize_budget,
    'timeline': _normalize_timeline,
    'tracking_results': _normalize_tracking_results,
    'hired_people': _normalize_hired_people,
    'video_folder': _normalize_video_folder,
}


def _default_for(field: str, today: Optional[date]) -> Any:
    if field == 'onboarding_checklist':
        return default_onboarding_checklist()
    if field == 'budget':
        return default_budget()
    if field == 'timeline':
        return default_timeline(today)
    if field == 'video_folder':
        return default_video_folder()
    return []


def repair_field(field: str, value: Any, today: Optional[date] = None) -> Tuple[Any, bool]:
    """
    Repair one JSON column for display.

    Returns:
        (repaired value, whether it differs from what was stored)
    """
    loaded = _load(value)
    if loaded is _MISSING or not isinstance(loaded, FIELD_CONTAINERS[field]):
        return _default_for(field, today), True

    normalized = _NORMALIZERS[field](_finite(loaded, False, field))
    return normalized, normalized != value


def repair_client_fields(data: Dict[str, Any], today: Optional[date] = None) -> Tuple[Dict[str, Any], List[str]]:
    """
    Repair every JSON column of a serialized client.

    Returns:
        (new client dict, names of the fields that were repaired)
    """
    today = today or business_today()
    repaired = dict(data)
    repaired_fields = []
    for field in FIELD_CONTAINERS:
        value, changed = repair_field(field, data.get(field), today)
        repaired[field] = value
        if changed:
            repaired_fields.append(field)
    if repaired_fields:
        logger.debug(f"Repaired client {data.get('id')} fields on read: {', '.join(repaired_fields)}")
    return repaired, repaired_fields


def validate_json_field(field: str, value: Any) -> Any:
    """
    Validate a JSON column on write and return the shape to store.

    None clears the column. Raises ValueError for unknown fields, values of
    the wrong container type, non-object list items, known keys holding the
    wrong type and non-finite numbers anywhere in the value.
    """
    if field not in FIELD_CONTAINERS:
        raise ValueError(f"Unknown structured field '{field}'")
    if value is None:
        return None
    if isinstance(value, str):
        loaded = _load(value)
        if loaded is _MISSING:
            raise ValueError(f"{field} must be valid JSON")
        value = loaded
    expected = FIELD_CONTAINERS[field]
    if not isinstance(value, expected):
        kind = 'a list' if expected is list else 'an object'
        raise ValueError(f"{field} must be {kind}")
    return _NORMALIZERS[field](_finite(value, True, field), strict=True, label=field)


def checklist_progress(checklist: Any) -> float:
    """Percentage of completed onboarding items, 0 for an empty list."""
    if not isinstance(checklist, list) or not checklist:
        return 0.0
    done = len([item for item in checklist if isinstance(item, dict) and item.get('completed')])
    return round(done / len(checklist) * 100, 2)
