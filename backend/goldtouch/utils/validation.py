from __future__ import annotations
"""Request validation helpers shared by the blueprints.

Every helper aborts with 400 and a short field-specific message so the error
envelope stays uniform across endpoints.
"""
from datetime import datetime, date
from typing import Any, Iterable, Optional
from flask import abort, request


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        abort(400, description='JSON object body required')
    return data


def require_fields(data: dict, *names: str):
    missing = [n for n in names if data.get(n) in (None, '')]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")


def parse_int(value: Any, field_name: str, *, required: bool = False, minimum: Optional[int] = None) -> Optional[int]:
    if value is None or value == '':
        if required:
            abort(400, description=f'{field_name} required')
        return None
    if isinstance(value, bool):
        abort(400, description=f'{field_name} must be int')
    if isinstance(value, float) and not value.is_integer():
        abort(400, description=f'{field_name} must be int')
    try:
        out = int(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} must be int')
    if minimum is not None and out < minimum:
        abort(400, description=f'{field_name} must be >= {minimum}')
    return out


_DATE_FORMATS = ('%Y-%m-%d', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%dT%H:%M:%S.%f', '%Y-%m-%d %H:%M:%S')


def parse_date(value: Any, field_name: str = 'date', *, required: bool = False) -> Optional[datetime]:
    """Parse YYYY-MM-DD or ISO datetime input into a naive datetime."""
    if value is None or value == '':
        if required:
            abort(400, description=f'{field_name} required')
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raw = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(raw.replace('Z', '+00:00')).replace(tzinfo=None)
    except ValueError:
        abort(400, description=f'{field_name} invalid date')


def iso(value) -> Optional[str]:
    return value.isoformat() if value is not None and hasattr(value, 'isoformat') else value

__all__ = ['validate_status', 'json_body', 'require_fields', 'parse_int', 'parse_date', 'iso']
