from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from flask import request

from aftersales.errors import ValidationError


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('JSON object body required')
    return data


def parse_datetime(value, field_name: str) -> Optional[datetime]:
    """ISO date or datetime; naive values are taken as UTC."""
    if value in (None, ''):
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f'{field_name} must be an ISO date')
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
