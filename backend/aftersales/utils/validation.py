"""Reusable validation helpers for request payloads.

Enumerated fields (status, priority, warranty, execution method, cost type) share one
check so every rejection carries the same 400 wording.
"""
from __future__ import annotations
import math
from typing import Iterable, Optional

from aftersales.errors import ValidationError


def validate_choice(value: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that value is inside allowed.

    Returns the value (to enable inline usage) or raises ValidationError.
    """
    allowed = tuple(allowed)
    if value not in allowed:
        raise ValidationError(f"{field_name} must be one of {', '.join(sorted(allowed))}")
    return value


def positive_number(value, field_name: str, integer: bool = False):
    try:
        number = int(value) if integer else float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f'{field_name} must be a {"whole " if integer else ""}number')
    if not math.isfinite(number):
        raise ValidationError(f'{field_name} must be a finite number')
    if integer and isinstance(value, float) and not value.is_integer():
        raise ValidationError(f'{field_name} must be a whole number')
    if number <= 0:
        raise ValidationError(f'{field_name} must be greater than zero')
    return number


def optional_int(value, field_name: str) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field_name} must be an integer')


__all__ = ['validate_choice', 'positive_number', 'optional_int']
