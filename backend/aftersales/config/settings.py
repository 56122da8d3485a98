"""Runtime settings for the request lifecycle engine.

Values come from the environment (``.env`` is loaded by the app factory) and may be
overridden by the mapping passed to ``create_app``. Services receive a frozen
``Settings`` instance and never read the environment themselves.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping
import os

_TRUE = {'1', 'true', 'yes', 'on'}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


@dataclass(frozen=True)
class Settings:
    sla_under_warranty_hours: int = 168
    sla_out_of_warranty_hours: int = 240
    sla_onsite_buffer_hours: int = 48
    sla_upcoming_window_hours: int = 24
    sla_recompute_on_method_change: bool = False
    notification_retention_days: int = 30
    store_conflict_retries: int = 1

    # config key -> (field, coerce)
    KEYS = {
        'SLA_UNDER_WARRANTY_HOURS': ('sla_under_warranty_hours', int),
        'SLA_OUT_OF_WARRANTY_HOURS': ('sla_out_of_warranty_hours', int),
        'SLA_ONSITE_BUFFER_HOURS': ('sla_onsite_buffer_hours', int),
        'SLA_UPCOMING_WINDOW_HOURS': ('sla_upcoming_window_hours', int),
        'SLA_RECOMPUTE_ON_METHOD_CHANGE': ('sla_recompute_on_method_change', _as_bool),
        'NOTIFICATION_RETENTION_DAYS': ('notification_retention_days', int),
        'STORE_CONFLICT_RETRIES': ('store_conflict_retries', int),
    }

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> 'Settings':
        kwargs = {}
        for key, (field_name, coerce) in cls.KEYS.items():
            raw = mapping.get(key)
            if raw is None or raw == '':
                continue
            try:
                kwargs[field_name] = coerce(raw)
            except (TypeError, ValueError):
                raise ValueError(f'{key} must be {coerce.__name__}')
        settings = cls(**kwargs)
        for name in ('sla_under_warranty_hours', 'sla_out_of_warranty_hours', 'sla_onsite_buffer_hours',
                     'notification_retention_days', 'store_conflict_retries'):
            if getattr(settings, name) < 0:
                raise ValueError(f'{name} must not be negative')
        return settings

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls.from_mapping(os.environ)


__all__ = ['Settings']
