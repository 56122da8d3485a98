from __future__ import annotations
from typing import Tuple
from flask import request

from aftersales.config.pagination import normalize_pagination, DEFAULT_LIMIT
from aftersales.errors import ValidationError


def pagination_args(default_limit: int | None = None) -> Tuple[int, int]:
    """(limit, offset) from the query string; 400 on malformed values."""
    try:
        return normalize_pagination(request.args.get('limit'), request.args.get('offset'), default_limit or DEFAULT_LIMIT)
    except ValueError as e:
        raise ValidationError(str(e))


def build_list_payload(rows: list, total: int, limit: int, offset: int, **extra):
    payload = {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }
    payload.update(extra)
    return payload
