DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def normalize_pagination(limit_raw, offset_raw, default_limit: int = DEFAULT_LIMIT):
    """Coerce raw limit/offset query values into a bounded (limit, offset) pair."""
    try:
        limit = int(limit_raw) if limit_raw not in (None, '') else default_limit
        offset = int(offset_raw) if offset_raw not in (None, '') else 0
    except (TypeError, ValueError):
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, MAX_LIMIT))
    offset = max(0, offset)
    return limit, offset
