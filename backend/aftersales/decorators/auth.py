from functools import wraps
from typing import Iterable, Optional
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt
from aftersales.errors import ForbiddenError, UnauthorizedError
from aftersales.services.context import Principal


def current_principal() -> Principal:
    """Principal from the verified JWT (identity + role/department/name claims)."""
    claims = get_jwt()
    try:
        user_id = int(get_jwt_identity())
    except (TypeError, ValueError):
        raise UnauthorizedError('Invalid token identity')
    if not claims.get('role'):
        raise UnauthorizedError('Token carries no role')
    return Principal(
        id=user_id,
        role=claims['role'],
        department_id=claims.get('department_id'),
        name=claims.get('name') or '',
    )


def require_roles(allowed: Optional[Iterable[str]] = None):
    """Require a valid JWT; when ``allowed`` is given the caller's role must be in it."""
    allowed = frozenset(allowed) if allowed is not None else None

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            principal = current_principal()
            if allowed is not None and principal.role not in allowed:
                raise ForbiddenError('Insufficient permissions')
            return fn(*args, **kwargs)
        return wrapper
    return outer
