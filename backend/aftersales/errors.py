"""Typed service errors.

Each error is a werkzeug HTTPException so the unified Flask error handler can
render it, while the core services stay usable without a request context.
"""
from __future__ import annotations
from werkzeug.exceptions import BadRequest, Unauthorized, Forbidden, NotFound, ServiceUnavailable


class ValidationError(BadRequest):
    """Malformed or insufficient input: missing fields, illegal transition, insufficient stock."""

    def __init__(self, description: str = 'Validation failed'):
        super().__init__(description=description)


class UnauthorizedError(Unauthorized):
    def __init__(self, description: str = 'Authentication required'):
        super().__init__(description=description)


class ForbiddenError(Forbidden):
    def __init__(self, description: str = 'Forbidden'):
        super().__init__(description=description)


class NotFoundError(NotFound):
    def __init__(self, description: str = 'Resource not found'):
        super().__init__(description=description)


class TransientStoreError(ServiceUnavailable):
    """Store conflict that persisted after the transparent retry."""

    def __init__(self, description: str = 'Temporary conflict, please retry'):
        super().__init__(description=description)


__all__ = ['ValidationError', 'UnauthorizedError', 'ForbiddenError', 'NotFoundError', 'TransientStoreError']
