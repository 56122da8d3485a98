"""Transactional store wrapper injected into every core operation.

``Store.atomic`` is the single transaction boundary used by the lifecycle engine:
the callable receives a fresh session, its writes (including activity rows) commit
together, and a store conflict is retried once before surfacing as
``TransientStoreError``.
"""
from __future__ import annotations
import logging
from typing import Callable, TypeVar
from sqlalchemy.exc import OperationalError, IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from aftersales.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar('T')

CONFLICT_ERRORS = (StaleDataError, OperationalError, IntegrityError)


class Store:
    def __init__(self, session_factory: Callable[[], Session], retries: int = 1):
        self.session_factory = session_factory
        self.retries = retries

    def atomic(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run ``fn(session, *args, **kwargs)`` in one transaction and commit it."""
        attempt = 0
        while True:
            session = self.session_factory()
            try:
                result = fn(session, *args, **kwargs)
                session.commit()
                return result
            except CONFLICT_ERRORS as exc:
                session.rollback()
                if attempt >= self.retries:
                    logger.error('Store conflict in %s persisted after %d attempt(s): %s',
                                 getattr(fn, '__name__', fn), attempt + 1, exc)
                    raise TransientStoreError() from exc
                attempt += 1
                logger.warning('Store conflict in %s, retrying (%d/%d)',
                               getattr(fn, '__name__', fn), attempt, self.retries)
            except BaseException:
                session.rollback()
                raise
            finally:
                session.close()

    def read(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run read-only ``fn(session, ...)``; nothing is committed."""
        session = self.session_factory()
        try:
            return fn(session, *args, **kwargs)
        finally:
            session.close()


__all__ = ['Store', 'CONFLICT_ERRORS']
