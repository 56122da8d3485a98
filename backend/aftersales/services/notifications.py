"""Notification dispatch and the per-user notification inbox.

Core operations collect ``NotificationIntent`` values while their transaction runs and
hand them to ``NotificationDispatcher.dispatch`` only after the commit. Dispatch is
best-effort: a failure is logged and dropped, never raised to the caller.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple
from sqlalchemy import select, update, delete, func, or_, and_

from aftersales.constants import roles as R
from aftersales.errors import NotFoundError
from aftersales.models.org import User
from aftersales.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationIntent:
    """One event to announce.

    Recipients are the explicit ``user_ids`` plus every active user whose role is in
    ``roles`` (restricted to ``department_id`` when given) or in ``global_roles``
    (any department), minus ``exclude_user_ids``.
    """
    title: str
    message: str
    type: str
    request_id: Optional[int] = None
    user_ids: Tuple[int, ...] = ()
    roles: FrozenSet[str] = frozenset()
    department_id: Optional[int] = None
    global_roles: FrozenSet[str] = frozenset()
    exclude_user_ids: FrozenSet[int] = frozenset()


def resolve_recipients(session, roles: Iterable[str] = (), department_id: Optional[int] = None,
                       global_roles: Iterable[str] = (), user_ids: Iterable[int] = (),
                       exclude_user_ids: Iterable[int] = ()) -> List[int]:
    """Sorted, de-duplicated ids of active users matching the role/department topology."""
    roles = set(roles)
    global_roles = set(global_roles)
    user_ids = {uid for uid in user_ids if uid is not None}
    clauses = []
    if roles:
        role_clause = User.role.in_(roles)
        if department_id is not None:
            role_clause = and_(role_clause, User.department_id == department_id)
        clauses.append(role_clause)
    if global_roles:
        clauses.append(User.role.in_(global_roles))
    if user_ids:
        clauses.append(User.id.in_(user_ids))
    if not clauses:
        return []
    stmt = select(User.id).where(User.is_active.is_(True), or_(*clauses))
    found = set(session.execute(stmt).scalars())
    return sorted(found - set(exclude_user_ids))


class NotificationDispatcher:
    def __init__(self, store, clock: Callable[[], datetime]):
        self.store = store
        self.clock = clock

    def dispatch(self, intents: Iterable[NotificationIntent]) -> int:
        """Create one row per (recipient, intent). Returns rows written; never raises."""
        written = 0
        for intent in intents:
            try:
                written += self._write(intent)
            except Exception:
                logger.exception('Notification dispatch failed: type=%s request=%s title=%r',
                                 intent.type, intent.request_id, intent.title)
        return written

    def _write(self, intent: NotificationIntent) -> int:
        # Deliberately outside Store.atomic: no retry, no effect on the triggering mutation.
        session = self.store.session_factory()
        try:
            recipients = resolve_recipients(
                session,
                roles=intent.roles,
                department_id=intent.department_id,
                global_roles=intent.global_roles,
                user_ids=intent.user_ids,
                exclude_user_ids=intent.exclude_user_ids,
            )
            now = self.clock()
            for user_id in recipients:
                session.add(Notification(
                    user_id=user_id,
                    request_id=intent.request_id,
                    title=intent.title,
                    message=intent.message,
                    type=intent.type,
                    is_read=False,
                    created_at=now,
                ))
            session.commit()
            if recipients:
                logger.info('Notification %r sent to %d user(s)', intent.title, len(recipients))
            return len(recipients)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def warehouse_update_intent(operation: str, part_name: str, keeper_name: str,
                            department_id: Optional[int] = None) -> NotificationIntent:
    """Spare part catalogue change: company-wide managers plus the keeper's department leads."""
    verbs = {'ADDED': 'added', 'DELETED': 'deleted', 'MODIFIED': 'modified'}
    message = f'{keeper_name} {verbs.get(operation, operation.lower())} spare part "{part_name}" in the warehouse'
    if department_id is None:
        return NotificationIntent(
            title='Warehouse update', message=message, type=R.NOTIFY_WAREHOUSE_UPDATE,
            global_roles=R.GLOBAL_ROLES | R.DEPARTMENT_ROLES,
        )
    return NotificationIntent(
        title='Warehouse update', message=message, type=R.NOTIFY_WAREHOUSE_UPDATE,
        roles=R.DEPARTMENT_ROLES, department_id=department_id, global_roles=R.GLOBAL_ROLES,
    )


# ---------------- Inbox (owner-side operations) ---------------- #

def list_for_user(session, user_id: int, unread_only: bool = False, limit: int = 20, offset: int = 0):
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = session.execute(
        stmt.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(offset).limit(limit)
    ).scalars().all()
    return rows, total, unread_count(session, user_id)


def unread_count(session, user_id: int) -> int:
    return session.execute(
        select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.is_read.is_(False))
    ).scalar_one()


def mark_read(session, notification_id: int, user_id: int) -> Notification:
    """Only the owning user may mark a notification read."""
    row = session.execute(
        select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError('Notification not found')
    row.is_read = True
    return row


def mark_all_read(session, user_id: int) -> int:
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def purge_read_older_than(session, now: datetime, days: int) -> int:
    """Retention: delete read notifications created more than ``days`` ago."""
    cutoff = now - timedelta(days=days)
    result = session.execute(
        delete(Notification)
        .where(Notification.is_read.is_(True), Notification.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0
    logger.info('Deleted %d read notification(s) older than %d day(s)', count, days)
    return count


def notification_stats(session, user_id: int) -> dict:
    by_type = dict(session.execute(
        select(Notification.type, func.count(Notification.id))
        .where(Notification.user_id == user_id)
        .group_by(Notification.type)
    ).all())
    return {
        'total': sum(by_type.values()),
        'unread': unread_count(session, user_id),
        'by_type': by_type,
    }


__all__ = [
    'NotificationIntent', 'NotificationDispatcher', 'resolve_recipients', 'warehouse_update_intent',
    'list_for_user', 'unread_count', 'mark_read', 'mark_all_read', 'purge_read_older_than', 'notification_stats',
]
