"""Overdue sweeper and notification retention.

Both jobs are idempotent and safe to run from several processes at once: a request is
flagged by a conditional UPDATE, so only the sweep whose UPDATE actually changed the
row announces it.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List, Optional
from datetime import timedelta
from sqlalchemy import select, update, func

from aftersales.constants import roles as R
from aftersales.models.org import Department
from aftersales.models.notification import Notification
from aftersales.models.service_request import ServiceRequest
from aftersales.services.notifications import NotificationIntent, purge_read_older_than

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverdueCandidate:
    id: int
    request_number: str
    assigned_technician_id: Optional[int]
    manager_id: Optional[int]


def _open_past_due(now):
    return (
        ServiceRequest.is_overdue.is_(False),
        ServiceRequest.status.not_in(R.FINISHED_STATUSES),
        ServiceRequest.sla_due_date < now,
    )


def find_candidates(session, now) -> List[OverdueCandidate]:
    rows = session.execute(
        select(ServiceRequest.id, ServiceRequest.request_number,
               ServiceRequest.assigned_technician_id, Department.manager_id)
        .join(Department, Department.id == ServiceRequest.department_id)
        .where(*_open_past_due(now))
        .order_by(ServiceRequest.sla_due_date.asc(), ServiceRequest.id.asc())
    ).all()
    return [OverdueCandidate(*row) for row in rows]


def flag_overdue(session, request_id: int, now) -> bool:
    """Set is_overdue once. True only for the caller that flipped the flag."""
    result = session.execute(
        update(ServiceRequest)
        .where(ServiceRequest.id == request_id, *_open_past_due(now))
        .values(is_overdue=True, version=ServiceRequest.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def overdue_intents(candidate: OverdueCandidate) -> List[NotificationIntent]:
    intents = []
    if candidate.assigned_technician_id:
        intents.append(NotificationIntent(
            title='Request overdue',
            message=f'Request {candidate.request_number} has passed its SLA deadline',
            type=R.NOTIFY_OVERDUE,
            request_id=candidate.id,
            user_ids=(candidate.assigned_technician_id,),
        ))
    if candidate.manager_id:
        intents.append(NotificationIntent(
            title='Department request overdue',
            message=f'Request {candidate.request_number} in your department has passed its SLA deadline',
            type=R.NOTIFY_OVERDUE,
            request_id=candidate.id,
            user_ids=(candidate.manager_id,),
        ))
    return intents


class OverdueSweeper:
    def __init__(self, ctx):
        self.ctx = ctx

    def run(self, dry_run: bool = False) -> List[int]:
        """Flag open requests whose SLA has passed; returns ids flagged by this run."""
        now = self.ctx.now()
        candidates = self.ctx.store.read(find_candidates, now)
        if dry_run:
            logger.info('Dry run: %d request(s) would be marked overdue', len(candidates))
            return [c.id for c in candidates]
        flagged, intents = [], []
        for candidate in candidates:
            # one transaction per request so a conflict only costs that row
            if self.ctx.store.atomic(flag_overdue, candidate.id, now):
                flagged.append(candidate.id)
                intents.extend(overdue_intents(candidate))
        if flagged:
            logger.warning('Marked %d request(s) as overdue', len(flagged))
        self.ctx.dispatcher.dispatch(intents)
        return flagged


def sweep_overdue(ctx, dry_run: bool = False) -> List[int]:
    return OverdueSweeper(ctx).run(dry_run=dry_run)


def purge_notifications(ctx, days: Optional[int] = None, dry_run: bool = False) -> int:
    days = ctx.settings.notification_retention_days if days is None else days
    if days < 0:
        raise ValueError('days must not be negative')
    if dry_run:
        cutoff = ctx.now() - timedelta(days=days)
        return ctx.store.read(lambda s: s.execute(
            select(func.count(Notification.id)).where(Notification.is_read.is_(True), Notification.created_at < cutoff)
        ).scalar_one())
    return ctx.store.atomic(purge_read_older_than, ctx.now(), days)


__all__ = ['OverdueSweeper', 'OverdueCandidate', 'find_candidates', 'flag_overdue', 'sweep_overdue', 'purge_notifications']
