from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy import select, func

from aftersales.constants import roles as R
from aftersales.models.activity import RequestActivity


def record_activity(session, request_id: int, user_id: int, activity_type: str, description: str,
                    old_value: Optional[str] = None, new_value: Optional[str] = None,
                    at: Optional[datetime] = None) -> RequestActivity:
    """Append an activity row within the caller's session.

    Parameters:
      activity_type: one of STATUS_CHANGE, ASSIGNMENT, COMMENT, COST_ADDED, CREATED, UPDATED
      old_value / new_value: stringified before/after values, when meaningful
      at: timestamp from the caller's clock (defaults to column default)
    """
    if activity_type not in R.ACTIVITY_TYPES:
        raise ValueError(f'unknown activity type {activity_type}')
    row = RequestActivity(
        request_id=request_id,
        user_id=user_id,
        activity_type=activity_type,
        description=description,
        old_value=None if old_value is None else str(old_value),
        new_value=None if new_value is None else str(new_value),
    )
    if at is not None:
        row.created_at = at
    session.add(row)
    # No commit here; caller's transaction boundary controls durability.
    return row


def list_activities(session, *, request_id: Optional[int] = None, user_id: Optional[int] = None,
                    activity_type: Optional[str] = None, limit: int = 50, offset: int = 0):
    """Newest-first activity rows plus total count."""
    stmt = select(RequestActivity)
    if request_id is not None:
        stmt = stmt.where(RequestActivity.request_id == request_id)
    if user_id is not None:
        stmt = stmt.where(RequestActivity.user_id == user_id)
    if activity_type is not None:
        stmt = stmt.where(RequestActivity.activity_type == activity_type)
    total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = session.execute(
        stmt.order_by(RequestActivity.created_at.desc(), RequestActivity.id.desc()).offset(offset).limit(limit)
    ).scalars().all()
    return rows, total


__all__ = ['record_activity', 'list_activities']
