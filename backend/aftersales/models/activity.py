from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, Session
from sqlalchemy import Integer, String, Text, ForeignKey, event

from .org import Base  # reuse same metadata
from .types import UTCDateTime, utcnow


class RequestActivity(Base):
    """Append-only audit row for a request mutation."""
    __tablename__ = 'request_activities'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[int] = mapped_column(ForeignKey('requests.id'), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(String(255))
    new_value: Mapped[Optional[str]] = mapped_column(String(255))
    created_at = mapped_column(UTCDateTime(), nullable=False, default=utcnow, index=True)


class ActivityLogImmutableError(RuntimeError):
    pass


@event.listens_for(Session, 'before_flush')
def _reject_activity_rewrites(session, flush_context, instances):
    for obj in session.dirty:
        if isinstance(obj, RequestActivity) and session.is_modified(obj):
            raise ActivityLogImmutableError('request activities are append-only')
    for obj in session.deleted:
        if isinstance(obj, RequestActivity):
            raise ActivityLogImmutableError('request activities are append-only')
