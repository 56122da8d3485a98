"""SLA deadlines and SLA reporting."""
from __future__ import annotations
from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import select, func

from aftersales.config.settings import Settings
from aftersales.constants import roles as R
from aftersales.errors import ValidationError
from aftersales.models.org import Department
from aftersales.models.service_request import ServiceRequest


def sla_hours(warranty_status: str, execution_method: str, settings: Settings) -> int:
    if warranty_status not in R.WARRANTY_STATUSES:
        raise ValidationError(f'warranty_status must be one of {", ".join(R.WARRANTY_STATUSES)}')
    if execution_method not in R.EXECUTION_METHODS:
        raise ValidationError(f'execution_method must be one of {", ".join(R.EXECUTION_METHODS)}')
    if warranty_status == R.UNDER_WARRANTY:
        hours = settings.sla_under_warranty_hours
    else:
        hours = settings.sla_out_of_warranty_hours
    if execution_method == R.ON_SITE:
        hours += settings.sla_onsite_buffer_hours
    return hours


def due_date(warranty_status: str, execution_method: str, created_at: datetime, settings: Settings) -> datetime:
    """createdAt + base hours for the warranty status (+ on-site buffer)."""
    return created_at + timedelta(hours=sla_hours(warranty_status, execution_method, settings))


def _scoped(stmt, department_id: Optional[int], date_from: Optional[datetime], date_to: Optional[datetime]):
    if department_id is not None:
        stmt = stmt.where(ServiceRequest.department_id == department_id)
    if date_from is not None:
        stmt = stmt.where(ServiceRequest.created_at >= date_from)
    if date_to is not None:
        stmt = stmt.where(ServiceRequest.created_at <= date_to)
    return stmt


def sla_stats(session, department_id: Optional[int] = None, date_from: Optional[datetime] = None,
              date_to: Optional[datetime] = None) -> dict:
    def count(*criteria) -> int:
        stmt = _scoped(select(func.count(ServiceRequest.id)), department_id, date_from, date_to)
        return session.execute(stmt.where(*criteria)).scalar_one()

    total = count()
    overdue = count(ServiceRequest.is_overdue.is_(True))
    done = ServiceRequest.status.in_(R.FINISHED_STATUSES)
    completed_on_time = count(done, ServiceRequest.is_overdue.is_(False))
    completed_overdue = count(done, ServiceRequest.is_overdue.is_(True))

    rows = session.execute(_scoped(
        select(ServiceRequest.created_at, ServiceRequest.completed_at).where(ServiceRequest.completed_at.is_not(None)),
        department_id, date_from, date_to,
    )).all()
    hours = [(completed - created).total_seconds() / 3600 for created, completed in rows]
    avg_hours = round(sum(hours) / len(hours), 2) if hours else 0

    return {
        'total_requests': total,
        'overdue_requests': overdue,
        'completed_on_time': completed_on_time,
        'completed_overdue': completed_overdue,
        'overdue_percentage': round(overdue / total * 100, 2) if total else 0,
        'on_time_percentage': round(completed_on_time / total * 100, 2) if total else 0,
        'average_resolution_hours': avg_hours,
    }


def upcoming_overdue(session, now: datetime, window_hours: int, scope=None):
    """Open requests that will breach their SLA within ``window_hours``."""
    stmt = (
        select(ServiceRequest)
        .where(
            ServiceRequest.sla_due_date >= now,
            ServiceRequest.sla_due_date <= now + timedelta(hours=window_hours),
            ServiceRequest.is_overdue.is_(False),
            ServiceRequest.status.not_in(R.FINISHED_STATUSES),
        )
        .order_by(ServiceRequest.sla_due_date.asc(), ServiceRequest.id.asc())
    )
    if scope is not None:
        stmt = stmt.where(scope)
    return session.execute(stmt).scalars().all()


def dashboard_stats(session, scope=None) -> dict:
    """Headline request counts for the caller's visible requests."""
    def scoped(stmt):
        return stmt if scope is None else stmt.where(scope)

    def count(*criteria) -> int:
        return session.execute(scoped(select(func.count(ServiceRequest.id))).where(*criteria)).scalar_one()

    open_ = ServiceRequest.status.not_in(R.FINISHED_STATUSES)
    by_department = session.execute(scoped(
        select(ServiceRequest.department_id, Department.name, func.count(ServiceRequest.id))
        .join(Department, Department.id == ServiceRequest.department_id)
        .group_by(ServiceRequest.department_id, Department.name)
        .order_by(ServiceRequest.department_id)
    )).all()
    by_status = session.execute(scoped(
        select(ServiceRequest.status, func.count(ServiceRequest.id))
        .group_by(ServiceRequest.status)
        .order_by(ServiceRequest.status)
    )).all()
    rows = session.execute(scoped(
        select(ServiceRequest.created_at, ServiceRequest.completed_at)
        .where(ServiceRequest.status == R.STATUS_COMPLETED, ServiceRequest.completed_at.is_not(None))
    )).all()
    hours = [(completed - created).total_seconds() / 3600 for created, completed in rows]
    satisfaction = session.execute(scoped(
        select(func.avg(ServiceRequest.customer_satisfaction))
        .where(ServiceRequest.customer_satisfaction.is_not(None))
    )).scalar_one()

    return {
        'total_requests': count(),
        'pending_requests': count(open_),
        'overdue_requests': count(open_, ServiceRequest.is_overdue.is_(True)),
        'completed_requests': count(ServiceRequest.status == R.STATUS_COMPLETED),
        'under_warranty': count(ServiceRequest.warranty_status == R.UNDER_WARRANTY),
        'out_of_warranty': count(ServiceRequest.warranty_status == R.OUT_OF_WARRANTY),
        'requests_by_department': [
            {'department_id': dept_id, 'department_name': name, 'count': n} for dept_id, name, n in by_department
        ],
        'requests_by_status': [{'status': status, 'count': n} for status, n in by_status],
        'average_resolution_hours': round(sum(hours) / len(hours), 2) if hours else 0,
        'customer_satisfaction_average': round(float(satisfaction), 2) if satisfaction is not None else 0,
    }


__all__ = ['sla_hours', 'due_date', 'sla_stats', 'upcoming_overdue', 'dashboard_stats']
