from __future__ import annotations
from flask import Blueprint, request
from aftersales import get_services
from aftersales.constants import roles as R
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.errors import ForbiddenError, ValidationError
from aftersales.services import sla
from aftersales.services import requests as svc
from aftersales.utils.validation import optional_int
from aftersales.routes._common import iso, parse_datetime

rpt_bp = Blueprint('reports', __name__)

REPORT_ROLES = R.ASSIGNER_ROLES


@rpt_bp.get('/sla')
@require_roles(REPORT_ROLES)
def sla_report():
    principal = current_principal()
    department_id = optional_int(request.args.get('department_id'), 'department_id')
    if principal.role in R.DEPARTMENT_ROLES:
        # department-scoped roles only ever see their own department
        if department_id is not None and department_id != principal.department_id:
            raise ForbiddenError('Cannot view other departments')
        department_id = principal.department_id
    date_from = parse_datetime(request.args.get('from'), 'from')
    date_to = parse_datetime(request.args.get('to'), 'to')
    if date_from and date_to and date_from > date_to:
        raise ValidationError('from must be before to')
    stats = get_services().store.read(sla.sla_stats, department_id, date_from, date_to)
    return {
        'department_id': department_id,
        'from': iso(date_from),
        'to': iso(date_to),
        'stats': stats,
    }


@rpt_bp.get('/dashboard')
@require_roles()
def dashboard():
    """Headline counts over the requests the caller can see."""
    return svc.dashboard(get_services(), current_principal())


@rpt_bp.get('/sla/upcoming')
@require_roles(REPORT_ROLES)
def sla_upcoming():
    hours = optional_int(request.args.get('hours'), 'hours')
    if hours is not None and hours < 0:
        raise ValidationError('hours must not be negative')
    ctx = get_services()
    rows = svc.upcoming_overdue(ctx, current_principal(), hours)
    now = ctx.now()
    return {
        'window_hours': hours if hours is not None else ctx.settings.sla_upcoming_window_hours,
        'data': [{
            'id': r.id,
            'request_number': r.request_number,
            'status': r.status,
            'department_id': r.department_id,
            'assigned_technician_id': r.assigned_technician_id,
            'sla_due_date': iso(r.sla_due_date),
            'hours_remaining': round((r.sla_due_date - now).total_seconds() / 3600, 2),
        } for r in rows],
    }
