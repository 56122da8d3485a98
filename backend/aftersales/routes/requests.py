from __future__ import annotations
from flask import Blueprint, request
from aftersales import get_services
from aftersales.constants import roles as R
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.errors import ValidationError, ForbiddenError
from aftersales.services import requests as svc
from aftersales.services import inventory as inv
from aftersales.services.activity import list_activities
from aftersales.services.policy import is_manager_level
from aftersales.utils.listing import pagination_args, build_list_payload
from aftersales.utils.validation import optional_int
from aftersales.routes._common import iso, json_body, parse_datetime

requests_bp = Blueprint('requests', __name__)


@requests_bp.get('')
@require_roles()
def list_requests():
    ctx = get_services()
    limit, offset = pagination_args()
    params = {k: request.args.get(k) for k in svc.REQUEST_FILTERS}
    rows, total = svc.list_requests(ctx, current_principal(), params, request.args.get('sort'), limit, offset)
    return build_list_payload([_request_json(r) for r in rows], total, limit, offset)


@requests_bp.post('')
@require_roles()
def create_request():
    data = json_body()
    req = svc.create_request(
        get_services(), current_principal(),
        customer_id=optional_int(data.get('customer_id'), 'customer_id'),
        department_id=optional_int(data.get('department_id'), 'department_id'),
        product_id=optional_int(data.get('product_id'), 'product_id'),
        issue_description=data.get('issue_description'),
        warranty_status=data.get('warranty_status'),
        execution_method=data.get('execution_method'),
        priority=data.get('priority'),
        purchase_date=parse_datetime(data.get('purchase_date'), 'purchase_date'),
    )
    return _request_json(req), 201


@requests_bp.get('/<int:request_id>')
@require_roles()
def get_request(request_id: int):
    return _request_json(svc.get_request(get_services(), request_id, current_principal()))


@requests_bp.put('/<int:request_id>')
@require_roles()
def update_request(request_id: int):
    data = json_body()
    req = svc.update_request(
        get_services(), request_id, current_principal(),
        priority=data.get('priority'),
        issue_description=data.get('issue_description'),
        execution_method=data.get('execution_method'),
    )
    return _request_json(req)


@requests_bp.put('/<int:request_id>/status')
@require_roles()
def change_status(request_id: int):
    data = json_body()
    status = data.get('status')
    if not status:
        raise ValidationError('status required')
    note = data.get('comment') or data.get('notes')
    req = svc.change_status(get_services(), request_id, status, current_principal(), note=note)
    return _request_json(req)


@requests_bp.put('/<int:request_id>/assign')
@require_roles()
def assign_technician(request_id: int):
    data = json_body()
    technician_id = optional_int(data.get('technician_id'), 'technician_id')
    req = svc.assign_technician(get_services(), request_id, technician_id, current_principal())
    return _request_json(req)


@requests_bp.put('/<int:request_id>/close')
@require_roles()
def close_request(request_id: int):
    data = json_body()
    req = svc.close_request(
        get_services(), request_id, current_principal(),
        final_notes=data.get('final_notes'),
        satisfaction=data.get('customer_satisfaction'),
    )
    return _request_json(req)


@requests_bp.get('/<int:request_id>/costs')
@require_roles()
def list_costs(request_id: int):
    ctx = get_services()
    svc.get_request(ctx, request_id, current_principal())
    rows, summary = ctx.store.read(lambda s: (svc.list_costs(s, request_id), svc.cost_summary(s, request_id)))
    return {'data': [_cost_json(c) for c in rows], 'summary': summary}


@requests_bp.post('/<int:request_id>/costs')
@require_roles()
def add_cost(request_id: int):
    data = json_body()
    cost = svc.add_cost(
        get_services(), request_id, data.get('cost_type'), data.get('amount'), current_principal(),
        description=data.get('description'), currency=data.get('currency') or 'SYP',
    )
    return _cost_json(cost), 201


@requests_bp.get('/<int:request_id>/activities')
@require_roles()
def request_activities(request_id: int):
    ctx = get_services()
    svc.get_request(ctx, request_id, current_principal())
    limit, offset = pagination_args()
    rows, total = ctx.store.read(list_activities, request_id=request_id, limit=limit, offset=offset)
    return build_list_payload([_activity_json(a) for a in rows], total, limit, offset)


@requests_bp.get('/activities')
@require_roles()
def user_activities():
    """Activity by user; non-managers only see their own."""
    principal = current_principal()
    user_id = optional_int(request.args.get('user_id'), 'user_id') or principal.id
    if user_id != principal.id and not is_manager_level(principal.role):
        raise ForbiddenError('Cannot view activity of other users')
    activity_type = request.args.get('activity_type')
    if activity_type and activity_type not in R.ACTIVITY_TYPES:
        raise ValidationError('activity_type invalid')
    limit, offset = pagination_args()
    rows, total = get_services().store.read(
        list_activities, user_id=user_id, activity_type=activity_type or None, limit=limit, offset=offset,
    )
    return build_list_payload([_activity_json(a) for a in rows], total, limit, offset)


@requests_bp.get('/<int:request_id>/parts')
@require_roles()
def list_parts(request_id: int):
    rows = inv.list_request_parts(get_services(), request_id, current_principal())
    data = [dict(_request_part_json(rp), part_name=name, part_number=number) for rp, name, number in rows]
    return {'data': data, 'total_cost': round(sum(d['total_cost'] for d in data), 2)}


@requests_bp.post('/<int:request_id>/parts')
@require_roles(R.INVENTORY_WRITER_ROLES)
def add_part(request_id: int):
    data = json_body()
    spare_part_id = optional_int(data.get('spare_part_id'), 'spare_part_id')
    if spare_part_id is None:
        raise ValidationError('spare_part_id required')
    row = inv.add_part(get_services(), request_id, spare_part_id, data.get('quantity_used'), current_principal())
    return _request_part_json(row), 201


def _request_json(r) -> dict:
    return {
        'id': r.id,
        'request_number': r.request_number,
        'customer_id': r.customer_id,
        'department_id': r.department_id,
        'product_id': r.product_id,
        'received_by_id': r.received_by_id,
        'assigned_technician_id': r.assigned_technician_id,
        'issue_description': r.issue_description,
        'status': r.status,
        'priority': r.priority,
        'warranty_status': r.warranty_status,
        'execution_method': r.execution_method,
        'sla_due_date': iso(r.sla_due_date),
        'is_overdue': r.is_overdue,
        'customer_satisfaction': r.customer_satisfaction,
        'final_notes': r.final_notes,
        'purchase_date': iso(r.purchase_date),
        'assigned_at': iso(r.assigned_at),
        'started_at': iso(r.started_at),
        'completed_at': iso(r.completed_at),
        'closed_at': iso(r.closed_at),
        'created_at': iso(r.created_at),
        'updated_at': iso(r.updated_at),
        'version': r.version,
    }


def _cost_json(c) -> dict:
    return {
        'id': c.id,
        'request_id': c.request_id,
        'cost_type': c.cost_type,
        'amount': c.amount,
        'currency': c.currency,
        'description': c.description,
        'added_by_id': c.added_by_id,
        'created_at': iso(c.created_at),
    }


def _activity_json(a) -> dict:
    return {
        'id': a.id,
        'request_id': a.request_id,
        'user_id': a.user_id,
        'activity_type': a.activity_type,
        'description': a.description,
        'old_value': a.old_value,
        'new_value': a.new_value,
        'created_at': iso(a.created_at),
    }


def _request_part_json(rp) -> dict:
    return {
        'id': rp.id,
        'request_id': rp.request_id,
        'spare_part_id': rp.spare_part_id,
        'quantity_used': rp.quantity_used,
        'unit_price': rp.unit_price,
        'total_cost': rp.total_cost,
        'added_by_id': rp.added_by_id,
        'created_at': iso(rp.created_at),
    }
