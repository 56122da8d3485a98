from __future__ import annotations
from flask import Blueprint, request
from aftersales import get_services
from aftersales.constants import roles as R
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.services import statuses as svc
from aftersales.routes._common import iso, json_body

statuses_bp = Blueprint('statuses', __name__)


@statuses_bp.get('')
@require_roles(R.STATUS_CATALOG_ROLES)
def list_statuses():
    include_inactive = (request.args.get('include_inactive') or '').lower() == 'true'
    rows = svc.list_statuses(get_services(), current_principal(), include_inactive)
    return {'data': [_status_json(s) for s in rows]}


@statuses_bp.post('')
@require_roles(R.STATUS_CATALOG_ROLES)
def create_status():
    return _status_json(svc.create_status(get_services(), current_principal(), json_body())), 201


@statuses_bp.put('/<int:status_id>')
@require_roles(R.STATUS_CATALOG_ROLES)
def update_status(status_id: int):
    return _status_json(svc.update_status(get_services(), current_principal(), status_id, json_body()))


@statuses_bp.delete('/<int:status_id>')
@require_roles(R.STATUS_CATALOG_ROLES)
def delete_status(status_id: int):
    svc.delete_status(get_services(), current_principal(), status_id)
    return {'deleted': True}


def _status_json(s) -> dict:
    return {
        'id': s.id,
        'name': s.name,
        'display_name': s.display_name,
        'description': s.description,
        'sort_order': s.sort_order,
        'is_active': s.is_active,
        'created_by_id': s.created_by_id,
        'created_at': iso(s.created_at),
    }
