from __future__ import annotations
from flask import Blueprint, request
from aftersales import get_services
from aftersales.constants import roles as R
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.services import inventory as inv
from aftersales.utils.listing import pagination_args, build_list_payload
from aftersales.routes._common import iso, json_body

storage_bp = Blueprint('storage', __name__)


@storage_bp.get('')
@require_roles(R.INVENTORY_READER_ROLES)
def list_parts():
    limit, offset = pagination_args()
    params = {k: request.args.get(k) for k in inv.SPARE_PART_FILTERS}
    rows, total = inv.list_spare_parts(get_services(), current_principal(), params, limit, offset)
    return build_list_payload([_part_json(p) for p in rows], total, limit, offset)


@storage_bp.get('/categories')
@require_roles(R.INVENTORY_READER_ROLES)
def list_categories():
    return {'categories': inv.list_categories(get_services(), current_principal())}


@storage_bp.get('/<int:part_id>')
@require_roles(R.INVENTORY_READER_ROLES)
def get_part(part_id: int):
    return _part_json(inv.get_spare_part(get_services(), current_principal(), part_id))


@storage_bp.post('')
@require_roles(R.INVENTORY_WRITER_ROLES)
def create_part():
    part = inv.create_spare_part(get_services(), current_principal(), json_body())
    return _part_json(part), 201


@storage_bp.put('/<int:part_id>')
@require_roles(R.INVENTORY_WRITER_ROLES)
def update_part(part_id: int):
    part = inv.update_spare_part(get_services(), current_principal(), part_id, json_body())
    return _part_json(part)


@storage_bp.post('/<int:part_id>/adjust-quantity')
@require_roles(R.INVENTORY_WRITER_ROLES)
def adjust_quantity(part_id: int):
    data = json_body()
    part = inv.adjust_quantity(get_services(), current_principal(), part_id, data.get('adjustment'), data.get('reason'))
    return _part_json(part)


@storage_bp.delete('/<int:part_id>')
@require_roles(R.INVENTORY_WRITER_ROLES)
def delete_part(part_id: int):
    inv.delete_spare_part(get_services(), current_principal(), part_id)
    return {'deleted': True}


def _part_json(p) -> dict:
    return {
        'id': p.id,
        'name': p.name,
        'part_number': p.part_number,
        'category': p.category,
        'quantity': p.quantity,
        'min_quantity': p.min_quantity,
        'is_low_stock': p.is_low_stock,
        'unit_price': p.unit_price,
        'currency': p.currency,
        'supplier': p.supplier,
        'location': p.location,
        'description': p.description,
        'created_at': iso(p.created_at),
        'updated_at': iso(p.updated_at),
    }
