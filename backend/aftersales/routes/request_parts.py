from __future__ import annotations
from flask import Blueprint
from aftersales import get_services
from aftersales.constants import roles as R
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.services import inventory as inv
from aftersales.routes._common import json_body
from aftersales.routes.requests import _request_part_json

request_parts_bp = Blueprint('request_parts', __name__)


@request_parts_bp.put('/<int:request_part_id>')
@require_roles(R.INVENTORY_WRITER_ROLES)
def update_quantity(request_part_id: int):
    data = json_body()
    row = inv.update_part_quantity(get_services(), request_part_id, data.get('quantity_used'), current_principal())
    return _request_part_json(row)


@request_parts_bp.delete('/<int:request_part_id>')
@require_roles(R.INVENTORY_WRITER_ROLES)
def remove_part(request_part_id: int):
    restored = inv.remove_part(get_services(), request_part_id, current_principal())
    return {'deleted': True, 'restored_quantity': restored}
