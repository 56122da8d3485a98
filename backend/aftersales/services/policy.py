"""Role policy: who may see or act on what.

Pure functions over (principal, resource). No store access, no side effects; callers
evaluate these before mutating anything. ``assert_*`` helpers raise ForbiddenError.
"""
from __future__ import annotations
from typing import Optional
from sqlalchemy import or_, false

from aftersales.constants import roles as R
from aftersales.errors import ForbiddenError


def is_global_role(role: str) -> bool:
    return role in R.GLOBAL_ROLES


def is_manager_level(role: str) -> bool:
    return role in R.MANAGER_ROLES


def can_assign_technician(role: str) -> bool:
    return role in R.ASSIGNER_ROLES


def can_modify_inventory(role: str) -> bool:
    return role in R.INVENTORY_WRITER_ROLES


def can_view_inventory(role: str) -> bool:
    return role in R.INVENTORY_READER_ROLES


def can_manage_status_catalog(role: str) -> bool:
    return role in R.STATUS_CATALOG_ROLES


def can_access_request(user, request) -> bool:
    """Visibility rule for a single request.

    1. company/deputy manager: always
    2. department manager/section supervisor: same department only
    3. technician: assigned technician or the user who received the request
    4. anyone else (warehouse keeper included): never
    """
    role = user.role
    if role in R.GLOBAL_ROLES:
        return True
    if role in R.DEPARTMENT_ROLES:
        return user.department_id is not None and user.department_id == request.department_id
    if role == R.TECHNICIAN:
        return user.id in (request.assigned_technician_id, request.received_by_id)
    return False


def can_change_status(user, request) -> bool:
    # Warehouse keepers never touch request status, whatever scope rules say
    if user.role in R.INVENTORY_WRITER_ROLES:
        return False
    return can_access_request(user, request)


def can_close_request(user, request) -> bool:
    if not can_access_request(user, request):
        return False
    return is_manager_level(user.role) or user.role == R.SECTION_SUPERVISOR


def can_add_cost(user, request, warranty_status: Optional[str] = None) -> bool:
    if not can_access_request(user, request):
        return False
    warranty = warranty_status or request.warranty_status
    if warranty == R.UNDER_WARRANTY:
        return is_manager_level(user.role)
    return True


def scope_request_filter(user, model):
    """SQL criterion matching exactly the requests ``can_access_request`` allows."""
    role = user.role
    if role in R.GLOBAL_ROLES:
        return None
    if role in R.DEPARTMENT_ROLES:
        if user.department_id is None:
            return false()
        return model.department_id == user.department_id
    if role == R.TECHNICIAN:
        return or_(model.assigned_technician_id == user.id, model.received_by_id == user.id)
    return false()


def assert_can_access_request(user, request, message: str = 'Cannot access this request'):
    if not can_access_request(user, request):
        raise ForbiddenError(message)


def assert_role(allowed: bool, message: str = 'Insufficient permissions'):
    if not allowed:
        raise ForbiddenError(message)


__all__ = [
    'is_global_role', 'is_manager_level', 'can_assign_technician', 'can_modify_inventory',
    'can_view_inventory', 'can_manage_status_catalog', 'can_access_request', 'can_change_status',
    'can_close_request', 'can_add_cost', 'scope_request_filter', 'assert_can_access_request', 'assert_role',
]
