from types import SimpleNamespace
import pytest
from aftersales.constants import roles as R
from aftersales.errors import ForbiddenError
from aftersales.models.service_request import ServiceRequest
from aftersales.services import policy
from aftersales.services.context import Principal


def _req(department_id=1, assigned=None, received_by=99, warranty=R.OUT_OF_WARRANTY):
    return SimpleNamespace(department_id=department_id, assigned_technician_id=assigned,
                           received_by_id=received_by, warranty_status=warranty)


def test_company_and_deputy_see_every_department():
    for role in (R.COMPANY_MANAGER, R.DEPUTY_MANAGER):
        assert policy.can_access_request(Principal(1, role), _req(department_id=7))


def test_department_roles_scoped_to_own_department():
    for role in (R.DEPARTMENT_MANAGER, R.SECTION_SUPERVISOR):
        assert policy.can_access_request(Principal(1, role, department_id=1), _req(department_id=1))
        assert not policy.can_access_request(Principal(1, role, department_id=2), _req(department_id=1))
        assert not policy.can_access_request(Principal(1, role, department_id=None), _req(department_id=1))


def test_technician_only_assigned_or_receiver():
    tech = Principal(5, R.TECHNICIAN, department_id=1)
    assert policy.can_access_request(tech, _req(assigned=5))
    assert policy.can_access_request(tech, _req(received_by=5))
    # same department is not enough
    assert not policy.can_access_request(tech, _req(department_id=1, assigned=6))


def test_warehouse_keeper_never_sees_requests():
    keeper = Principal(3, R.WAREHOUSE_KEEPER, department_id=1)
    assert not policy.can_access_request(keeper, _req(received_by=3))
    assert not policy.can_change_status(keeper, _req(received_by=3))


def test_role_sets():
    assert policy.can_assign_technician(R.SECTION_SUPERVISOR)
    assert not policy.can_assign_technician(R.TECHNICIAN)
    assert policy.can_modify_inventory(R.WAREHOUSE_KEEPER)
    assert not policy.can_modify_inventory(R.COMPANY_MANAGER)
    assert policy.can_view_inventory(R.DEPARTMENT_MANAGER)
    assert not policy.can_view_inventory(R.TECHNICIAN)
    assert policy.can_manage_status_catalog(R.TECHNICIAN)
    assert not policy.can_manage_status_catalog(R.WAREHOUSE_KEEPER)


def test_close_and_cost_rules():
    sup = Principal(2, R.SECTION_SUPERVISOR, department_id=1)
    tech = Principal(5, R.TECHNICIAN, department_id=1)
    mgr = Principal(3, R.DEPARTMENT_MANAGER, department_id=1)
    assert policy.can_close_request(sup, _req())
    assert not policy.can_close_request(tech, _req(assigned=5))
    warranty = _req(warranty=R.UNDER_WARRANTY, assigned=5)
    assert policy.can_add_cost(mgr, warranty)
    assert not policy.can_add_cost(sup, warranty)
    assert not policy.can_add_cost(tech, warranty)
    assert policy.can_add_cost(tech, _req(assigned=5))


def test_scope_filter_shapes():
    assert policy.scope_request_filter(Principal(1, R.COMPANY_MANAGER), ServiceRequest) is None
    clause = policy.scope_request_filter(Principal(1, R.DEPARTMENT_MANAGER, department_id=4), ServiceRequest)
    assert 'department_id' in str(clause)
    clause = policy.scope_request_filter(Principal(1, R.TECHNICIAN), ServiceRequest)
    assert 'assigned_technician_id' in str(clause) and 'received_by_id' in str(clause)


def test_assert_helpers_raise_forbidden():
    with pytest.raises(ForbiddenError):
        policy.assert_can_access_request(Principal(1, R.TECHNICIAN), _req(assigned=2))
    with pytest.raises(ForbiddenError):
        policy.assert_role(False)
