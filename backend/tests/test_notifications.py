import logging
import pytest
from aftersales.constants import roles as R
from aftersales.errors import NotFoundError
from aftersales.services import notifications as notif
from aftersales.services.notifications import NotificationIntent, resolve_recipients
from aftersales.services.requests import change_status, get_request
from tests.test_utils_seed import new_request, principal, make_user
from tests.test_lifecycle_helpers import advance_to


def _inbox(ctx, user, unread_only=False):
    return ctx.store.read(notif.list_for_user, user.id, unread_only, 100, 0)


def test_recipient_resolution_by_role_and_department(ctx, org):
    make_user(R.SECTION_SUPERVISOR, org.dept_a, username='retired_sup', is_active=False)
    ids = ctx.store.read(resolve_recipients, roles=R.DEPARTMENT_ROLES, department_id=org.dept_a.id)
    assert ids == sorted([org.mgr_a.id, org.sup_a.id])
    ids = ctx.store.read(resolve_recipients, roles=R.DEPARTMENT_ROLES, department_id=org.dept_a.id,
                         global_roles=R.GLOBAL_ROLES, user_ids=[org.mgr_a.id, None],
                         exclude_user_ids=[org.sup_a.id])
    assert ids == sorted([org.company.id, org.deputy.id, org.mgr_a.id])
    # no department filter: every department's managers and supervisors
    ids = ctx.store.read(resolve_recipients, roles=R.DEPARTMENT_ROLES)
    assert ids == sorted([org.mgr_a.id, org.sup_a.id, org.mgr_b.id, org.sup_b.id])
    assert ctx.store.read(resolve_recipients) == []


def test_one_row_per_recipient_and_event(ctx, org):
    written = ctx.dispatcher.dispatch([NotificationIntent(
        title='Hello', message='m', type=R.NOTIFY_STATUS_CHANGE,
        user_ids=(org.mgr_a.id,), roles=R.DEPARTMENT_ROLES, department_id=org.dept_a.id,
    )])
    assert written == 2
    rows, total, unread = _inbox(ctx, org.mgr_a)
    assert total == 1 and unread == 1


def test_creation_notifies_department_leads(ctx, org):
    req = new_request(ctx, org.tech_a1, org.customer, org.dept_a)
    for user in (org.mgr_a, org.sup_a):
        rows, _, _ = _inbox(ctx, user)
        assert [(n.type, n.request_id) for n in rows] == [(R.NOTIFY_ASSIGNMENT, req.id)]
    assert _inbox(ctx, org.mgr_b)[1] == 0


def test_technician_status_change_notifies_managers_not_self(ctx, org):
    req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    advance_to(ctx, req.id, R.STATUS_ASSIGNED, org.mgr_a, org.tech_a1)
    change_status(ctx, req.id, R.STATUS_UNDER_INSPECTION, principal(org.tech_a1))
    def status_notes(user):
        return [n for n in _inbox(ctx, user)[0] if n.type == R.NOTIFY_STATUS_CHANGE]
    for user in (org.company, org.deputy, org.mgr_a, org.sup_a):
        assert len(status_notes(user)) == 1
    assert status_notes(org.tech_a1) == []
    assert status_notes(org.mgr_b) == []


def test_dispatch_failure_never_reaches_caller(ctx, org, monkeypatch, caplog):
    def broken(intent):
        raise RuntimeError('mail relay down')

    monkeypatch.setattr(ctx.dispatcher, '_write', broken)
    with caplog.at_level(logging.ERROR, logger='aftersales.services.notifications'):
        req = new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    assert get_request(ctx, req.id, principal(org.company)).status == R.STATUS_NEW
    assert 'Notification dispatch failed' in caplog.text
    assert _inbox(ctx, org.mgr_a)[1] == 0


def test_inbox_operations_are_owner_only(ctx, org):
    new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    new_request(ctx, org.mgr_a, org.customer, org.dept_a)
    rows, total, unread = _inbox(ctx, org.sup_a)
    assert (total, unread) == (2, 2)
    with pytest.raises(NotFoundError):
        ctx.store.atomic(notif.mark_read, rows[0].id, org.mgr_b.id)
    ctx.store.atomic(notif.mark_read, rows[0].id, org.sup_a.id)
    assert ctx.store.read(notif.unread_count, org.sup_a.id) == 1
    assert len(_inbox(ctx, org.sup_a, unread_only=True)[0]) == 1
    assert ctx.store.atomic(notif.mark_all_read, org.sup_a.id) == 1
    stats = ctx.store.read(notif.notification_stats, org.sup_a.id)
    assert stats == {'total': 2, 'unread': 0, 'by_type': {R.NOTIFY_ASSIGNMENT: 2}}


def test_warehouse_update_recipients(ctx, org):
    intent = notif.warehouse_update_intent('ADDED', 'Fan', 'Keeper', org.dept_a.id)
    written = ctx.dispatcher.dispatch([intent])
    # company + deputy + department A leads
    assert written == 4
    assert _inbox(ctx, org.mgr_b)[1] == 0
    written = ctx.dispatcher.dispatch([notif.warehouse_update_intent('DELETED', 'Fan', 'Keeper')])
    assert written == 6
