"""Request lifecycle: creation, assignment, status transitions, costs and closing.

Every mutating operation runs inside ``ctx.store.atomic`` (request row, activity rows
and costs commit together) and returns its result; notifications collected during the
transaction are dispatched only after the commit.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, func, cast, Integer

from aftersales.constants import roles as R
from aftersales.errors import ValidationError, NotFoundError, ForbiddenError
from aftersales.models.org import Customer, Department, Product, User
from aftersales.models.service_request import ServiceRequest, RequestCost
from aftersales.models.inventory import RequestPart
from aftersales.services import policy, sla
from aftersales.services.activity import record_activity
from aftersales.services.notifications import NotificationIntent
from aftersales.utils.filters import apply_filters
from aftersales.utils.sorting import apply_multi_sort
from aftersales.utils.fsm import TransitionValidator
from aftersales.utils.validation import validate_choice, positive_number

logger = logging.getLogger(__name__)

REQUEST_FSM = TransitionValidator({
    R.STATUS_NEW: {R.STATUS_ASSIGNED},
    R.STATUS_ASSIGNED: {R.STATUS_UNDER_INSPECTION},
    R.STATUS_UNDER_INSPECTION: {R.STATUS_WAITING_PARTS},
    R.STATUS_WAITING_PARTS: {R.STATUS_IN_REPAIR},
    R.STATUS_IN_REPAIR: {R.STATUS_WAITING_PARTS, R.STATUS_COMPLETED},
    R.STATUS_COMPLETED: {R.STATUS_CLOSED},
    R.STATUS_CLOSED: set(),
})

# status -> timestamp column stamped on first entry
_STATUS_TIMESTAMPS = {
    R.STATUS_UNDER_INSPECTION: 'started_at',
    R.STATUS_COMPLETED: 'completed_at',
    R.STATUS_CLOSED: 'closed_at',
}


def load_request(session, request_id: int, for_update: bool = False) -> ServiceRequest:
    stmt = select(ServiceRequest).where(ServiceRequest.id == request_id)
    if for_update:
        stmt = stmt.with_for_update()
    req = session.execute(stmt).scalar_one_or_none()
    if req is None:
        raise NotFoundError('Request not found')
    return req


def next_request_number(session, now: datetime) -> str:
    """REQ<yymmdd>-<nnn>, sequence restarting every UTC day."""
    prefix = f"REQ{now.strftime('%y%m%d')}-"
    # numeric max: the suffix outgrows three digits after 999
    suffix = cast(func.substr(ServiceRequest.request_number, len(prefix) + 1), Integer)
    last = session.execute(
        select(func.max(suffix)).where(ServiceRequest.request_number.like(f'{prefix}%'))
    ).scalar_one_or_none()
    seq = int(last) + 1 if last else 1
    return f'{prefix}{seq:03d}'


# ---------------- Create ---------------- #

def create_request(ctx, actor, *, customer_id=None, department_id=None, product_id=None,
                   issue_description=None, warranty_status=None, execution_method=None,
                   priority=None, purchase_date=None) -> ServiceRequest:
    issue_description = (issue_description or '').strip()
    if not customer_id or not issue_description or (department_id is None and product_id is None):
        raise ValidationError('customer, department and issue description are required')
    priority = priority or R.DEFAULT_PRIORITY
    validate_choice(priority, R.PRIORITIES, 'priority')
    # validates both enums before touching the store
    sla.sla_hours(warranty_status, execution_method, ctx.settings)

    def _create(session):
        if session.get(Customer, customer_id) is None:
            raise ValidationError('Customer not found')
        dept_id = department_id
        if product_id is not None:
            product = session.get(Product, product_id)
            if product is None:
                raise ValidationError('Product not found')
            if dept_id is None:
                dept_id = product.department_id
        if dept_id is None:
            raise ValidationError('customer, department and issue description are required')
        department = session.get(Department, dept_id)
        if department is None or not department.is_active:
            raise ValidationError('Department not found')

        now = ctx.now()
        req = ServiceRequest(
            request_number=next_request_number(session, now),
            customer_id=customer_id,
            department_id=dept_id,
            product_id=product_id,
            received_by_id=actor.id,
            issue_description=issue_description,
            status=R.STATUS_NEW,
            priority=priority,
            warranty_status=warranty_status,
            execution_method=execution_method,
            sla_due_date=sla.due_date(warranty_status, execution_method, now, ctx.settings),
            is_overdue=False,
            purchase_date=purchase_date,
            created_at=now,
            updated_at=now,
        )
        session.add(req)
        session.flush()
        record_activity(session, req.id, actor.id, R.ACTIVITY_CREATED, 'Request created', at=now)
        intent = NotificationIntent(
            title='New request in your department',
            message=f'New request {req.request_number} has been registered for your department',
            type=R.NOTIFY_ASSIGNMENT,
            request_id=req.id,
            roles=R.DEPARTMENT_ROLES,
            department_id=dept_id,
        )
        return req, [intent]

    req, intents = ctx.store.atomic(_create)
    logger.info('Request %s created by user %s', req.request_number, actor.id)
    ctx.dispatcher.dispatch(intents)
    return req


# ---------------- Assignment ---------------- #

def assign_technician(ctx, request_id: int, technician_id: int, actor) -> ServiceRequest:
    policy.assert_role(policy.can_assign_technician(actor.role), 'Insufficient permissions to assign technicians')
    if not technician_id:
        raise ValidationError('technician_id required')

    def _assign(session):
        req = load_request(session, request_id, for_update=True)
        policy.assert_can_access_request(actor, req)
        if req.is_finished:
            raise ValidationError('Cannot assign a technician to a completed or closed request')
        technician = session.get(User, technician_id)
        if technician is None or technician.role != R.TECHNICIAN or not technician.is_active:
            raise ValidationError('Valid technician not found')
        if technician.department_id != req.department_id:
            raise ValidationError('Technician does not belong to the request department')

        old_technician_id = req.assigned_technician_id
        if old_technician_id == technician.id and req.status != R.STATUS_NEW:
            return req, []  # re-sent assignment; nothing changes

        now = ctx.now()
        old_status = req.status
        req.assigned_technician_id = technician.id
        req.assigned_at = now
        if req.status in (R.STATUS_NEW, R.STATUS_ASSIGNED):
            req.status = R.STATUS_ASSIGNED
        req.updated_at = now
        record_activity(session, req.id, actor.id, R.ACTIVITY_ASSIGNMENT,
                        f'Assigned to technician: {technician.full_name}',
                        old_technician_id, technician.id, at=now)
        if old_status != req.status:
            record_activity(session, req.id, actor.id, R.ACTIVITY_STATUS_CHANGE,
                            f'Status changed from {old_status} to {req.status}',
                            old_status, req.status, at=now)

        intents = [NotificationIntent(
            title='New request assigned to you',
            message=f'{_actor_label(actor)} assigned you to request {req.request_number}',
            type=R.NOTIFY_ASSIGNMENT,
            request_id=req.id,
            user_ids=(technician.id,),
        )]
        if old_technician_id and old_technician_id != technician.id:
            # no request link: the previous technician can no longer open it
            intents.append(NotificationIntent(
                title='Unassigned from request',
                message=f'You are no longer responsible for request {req.request_number}; it was reassigned',
                type=R.NOTIFY_ASSIGNMENT,
                user_ids=(old_technician_id,),
            ))
        return req, intents

    req, intents = ctx.store.atomic(_assign)
    if intents:
        logger.info('Request %s assigned to technician %s by user %s', req.request_number, technician_id, actor.id)
    ctx.dispatcher.dispatch(intents)
    return req


# ---------------- Status ---------------- #

def change_status(ctx, request_id: int, new_status: str, actor, note: Optional[str] = None) -> ServiceRequest:
    if new_status not in R.ALL_STATUSES:
        raise ValidationError(f'Unknown status {new_status}')
    if actor.role in R.INVENTORY_WRITER_ROLES:
        raise ForbiddenError('Warehouse keepers cannot change request status')

    def _change(session):
        req = load_request(session, request_id, for_update=True)
        if not policy.can_change_status(actor, req):
            raise ForbiddenError('Cannot update this request')
        old_status = req.status
        if new_status == old_status:
            return req, []  # idempotent retry
        if old_status == R.STATUS_CLOSED:
            raise ValidationError('Closed requests cannot change status')
        if new_status == R.STATUS_CLOSED and not policy.can_close_request(actor, req):
            raise ForbiddenError('Insufficient permissions to close request')
        REQUEST_FSM.assert_can_transition(old_status, new_status)
        if new_status in (R.STATUS_ASSIGNED, R.STATUS_COMPLETED) and req.assigned_technician_id is None:
            raise ValidationError(f'Cannot move to {new_status} without an assigned technician')

        now = ctx.now()
        req.status = new_status
        stamp = _STATUS_TIMESTAMPS.get(new_status)
        if stamp and getattr(req, stamp) is None:
            setattr(req, stamp, now)
        req.updated_at = now
        description = f'Status changed from {old_status} to {new_status}'
        if note:
            description = f'{description}. Comment: {note}'
        record_activity(session, req.id, actor.id, R.ACTIVITY_STATUS_CHANGE, description, old_status, new_status, at=now)
        return req, _status_change_intents(req, actor, old_status, new_status)

    req, intents = ctx.store.atomic(_change)
    if intents:
        logger.info('Request %s status updated to %s by user %s', req.request_number, new_status, actor.id)
    ctx.dispatcher.dispatch(intents)
    return req


def _status_change_intents(req, actor, old_status, new_status) -> List[NotificationIntent]:
    intents = []
    message = f'Request {req.request_number} moved from {old_status} to {new_status}'
    if req.assigned_technician_id and req.assigned_technician_id != actor.id:
        intents.append(NotificationIntent(
            title='Request status updated',
            message=f'{_actor_label(actor)}: {message}',
            type=R.NOTIFY_STATUS_CHANGE,
            request_id=req.id,
            user_ids=(req.assigned_technician_id,),
        ))
    if actor.role == R.TECHNICIAN:
        intents.append(NotificationIntent(
            title='Request status updated by technician',
            message=f'Technician {actor.display_name}: {message}',
            type=R.NOTIFY_STATUS_CHANGE,
            request_id=req.id,
            roles=R.DEPARTMENT_ROLES,
            department_id=req.department_id,
            global_roles=R.GLOBAL_ROLES,
            exclude_user_ids=frozenset({actor.id}),
        ))
    return intents


def close_request(ctx, request_id: int, actor, final_notes: Optional[str] = None,
                  satisfaction: Optional[int] = None) -> ServiceRequest:
    if satisfaction is not None:
        try:
            satisfaction = int(satisfaction)
        except (TypeError, ValueError):
            raise ValidationError('customer_satisfaction must be an integer between 1 and 5')
        if not 1 <= satisfaction <= 5:
            raise ValidationError('customer_satisfaction must be an integer between 1 and 5')

    def _close(session):
        req = load_request(session, request_id, for_update=True)
        if not policy.can_close_request(actor, req):
            raise ForbiddenError('Insufficient permissions to close request')
        if req.status != R.STATUS_COMPLETED:
            raise ValidationError('Request must be completed before closing')
        REQUEST_FSM.assert_can_transition(req.status, R.STATUS_CLOSED)
        now = ctx.now()
        req.status = R.STATUS_CLOSED
        req.closed_at = now
        req.updated_at = now
        if final_notes is not None:
            req.final_notes = final_notes
        if satisfaction is not None:
            req.customer_satisfaction = satisfaction
        record_activity(session, req.id, actor.id, R.ACTIVITY_STATUS_CHANGE, 'Request closed',
                        R.STATUS_COMPLETED, R.STATUS_CLOSED, at=now)
        intents = []
        if req.assigned_technician_id and req.assigned_technician_id != actor.id:
            intents.append(NotificationIntent(
                title='Request closed',
                message=f'{_actor_label(actor)} closed request {req.request_number}',
                type=R.NOTIFY_STATUS_CHANGE,
                request_id=req.id,
                user_ids=(req.assigned_technician_id,),
            ))
        return req, intents

    req, intents = ctx.store.atomic(_close)
    logger.info('Request %s closed by user %s', req.request_number, actor.id)
    ctx.dispatcher.dispatch(intents)
    return req


# ---------------- Edits ---------------- #

def update_request(ctx, request_id: int, actor, *, priority=None, issue_description=None,
                   execution_method=None) -> ServiceRequest:
    if priority is not None:
        validate_choice(priority, R.PRIORITIES, 'priority')
    if execution_method is not None:
        validate_choice(execution_method, R.EXECUTION_METHODS, 'execution_method')
    if issue_description is not None and not issue_description.strip():
        raise ValidationError('issue_description must not be empty')

    def _update(session):
        req = load_request(session, request_id, for_update=True)
        if not policy.can_change_status(actor, req):
            raise ForbiddenError('Cannot update this request')
        if req.is_finished:
            raise ValidationError('Completed or closed requests cannot be edited')
        now = ctx.now()
        changes = []
        for field_name, value in (('priority', priority), ('issue_description', issue_description),
                                  ('execution_method', execution_method)):
            if value is None or getattr(req, field_name) == value:
                continue
            changes.append((field_name, getattr(req, field_name), value))
            setattr(req, field_name, value)
        if not changes:
            return req
        method_changed = any(name == 'execution_method' for name, _, _ in changes)
        if (method_changed and ctx.settings.sla_recompute_on_method_change
                and req.assigned_technician_id is None):
            old_due = req.sla_due_date
            req.sla_due_date = sla.due_date(req.warranty_status, req.execution_method, req.created_at, ctx.settings)
            changes.append(('sla_due_date', old_due.isoformat(), req.sla_due_date.isoformat()))
            if req.is_overdue and req.sla_due_date >= now:
                # overdue flag follows the new deadline
                req.is_overdue = False
                changes.append(('is_overdue', True, False))
        req.updated_at = now
        for name, old, new in changes:
            record_activity(session, req.id, actor.id, R.ACTIVITY_UPDATED, f'{name} updated', old, new, at=now)
        return req

    req = ctx.store.atomic(_update)
    logger.info('Request %s updated by user %s', req.request_number, actor.id)
    return req


# ---------------- Costs ---------------- #

def add_cost(ctx, request_id: int, cost_type: str, amount, actor, description: Optional[str] = None,
             currency: str = 'SYP') -> RequestCost:
    validate_choice(cost_type, R.COST_TYPES, 'cost_type')
    amount = positive_number(amount, 'amount')

    def _add(session):
        req = load_request(session, request_id)
        policy.assert_can_access_request(actor, req)
        if not policy.can_add_cost(actor, req):
            raise ForbiddenError('Cannot add costs to under-warranty requests')
        now = ctx.now()
        cost = RequestCost(
            request_id=req.id, cost_type=cost_type, amount=amount, currency=currency or 'SYP',
            description=description, added_by_id=actor.id, created_at=now,
        )
        session.add(cost)
        label = description or cost_type
        record_activity(session, req.id, actor.id, R.ACTIVITY_COST_ADDED,
                        f'Cost added: {label} - {amount:.2f} {cost.currency}',
                        None, f'{label}: {amount:.2f}', at=now)
        intents = []
        if (actor.role in R.ASSIGNER_ROLES and req.assigned_technician_id
                and req.assigned_technician_id != actor.id):
            intents.append(NotificationIntent(
                title='Cost added to request',
                message=f'{_actor_label(actor)} added a cost to request {req.request_number}: '
                        f'{label} - {amount:.2f} {cost.currency}',
                type=R.NOTIFY_STATUS_CHANGE,
                request_id=req.id,
                user_ids=(req.assigned_technician_id,),
            ))
        return cost, intents

    cost, intents = ctx.store.atomic(_add)
    logger.info('Cost %.2f (%s) added to request %s by user %s', amount, cost_type, request_id, actor.id)
    ctx.dispatcher.dispatch(intents)
    return cost


def list_costs(session, request_id: int):
    return session.execute(
        select(RequestCost).where(RequestCost.request_id == request_id).order_by(RequestCost.created_at.desc(), RequestCost.id.desc())
    ).scalars().all()


def cost_summary(session, request_id: int) -> dict:
    """Sums per cost type plus consumed parts; nothing is stored."""
    by_type = {t: 0.0 for t in R.COST_TYPES}
    for cost_type, total in session.execute(
        select(RequestCost.cost_type, func.sum(RequestCost.amount))
        .where(RequestCost.request_id == request_id)
        .group_by(RequestCost.cost_type)
    ).all():
        by_type[cost_type] = float(total or 0)
    parts_total = session.execute(
        select(func.coalesce(func.sum(RequestPart.total_cost), 0)).where(RequestPart.request_id == request_id)
    ).scalar_one()
    costs_total = sum(by_type.values())
    return {
        'by_type': by_type,
        'costs_total': round(costs_total, 2),
        'parts_total': round(float(parts_total), 2),
        'grand_total': round(costs_total + float(parts_total), 2),
    }


# ---------------- Reads ---------------- #

def get_request(ctx, request_id: int, actor) -> ServiceRequest:
    def _get(session):
        req = load_request(session, request_id)
        policy.assert_can_access_request(actor, req)
        return req
    return ctx.store.read(_get)


REQUEST_FILTERS = {
    'status': {'op': lambda q, v: q.where(ServiceRequest.status == v), 'validate': lambda v: v in R.ALL_STATUSES},
    'priority': {'op': lambda q, v: q.where(ServiceRequest.priority == v), 'validate': lambda v: v in R.PRIORITIES},
    'department_id': {'coerce': int, 'op': lambda q, v: q.where(ServiceRequest.department_id == v)},
    'assigned_technician_id': {'coerce': int, 'op': lambda q, v: q.where(ServiceRequest.assigned_technician_id == v)},
    'warranty_status': {'op': lambda q, v: q.where(ServiceRequest.warranty_status == v), 'validate': lambda v: v in R.WARRANTY_STATUSES},
    'is_overdue': {'coerce': lambda v: str(v).lower() == 'true', 'op': lambda q, v: q.where(ServiceRequest.is_overdue.is_(v))},
    'search': {'op': lambda q, v: q.where(
        ServiceRequest.request_number.ilike(f'%{v.strip()}%') | ServiceRequest.issue_description.ilike(f'%{v.strip()}%')
    ) if v.strip() else q},
}

REQUEST_SORTS = {
    'created_at': ServiceRequest.created_at,
    'sla_due_date': ServiceRequest.sla_due_date,
    'status': ServiceRequest.status,
    'priority': ServiceRequest.priority,
    'request_number': ServiceRequest.request_number,
    'id': ServiceRequest.id,
}


def list_requests(ctx, actor, params: dict, sort_expr: Optional[str] = None, limit: int = 50,
                  offset: int = 0) -> Tuple[list, int]:
    """Role-scoped request listing: the same rule as ``can_access_request`` in SQL."""
    def _list(session):
        stmt = select(ServiceRequest)
        scope = policy.scope_request_filter(actor, ServiceRequest)
        if scope is not None:
            stmt = stmt.where(scope)
        stmt = apply_filters(stmt, REQUEST_FILTERS, params)
        total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        stmt = apply_multi_sort(stmt, sort_expr or '-created_at', REQUEST_SORTS, ServiceRequest.id)
        rows = session.execute(stmt.offset(offset).limit(limit)).scalars().all()
        return rows, total
    return ctx.store.read(_list)


def upcoming_overdue(ctx, actor, window_hours: Optional[int] = None):
    hours = ctx.settings.sla_upcoming_window_hours if window_hours is None else window_hours
    scope = policy.scope_request_filter(actor, ServiceRequest)
    return ctx.store.read(lambda s: sla.upcoming_overdue(s, ctx.now(), hours, scope))


def dashboard(ctx, actor) -> dict:
    return ctx.store.read(sla.dashboard_stats, policy.scope_request_filter(actor, ServiceRequest))


def _actor_label(actor) -> str:
    labels = {
        R.COMPANY_MANAGER: 'Company manager',
        R.DEPUTY_MANAGER: 'Deputy manager',
        R.DEPARTMENT_MANAGER: 'Department manager',
        R.SECTION_SUPERVISOR: 'Section supervisor',
        R.TECHNICIAN: 'Technician',
    }
    return f"{labels.get(actor.role, 'User')} {actor.display_name}"


__all__ = [
    'REQUEST_FSM', 'load_request', 'next_request_number', 'create_request', 'assign_technician',
    'change_status', 'close_request', 'update_request', 'add_cost', 'list_costs', 'cost_summary',
    'get_request', 'list_requests', 'upcoming_overdue', 'dashboard',
]
