"""Spare part stock and the per-request parts ledger.

Stock moves only through the ledger operations below, each inside one transaction:
the SparePart row is locked, its quantity adjusted (never below zero) and the
RequestPart row written or removed together.
"""
from __future__ import annotations
import logging
import math
from typing import List, Optional
from sqlalchemy import select, func

from aftersales.errors import ValidationError, NotFoundError, ForbiddenError
from aftersales.models.inventory import SparePart, RequestPart
from aftersales.services import policy
from aftersales.services.activity import record_activity
from aftersales.services.notifications import warehouse_update_intent
from aftersales.services.requests import load_request
from aftersales.constants import roles as R
from aftersales.utils.filters import apply_filters
from aftersales.utils.validation import positive_number

logger = logging.getLogger(__name__)


def _lock_part(session, spare_part_id: int) -> SparePart:
    part = session.execute(
        select(SparePart).where(SparePart.id == spare_part_id).with_for_update()
    ).scalar_one_or_none()
    if part is None:
        raise NotFoundError('Spare part not found')
    return part


def _load_request_part(session, request_part_id: int) -> RequestPart:
    row = session.get(RequestPart, request_part_id)
    if row is None:
        raise NotFoundError('Request part not found')
    return row


def _assert_writer(actor):
    policy.assert_role(policy.can_modify_inventory(actor.role), 'Only warehouse keepers can change spare part stock')


# ---------------- Ledger ---------------- #

def add_part(ctx, request_id: int, spare_part_id: int, quantity_used, actor) -> RequestPart:
    _assert_writer(actor)
    quantity_used = positive_number(quantity_used, 'quantity_used', integer=True)

    def _add(session):
        req = load_request(session, request_id)
        part = _lock_part(session, spare_part_id)
        if part.quantity < quantity_used:
            raise ValidationError(f'Insufficient stock for {part.name}: {part.quantity} available')
        now = ctx.now()
        part.quantity -= quantity_used
        part.updated_at = now
        row = RequestPart(
            request_id=req.id,
            spare_part_id=part.id,
            quantity_used=quantity_used,
            unit_price=part.unit_price,
            total_cost=round(quantity_used * part.unit_price, 2),
            added_by_id=actor.id,
            created_at=now,
        )
        session.add(row)
        record_activity(session, req.id, actor.id, R.ACTIVITY_UPDATED,
                        f'Spare part {part.name} x{quantity_used} added', None, quantity_used, at=now)
        session.flush()
        return row, part.quantity

    row, remaining = ctx.store.atomic(_add)
    logger.info('Part %s x%d consumed by request %s (stock now %d)', spare_part_id, quantity_used, request_id, remaining)
    return row


def update_part_quantity(ctx, request_part_id: int, new_quantity, actor) -> RequestPart:
    _assert_writer(actor)
    new_quantity = positive_number(new_quantity, 'quantity_used', integer=True)

    def _update(session):
        row = _load_request_part(session, request_part_id)
        part = _lock_part(session, row.spare_part_id)
        delta = new_quantity - row.quantity_used
        if delta == 0:
            return row
        if part.quantity - delta < 0:
            raise ValidationError(f'Insufficient stock for {part.name}: {part.quantity} available')
        now = ctx.now()
        old_quantity = row.quantity_used
        part.quantity -= delta
        part.updated_at = now
        row.quantity_used = new_quantity
        # priced at the snapshot taken when the part was first consumed
        row.total_cost = round(new_quantity * row.unit_price, 2)
        record_activity(session, row.request_id, actor.id, R.ACTIVITY_UPDATED,
                        f'Spare part {part.name} quantity changed', old_quantity, new_quantity, at=now)
        session.flush()
        return row

    return ctx.store.atomic(_update)


def remove_part(ctx, request_part_id: int, actor) -> int:
    """Delete the ledger row and restock its full quantity. Returns the restored amount."""
    _assert_writer(actor)

    def _remove(session):
        row = _load_request_part(session, request_part_id)
        part = _lock_part(session, row.spare_part_id)
        now = ctx.now()
        part.quantity += row.quantity_used
        part.updated_at = now
        record_activity(session, row.request_id, actor.id, R.ACTIVITY_UPDATED,
                        f'Spare part {part.name} removed', row.quantity_used, None, at=now)
        restored = row.quantity_used
        session.delete(row)
        return restored

    restored = ctx.store.atomic(_remove)
    logger.info('Request part %s removed, %d unit(s) restocked', request_part_id, restored)
    return restored


def list_request_parts(ctx, request_id: int, actor):
    """Ledger rows (with part names) for a request; request viewers and warehouse staff."""
    def _list(session):
        req = load_request(session, request_id)
        if not (policy.can_access_request(actor, req) or policy.can_modify_inventory(actor.role)):
            raise ForbiddenError('Cannot access this request')
        return session.execute(
            select(RequestPart, SparePart.name, SparePart.part_number)
            .join(SparePart, SparePart.id == RequestPart.spare_part_id)
            .where(RequestPart.request_id == request_id)
            .order_by(RequestPart.created_at.asc(), RequestPart.id.asc())
        ).all()
    return ctx.store.read(_list)


# ---------------- Spare part catalogue ---------------- #

SPARE_PART_FILTERS = {
    'category': {'op': lambda q, v: q.where(SparePart.category == v)},
    'low_stock': {'coerce': lambda v: str(v).lower() == 'true',
                  'op': lambda q, v: q.where(SparePart.quantity <= SparePart.min_quantity) if v else q},
    'search': {'op': lambda q, v: q.where(
        SparePart.name.ilike(f'%{v.strip()}%') | SparePart.part_number.ilike(f'%{v.strip()}%')
    ) if v.strip() else q},
}

# quantity is set once at creation; afterwards stock moves only by locked deltas
_EDITABLE = ('name', 'category', 'min_quantity', 'unit_price', 'currency', 'supplier', 'location', 'description')
_CREATE_FIELDS = _EDITABLE + ('quantity',)


def list_spare_parts(ctx, actor, params: dict, limit: int = 50, offset: int = 0):
    policy.assert_role(policy.can_view_inventory(actor.role), 'Insufficient permissions to view the warehouse')

    def _list(session):
        stmt = apply_filters(select(SparePart), SPARE_PART_FILTERS, params)
        total = session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = session.execute(stmt.order_by(SparePart.name.asc(), SparePart.id.asc()).offset(offset).limit(limit)).scalars().all()
        return rows, total
    return ctx.store.read(_list)


def get_spare_part(ctx, actor, part_id: int) -> SparePart:
    policy.assert_role(policy.can_view_inventory(actor.role), 'Insufficient permissions to view the warehouse')

    def _get(session):
        part = session.get(SparePart, part_id)
        if part is None:
            raise NotFoundError('Spare part not found')
        return part
    return ctx.store.read(_get)


def _clean_part_fields(data: dict, allowed=_EDITABLE) -> dict:
    fields = {k: data[k] for k in allowed if k in data}
    for key in ('quantity', 'min_quantity'):
        if key in fields:
            try:
                fields[key] = int(fields[key])
            except (TypeError, ValueError):
                raise ValidationError(f'{key} must be an integer')
            if fields[key] < 0:
                raise ValidationError(f'{key} must not be negative')
    if 'unit_price' in fields:
        try:
            fields['unit_price'] = float(fields['unit_price'])
        except (TypeError, ValueError):
            raise ValidationError('unit_price must be a number')
        if not math.isfinite(fields['unit_price']) or fields['unit_price'] < 0:
            raise ValidationError('unit_price must be a non-negative number')
    if 'name' in fields and not (fields['name'] or '').strip():
        raise ValidationError('name required')
    return fields


def create_spare_part(ctx, actor, data: dict) -> SparePart:
    _assert_writer(actor)
    part_number = (data.get('part_number') or '').strip()
    if not part_number or not (data.get('name') or '').strip():
        raise ValidationError('name and part_number required')
    fields = _clean_part_fields(data, _CREATE_FIELDS)

    def _create(session):
        exists = session.execute(select(SparePart.id).where(SparePart.part_number == part_number)).scalar_one_or_none()
        if exists:
            raise ValidationError('part_number already exists')
        now = ctx.now()
        part = SparePart(part_number=part_number, created_at=now, updated_at=now, **fields)
        session.add(part)
        session.flush()
        return part

    part = ctx.store.atomic(_create)
    logger.info('Spare part %s (%s) created by user %s', part.id, part.part_number, actor.id)
    ctx.dispatcher.dispatch([warehouse_update_intent('ADDED', part.name, actor.display_name, actor.department_id)])
    return part


def update_spare_part(ctx, actor, part_id: int, data: dict) -> SparePart:
    _assert_writer(actor)
    if 'quantity' in data:
        raise ValidationError('quantity cannot be overwritten; use adjust-quantity')
    fields = _clean_part_fields(data)
    if not fields:
        raise ValidationError('No updatable fields provided')

    def _update(session):
        part = _lock_part(session, part_id)
        for key, value in fields.items():
            setattr(part, key, value)
        part.updated_at = ctx.now()
        session.flush()
        return part

    part = ctx.store.atomic(_update)
    ctx.dispatcher.dispatch([warehouse_update_intent('MODIFIED', part.name, actor.display_name, actor.department_id)])
    return part


def delete_spare_part(ctx, actor, part_id: int) -> None:
    _assert_writer(actor)

    def _delete(session):
        part = _lock_part(session, part_id)
        used = session.execute(
            select(func.count(RequestPart.id)).where(RequestPart.spare_part_id == part_id)
        ).scalar_one()
        if used:
            raise ValidationError('Spare part is referenced by requests and cannot be deleted')
        name = part.name
        session.delete(part)
        return name

    name = ctx.store.atomic(_delete)
    logger.info('Spare part %s deleted by user %s', part_id, actor.id)
    ctx.dispatcher.dispatch([warehouse_update_intent('DELETED', name, actor.display_name, actor.department_id)])


def adjust_quantity(ctx, actor, part_id: int, adjustment, reason: Optional[str] = None) -> SparePart:
    """Restock or write off by a signed delta on the locked row; stock never goes below zero."""
    _assert_writer(actor)
    try:
        delta = int(adjustment)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError('adjustment must be a non-zero whole number')
    if isinstance(adjustment, bool) or delta == 0 or (isinstance(adjustment, float) and not adjustment.is_integer()):
        raise ValidationError('adjustment must be a non-zero whole number')

    def _adjust(session):
        part = _lock_part(session, part_id)
        if part.quantity + delta < 0:
            raise ValidationError(f'Quantity cannot be negative: {part.quantity} in stock')
        old_quantity = part.quantity
        part.quantity = old_quantity + delta
        part.updated_at = ctx.now()
        session.flush()
        return part, old_quantity

    part, old_quantity = ctx.store.atomic(_adjust)
    logger.info('Spare part %s adjusted %+d (%d -> %d) by user %s: %s',
                part_id, delta, old_quantity, part.quantity, actor.id, reason or 'no reason given')
    return part


def list_categories(ctx, actor) -> List[str]:
    policy.assert_role(policy.can_view_inventory(actor.role), 'Insufficient permissions to view the warehouse')
    return ctx.store.read(lambda s: list(s.execute(
        select(SparePart.category).distinct().order_by(SparePart.category.asc())
    ).scalars()))


__all__ = [
    'add_part', 'update_part_quantity', 'remove_part', 'list_request_parts',
    'list_spare_parts', 'get_spare_part', 'create_spare_part', 'update_spare_part', 'delete_spare_part',
    'adjust_quantity', 'list_categories',
]
