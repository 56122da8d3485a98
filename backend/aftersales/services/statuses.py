from __future__ import annotations
from typing import Optional
from sqlalchemy import select

from aftersales.errors import ValidationError, NotFoundError
from aftersales.models.service_request import CustomRequestStatus
from aftersales.services import policy

_EDITABLE = ('display_name', 'description', 'sort_order', 'is_active')


def _assert_catalog_role(actor):
    policy.assert_role(policy.can_manage_status_catalog(actor.role), 'Insufficient permissions for status catalogue')


def _get(session, status_id: int) -> CustomRequestStatus:
    row = session.get(CustomRequestStatus, status_id)
    if row is None:
        raise NotFoundError('Status not found')
    return row


def _normalize_name(name: Optional[str]) -> str:
    name = (name or '').strip().upper().replace(' ', '_')
    if not name:
        raise ValidationError('name required')
    return name


def list_statuses(ctx, actor, include_inactive: bool = False):
    _assert_catalog_role(actor)

    def _list(session):
        stmt = select(CustomRequestStatus)
        if not include_inactive:
            stmt = stmt.where(CustomRequestStatus.is_active.is_(True))
        return session.execute(
            stmt.order_by(CustomRequestStatus.sort_order.asc(), CustomRequestStatus.id.asc())
        ).scalars().all()
    return ctx.store.read(_list)


def create_status(ctx, actor, data: dict) -> CustomRequestStatus:
    _assert_catalog_role(actor)
    name = _normalize_name(data.get('name'))
    display_name = (data.get('display_name') or '').strip() or name.replace('_', ' ').title()
    try:
        sort_order = int(data.get('sort_order') or 0)
    except (TypeError, ValueError):
        raise ValidationError('sort_order must be an integer')

    def _create(session):
        if session.execute(select(CustomRequestStatus.id).where(CustomRequestStatus.name == name)).first():
            raise ValidationError('Status name already exists')
        row = CustomRequestStatus(
            name=name, display_name=display_name, description=data.get('description'),
            sort_order=sort_order, is_active=True, created_by_id=actor.id, created_at=ctx.now(),
        )
        session.add(row)
        session.flush()
        return row
    return ctx.store.atomic(_create)


def update_status(ctx, actor, status_id: int, data: dict) -> CustomRequestStatus:
    _assert_catalog_role(actor)
    fields = {k: data[k] for k in _EDITABLE if k in data}
    if 'sort_order' in fields:
        try:
            fields['sort_order'] = int(fields['sort_order'])
        except (TypeError, ValueError):
            raise ValidationError('sort_order must be an integer')
    if 'is_active' in fields:
        fields['is_active'] = bool(fields['is_active'])
    if 'display_name' in fields and not (fields['display_name'] or '').strip():
        raise ValidationError('display_name must not be empty')

    def _update(session):
        row = _get(session, status_id)
        for key, value in fields.items():
            setattr(row, key, value)
        return row
    return ctx.store.atomic(_update)


def delete_status(ctx, actor, status_id: int) -> None:
    _assert_catalog_role(actor)

    def _delete(session):
        session.delete(_get(session, status_id))
    ctx.store.atomic(_delete)


__all__ = ['list_statuses', 'create_status', 'update_status', 'delete_status']
