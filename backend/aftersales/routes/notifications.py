from __future__ import annotations
from flask import Blueprint, request
from aftersales import get_services
from aftersales.decorators.auth import require_roles, current_principal
from aftersales.services import notifications as notif
from aftersales.utils.listing import pagination_args, build_list_payload
from aftersales.routes._common import iso

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.get('')
@require_roles()
def list_notifications():
    limit, offset = pagination_args(default_limit=20)
    unread_only = (request.args.get('unread_only') or '').lower() == 'true'
    rows, total, unread = get_services().store.read(
        notif.list_for_user, current_principal().id, unread_only, limit, offset,
    )
    return build_list_payload([_notification_json(n) for n in rows], total, limit, offset, unread_count=unread)


@notifications_bp.get('/unread-count')
@require_roles()
def unread_count():
    return {'unread_count': get_services().store.read(notif.unread_count, current_principal().id)}


@notifications_bp.put('/<int:notification_id>/read')
@require_roles()
def mark_read(notification_id: int):
    row = get_services().store.atomic(notif.mark_read, notification_id, current_principal().id)
    return _notification_json(row)


@notifications_bp.put('/read-all')
@require_roles()
def mark_all_read():
    updated = get_services().store.atomic(notif.mark_all_read, current_principal().id)
    return {'updated': updated}


@notifications_bp.get('/stats')
@require_roles()
def stats():
    return get_services().store.read(notif.notification_stats, current_principal().id)


def _notification_json(n) -> dict:
    return {
        'id': n.id,
        'user_id': n.user_id,
        'request_id': n.request_id,
        'title': n.title,
        'message': n.message,
        'type': n.type,
        'is_read': n.is_read,
        'created_at': iso(n.created_at),
    }
