from flask import Blueprint, request, abort
from sqlalchemy import func, update
from goldtouch import get_db
from goldtouch.models.authz import User
from goldtouch.models.notification import Notification
from goldtouch.constants.permissions import ALL_ROLES, HR_MANAGER_ROLES
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import login_required, require_roles
from goldtouch.services.notifications import create_notification, create_notification_for_roles
from goldtouch.services.policy import current_actor
from goldtouch.utils.serialize import row_json
from goldtouch.utils.validation import json_body, parse_int, require_fields

notifications_bp = Blueprint('notifications', __name__)


def _own(notification_id: int) -> Notification:
    note = get_db().get(Notification, notification_id)
    if note is None or note.user_id != current_actor().user_id:
        abort(404, description='Notification not found')
    return note


@notifications_bp.get('')
@login_required
def list_notifications():
    actor = current_actor()
    limit = parse_int(request.args.get('limit'), 'limit', minimum=1) or 50
    q = get_db().query(Notification).filter(Notification.user_id == actor.user_id)
    if request.args.get('unread_only') in ('1', 'true', 'yes'):
        q = q.filter(Notification.is_read.is_(False))
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(min(limit, 200)).all()
    return {'data': [row_json(n) for n in rows]}


@notifications_bp.get('/sent')
@login_required
def list_sent():
    actor = current_actor()
    limit = parse_int(request.args.get('limit'), 'limit', minimum=1) or 50
    rows = get_db().query(Notification, User.name) \
        .join(User, User.id == Notification.user_id) \
        .filter(Notification.from_user_id == actor.user_id) \
        .order_by(Notification.id.desc()).limit(min(limit, 200)).all()
    return {'data': [dict(row_json(n), recipient_name=name) for n, name in rows]}


@notifications_bp.get('/unread-count')
@login_required
def unread_count():
    count = get_db().query(func.count(Notification.id)).filter(
        Notification.user_id == current_actor().user_id, Notification.is_read.is_(False)
    ).scalar()
    return {'count': int(count or 0)}


@notifications_bp.post('/<int:notification_id>/read')
@login_required
def mark_read(notification_id: int):
    note = _own(notification_id)
    if not note.is_read:
        note.is_read = True
        get_db().commit()
    return row_json(note)


@notifications_bp.post('/read-all')
@login_required
def mark_all_read():
    session = get_db()
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == current_actor().user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session='fetch')
    )
    session.commit()
    return {'updated': result.rowcount}


@notifications_bp.post('/send')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('SEND_NOTIFICATION', entity_type='notification', entity_id_key=None,
           details_builder=lambda d, kw: f"{d.get('sent')} recipient(s)")
def send_notification():
    actor = current_actor()
    data = json_body()
    require_fields(data, 'title')
    kwargs = dict(from_user_id=actor.user_id, type=data.get('type') or 'info', message=data.get('message'),
                  link=data.get('link'))
    if data.get('type') and data['type'] not in Notification.ALL_TYPES:
        abort(400, description='type invalid')
    if data.get('user_id') not in (None, ''):
        user_id = parse_int(data['user_id'], 'user_id')
        if get_db().get(User, user_id) is None:
            abort(404, description='User not found')
        note = create_notification(user_id, str(data['title']), **kwargs)
        return {'sent': 1 if note else 0}, 201
    roles = data.get('roles')
    if not isinstance(roles, list) or not roles:
        abort(400, description='user_id or roles required')
    unknown = [r for r in roles if r not in ALL_ROLES]
    if unknown:
        abort(400, description=f"unknown roles: {', '.join(map(str, unknown))}")
    sent = create_notification_for_roles(roles, str(data['title']), **kwargs)
    return {'sent': sent}, 201


@notifications_bp.delete('/<int:notification_id>')
@login_required
def delete_notification(notification_id: int):
    note = _own(notification_id)
    session = get_db()
    session.delete(note)
    session.commit()
    return {'success': True}


@notifications_bp.post('/message-admin')
@login_required
def message_admin():
    actor = current_actor()
    data = json_body()
    require_fields(data, 'title', 'message')
    sent = create_notification_for_roles(HR_MANAGER_ROLES, str(data['title']), exclude_user_id=actor.user_id,
                                         from_user_id=actor.user_id, type='info', message=str(data['message']))
    return {'sent': sent}, 201
