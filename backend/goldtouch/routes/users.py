import json
from flask import Blueprint, request, abort
from sqlalchemy import select
from goldtouch import get_db
from goldtouch.models.authz import User, UserPermission
from goldtouch.models.audit import AuditLog
from goldtouch.constants.permissions import ALL_ROLES, DEFAULT_ROLE, ROLE_ADMIN
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import login_required, require_roles
from goldtouch.routes.auth import user_json
from goldtouch.services.notifications import create_notification
from goldtouch.services.policy import current_actor
from goldtouch.utils.filters import apply_filters, eq
from goldtouch.utils.listing import paginated
from goldtouch.utils.serialize import row_json
from goldtouch.utils.validation import json_body, require_fields, validate_status

users_bp = Blueprint('users', __name__)


def _get_user(user_id: int) -> User:
    user = get_db().get(User, user_id)
    if not user:
        abort(404, description='User not found')
    return user


@users_bp.get('')
@require_roles(ROLE_ADMIN)
def list_users():
    q = get_db().query(User)
    q = apply_filters(q, {
        'role': eq(User.role, allowed=ALL_ROLES),
        'search': {'op': lambda qu, v: qu.filter(User.name.ilike(f'%{v}%') | User.email.ilike(f'%{v}%'))},
    }, request.args)
    return paginated(q.order_by(User.id.asc()), user_json)


@users_bp.get('/names')
@login_required
def user_names():
    rows = get_db().execute(
        select(User.id, User.name).where(User.is_active.is_(True)).order_by(User.name)
    ).all()
    return {'data': [{'id': uid, 'name': name} for uid, name in rows]}


@users_bp.post('')
@require_roles(ROLE_ADMIN)
@audit_log('CREATE_USER', entity_type='user', details_builder=lambda d, kw: f"{d.get('email')} as {d.get('role')}")
def create_user():
    data = json_body()
    require_fields(data, 'name', 'email', 'password')
    role = validate_status(data.get('role') or DEFAULT_ROLE, ALL_ROLES, 'role')
    email = str(data['email']).strip().lower()
    if len(str(data['password'])) < 6:
        abort(400, description='password must be at least 6 characters')
    session = get_db()
    if session.execute(select(User.id).where(User.email == email)).scalar_one_or_none():
        abort(409, description='Email already registered')
    user = User(name=str(data['name']).strip(), email=email, phone=data.get('phone'), role=role, is_active=True)
    user.set_password(str(data['password']))
    session.add(user)
    session.commit()
    return user_json(user), 201


@users_bp.put('/<int:user_id>')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE_USER', entity_type='user')
def update_user(user_id: int):
    data = json_body()
    user = _get_user(user_id)
    if 'name' in data:
        if not data['name']:
            abort(400, description='name required')
        user.name = str(data['name']).strip()
    if 'phone' in data:
        user.phone = data['phone']
    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            abort(400, description='is_active must be boolean')
        if user.id == current_actor().user_id and not data['is_active']:
            abort(400, description='You cannot deactivate your own account')
        user.is_active = data['is_active']
    if data.get('password'):
        user.set_password(str(data['password']))
    get_db().commit()
    return user_json(user)


@users_bp.put('/<int:user_id>/role')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE_USER_ROLE', entity_type='user', details_builder=lambda d, kw: f"role -> {d.get('role')}")
def update_role(user_id: int):
    data = json_body()
    role = validate_status(data.get('role'), ALL_ROLES, 'role')
    user = _get_user(user_id)
    actor = current_actor()
    if user.id == actor.user_id and role != ROLE_ADMIN:
        abort(400, description='You cannot remove your own admin role')
    user.role = role
    get_db().commit()
    create_notification(user.id, 'Your role was changed', from_user_id=actor.user_id, type='info',
                        message=f'Your role is now {role}', entity_type='user', entity_id=user.id)
    return user_json(user)


@users_bp.delete('/<int:user_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE_USER', entity_type='user', entity_id_arg='user_id')
def delete_user(user_id: int):
    if user_id == current_actor().user_id:
        abort(400, description='You cannot delete your own account')
    user = _get_user(user_id)
    session = get_db()
    session.delete(user)
    session.commit()
    return {'success': True}


@users_bp.get('/<int:user_id>/permissions')
@require_roles(ROLE_ADMIN)
def get_user_permissions(user_id: int):
    user = _get_user(user_id)
    record = user.permission_override
    return {'user_id': user.id, 'role': user.role, 'permissions': record.as_map() if record else {}}


@users_bp.put('/<int:user_id>/permissions')
@require_roles(ROLE_ADMIN)
@audit_log('UPDATE_USER_PERMISSIONS', entity_type='user', entity_id_arg='user_id',
           details_builder=lambda d, kw: json.dumps(d.get('permissions'), sort_keys=True))
def set_user_permissions(user_id: int):
    data = json_body()
    perms = data.get('permissions')
    if not isinstance(perms, dict):
        abort(400, description='permissions must be an object')
    bad = [k for k, v in perms.items() if not isinstance(v, bool)]
    if bad:
        abort(400, description=f"permission values must be boolean: {', '.join(sorted(bad))}")
    user = _get_user(user_id)
    session = get_db()
    record = user.permission_override
    if record is None:
        record = UserPermission(user_id=user.id)
        session.add(record)
    record.permissions_json = json.dumps(perms)
    session.commit()
    create_notification(user.id, 'Your permissions were updated', from_user_id=current_actor().user_id,
                        entity_type='user', entity_id=user.id)
    return {'user_id': user.id, 'permissions': perms}


@users_bp.get('/audit-logs')
@require_roles(ROLE_ADMIN)
def list_audit_logs():
    q = get_db().query(AuditLog)
    q = apply_filters(q, {
        'user_id': eq(AuditLog.user_id, coerce=int),
        'action': eq(AuditLog.action),
        'entity_type': eq(AuditLog.entity_type),
        'entity_id': eq(AuditLog.entity_id, coerce=int),
    }, request.args)
    return paginated(q.order_by(AuditLog.id.desc()), row_json)
