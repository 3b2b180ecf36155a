from flask import Blueprint, abort, current_app
from flask_jwt_extended import create_access_token, set_access_cookies, unset_jwt_cookies
from sqlalchemy import select
from goldtouch import get_db
from goldtouch.models.authz import User
from goldtouch.constants.permissions import RESOURCES
from goldtouch.services.audit import log_audit
from goldtouch.services.policy import (
    allowed_sections, current_actor, get_detailed_permissions, get_permission_level, optional_actor,
    permission_config,
)
from goldtouch.utils.validation import json_body, require_fields

auth_bp = Blueprint('auth', __name__)


def user_json(user: User):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'phone': user.phone,
        'role': user.role,
        'is_active': bool(user.is_active),
    }


def _known_sections():
    config = permission_config()
    names = set(RESOURCES)
    for sections in config.section_defaults.values():
        names.update(s for s in sections if s != '*')
    for levels in config.permission_levels.values():
        names.update(levels.keys())
    return sorted(names)


@auth_bp.post('/login')
def login():
    data = json_body()
    require_fields(data, 'email', 'password')
    session = get_db()
    email = str(data['email']).strip().lower()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.verify_password(str(data['password'])):
        current_app.logger.info('Failed login for %s', email)
        abort(401, description='invalid credentials')
    if not user.is_active:
        abort(403, description='Account disabled')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id))
    log_audit(user.id, 'LOGIN', 'user', user.id)
    resp = current_app.make_response({'access_token': token, 'user': user_json(user)})
    set_access_cookies(resp, token)
    return resp


@auth_bp.post('/logout')
def logout():
    actor = optional_actor()
    resp = current_app.make_response({'success': True})
    unset_jwt_cookies(resp)
    if actor:
        log_audit(actor.user_id, 'LOGOUT', 'user', actor.user_id)
    return resp


@auth_bp.get('/me')
def me():
    actor = optional_actor()
    if actor is None:
        return current_app.json.response(None)
    return user_json(get_db().get(User, actor.user_id))


@auth_bp.get('/permissions')
def my_permissions():
    actor = current_actor()
    sections = _known_sections()
    return {
        'role': actor.role,
        'overrides': actor.overrides(),
        'sections': allowed_sections(actor, sections),
        'detailed': {r: p.as_dict() for r, p in get_detailed_permissions(actor.role).items()},
        'levels': {s: get_permission_level(actor.role, s) for s in sections},
    }
