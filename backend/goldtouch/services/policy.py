from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from flask import abort, current_app, g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from sqlalchemy import select
from goldtouch.models.authz import User, UserPermission
from goldtouch.constants.permissions import (
    DEFAULT_PERMISSION_CONFIG, DETAIL_ACTIONS, FULL, LEVEL_FULL, LEVEL_NONE, NONE, RESOURCES, PermissionConfig,
    SubPermissions,
)
from goldtouch import get_db

DENIED_MESSAGE = 'Section access denied'


def permission_config() -> PermissionConfig:
    try:
        return current_app.config.get('PERMISSION_CONFIG') or DEFAULT_PERMISSION_CONFIG
    except RuntimeError:  # outside an application context
        return DEFAULT_PERMISSION_CONFIG


def load_overrides(user_id: int) -> Dict[str, bool]:
    session = get_db()
    row = session.execute(select(UserPermission).where(UserPermission.user_id == user_id)).scalar_one_or_none()
    return row.as_map() if row else {}


@dataclass
class Actor:
    """The authenticated caller for one request.

    The override map is read from the database at most once per Actor; every
    permission helper reads it through ``overrides()``.
    """
    user_id: int
    role: str
    name: str = ''
    email: str = ''
    _overrides: Optional[Dict[str, bool]] = field(default=None, repr=False)

    def overrides(self) -> Dict[str, bool]:
        if self._overrides is None:
            self._overrides = load_overrides(self.user_id)
        return self._overrides

    @classmethod
    def from_user(cls, user: User) -> 'Actor':
        return cls(user_id=user.id, role=user.role, name=user.name, email=user.email)


def current_actor() -> Actor:
    """Resolve (once per request) the actor behind the session token; 401 if absent or inactive."""
    actor = g.get('actor')
    if actor is not None:
        return actor
    verify_jwt_in_request()
    ident = get_jwt_identity()
    try:
        user_id = int(ident)
    except (TypeError, ValueError):
        abort(401, description='Invalid session')
    user = get_db().get(User, user_id)
    if not user or not user.is_active:
        abort(401, description='Session user not found or inactive')
    actor = Actor.from_user(user)
    g.actor = actor
    return actor


def optional_actor() -> Optional[Actor]:
    """Actor for public procedures: None when no valid session token is present."""
    actor = g.get('actor')
    if actor is not None:
        return actor
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError):
        # public procedures treat a stale or malformed token as anonymous
        return None
    ident = get_jwt_identity()
    if ident is None or not str(ident).isdigit():
        return None
    user = get_db().get(User, int(ident))
    if not user or not user.is_active:
        return None
    g.actor = Actor.from_user(user)
    return g.actor


def _deny(actor: Actor, section: str, details: str):
    from goldtouch.services.audit import log_audit
    log_audit(actor.user_id, 'ACCESS_DENIED', 'section', None, details)
    abort(403, description=DENIED_MESSAGE)


def ensure_perm(actor: Actor, section: str, config: Optional[PermissionConfig] = None) -> None:
    """Allow or deny ``section`` for ``actor``; denials are audit-logged and raise 403.

    Resolution order: explicit ``section`` override, then a truthy ``section.view``
    override, then the role's default section table (``*`` grants everything).
    """
    record = actor.overrides()
    if section in record:
        if record[section]:
            return
        _deny(actor, section, f'User permission override denied access to "{section}"')
    if record.get(f'{section}.view'):
        return
    config = config or permission_config()
    allowed = config.sections_for(actor.role)
    if '*' in allowed or section in allowed:
        return
    _deny(actor, section, f'Role "{actor.role}" role attempted to access "{section}" - DENIED')


def is_section_allowed(actor: Actor, section: str, config: Optional[PermissionConfig] = None) -> bool:
    """Non-raising, non-auditing variant of ``ensure_perm`` used for capability listings."""
    record = actor.overrides()
    if section in record:
        return bool(record[section])
    if record.get(f'{section}.view'):
        return True
    allowed = (config or permission_config()).sections_for(actor.role)
    return '*' in allowed or section in allowed


def get_detailed_permissions(role: str, config: Optional[PermissionConfig] = None) -> Dict[str, SubPermissions]:
    config = config or permission_config()
    if role == config.full_access_role:
        return {r: FULL for r in RESOURCES}
    table = config.detailed.get(role)
    if table is None:
        return {r: NONE for r in RESOURCES}
    return {r: table.get(r, NONE) for r in RESOURCES}


def get_permission_level(role: str, section: str, config: Optional[PermissionConfig] = None) -> str:
    config = config or permission_config()
    if role == config.full_access_role:
        return LEVEL_FULL
    return config.permission_levels.get(role, {}).get(section, LEVEL_NONE)


def has_modifier(actor: Actor, resource: str, modifier: str, config: Optional[PermissionConfig] = None) -> bool:
    """Capability flag lookup: ``resource.modifier`` override, then role defaults, then the detailed table."""
    record = actor.overrides()
    key = f'{resource}.{modifier}'
    if key in record:
        return bool(record[key])
    config = config or permission_config()
    role = actor.role
    if modifier == 'only_assigned':
        return role in config.only_assigned_roles and resource in config.only_assigned_resources
    if modifier == 'can_view_financials':
        return role in config.financial_viewer_roles
    if modifier == 'auto_approve':
        return role in config.auto_approve_roles
    detailed = get_detailed_permissions(role, config).get(resource)
    if detailed is not None and modifier in DETAIL_ACTIONS:
        return bool(getattr(detailed, modifier))
    return False


def require_modifier(actor: Actor, resource: str, modifier: str, description: Optional[str] = None):
    if not has_modifier(actor, resource, modifier):
        abort(403, description=description or f'Missing permission {resource}.{modifier}')


def can_view_financials(actor: Actor, resource: str = 'projects') -> bool:
    record = actor.overrides()
    for modifier in ('view_financials', 'can_view_financials'):
        key = f'{resource}.{modifier}'
        if key in record:
            return bool(record[key])
    return has_modifier(actor, resource, 'can_view_financials') or has_modifier(actor, resource, 'view_financials')


def allowed_sections(actor: Actor, sections: Iterable[str]) -> List[str]:
    return [s for s in sections if is_section_allowed(actor, s)]


def has_role(actor: Actor, *roles: str) -> bool:
    return actor.role in roles
