import pytest
from werkzeug.exceptions import Forbidden
from goldtouch import get_db
from goldtouch.constants.permissions import (
    DEFAULT_PERMISSION_CONFIG, FULL, NONE, RESOURCES, build_permission_config,
)
from goldtouch.models.audit import AuditLog
from goldtouch.services.policy import (
    Actor, can_view_financials, ensure_perm, get_detailed_permissions, get_permission_level, has_modifier,
    is_section_allowed,
)


def _actor(role, overrides=None, user_id=999001):
    return Actor(user_id=user_id, role=role, _overrides=dict(overrides or {}))


def test_admin_wildcard_grants_every_section(app_instance):
    with app_instance.test_request_context():
        ensure_perm(_actor('admin'), 'anything-at-all')


def test_role_default_sections():
    assert is_section_allowed(_actor('designer'), 'projects')
    assert is_section_allowed(_actor('designer'), 'hr')
    assert not is_section_allowed(_actor('designer'), 'reports')
    assert is_section_allowed(_actor('finance_manager'), 'reports')
    assert not is_section_allowed(_actor('unknown_role'), 'dashboard')


def test_denial_is_audited_and_forbidden(app_instance):
    actor = _actor('designer', user_id=987654)
    with app_instance.test_request_context():
        with pytest.raises(Forbidden) as exc:
            ensure_perm(actor, 'reports')
    assert exc.value.description == 'Section access denied'
    row = get_db().query(AuditLog).filter_by(user_id=987654, action='ACCESS_DENIED').order_by(AuditLog.id.desc()).first()
    assert row is not None
    assert 'reports' in row.details


def test_override_false_beats_role_default(app_instance):
    actor = _actor('finance_manager', {'reports': False})
    with app_instance.test_request_context():
        with pytest.raises(Forbidden):
            ensure_perm(actor, 'reports')


def test_override_true_and_view_flag_grant_access(app_instance):
    with app_instance.test_request_context():
        ensure_perm(_actor('designer', {'reports': True}), 'reports')
        ensure_perm(_actor('designer', {'reports.view': True}), 'reports')


def test_explicit_section_override_wins_over_view_flag():
    actor = _actor('designer', {'reports': False, 'reports.view': True})
    assert not is_section_allowed(actor, 'reports')


def test_permission_levels():
    assert get_permission_level('admin', 'whatever') == 'full'
    assert get_permission_level('hr_manager', 'hr') == 'full'
    assert get_permission_level('designer', 'projects') == 'own'
    assert get_permission_level('designer', 'accounting') == 'none'
    assert get_permission_level('nobody', 'hr') == 'none'


def test_detailed_permissions_cover_every_resource():
    admin = get_detailed_permissions('admin')
    assert set(admin) == set(RESOURCES)
    assert all(v == FULL for v in admin.values())
    unknown = get_detailed_permissions('nobody')
    assert all(v == NONE for v in unknown.values())
    fm = get_detailed_permissions('finance_manager')
    assert fm['accounting'].create and fm['projects'].view_financials
    assert not fm['users'].view


def test_modifiers_and_overrides():
    designer = _actor('designer')
    assert has_modifier(designer, 'projects', 'only_assigned')
    assert has_modifier(designer, 'tasks', 'only_assigned')
    assert not has_modifier(designer, 'clients', 'only_assigned')
    assert not has_modifier(designer, 'accounting', 'auto_approve')
    assert has_modifier(_actor('finance_manager'), 'accounting', 'auto_approve')
    assert not has_modifier(_actor('accountant'), 'accounting', 'auto_approve')
    assert has_modifier(_actor('accountant', {'accounting.auto_approve': True}), 'accounting', 'auto_approve')
    assert not has_modifier(_actor('designer', {'projects.only_assigned': False}), 'projects', 'only_assigned')
    assert not has_modifier(designer, 'projects', 'no_such_modifier')


def test_can_view_financials():
    assert can_view_financials(_actor('finance_manager'))
    assert can_view_financials(_actor('project_manager'))
    assert not can_view_financials(_actor('designer'))
    assert can_view_financials(_actor('designer', {'projects.view_financials': True}))
    assert not can_view_financials(_actor('admin', {'projects.can_view_financials': False}))


def test_custom_config_is_frozen_and_injectable():
    config = build_permission_config(section_defaults={'designer': ['reports']}, auto_approve_roles=['designer'])
    with pytest.raises(TypeError):
        config.section_defaults['designer'] = frozenset()
    actor = _actor('designer')
    assert is_section_allowed(actor, 'reports', config)
    assert not is_section_allowed(actor, 'projects', config)
    assert has_modifier(actor, 'accounting', 'auto_approve', config)
    # module default untouched
    assert 'projects' in DEFAULT_PERMISSION_CONFIG.sections_for('designer')
