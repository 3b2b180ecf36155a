"""Canonical role and permission tables.

Everything here is frozen into a single ``PermissionConfig`` that ``create_app``
installs under ``app.config['PERMISSION_CONFIG']``. Callers that need different
tables (tests, a customised deployment) build their own config with
``build_permission_config`` and pass it through ``create_app(config)``.
Never rename a section or role silently: override keys stored per user refer to them.
"""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

ROLE_ADMIN = 'admin'
ROLE_FINANCE_MANAGER = 'finance_manager'
ROLE_HR_MANAGER = 'hr_manager'
DEFAULT_ROLE = 'designer'

ALL_ROLES = (
    'admin', 'department_manager',
    'project_manager', 'project_coordinator',
    'architect', 'interior_designer', 'site_engineer', 'planning_engineer', 'designer', 'technician',
    'finance_manager', 'accountant',
    'sales_manager',
    'hr_manager', 'admin_assistant',
    'procurement_officer', 'storekeeper', 'qa_qc', 'document_controller',
    'employee', 'viewer',
)

LEVEL_FULL = 'full'
LEVEL_OWN = 'own'
LEVEL_READONLY = 'readonly'
LEVEL_NONE = 'none'

RESOURCES = ('hr', 'projects', 'tasks', 'accounting', 'clients', 'forms', 'invoices', 'reports', 'users')

SECTION_DEFAULTS: Dict[str, list] = {
    'admin': ['*'],
    'department_manager': ['projects', 'tasks', 'hr', 'reports', 'dashboard', 'clients', 'invoices', 'forms', 'generalReports'],
    'project_manager': ['projects', 'tasks', 'rfis', 'submittals', 'drawings', 'projectReports', 'dashboard', 'clients',
                        'forms', 'generalReports', 'accounting', 'reports'],
    'project_coordinator': ['projects', 'tasks', 'dashboard', 'clients', 'forms', 'rfis', 'submittals', 'drawings',
                            'generalReports', 'approval_requests'],
    'architect': ['projects', 'drawings', 'rfis', 'submittals', 'dashboard', 'hr'],
    'interior_designer': ['projects', 'drawings', 'dashboard', 'hr'],
    'site_engineer': ['projects', 'tasks', 'rfis', 'submittals', 'drawings', 'dashboard', 'hr'],
    'planning_engineer': ['projects', 'tasks', 'projectReports', 'dashboard', 'generalReports', 'accounting', 'hr'],
    'designer': ['projects', 'tasks', 'dashboard', 'hr'],
    'technician': ['tasks', 'dashboard', 'hr'],
    'finance_manager': ['accounting', 'reports', 'dashboard', 'invoices', 'forms', 'generalReports', 'approval_requests', 'hr'],
    'accountant': ['accounting', 'dashboard', 'sales', 'purchases', 'expenses', 'invoices', 'reports', 'generalReports',
                   'approval_requests', 'hr'],
    'sales_manager': ['sales', 'clients', 'invoices', 'dashboard', 'forms', 'generalReports', 'hr'],
    'hr_manager': ['hr', 'dashboard', 'users'],
    'admin_assistant': ['hr', 'dashboard', 'forms', 'clients'],
    'procurement_officer': ['procurement', 'purchases', 'boq', 'dashboard', 'generalReports', 'hr'],
    'storekeeper': ['procurement', 'dashboard', 'hr'],
    'qa_qc': ['qaqc', 'submittals', 'rfis', 'dashboard', 'generalReports', 'hr'],
    'document_controller': ['projects', 'forms', 'drawings', 'submittals', 'dashboard', 'hr'],
    'employee': ['hr', 'dashboard'],
    'viewer': ['hr', 'dashboard'],
}

PERMISSION_LEVELS: Dict[str, Dict[str, str]] = {
    'hr_manager': {'hr': 'full', 'dashboard': 'full', 'users': 'full'},
    'finance_manager': {'accounting': 'full', 'reports': 'full', 'dashboard': 'full', 'hr': 'own', 'projects': 'readonly',
                        'invoices': 'full'},
    'accountant': {'accounting': 'readonly', 'reports': 'readonly', 'dashboard': 'readonly', 'projects': 'readonly',
                   'hr': 'own', 'invoices': 'full'},
    'project_manager': {'projects': 'full', 'tasks': 'full', 'dashboard': 'full', 'hr': 'own', 'forms': 'full',
                        'accounting': 'readonly', 'clients': 'readonly'},
    'department_manager': {'projects': 'full', 'tasks': 'full', 'dashboard': 'full', 'hr': 'own', 'forms': 'full',
                           'invoices': 'readonly', 'clients': 'readonly', 'reports': 'readonly'},
    'project_coordinator': {'projects': 'own', 'tasks': 'full', 'dashboard': 'readonly', 'hr': 'own', 'forms': 'readonly'},
    'site_engineer': {'projects': 'own', 'tasks': 'own', 'dashboard': 'readonly', 'hr': 'own'},
    'planning_engineer': {'projects': 'own', 'tasks': 'own', 'dashboard': 'readonly', 'hr': 'own', 'reports': 'readonly'},
    'architect': {'projects': 'own', 'tasks': 'own', 'dashboard': 'readonly', 'hr': 'own'},
    'interior_designer': {'projects': 'own', 'tasks': 'own', 'dashboard': 'readonly', 'hr': 'own'},
    'designer': {'projects': 'own', 'tasks': 'own', 'hr': 'own', 'dashboard': 'readonly'},
    'technician': {'tasks': 'own', 'hr': 'own', 'dashboard': 'readonly'},
    'employee': {'hr': 'own', 'dashboard': 'readonly'},
    'sales_manager': {'clients': 'full', 'invoices': 'full', 'dashboard': 'full', 'hr': 'own', 'projects': 'readonly',
                      'forms': 'full'},
    'admin_assistant': {'clients': 'readonly', 'forms': 'full', 'dashboard': 'readonly', 'hr': 'own'},
    'procurement_officer': {'procurement': 'full', 'purchases': 'full', 'dashboard': 'readonly', 'hr': 'own',
                            'accounting': 'readonly'},
    'document_controller': {'documents': 'full', 'attachments': 'full', 'dashboard': 'readonly', 'hr': 'own',
                            'projects': 'readonly', 'forms': 'readonly'},
    'qa_qc': {'qaqc': 'full', 'dashboard': 'readonly', 'hr': 'own', 'projects': 'readonly'},
    'storekeeper': {'procurement': 'readonly', 'dashboard': 'readonly', 'hr': 'own'},
    'viewer': {'dashboard': 'readonly', 'hr': 'own'},
}


@dataclass(frozen=True)
class SubPermissions:
    view: bool = False
    view_own: bool = False
    view_financials: bool = False
    create: bool = False
    edit: bool = False
    delete: bool = False
    approve: bool = False
    submit: bool = False

    def with_(self, **changes) -> 'SubPermissions':
        return replace(self, **changes)

    def as_dict(self) -> Dict[str, bool]:
        return {
            'view': self.view, 'view_own': self.view_own, 'view_financials': self.view_financials,
            'create': self.create, 'edit': self.edit, 'delete': self.delete,
            'approve': self.approve, 'submit': self.submit,
        }


FULL = SubPermissions(True, True, True, True, True, True, True, True)
OWN = SubPermissions(view_own=True, submit=True)
READONLY = SubPermissions(view=True, view_own=True)
NONE = SubPermissions()

DETAIL_ACTIONS = frozenset(NONE.as_dict().keys())

_ASSIGNEE_ONLY = {
    'hr': OWN, 'projects': OWN, 'tasks': OWN.with_(edit=True), 'accounting': NONE, 'clients': NONE,
    'forms': NONE, 'invoices': NONE, 'reports': NONE, 'users': NONE,
}

DETAILED_PERMISSIONS: Dict[str, Dict[str, SubPermissions]] = {
    'hr_manager': {
        'hr': FULL, 'projects': READONLY, 'tasks': READONLY, 'accounting': NONE, 'clients': READONLY,
        'forms': READONLY, 'invoices': NONE, 'reports': NONE, 'users': FULL,
    },
    'finance_manager': {
        'hr': OWN, 'projects': READONLY.with_(view_financials=True), 'tasks': NONE, 'accounting': FULL,
        'clients': READONLY, 'forms': NONE, 'invoices': FULL, 'reports': FULL, 'users': NONE,
    },
    'accountant': {
        'hr': OWN, 'projects': READONLY, 'tasks': NONE, 'accounting': READONLY.with_(submit=True),
        'clients': READONLY, 'forms': NONE, 'invoices': READONLY.with_(create=True), 'reports': READONLY, 'users': NONE,
    },
    'department_manager': {
        'hr': OWN, 'projects': FULL.with_(delete=False), 'tasks': FULL.with_(delete=False), 'accounting': NONE,
        'clients': READONLY, 'forms': FULL.with_(delete=False), 'invoices': READONLY,
        'reports': READONLY.with_(create=True), 'users': NONE,
    },
    'project_manager': {
        'hr': OWN, 'projects': FULL.with_(delete=False), 'tasks': FULL.with_(delete=False),
        'accounting': READONLY.with_(view_financials=True), 'clients': READONLY, 'forms': FULL.with_(delete=False),
        'invoices': NONE, 'reports': READONLY.with_(create=True), 'users': NONE,
    },
    'project_coordinator': {
        'hr': OWN, 'projects': READONLY.with_(edit=True), 'tasks': OWN.with_(edit=True, create=True),
        'accounting': NONE, 'clients': READONLY, 'forms': READONLY, 'invoices': NONE, 'reports': NONE, 'users': NONE,
    },
    'architect': dict(_ASSIGNEE_ONLY),
    'interior_designer': dict(_ASSIGNEE_ONLY),
    'site_engineer': dict(_ASSIGNEE_ONLY),
    'planning_engineer': dict(_ASSIGNEE_ONLY, tasks=OWN.with_(edit=True, create=True), reports=READONLY),
    'designer': dict(_ASSIGNEE_ONLY),
    'technician': dict(_ASSIGNEE_ONLY),
    'sales_manager': {
        'hr': OWN, 'projects': READONLY, 'tasks': NONE, 'accounting': READONLY.with_(view_financials=True),
        'clients': FULL, 'forms': FULL, 'invoices': FULL, 'reports': READONLY.with_(create=True), 'users': NONE,
    },
    'admin_assistant': {
        'hr': OWN, 'projects': READONLY, 'tasks': READONLY, 'accounting': NONE, 'clients': READONLY.with_(create=True),
        'forms': FULL, 'invoices': NONE, 'reports': NONE, 'users': NONE,
    },
    'procurement_officer': {
        'hr': OWN, 'projects': READONLY, 'tasks': NONE, 'accounting': READONLY, 'clients': NONE,
        'forms': NONE, 'invoices': NONE, 'reports': READONLY, 'users': NONE,
    },
    'storekeeper': {r: (OWN if r == 'hr' else NONE) for r in RESOURCES},
    'qa_qc': {
        'hr': OWN, 'projects': READONLY, 'tasks': READONLY.with_(edit=True), 'accounting': NONE, 'clients': NONE,
        'forms': NONE, 'invoices': NONE, 'reports': READONLY, 'users': NONE,
    },
    'document_controller': {
        'hr': OWN, 'projects': READONLY, 'tasks': READONLY, 'accounting': NONE, 'clients': READONLY,
        'forms': FULL, 'invoices': NONE, 'reports': READONLY, 'users': NONE,
    },
    'employee': {r: (OWN if r == 'hr' else NONE) for r in RESOURCES},
    'viewer': {
        'hr': OWN, 'projects': READONLY, 'tasks': READONLY, 'accounting': NONE, 'clients': NONE,
        'forms': NONE, 'invoices': NONE, 'reports': NONE, 'users': NONE,
    },
}

ONLY_ASSIGNED_ROLES = ('architect', 'interior_designer', 'designer', 'site_engineer', 'project_coordinator',
                       'technician', 'planning_engineer')
ONLY_ASSIGNED_RESOURCES = ('projects', 'tasks')
FINANCIAL_VIEWER_ROLES = ('admin', 'finance_manager', 'project_manager', 'department_manager', 'accountant',
                          'procurement_officer')
AUTO_APPROVE_ROLES = ('admin', 'finance_manager')
REVIEWER_ROLES = ('admin', 'finance_manager')
HR_MANAGER_ROLES = ('admin', 'hr_manager')


def _freeze_nested(table: Mapping[str, Mapping]) -> Mapping[str, Mapping]:
    return MappingProxyType({k: MappingProxyType(dict(v)) for k, v in table.items()})


@dataclass(frozen=True)
class PermissionConfig:
    """Immutable bundle of every role table the permission resolver consults."""
    section_defaults: Mapping[str, FrozenSet[str]]
    permission_levels: Mapping[str, Mapping[str, str]]
    detailed: Mapping[str, Mapping[str, SubPermissions]]
    only_assigned_roles: FrozenSet[str] = field(default_factory=frozenset)
    only_assigned_resources: FrozenSet[str] = field(default_factory=frozenset)
    financial_viewer_roles: FrozenSet[str] = field(default_factory=frozenset)
    auto_approve_roles: FrozenSet[str] = field(default_factory=frozenset)
    reviewer_roles: FrozenSet[str] = field(default_factory=frozenset)
    full_access_role: str = ROLE_ADMIN

    def sections_for(self, role: str) -> FrozenSet[str]:
        return self.section_defaults.get(role, frozenset())


def build_permission_config(
    section_defaults: Optional[Mapping[str, Iterable[str]]] = None,
    permission_levels: Optional[Mapping[str, Mapping[str, str]]] = None,
    detailed: Optional[Mapping[str, Mapping[str, SubPermissions]]] = None,
    **overrides,
) -> PermissionConfig:
    """Build a frozen config, falling back to the module tables for anything omitted."""
    sections = section_defaults if section_defaults is not None else SECTION_DEFAULTS
    params = dict(
        section_defaults=MappingProxyType({role: frozenset(v) for role, v in sections.items()}),
        permission_levels=_freeze_nested(permission_levels if permission_levels is not None else PERMISSION_LEVELS),
        detailed=_freeze_nested(detailed if detailed is not None else DETAILED_PERMISSIONS),
        only_assigned_roles=frozenset(ONLY_ASSIGNED_ROLES),
        only_assigned_resources=frozenset(ONLY_ASSIGNED_RESOURCES),
        financial_viewer_roles=frozenset(FINANCIAL_VIEWER_ROLES),
        auto_approve_roles=frozenset(AUTO_APPROVE_ROLES),
        reviewer_roles=frozenset(REVIEWER_ROLES),
    )
    for key, value in overrides.items():
        params[key] = frozenset(value) if isinstance(value, (list, tuple, set)) else value
    return PermissionConfig(**params)


DEFAULT_PERMISSION_CONFIG = build_permission_config()

__all__ = [
    'ALL_ROLES', 'DEFAULT_ROLE', 'ROLE_ADMIN', 'ROLE_FINANCE_MANAGER', 'ROLE_HR_MANAGER', 'RESOURCES',
    'LEVEL_FULL', 'LEVEL_OWN', 'LEVEL_READONLY', 'LEVEL_NONE', 'SubPermissions', 'FULL', 'OWN', 'READONLY', 'NONE',
    'DETAIL_ACTIONS', 'PermissionConfig', 'build_permission_config', 'DEFAULT_PERMISSION_CONFIG',
    'HR_MANAGER_ROLES', 'REVIEWER_ROLES',
]
