from flask import Blueprint, request, abort
from sqlalchemy import select, or_
from goldtouch import get_db
from goldtouch.models.authz import User
from goldtouch.models.client import Client
from goldtouch.models.project import Project, ProjectTeamMember
from goldtouch.constants.permissions import ROLE_ADMIN
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import login_required, require_roles, require_section
from goldtouch.services.accounting import project_financials
from goldtouch.services.notifications import create_notification
from goldtouch.services.policy import Actor, can_view_financials, current_actor, has_modifier, require_modifier
from goldtouch.utils.filters import apply_filters, eq
from goldtouch.utils.listing import paginated
from goldtouch.utils.numbering import next_number
from goldtouch.utils.serialize import row_json
from goldtouch.utils.sorting import apply_multi_sort
from goldtouch.utils.validation import json_body, parse_date, parse_int, require_fields, validate_status

projects_bp = Blueprint('projects', __name__)


def _project_json(project: Project, show_budget: bool):
    out = row_json(project)
    if not show_budget:
        out.pop('budget', None)
    return out


def _get_project(project_id: int) -> Project:
    project = get_db().get(Project, project_id)
    if not project:
        abort(404, description='Project not found')
    return project


def _assignment_clause(user_id: int):
    team_ids = select(ProjectTeamMember.project_id).where(ProjectTeamMember.user_id == user_id)
    return or_(Project.assigned_to == user_id, Project.id.in_(team_ids))


def is_assigned(project: Project, user_id: int) -> bool:
    if project.assigned_to == user_id:
        return True
    return get_db().execute(
        select(ProjectTeamMember.id).where(ProjectTeamMember.project_id == project.id,
                                           ProjectTeamMember.user_id == user_id)
    ).first() is not None


def assert_project_visible(actor: Actor, project: Project):
    if has_modifier(actor, 'projects', 'only_assigned') and not is_assigned(project, actor.user_id):
        abort(403, description='Not assigned to this project')


def _check_user(user_id):
    if user_id is not None and get_db().get(User, user_id) is None:
        abort(400, description='assigned_to not found')


def _apply(project: Project, data: dict):
    if 'client_id' in data:
        client_id = parse_int(data['client_id'], 'client_id', required=True)
        if get_db().get(Client, client_id) is None:
            abort(400, description='client_id not found')
        project.client_id = client_id
    if 'name' in data:
        if not data['name']:
            abort(400, description='name required')
        project.name = str(data['name']).strip()
    if 'description' in data:
        project.description = data['description']
    if 'start_date' in data:
        project.start_date = parse_date(data['start_date'], 'start_date')
    if 'end_date' in data:
        project.end_date = parse_date(data['end_date'], 'end_date')
    if project.start_date and project.end_date and project.end_date < project.start_date:
        abort(400, description='end_date must not be before start_date')
    if 'budget' in data:
        project.budget = parse_int(data['budget'], 'budget', minimum=0)
    if 'assigned_to' in data:
        assignee = parse_int(data['assigned_to'], 'assigned_to')
        _check_user(assignee)
        project.assigned_to = assignee


@projects_bp.get('')
@require_section('projects')
def list_projects():
    actor = current_actor()
    q = get_db().query(Project)
    if has_modifier(actor, 'projects', 'only_assigned'):
        q = q.filter(_assignment_clause(actor.user_id))
    q = apply_filters(q, {
        'status': eq(Project.status, allowed=Project.ALL_STATUSES),
        'client_id': eq(Project.client_id, coerce=int),
        'assigned_to': eq(Project.assigned_to, coerce=int),
        'search': {'op': lambda qu, v: qu.filter(Project.name.ilike(f'%{v}%') | Project.project_number.ilike(f'%{v}%'))},
    }, request.args)
    allowed = {'name': Project.name, 'status': Project.status, 'start_date': Project.start_date, 'id': Project.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Project.id, default_desc=True)
    show_budget = can_view_financials(actor, 'projects')
    return paginated(q, lambda p: _project_json(p, show_budget))


@projects_bp.get('/mine')
@login_required
def my_projects():
    actor = current_actor()
    rows = get_db().query(Project).filter(_assignment_clause(actor.user_id)).order_by(Project.id.desc()).all()
    show_budget = can_view_financials(actor, 'projects')
    return {'data': [_project_json(p, show_budget) for p in rows]}


@projects_bp.get('/<int:project_id>')
@require_section('projects')
def get_project(project_id: int):
    actor = current_actor()
    project = _get_project(project_id)
    assert_project_visible(actor, project)
    show_financials = can_view_financials(actor, 'projects')
    out = _project_json(project, show_financials)
    out['team'] = [row_json(m) for m in get_db().query(ProjectTeamMember)
                   .filter(ProjectTeamMember.project_id == project.id).order_by(ProjectTeamMember.id)]
    if show_financials:
        totals = project_financials(project.id)
        out['financials'] = {k: totals[k] for k in ('boq_total', 'expenses_total', 'installments_total')}
    return out


@projects_bp.post('')
@require_section('projects')
@audit_log('CREATE_PROJECT', entity_type='project', details_builder=lambda d, kw: d.get('name'))
def create_project():
    actor = current_actor()
    require_modifier(actor, 'projects', 'create')
    data = json_body()
    require_fields(data, 'name', 'client_id')
    status = validate_status(data.get('status') or Project.STATUS_IN_PROGRESS, Project.ALL_STATUSES)
    project = Project(project_number=next_number('PRJ'), status=status, created_by=actor.user_id)
    _apply(project, data)
    session = get_db()
    session.add(project)
    session.commit()
    if project.assigned_to and project.assigned_to != actor.user_id:
        create_notification(project.assigned_to, 'New project assigned', from_user_id=actor.user_id, type='action',
                            message=project.name, link=f'/projects/{project.id}', entity_type='project',
                            entity_id=project.id)
    return _project_json(project, can_view_financials(actor, 'projects')), 201


@projects_bp.put('/<int:project_id>')
@require_section('projects')
@audit_log('UPDATE_PROJECT', entity_type='project')
def update_project(project_id: int):
    actor = current_actor()
    require_modifier(actor, 'projects', 'edit')
    project = _get_project(project_id)
    assert_project_visible(actor, project)
    data = json_body()
    previous_assignee = project.assigned_to
    if 'status' in data and data['status'] != project.status:
        status = validate_status(data['status'], Project.ALL_STATUSES)
        if project.status != Project.STATUS_IN_PROGRESS and actor.role != ROLE_ADMIN:
            abort(400, description=f'Only an admin can change the status of a {project.status} project')
        project.status = status
    if 'budget' in data and not can_view_financials(actor, 'projects'):
        abort(403, description='Missing permission projects.view_financials')
    _apply(project, data)
    get_db().commit()
    if project.assigned_to and project.assigned_to != previous_assignee and project.assigned_to != actor.user_id:
        create_notification(project.assigned_to, 'Project assigned to you', from_user_id=actor.user_id, type='action',
                            message=project.name, link=f'/projects/{project.id}', entity_type='project',
                            entity_id=project.id)
    return _project_json(project, can_view_financials(actor, 'projects'))


@projects_bp.delete('/<int:project_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE_PROJECT', entity_type='project', entity_id_arg='project_id')
def delete_project(project_id: int):
    project = _get_project(project_id)
    session = get_db()
    session.delete(project)
    session.commit()
    return {'success': True}


@projects_bp.get('/<int:project_id>/team')
@require_section('projects')
def list_team(project_id: int):
    actor = current_actor()
    project = _get_project(project_id)
    assert_project_visible(actor, project)
    rows = get_db().execute(
        select(ProjectTeamMember, User.name)
        .join(User, User.id == ProjectTeamMember.user_id)
        .where(ProjectTeamMember.project_id == project.id)
        .order_by(ProjectTeamMember.id)
    ).all()
    return {'data': [dict(row_json(m), user_name=name) for m, name in rows]}


@projects_bp.post('/<int:project_id>/team')
@require_section('projects')
@audit_log('ADD_TEAM_MEMBER', entity_type='project', entity_id_key=None, entity_id_arg='project_id',
           details_builder=lambda d, kw: f"user {d.get('user_id')}")
def add_team_member(project_id: int):
    actor = current_actor()
    require_modifier(actor, 'projects', 'edit')
    project = _get_project(project_id)
    data = json_body()
    user_id = parse_int(data.get('user_id'), 'user_id', required=True)
    if get_db().get(User, user_id) is None:
        abort(400, description='user_id not found')
    session = get_db()
    exists = session.execute(
        select(ProjectTeamMember.id).where(ProjectTeamMember.project_id == project.id,
                                           ProjectTeamMember.user_id == user_id)
    ).scalar_one_or_none()
    if exists:
        abort(409, description='User is already a team member')
    member = ProjectTeamMember(project_id=project.id, user_id=user_id, role=data.get('role'))
    session.add(member)
    session.commit()
    create_notification(user_id, 'Added to project team', from_user_id=actor.user_id, type='info',
                        message=project.name, link=f'/projects/{project.id}', entity_type='project',
                        entity_id=project.id)
    return row_json(member), 201


@projects_bp.delete('/<int:project_id>/team/<int:user_id>')
@require_section('projects')
@audit_log('REMOVE_TEAM_MEMBER', entity_type='project', entity_id_arg='project_id',
           details_builder=lambda d, kw: f"user {kw.get('user_id')}")
def remove_team_member(project_id: int, user_id: int):
    require_modifier(current_actor(), 'projects', 'edit')
    project = _get_project(project_id)
    session = get_db()
    member = session.execute(
        select(ProjectTeamMember).where(ProjectTeamMember.project_id == project.id,
                                        ProjectTeamMember.user_id == user_id)
    ).scalar_one_or_none()
    if not member:
        abort(404, description='Team member not found')
    session.delete(member)
    session.commit()
    return {'success': True}
