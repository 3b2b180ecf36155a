from flask import Blueprint, request, abort
from sqlalchemy import select
from goldtouch import get_db
from goldtouch.models.authz import User
from goldtouch.models.project import Project, ProjectTask, TaskComment
from goldtouch.constants.permissions import ROLE_ADMIN
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import require_section
from goldtouch.services.notifications import create_notification
from goldtouch.services.policy import Actor, current_actor, has_modifier, require_modifier
from goldtouch.utils.filters import apply_filters, eq
from goldtouch.utils.listing import paginated
from goldtouch.utils.serialize import row_json
from goldtouch.utils.sorting import apply_multi_sort
from goldtouch.utils.validation import json_body, parse_date, parse_int, require_fields, validate_status

tasks_bp = Blueprint('tasks', __name__)


def _get_task(task_id: int) -> ProjectTask:
    task = get_db().get(ProjectTask, task_id)
    if not task:
        abort(404, description='Task not found')
    return task


def _assert_visible(actor: Actor, task: ProjectTask):
    if has_modifier(actor, 'tasks', 'only_assigned') and task.assigned_to != actor.user_id:
        abort(403, description='Not assigned to this task')


def _apply(task: ProjectTask, data: dict):
    session = get_db()
    if 'project_id' in data:
        project_id = parse_int(data['project_id'], 'project_id', required=True)
        if session.get(Project, project_id) is None:
            abort(400, description='project_id not found')
        task.project_id = project_id
    if 'parent_id' in data:
        parent_id = parse_int(data['parent_id'], 'parent_id')
        if parent_id is not None and (parent_id == task.id or session.get(ProjectTask, parent_id) is None):
            abort(400, description='parent_id invalid')
        task.parent_id = parent_id
    if 'name' in data:
        if not data['name']:
            abort(400, description='name required')
        task.name = str(data['name']).strip()
    if 'description' in data:
        task.description = data['description']
    if 'status' in data:
        task.status = validate_status(data['status'], ProjectTask.ALL_STATUSES)
    if 'priority' in data:
        task.priority = validate_status(data['priority'], ProjectTask.ALL_PRIORITIES, 'priority')
    if 'start_date' in data:
        task.start_date = parse_date(data['start_date'], 'start_date')
    if 'end_date' in data:
        task.end_date = parse_date(data['end_date'], 'end_date')
    if task.start_date and task.end_date and task.end_date < task.start_date:
        abort(400, description='end_date must not be before start_date')
    if 'estimate_hours' in data:
        task.estimate_hours = parse_int(data['estimate_hours'], 'estimate_hours', minimum=0)
    if 'progress' in data:
        progress = parse_int(data['progress'], 'progress', required=True, minimum=0)
        if progress > 100:
            abort(400, description='progress must be <= 100')
        task.progress = progress
    if 'assigned_to' in data:
        assignee = parse_int(data['assigned_to'], 'assigned_to')
        if assignee is not None and session.get(User, assignee) is None:
            abort(400, description='assigned_to not found')
        task.assigned_to = assignee


def _notify_assignee(task: ProjectTask, actor: Actor):
    if task.assigned_to and task.assigned_to != actor.user_id:
        create_notification(task.assigned_to, 'Task assigned to you', from_user_id=actor.user_id, type='action',
                            message=task.name, link=f'/tasks/{task.id}', entity_type='task', entity_id=task.id)


@tasks_bp.get('')
@require_section('tasks')
def list_tasks():
    actor = current_actor()
    q = get_db().query(ProjectTask)
    if has_modifier(actor, 'tasks', 'only_assigned'):
        q = q.filter(ProjectTask.assigned_to == actor.user_id)
    q = apply_filters(q, {
        'project_id': eq(ProjectTask.project_id, coerce=int),
        'status': eq(ProjectTask.status, allowed=ProjectTask.ALL_STATUSES),
        'priority': eq(ProjectTask.priority, allowed=ProjectTask.ALL_PRIORITIES),
        'assigned_to': eq(ProjectTask.assigned_to, coerce=int),
    }, request.args)
    allowed = {'name': ProjectTask.name, 'status': ProjectTask.status, 'priority': ProjectTask.priority,
               'end_date': ProjectTask.end_date, 'progress': ProjectTask.progress, 'id': ProjectTask.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, ProjectTask.id)
    return paginated(q, row_json)


@tasks_bp.get('/<int:task_id>')
@require_section('tasks')
def get_task(task_id: int):
    task = _get_task(task_id)
    _assert_visible(current_actor(), task)
    return row_json(task)


@tasks_bp.post('')
@require_section('tasks')
@audit_log('CREATE_TASK', entity_type='task', details_builder=lambda d, kw: d.get('name'))
def create_task():
    actor = current_actor()
    require_modifier(actor, 'tasks', 'create')
    data = json_body()
    require_fields(data, 'project_id', 'name')
    task = ProjectTask(created_by=actor.user_id, status=ProjectTask.STATUS_PLANNED, priority='medium', progress=0)
    _apply(task, data)
    session = get_db()
    session.add(task)
    session.commit()
    _notify_assignee(task, actor)
    return row_json(task), 201


@tasks_bp.put('/<int:task_id>')
@require_section('tasks')
@audit_log('UPDATE_TASK', entity_type='task')
def update_task(task_id: int):
    actor = current_actor()
    task = _get_task(task_id)
    if not has_modifier(actor, 'tasks', 'edit') and task.assigned_to != actor.user_id:
        abort(403, description='Missing permission tasks.edit')
    _assert_visible(actor, task)
    data = json_body()
    previous_assignee = task.assigned_to
    _apply(task, data)
    get_db().commit()
    if task.assigned_to != previous_assignee:
        _notify_assignee(task, actor)
    return row_json(task)


@tasks_bp.delete('/<int:task_id>')
@require_section('tasks')
@audit_log('DELETE_TASK', entity_type='task', entity_id_arg='task_id')
def delete_task(task_id: int):
    require_modifier(current_actor(), 'tasks', 'delete')
    task = _get_task(task_id)
    session = get_db()
    session.query(TaskComment).filter(TaskComment.task_id == task.id).delete(synchronize_session=False)
    session.delete(task)
    session.commit()
    return {'success': True}


@tasks_bp.get('/<int:task_id>/comments')
@require_section('tasks')
def list_comments(task_id: int):
    task = _get_task(task_id)
    _assert_visible(current_actor(), task)
    rows = get_db().execute(
        select(TaskComment, User.name)
        .join(User, User.id == TaskComment.user_id)
        .where(TaskComment.task_id == task.id)
        .order_by(TaskComment.id)
    ).all()
    return {'data': [dict(row_json(c), user_name=name) for c, name in rows]}


@tasks_bp.post('/<int:task_id>/comments')
@require_section('tasks')
def add_comment(task_id: int):
    actor = current_actor()
    task = _get_task(task_id)
    _assert_visible(actor, task)
    data = json_body()
    content = str(data.get('content') or '').strip()
    if not content:
        abort(400, description='content required')
    comment = TaskComment(task_id=task.id, user_id=actor.user_id, content=content)
    session = get_db()
    session.add(comment)
    session.commit()
    if task.assigned_to and task.assigned_to != actor.user_id:
        create_notification(task.assigned_to, 'New comment on your task', from_user_id=actor.user_id,
                            message=content[:200], link=f'/tasks/{task.id}', entity_type='task', entity_id=task.id)
    return row_json(comment), 201


@tasks_bp.delete('/comments/<int:comment_id>')
@require_section('tasks')
def delete_comment(comment_id: int):
    actor = current_actor()
    session = get_db()
    comment = session.get(TaskComment, comment_id)
    if not comment:
        abort(404, description='Comment not found')
    if comment.user_id != actor.user_id and actor.role != ROLE_ADMIN:
        abort(403, description='Only the author can delete this comment')
    session.delete(comment)
    session.commit()
    return {'success': True}
