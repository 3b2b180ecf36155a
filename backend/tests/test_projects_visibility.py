from goldtouch import get_db
from goldtouch.models.notification import Notification
from tests.test_utils_seed import add_team_member, auth_headers, make_client, make_project, make_user


def test_designer_sees_only_assigned_projects(client, app_instance):
    designer = make_user('designer')
    admin = make_user('admin')
    mine = make_project(assigned_to=designer.id, created_by=admin.id, name='Mine')
    via_team = make_project(created_by=admin.id, name='Team')
    add_team_member(via_team, designer)
    other = make_project(created_by=admin.id, name='Other')
    headers = auth_headers(app_instance, designer)

    body = client.get('/projects?limit=200', headers=headers).get_json()
    ids = {p['id'] for p in body['data']}
    assert mine.id in ids
    assert via_team.id in ids
    assert other.id not in ids
    # budgets are hidden without financial visibility
    assert all('budget' not in p for p in body['data'])

    assert client.get(f'/projects/{other.id}', headers=headers).status_code == 403
    detail = client.get(f'/projects/{mine.id}', headers=headers).get_json()
    assert 'financials' not in detail
    assert detail['team'] == []


def test_financial_viewer_sees_budget_and_totals(client, app_instance):
    project = make_project(budget=120000)
    headers = auth_headers(app_instance, make_user('project_manager'))
    body = client.get(f'/projects/{project.id}', headers=headers).get_json()
    assert body['budget'] == 120000
    assert body['financials'] == {'boq_total': 0, 'expenses_total': 0, 'installments_total': 0}


def test_create_project_assigns_number_and_notifies(client, app_instance):
    pm = make_user('project_manager')
    designer = make_user('designer')
    customer = make_client()
    resp = client.post('/projects', json={'name': 'Penthouse', 'client_id': customer.id, 'assigned_to': designer.id,
                                          'budget': 9000}, headers=auth_headers(app_instance, pm))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['project_number'].startswith('PRJ-')
    assert body['status'] == 'in_progress'
    note = get_db().query(Notification).filter_by(user_id=designer.id, entity_type='project').one()
    assert note.entity_id == body['id']


def test_create_project_validation(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    assert client.post('/projects', json={'name': 'No client'}, headers=headers).status_code == 400
    resp = client.post('/projects', json={'name': 'Ghost', 'client_id': 987654321}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'client_id not found'


def test_designer_cannot_create_project(client, app_instance):
    customer = make_client()
    resp = client.post('/projects', json={'name': 'Nope', 'client_id': customer.id},
                       headers=auth_headers(app_instance, make_user('designer')))
    assert resp.status_code == 403


def test_closed_project_status_change_is_admin_only(client, app_instance):
    project = make_project()
    pm_headers = auth_headers(app_instance, make_user('project_manager'))
    resp = client.put(f'/projects/{project.id}', json={'status': 'delivered'}, headers=pm_headers)
    assert resp.status_code == 200
    resp = client.put(f'/projects/{project.id}', json={'status': 'in_progress'}, headers=pm_headers)
    assert resp.status_code == 400
    resp = client.put(f'/projects/{project.id}', json={'status': 'in_progress'},
                      headers=auth_headers(app_instance, make_user('admin')))
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'in_progress'


def test_team_membership(client, app_instance):
    project = make_project()
    member = make_user('architect')
    headers = auth_headers(app_instance, make_user('admin'))
    resp = client.post(f'/projects/{project.id}/team', json={'user_id': member.id, 'role': 'lead'}, headers=headers)
    assert resp.status_code == 201
    dup = client.post(f'/projects/{project.id}/team', json={'user_id': member.id}, headers=headers)
    assert dup.status_code == 409
    team = client.get(f'/projects/{project.id}/team', headers=headers).get_json()['data']
    assert [m['user_id'] for m in team] == [member.id]
    # membership grants visibility to an assignee-only role
    assert client.get(f'/projects/{project.id}', headers=auth_headers(app_instance, member)).status_code == 200
    assert client.delete(f'/projects/{project.id}/team/{member.id}', headers=headers).status_code == 200
    assert client.get(f'/projects/{project.id}', headers=auth_headers(app_instance, member)).status_code == 403


def test_tasks_only_assigned_and_assignee_edit(client, app_instance):
    designer = make_user('designer')
    project = make_project(assigned_to=designer.id)
    pm_headers = auth_headers(app_instance, make_user('project_manager'))
    mine = client.post('/tasks', json={'project_id': project.id, 'name': 'Moodboard', 'assigned_to': designer.id},
                       headers=pm_headers).get_json()
    other = client.post('/tasks', json={'project_id': project.id, 'name': 'Quantities'}, headers=pm_headers).get_json()
    headers = auth_headers(app_instance, designer)

    listed = client.get(f'/tasks?project_id={project.id}', headers=headers).get_json()['data']
    assert [t['id'] for t in listed] == [mine['id']]
    assert client.get(f"/tasks/{other['id']}", headers=headers).status_code == 403

    resp = client.put(f"/tasks/{mine['id']}", json={'progress': 40, 'status': 'in_progress'}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['progress'] == 40
    assert client.put(f"/tasks/{mine['id']}", json={'progress': 140}, headers=headers).status_code == 400
    assert client.delete(f"/tasks/{mine['id']}", headers=headers).status_code == 403


def test_task_comments(client, app_instance):
    designer = make_user('designer')
    project = make_project(assigned_to=designer.id)
    admin_headers = auth_headers(app_instance, make_user('admin'))
    task = client.post('/tasks', json={'project_id': project.id, 'name': 'Lighting', 'assigned_to': designer.id},
                       headers=admin_headers).get_json()
    resp = client.post(f"/tasks/{task['id']}/comments", json={'content': 'Please revise'}, headers=admin_headers)
    assert resp.status_code == 201
    comment_id = resp.get_json()['id']
    assert client.post(f"/tasks/{task['id']}/comments", json={'content': '  '}, headers=admin_headers).status_code == 400
    comments = client.get(f"/tasks/{task['id']}/comments", headers=auth_headers(app_instance, designer)).get_json()
    assert [c['content'] for c in comments['data']] == ['Please revise']
    assert client.delete(f'/tasks/comments/{comment_id}',
                         headers=auth_headers(app_instance, designer)).status_code == 403
    assert client.delete(f'/tasks/comments/{comment_id}', headers=admin_headers).status_code == 200


def test_viewer_cannot_list_projects(client, app_instance):
    resp = client.get('/projects', headers=auth_headers(app_instance, make_user('viewer')))
    assert resp.status_code == 403
    assert resp.get_json()['error']['code'] == 'FORBIDDEN'
