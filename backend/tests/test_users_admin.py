from goldtouch import get_db
from goldtouch.models.notification import Notification
from tests.test_utils_seed import auth_headers, make_user, unique_email


def test_create_user_and_duplicate_email(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    email = unique_email('new')
    resp = client.post('/users', json={'name': 'Omar', 'email': email.upper(), 'password': 'secret1',
                                       'role': 'accountant'}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['email'] == email
    assert body['role'] == 'accountant'
    dup = client.post('/users', json={'name': 'Omar 2', 'email': email, 'password': 'secret1'}, headers=headers)
    assert dup.status_code == 409
    assert dup.get_json()['error']['code'] == 'CONFLICT'


def test_create_user_validation(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    short = client.post('/users', json={'name': 'X', 'email': unique_email('short'), 'password': '123'}, headers=headers)
    assert short.status_code == 400
    role = client.post('/users', json={'name': 'X', 'email': unique_email('role'), 'password': 'secret1',
                                       'role': 'overlord'}, headers=headers)
    assert role.status_code == 400
    assert role.get_json()['error']['detail'] == 'role invalid'


def test_non_admin_cannot_manage_users(client, app_instance):
    headers = auth_headers(app_instance, make_user('hr_manager'))
    resp = client.post('/users', json={'name': 'X', 'email': unique_email('x'), 'password': 'secret1'}, headers=headers)
    assert resp.status_code == 403


def test_admin_cannot_delete_or_demote_self(client, app_instance):
    admin = make_user('admin')
    headers = auth_headers(app_instance, admin)
    resp = client.delete(f'/users/{admin.id}', headers=headers)
    assert resp.status_code == 400
    resp = client.put(f'/users/{admin.id}/role', json={'role': 'designer'}, headers=headers)
    assert resp.status_code == 400
    resp = client.put(f'/users/{admin.id}', json={'is_active': False}, headers=headers)
    assert resp.status_code == 400


def test_role_change_notifies_user(client, app_instance):
    admin = make_user('admin')
    target = make_user('designer')
    resp = client.put(f'/users/{target.id}/role', json={'role': 'project_manager'},
                      headers=auth_headers(app_instance, admin))
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'project_manager'
    notes = get_db().query(Notification).filter_by(user_id=target.id).all()
    assert len(notes) == 1
    assert notes[0].from_user_id == admin.id


def test_permission_overrides_round_trip(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    target = make_user('designer')
    bad = client.put(f'/users/{target.id}/permissions', json={'permissions': {'reports': 'yes'}}, headers=headers)
    assert bad.status_code == 400
    ok = client.put(f'/users/{target.id}/permissions', json={'permissions': {'reports': True}}, headers=headers)
    assert ok.status_code == 200
    got = client.get(f'/users/{target.id}/permissions', headers=headers).get_json()
    assert got['permissions'] == {'reports': True}
    # the override takes effect on the target's next request
    resp = client.get('/reports/summary', headers=auth_headers(app_instance, target))
    assert resp.status_code == 200


def test_delete_user(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    target = make_user('viewer')
    assert client.delete(f'/users/{target.id}', headers=headers).status_code == 200
    assert client.delete(f'/users/{target.id}', headers=headers).status_code == 404


def test_user_names_for_any_session(client, app_instance):
    user = make_user('technician', name='Tech Person')
    body = client.get('/users/names', headers=auth_headers(app_instance, user)).get_json()
    assert {'id': user.id, 'name': 'Tech Person'} in body['data']
