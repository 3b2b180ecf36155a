from goldtouch import get_db
from goldtouch.models.audit import AuditLog
from goldtouch.services.audit import client_ip, log_audit
from tests.test_utils_seed import auth_headers, make_user


def test_client_ip_prefers_forwarded_for(app_instance):
    with app_instance.test_request_context(headers={'X-Forwarded-For': '203.0.113.7, 10.0.0.1', 'X-Real-IP': '10.9.9.9'}):
        assert client_ip() == '203.0.113.7'
    with app_instance.test_request_context(headers={'X-Real-IP': '198.51.100.4'}):
        assert client_ip() == '198.51.100.4'
    with app_instance.test_request_context(environ_base={'REMOTE_ADDR': '192.0.2.55'}):
        assert client_ip() == '192.0.2.55'


def test_client_ip_without_request_is_none(app_instance):
    with app_instance.app_context():
        assert client_ip() is None


def test_log_audit_persists_row(app_instance):
    with app_instance.test_request_context(headers={'X-Forwarded-For': '203.0.113.9'}):
        entry = log_audit(424242, 'CUSTOM_ACTION', 'thing', 7, 'details here')
    assert entry is not None
    row = get_db().get(AuditLog, entry.id)
    assert row.action == 'CUSTOM_ACTION'
    assert row.entity_id == 7
    assert row.ip_address == '203.0.113.9'


def test_mutation_decorator_records_entity_id(client, app_instance):
    admin = make_user('admin')
    headers = auth_headers(app_instance, admin)
    resp = client.post('/clients', json={'name': 'Audit Trail Co'}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    client_id = resp.get_json()['id']
    logs = client.get(f'/users/audit-logs?action=CREATE_CLIENT&entity_id={client_id}', headers=headers).get_json()
    assert logs['pagination']['total'] == 1
    entry = logs['data'][0]
    assert entry['user_id'] == admin.id
    assert entry['entity_type'] == 'client'
    assert entry['details'] == 'Audit Trail Co'


def test_failed_mutation_is_not_audited(client, app_instance):
    admin = make_user('admin')
    headers = auth_headers(app_instance, admin)
    resp = client.post('/clients', json={}, headers=headers)
    assert resp.status_code == 400
    logs = client.get(f'/users/audit-logs?action=CREATE_CLIENT&user_id={admin.id}', headers=headers).get_json()
    assert logs['pagination']['total'] == 0


def test_audit_logs_admin_only(client, app_instance):
    headers = auth_headers(app_instance, make_user('finance_manager'))
    resp = client.get('/users/audit-logs', headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['code'] == 'FORBIDDEN'
