from goldtouch import get_db
from goldtouch.models.accounting import Expense
from goldtouch.models.approval import ApprovalRequest
from goldtouch.models.notification import Notification
from tests.test_utils_seed import auth_headers, make_client, make_project, make_user


def _expense_payload(project_id, amount=700):
    return {'project_id': project_id, 'category': 'labour', 'description': 'Painting crew', 'amount': amount,
            'expense_date': '2024-06-15'}


def test_request_approve_executes_action(client, app_instance):
    project = make_project()
    requester = make_user('accountant')
    reviewer = make_user('finance_manager')
    resp = client.post('/approvals', json={'entity_type': 'expense', 'action': 'create',
                                           'request_data': _expense_payload(project.id)},
                       headers=auth_headers(app_instance, requester))
    assert resp.status_code == 201, resp.get_json()
    req = resp.get_json()
    assert req['status'] == 'pending'
    assert req['request_data']['amount'] == 700
    # reviewers are told about the new request
    assert get_db().query(Notification).filter_by(user_id=reviewer.id, entity_id=req['id'],
                                                  entity_type='approval_request').count() == 1

    headers = auth_headers(app_instance, reviewer)
    approved = client.post(f"/approvals/{req['id']}/approve", json={'notes': 'ok'}, headers=headers)
    assert approved.status_code == 200, approved.get_json()
    body = approved.get_json()
    assert body['request']['status'] == 'approved'
    assert body['request']['reviewed_by'] == reviewer.id
    expense = get_db().get(Expense, body['result']['entity_id'])
    assert expense.amount == 700
    assert expense.created_by == requester.id

    again = client.post(f"/approvals/{req['id']}/approve", json={}, headers=headers)
    assert again.status_code == 400
    assert again.get_json()['error']['detail'] == 'Request already processed'


def test_request_data_accepts_json_string(client, app_instance):
    project = make_project()
    import json
    resp = client.post('/approvals', json={'entity_type': 'expense', 'action': 'create',
                                           'request_data': json.dumps(_expense_payload(project.id, 90))},
                       headers=auth_headers(app_instance, make_user('accountant')))
    assert resp.status_code == 201
    assert resp.get_json()['request_data']['amount'] == 90


def test_request_validation(client, app_instance):
    headers = auth_headers(app_instance, make_user('accountant'))
    assert client.post('/approvals', json={'entity_type': 'yacht', 'action': 'create'},
                       headers=headers).status_code == 400
    assert client.post('/approvals', json={'entity_type': 'expense', 'action': 'explode'},
                       headers=headers).status_code == 400
    assert client.post('/approvals', json={'entity_type': 'expense', 'action': 'delete'},
                       headers=headers).status_code == 400
    assert client.post('/approvals', json={'entity_type': 'expense', 'action': 'create', 'request_data': '[1]'},
                       headers=headers).status_code == 400


def test_reject_requires_reason_and_is_final(client, app_instance):
    project = make_project()
    requester = make_user('accountant')
    req_id = client.post('/approvals', json={'entity_type': 'expense', 'action': 'create',
                                             'request_data': _expense_payload(project.id)},
                         headers=auth_headers(app_instance, requester)).get_json()['id']
    headers = auth_headers(app_instance, make_user('admin'))
    assert client.post(f'/approvals/{req_id}/reject', json={}, headers=headers).status_code == 400
    resp = client.post(f'/approvals/{req_id}/reject', json={'notes': 'Duplicate of last week'}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'rejected'
    assert resp.get_json()['review_notes'] == 'Duplicate of last week'
    assert client.post(f'/approvals/{req_id}/approve', json={}, headers=headers).status_code == 400
    note = get_db().query(Notification).filter_by(user_id=requester.id, entity_id=req_id).one()
    assert note.type == 'warning'


def test_failed_execution_leaves_request_pending(client, app_instance):
    requester = make_user('accountant')
    req_id = client.post('/approvals', json={'entity_type': 'expense', 'action': 'update', 'entity_id': 987654321,
                                             'request_data': {'amount': 5}},
                         headers=auth_headers(app_instance, requester)).get_json()['id']
    resp = client.post(f'/approvals/{req_id}/approve', json={},
                       headers=auth_headers(app_instance, make_user('finance_manager')))
    assert resp.status_code == 400
    assert get_db().get(ApprovalRequest, req_id).status == 'pending'


def test_invoice_request_executes_through_invoice_service(client, app_instance):
    customer = make_client()
    requester = make_user('accountant')
    req_id = client.post('/approvals', json={'entity_type': 'invoice', 'action': 'create', 'request_data': {
        'client_id': customer.id, 'issue_date': '2024-07-01',
        'items': [{'description': 'Kitchen design', 'quantity': 1, 'unit_price': 1200}],
    }}, headers=auth_headers(app_instance, requester)).get_json()['id']
    body = client.post(f'/approvals/{req_id}/approve', json={},
                       headers=auth_headers(app_instance, make_user('admin'))).get_json()
    assert body['result']['entity_type'] == 'invoice'
    assert body['result']['status'] == 'draft'


def test_only_reviewers_see_queue(client, app_instance):
    headers = auth_headers(app_instance, make_user('accountant'))
    assert client.get('/approvals/pending', headers=headers).status_code == 403
    assert client.get('/approvals/pending-count', headers=headers).status_code == 403
    assert client.post('/approvals/1/approve', json={}, headers=headers).status_code == 403
    mine = client.get('/approvals/mine', headers=headers)
    assert mine.status_code == 200
    assert mine.get_json()['data'] == []


def test_pending_queue_lists_requester_name(client, app_instance):
    project = make_project()
    requester = make_user('accountant', name='Queue Requester')
    req_id = client.post('/approvals', json={'entity_type': 'expense', 'action': 'create',
                                             'request_data': _expense_payload(project.id)},
                         headers=auth_headers(app_instance, requester)).get_json()['id']
    headers = auth_headers(app_instance, make_user('finance_manager'))
    listed = client.get(f'/approvals?requested_by={requester.id}', headers=headers).get_json()
    assert [r['id'] for r in listed['data']] == [req_id]
    assert listed['data'][0]['requested_by_name'] == 'Queue Requester'
    count = client.get('/approvals/pending-count', headers=headers).get_json()['count']
    assert count >= 1
