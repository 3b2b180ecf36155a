from tests.test_utils_seed import auth_headers, make_client, make_project, make_user


def test_direct_changes_require_auto_approve(client, app_instance):
    project = make_project()
    headers = auth_headers(app_instance, make_user('accountant'))
    # accountants can read the ledgers
    assert client.get('/accounting/expenses', headers=headers).status_code == 200
    resp = client.post('/accounting/expenses', json={
        'project_id': project.id, 'category': 'materials', 'description': 'Tiles', 'amount': 400,
        'expense_date': '2024-02-01',
    }, headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'Direct changes require an approval request'


def test_finance_manager_expense_crud(client, app_instance):
    project = make_project()
    headers = auth_headers(app_instance, make_user('finance_manager'))
    resp = client.post('/accounting/expenses', json={
        'project_id': project.id, 'category': 'materials', 'description': 'Tiles', 'amount': 400,
        'expense_date': '2024-02-01',
    }, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    expense = resp.get_json()
    assert expense['status'] == 'active'
    upd = client.put(f"/accounting/expenses/{expense['id']}", json={'amount': 450}, headers=headers)
    assert upd.get_json()['amount'] == 450
    cancelled = client.post(f"/accounting/expenses/{expense['id']}/cancel", headers=headers)
    assert cancelled.get_json()['status'] == 'cancelled'
    again = client.post(f"/accounting/expenses/{expense['id']}/cancel", headers=headers)
    assert again.status_code == 400
    summary = client.get(f'/accounting/expenses/summary?project_id={project.id}', headers=headers).get_json()
    assert summary['by_status']['cancelled'] == {'count': 1, 'total': 450}
    assert summary['total'] == 0
    assert client.delete(f"/accounting/expenses/{expense['id']}", headers=headers).status_code == 200
    assert client.get(f"/accounting/expenses/{expense['id']}", headers=headers).status_code == 404


def test_ledger_validation(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    missing = client.post('/accounting/purchases', json={'supplier_name': 'Stone Co'}, headers=headers)
    assert missing.status_code == 400
    negative = client.post('/accounting/purchases', json={
        'supplier_name': 'Stone Co', 'description': 'Marble', 'amount': -5, 'purchase_date': '2024-01-01',
    }, headers=headers)
    assert negative.status_code == 400
    ghost = client.post('/accounting/boq', json={
        'project_id': 987654321, 'item_name': 'Gypsum', 'quantity': 3, 'unit_price': 10,
    }, headers=headers)
    assert ghost.status_code == 400
    assert ghost.get_json()['error']['detail'] == 'project_id not found'


def test_boq_total_and_project_financials(client, app_instance):
    project = make_project()
    headers = auth_headers(app_instance, make_user('admin'))
    boq = client.post('/accounting/boq', json={
        'project_id': project.id, 'item_name': 'Gypsum board', 'quantity': 12, 'unit_price': 35,
    }, headers=headers).get_json()
    assert boq['total'] == 420
    inst = client.post('/accounting/installments', json={
        'project_id': project.id, 'amount': 1000, 'due_date': '2024-05-01',
    }, headers=headers).get_json()
    assert inst['installment_number'] == 1
    assert inst['status'] == 'pending'
    paid = client.post(f"/accounting/installments/{inst['id']}/mark-paid", json={}, headers=headers)
    assert paid.status_code == 200
    assert paid.get_json()['status'] == 'paid'
    assert paid.get_json()['paid_date'] is not None
    assert client.post(f"/accounting/installments/{inst['id']}/mark-paid", json={}, headers=headers).status_code == 400
    # paid rows are locked
    assert client.delete(f"/accounting/installments/{inst['id']}", headers=headers).status_code == 400
    fin = client.get(f'/accounting/projects/{project.id}/financials', headers=headers).get_json()
    assert fin['boq_total'] == 420
    assert fin['paid_installments_total'] == 1000
    assert fin['balance'] == 1000
    assert client.get('/accounting/projects/987654321/financials', headers=headers).status_code == 404


def test_sale_number_and_filters(client, app_instance):
    customer = make_client()
    headers = auth_headers(app_instance, make_user('finance_manager'))
    sale = client.post('/accounting/sales', json={
        'client_id': customer.id, 'description': 'Furniture package', 'amount': 2500, 'sale_date': '2024-04-02',
        'payment_method': 'bank_transfer',
    }, headers=headers).get_json()
    assert sale['sale_number'].startswith('SAL-')
    listed = client.get(f'/accounting/sales?client_id={customer.id}', headers=headers).get_json()
    assert [s['id'] for s in listed['data']] == [sale['id']]
    assert client.get('/accounting/sales?status=bogus', headers=headers).status_code == 400
    bad_method = client.post('/accounting/sales', json={
        'client_id': customer.id, 'description': 'x', 'amount': 1, 'sale_date': '2024-04-02', 'payment_method': 'gold',
    }, headers=headers)
    assert bad_method.status_code == 400


def test_designer_has_no_accounting_section(client, app_instance):
    resp = client.get('/accounting/overview', headers=auth_headers(app_instance, make_user('designer')))
    assert resp.status_code == 403
