from goldtouch import get_db
from goldtouch.models.accounting import Sale
from tests.test_utils_seed import auth_headers, make_client, make_project, make_user


def _create(client, headers, client_id, **extra):
    payload = {
        'client_id': client_id,
        'issue_date': '2024-03-10',
        'tax': 50,
        'discount': 25,
        'items': [
            {'description': 'Design consultation', 'quantity': 2, 'unit_price': 300},
            {'description': 'Site visit', 'quantity': 1, 'unit_price': 150},
        ],
    }
    payload.update(extra)
    return client.post('/invoices', json=payload, headers=headers)


def test_invoice_totals_and_number(client, app_instance):
    headers = auth_headers(app_instance, make_user('finance_manager'))
    resp = _create(client, headers, make_client().id)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['invoice_number'].startswith('INV-')
    assert body['status'] == 'draft'
    assert body['subtotal'] == 750
    assert body['total'] == 775
    assert [i['total'] for i in body['items']] == [600, 150]


def test_quote_uses_quote_prefix(client, app_instance):
    headers = auth_headers(app_instance, make_user('finance_manager'))
    body = _create(client, headers, make_client().id, type='quote').get_json()
    assert body['type'] == 'quote'
    assert body['invoice_number'].startswith('QUO-')


def test_invoice_status_lifecycle(client, app_instance):
    headers = auth_headers(app_instance, make_user('finance_manager'))
    invoice_id = _create(client, headers, make_client().id).get_json()['id']
    bad = client.post(f'/invoices/{invoice_id}/status', json={'status': 'paid'}, headers=headers)
    assert bad.status_code == 400
    assert client.post(f'/invoices/{invoice_id}/status', json={'status': 'sent'}, headers=headers).status_code == 200
    # only drafts are editable
    assert client.put(f'/invoices/{invoice_id}', json={'tax': 0}, headers=headers).status_code == 400
    paid = client.post(f'/invoices/{invoice_id}/status', json={'status': 'paid'}, headers=headers)
    assert paid.get_json()['status'] == 'paid'
    assert client.delete(f'/invoices/{invoice_id}', headers=headers).status_code == 400


def test_invoice_validation(client, app_instance):
    headers = auth_headers(app_instance, make_user('finance_manager'))
    assert client.post('/invoices', json={'issue_date': '2024-01-01'}, headers=headers).status_code == 400
    resp = _create(client, headers, 987654321)
    assert resp.status_code == 400
    assert resp.get_json()['error']['detail'] == 'client_id not found'
    resp = _create(client, headers, make_client().id, discount=10_000)
    assert resp.status_code == 400


def test_accountant_may_create_but_not_edit(client, app_instance):
    headers = auth_headers(app_instance, make_user('accountant'))
    resp = _create(client, headers, make_client().id)
    assert resp.status_code == 201
    invoice_id = resp.get_json()['id']
    assert client.put(f'/invoices/{invoice_id}', json={'tax': 0}, headers=headers).status_code == 403


def test_designer_has_no_invoice_section(client, app_instance):
    resp = client.get('/invoices', headers=auth_headers(app_instance, make_user('designer')))
    assert resp.status_code == 403
    assert resp.get_json()['error']['detail'] == 'Section access denied'


def _sales_for(invoice_id):
    session = get_db()
    session.expire_all()
    return session.query(Sale).filter(Sale.invoice_id == invoice_id).all()


def test_invoice_books_a_linked_sale(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    customer = make_client()
    project = make_project(client_id=customer.id)
    body = _create(client, headers, customer.id, project_id=project.id).get_json()
    sales = _sales_for(body['id'])
    assert len(sales) == 1
    sale = sales[0]
    assert sale.sale_number.startswith('SAL-')
    assert sale.status == 'pending'
    assert sale.amount == body['total'] == 775
    assert sale.client_id == customer.id
    assert sale.project_id == project.id
    assert sale.description == f"Invoice #{body['invoice_number']}"
    assert sale.sale_date.date().isoformat() == '2024-03-10'


def test_linked_sale_follows_invoice(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    invoice_id = _create(client, headers, make_client().id).get_json()['id']
    resp = client.put(f'/invoices/{invoice_id}', json={'items': [{'description': 'Mood board', 'unit_price': 400}]},
                      headers=headers)
    assert resp.status_code == 200
    assert _sales_for(invoice_id)[0].amount == 425
    client.post(f'/invoices/{invoice_id}/status', json={'status': 'sent'}, headers=headers)
    assert _sales_for(invoice_id)[0].status == 'pending'
    client.post(f'/invoices/{invoice_id}/status', json={'status': 'paid'}, headers=headers)
    assert _sales_for(invoice_id)[0].status == 'completed'

    other_id = _create(client, headers, make_client().id).get_json()['id']
    client.post(f'/invoices/{other_id}/status', json={'status': 'cancelled'}, headers=headers)
    assert _sales_for(other_id)[0].status == 'cancelled'


def test_quotes_book_no_sale_and_delete_removes_sale(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    quote_id = _create(client, headers, make_client().id, type='quote').get_json()['id']
    assert _sales_for(quote_id) == []
    invoice_id = _create(client, headers, make_client().id).get_json()['id']
    assert len(_sales_for(invoice_id)) == 1
    assert client.delete(f'/invoices/{invoice_id}', headers=headers).status_code == 200
    assert _sales_for(invoice_id) == []


def test_paid_invoice_is_not_counted_again_as_a_sale(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    customer = make_client()
    project = make_project(client_id=customer.id)
    invoice_id = _create(client, headers, customer.id, project_id=project.id).get_json()['id']
    client.post(f'/invoices/{invoice_id}/status', json={'status': 'sent'}, headers=headers)
    client.post(f'/invoices/{invoice_id}/status', json={'status': 'paid'}, headers=headers)
    summary = client.get(f'/reports/summary?from=2024-03-01&to=2024-03-31&project_id={project.id}',
                         headers=headers).get_json()
    assert summary['paid_invoices_total'] == 775
    assert summary['manual_sales_total'] == 0
    assert summary['net'] == 775
