from tests.test_utils_seed import auth_headers, make_user


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert body['error']['code'] == 'NOT_FOUND'
    assert 'detail' in body['error']


def test_missing_entity_uses_envelope(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    resp = client.get('/clients/987654321', headers=headers)
    assert resp.status_code == 404
    assert resp.get_json()['error']['detail'] == 'Client not found'


def test_non_object_body_is_bad_request(client, app_instance):
    headers = auth_headers(app_instance, make_user('admin'))
    resp = client.post('/clients', json=[1, 2, 3], headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == 'BAD_REQUEST'


def test_internal_error_shape(client, app_instance, monkeypatch):
    headers = auth_headers(app_instance, make_user('admin'))
    import goldtouch.routes.clients as clients_mod

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

        def rollback(self):
            pass

    monkeypatch.setattr(clients_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/clients', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['code'] == 'INTERNAL_SERVER_ERROR'
    assert body['error']['title'] == 'Internal Server Error'
    assert 'explode' not in body['error']['detail']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}
