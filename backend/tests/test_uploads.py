import base64
import os

from sqlalchemy.exc import OperationalError

from goldtouch import MAX_UPLOAD_BYTES, get_db
from goldtouch.models.attachment import Attachment
from goldtouch.services import files as file_store
from goldtouch.services.files import section_for_entity, sniff_matches
from tests.test_utils_seed import auth_headers, make_user

PNG_BYTES = b'\x89PNG\r\n\x1a\n' + b'\x00' * 32


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def _upload(client, headers, **overrides):
    payload = {'entity_type': 'project', 'entity_id': 1, 'file_name': 'plan.png',
               'mime_type': 'image/png', 'file_data': _b64(PNG_BYTES)}
    payload.update(overrides)
    return client.post('/files/upload', json=payload, headers=headers)


def test_upload_list_download_delete(client, app_instance):
    uploader = make_user('designer')
    headers = auth_headers(app_instance, uploader)
    resp = _upload(client, headers, entity_id=4242, file_name='../../floor plan.png')
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['file_size'] == len(PNG_BYTES)
    assert body['uploaded_by'] == uploader.id
    assert '..' not in body['file_key']
    assert body['file_key'].startswith('project/4242/')
    on_disk = os.path.join(app_instance.config['UPLOAD_FOLDER'], body['file_key'])
    assert os.path.exists(on_disk)

    listed = client.get('/files?entity_type=project&entity_id=4242', headers=headers).get_json()['data']
    assert [a['id'] for a in listed] == [body['id']]

    dl = client.get(f"/files/{body['id']}/download", headers=headers)
    assert dl.status_code == 200
    assert dl.data == PNG_BYTES
    assert 'attachment' in dl.headers['Content-Disposition']

    stranger = auth_headers(app_instance, make_user('designer'))
    assert client.delete(f"/files/{body['id']}", headers=stranger).status_code == 403
    assert client.delete(f"/files/{body['id']}", headers=headers).status_code == 200
    assert not os.path.exists(on_disk)
    assert get_db().get(Attachment, body['id']) is None
    assert client.get(f"/files/{body['id']}/download", headers=headers).status_code == 404


def test_admin_can_delete_any_upload(client, app_instance):
    uploaded = _upload(client, auth_headers(app_instance, make_user('designer'))).get_json()
    resp = client.delete(f"/files/{uploaded['id']}", headers=auth_headers(app_instance, make_user('admin')))
    assert resp.status_code == 200


def test_rejected_payloads(client, app_instance):
    headers = auth_headers(app_instance, make_user('designer'))
    exe = _upload(client, headers, mime_type='application/x-msdownload')
    assert exe.status_code == 400
    assert exe.get_json()['error']['detail'] == 'File type not allowed'
    assert _upload(client, headers, file_data='not base64!!').status_code == 400
    mismatch = _upload(client, headers, mime_type='application/pdf')
    assert mismatch.status_code == 400
    assert mismatch.get_json()['error']['detail'] == 'File content does not match its type'
    assert _upload(client, headers, file_name=None).status_code == 400


def test_oversize_upload(client, app_instance, monkeypatch):
    monkeypatch.setitem(app_instance.config, 'MAX_UPLOAD_BYTES', 16)
    resp = _upload(client, auth_headers(app_instance, make_user('designer')))
    assert resp.status_code == 400
    assert 'maximum size' in resp.get_json()['error']['detail']


def test_entity_section_is_enforced(client, app_instance):
    designer = auth_headers(app_instance, make_user('designer'))
    assert _upload(client, designer, entity_type='company_logo').status_code == 403
    assert client.get('/files?entity_type=invoice', headers=designer).status_code == 403
    admin = auth_headers(app_instance, make_user('admin'))
    assert _upload(client, admin, entity_type='company_logo').status_code == 201
    assert client.get('/files', headers=admin).status_code == 400


def test_section_mapping_and_sniffing():
    assert section_for_entity('form_site_visit') == 'forms'
    assert section_for_entity('invoice') == 'invoices'
    assert section_for_entity('project') == 'projects'
    assert section_for_entity('employee') == 'settings'
    assert sniff_matches('image/png', PNG_BYTES)
    assert sniff_matches('application/pdf', b'%PDF-1.7\n')
    assert sniff_matches('text/html', '\ufeff  <html></html>'.encode('utf-8'))
    assert not sniff_matches('text/plain', b'\xff\xfe\x00')
    assert not sniff_matches('image/jpeg', PNG_BYTES)


def test_pdf_bytes_only_accepted_as_pdf(client, app_instance):
    headers = auth_headers(app_instance, make_user('designer'))
    pdf = _b64(b'%PDF-1.4\n%\xe2\xe3\xcf\xd3\n')
    assert _upload(client, headers, mime_type='image/png', file_data=pdf).status_code == 400
    resp = _upload(client, headers, mime_type='application/pdf', file_name='contract.pdf', file_data=pdf)
    assert resp.status_code == 201
    assert resp.get_json()['mime_type'] == 'application/pdf'


class _CommitFails:
    def __init__(self, session):
        self._session = session

    def __getattr__(self, name):
        return getattr(self._session, name)

    def commit(self):
        raise OperationalError('INSERT INTO attachments', {}, Exception('database is locked'))


def test_failed_commit_leaves_no_file_behind(client, app_instance, monkeypatch):
    headers = auth_headers(app_instance, make_user('designer'))
    monkeypatch.setattr(file_store, 'get_db', lambda: _CommitFails(get_db()))
    resp = _upload(client, headers, entity_id=90210)
    assert resp.status_code == 500
    assert resp.get_json()['error']['code'] == 'INTERNAL_SERVER_ERROR'
    folder = os.path.join(app_instance.config['UPLOAD_FOLDER'], 'project', '90210')
    assert os.listdir(folder) == []
    assert get_db().query(Attachment).filter(Attachment.entity_id == 90210).count() == 0


def test_request_body_limit_covers_base64_uploads(client, app_instance, monkeypatch):
    assert app_instance.config['MAX_CONTENT_LENGTH'] > MAX_UPLOAD_BYTES * 4 // 3
    monkeypatch.setitem(app_instance.config, 'MAX_CONTENT_LENGTH', 256)
    resp = _upload(client, auth_headers(app_instance, make_user('designer')), file_data=_b64(PNG_BYTES * 20))
    assert resp.status_code == 413
    assert resp.get_json()['error']['status'] == 413
