from flask import Blueprint, request, abort, send_file
from goldtouch import get_db
from goldtouch.models.attachment import Attachment
from goldtouch.constants.permissions import ROLE_ADMIN
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import login_required
from goldtouch.services import files as file_store
from goldtouch.services.policy import current_actor, ensure_perm
from goldtouch.utils.serialize import row_json
from goldtouch.utils.validation import json_body, parse_int, require_fields

files_bp = Blueprint('files', __name__)


def _get_attachment(attachment_id: int) -> Attachment:
    row = get_db().get(Attachment, attachment_id)
    if row is None:
        abort(404, description='File not found')
    return row


@files_bp.post('/upload')
@login_required
@audit_log('UPLOAD_FILE', entity_type='attachment', details_builder=lambda d, kw: d.get('file_name'))
def upload():
    actor = current_actor()
    data = json_body()
    require_fields(data, 'entity_type', 'entity_id', 'file_name', 'file_data', 'mime_type')
    mime_type = str(data['mime_type']).strip().lower()
    if mime_type not in file_store.ALLOWED_MIME:
        abort(400, description='File type not allowed')
    entity_type = str(data['entity_type']).strip()
    ensure_perm(actor, file_store.section_for_entity(entity_type))
    entity_id = parse_int(data['entity_id'], 'entity_id', required=True, minimum=0)
    payload = file_store.decode_payload(data['file_data'])
    file_store.check_payload(mime_type, payload)
    attachment = file_store.store(entity_type, entity_id, str(data['file_name']), mime_type, payload, actor.user_id)
    return row_json(attachment), 201


@files_bp.get('')
@login_required
def list_files():
    actor = current_actor()
    entity_type = request.args.get('entity_type')
    if not entity_type:
        abort(400, description='entity_type required')
    ensure_perm(actor, file_store.section_for_entity(entity_type))
    q = get_db().query(Attachment).filter(Attachment.entity_type == entity_type)
    entity_id = parse_int(request.args.get('entity_id'), 'entity_id')
    if entity_id is not None:
        q = q.filter(Attachment.entity_id == entity_id)
    return {'data': [row_json(a) for a in q.order_by(Attachment.id.desc()).all()]}


@files_bp.get('/<int:attachment_id>/download')
@login_required
def download(attachment_id: int):
    row = _get_attachment(attachment_id)
    ensure_perm(current_actor(), file_store.section_for_entity(row.entity_type))
    path = file_store.absolute_path(row.file_key)
    try:
        return send_file(path, mimetype=row.mime_type, as_attachment=True, download_name=row.file_name)
    except FileNotFoundError:
        abort(404, description='File not found')


@files_bp.delete('/<int:attachment_id>')
@login_required
@audit_log('DELETE_FILE', entity_type='attachment', entity_id_arg='attachment_id')
def delete_file(attachment_id: int):
    actor = current_actor()
    row = _get_attachment(attachment_id)
    if row.uploaded_by != actor.user_id and actor.role != ROLE_ADMIN:
        abort(403, description='Only the uploader can delete this file')
    file_store.remove(row)
    return {'success': True}
