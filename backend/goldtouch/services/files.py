from __future__ import annotations
"""Attachment storage: MIME allow-list, payload checks and on-disk layout.

Files live under ``UPLOAD_FOLDER/<entity_type>/<entity_id>/`` and the
attachments row stores the path relative to ``UPLOAD_FOLDER``.
"""
import base64
import binascii
import os
import uuid
from typing import Optional

from flask import abort, current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename

from goldtouch import get_db
from goldtouch.models.attachment import Attachment

OOXML_TYPES = (
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'application/vnd.openxmlformats-officedocument.presentationml.presentation',
)
ALLOWED_MIME = frozenset((
    'image/png', 'image/jpeg', 'image/webp', 'application/pdf',
    'text/html', 'text/plain', 'text/csv',
) + OOXML_TYPES)


def section_for_entity(entity_type: str) -> str:
    """Section whose access an upload for ``entity_type`` requires."""
    if entity_type.startswith('form'):
        return 'forms'
    if entity_type == 'invoice':
        return 'invoices'
    if entity_type == 'project':
        return 'projects'
    return 'settings'


def _utf8(data: bytes) -> Optional[str]:
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return None


def sniff_matches(mime_type: str, data: bytes) -> bool:
    """True when the leading bytes agree with the declared MIME type."""
    if mime_type == 'image/png':
        return data.startswith(b'\x89PNG')
    if mime_type == 'image/jpeg':
        return data.startswith(b'\xff\xd8\xff')
    if mime_type == 'image/webp':
        return len(data) >= 12 and data[:4] == b'RIFF' and data[8:12] == b'WEBP'
    if mime_type == 'application/pdf':
        return data.startswith(b'%PDF')
    if mime_type in OOXML_TYPES:
        return data.startswith(b'PK\x03\x04')
    text = _utf8(data)
    if text is None:
        return False
    if mime_type == 'text/html':
        return text.lstrip('\ufeff').lstrip().startswith('<')
    if mime_type in ('text/plain', 'text/csv'):
        return '\x00' not in text
    return False


def decode_payload(file_data: str) -> bytes:
    if not isinstance(file_data, str) or not file_data:
        abort(400, description='file_data required')
    if file_data.startswith('data:') and ',' in file_data:
        file_data = file_data.split(',', 1)[1]
    try:
        return base64.b64decode(file_data, validate=True)
    except (binascii.Error, ValueError):
        abort(400, description='file_data is not valid base64')


def check_payload(mime_type: str, data: bytes):
    if mime_type not in ALLOWED_MIME:
        abort(400, description='File type not allowed')
    limit = current_app.config['MAX_UPLOAD_BYTES']
    if len(data) > limit:
        abort(400, description=f'File exceeds maximum size of {limit} bytes')
    if not sniff_matches(mime_type, data):
        abort(400, description='File content does not match its type')


def absolute_path(file_key: str) -> str:
    root = os.path.abspath(current_app.config['UPLOAD_FOLDER'])
    path = os.path.abspath(os.path.join(root, file_key))
    if os.path.commonpath([root, path]) != root:
        abort(404, description='File not found')
    return path


def store(entity_type: str, entity_id: int, file_name: str, mime_type: str, data: bytes,
          uploaded_by: int) -> Attachment:
    """Write ``data`` to disk and insert its attachments row (committed)."""
    safe_type = secure_filename(entity_type) or 'misc'
    safe_name = secure_filename(file_name) or 'file'
    rel_dir = os.path.join(safe_type, str(entity_id))
    folder = os.path.join(current_app.config['UPLOAD_FOLDER'], rel_dir)
    os.makedirs(folder, exist_ok=True)
    stored_name = f'{uuid.uuid4().hex[:8]}_{safe_name}'
    path = os.path.join(folder, stored_name)
    with open(path, 'wb') as fh:
        fh.write(data)
    attachment = Attachment(
        entity_type=entity_type,
        entity_id=entity_id,
        file_name=file_name,
        file_key=os.path.join(rel_dir, stored_name).replace(os.sep, '/'),
        file_size=len(data),
        mime_type=mime_type,
        uploaded_by=uploaded_by,
    )
    session = get_db()
    try:
        session.add(attachment)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        if os.path.exists(path):
            os.remove(path)
        raise
    current_app.logger.info('Stored attachment %s (%d bytes) for %s/%s', attachment.id, len(data),
                            entity_type, entity_id)
    return attachment


def remove(attachment: Attachment):
    path = absolute_path(attachment.file_key)
    session = get_db()
    session.delete(attachment)
    session.commit()
    if os.path.exists(path):
        os.remove(path)
