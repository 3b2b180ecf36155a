from __future__ import annotations
"""Approval request lifecycle and the executor for approved actions.

A request moves pending -> approved or pending -> rejected exactly once. The
status flip is a conditional UPDATE guarded by ``status = 'pending'`` so two
reviewers racing on the same request cannot both win.
"""
import json
from datetime import datetime
from typing import Any, Dict, Optional

from flask import abort
from sqlalchemy import update
from werkzeug.exceptions import NotFound

from goldtouch import get_db
from goldtouch.models.approval import ApprovalRequest
from goldtouch.services import accounting, invoices

ALREADY_PROCESSED = 'Request already processed'


def serialize_request_data(raw: Any) -> str:
    """Accept a JSON string or an object; always store a JSON object string."""
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            abort(400, description='request_data must be valid JSON')
    else:
        parsed = raw
    if not isinstance(parsed, dict):
        abort(400, description='request_data must be a JSON object')
    return json.dumps(parsed)


def file_request(entity_type: str, action: str, request_data: Any, requested_by: int,
                 entity_id: Optional[int] = None) -> ApprovalRequest:
    if entity_type not in ApprovalRequest.ENTITY_TYPES:
        abort(400, description='entity_type invalid')
    if action not in ApprovalRequest.ACTIONS:
        abort(400, description='action invalid')
    if action != 'create' and not entity_id:
        abort(400, description='entity_id required for this action')
    req = ApprovalRequest(
        entity_type=entity_type,
        entity_id=entity_id or ApprovalRequest.NEW_ENTITY_ID,
        action=action,
        request_data=serialize_request_data(request_data if request_data is not None else {}),
        status=ApprovalRequest.STATUS_PENDING,
        requested_by=requested_by,
    )
    session = get_db()
    session.add(req)
    session.commit()
    return req


def execute(req: ApprovalRequest) -> Dict[str, Any]:
    """Run the deferred action embedded in ``req`` inside the current transaction."""
    try:
        data = json.loads(req.request_data or '{}')
    except ValueError:
        abort(400, description='Stored request_data is not valid JSON')
    if not isinstance(data, dict):
        abort(400, description='Stored request_data is not a JSON object')
    if req.entity_type == 'invoice':
        return _execute_invoice(req, data)
    kind, action, entity_id = req.entity_type, req.action, req.entity_id
    if action == 'create':
        obj = accounting.create_entry(kind, data, req.requested_by)
        return {'entity_type': kind, 'entity_id': obj.id}
    if action == 'update':
        obj = accounting.update_entry(kind, entity_id, data)
        return {'entity_type': kind, 'entity_id': obj.id}
    if action == 'delete':
        accounting.delete_entry(kind, entity_id)
        return {'entity_type': kind, 'entity_id': entity_id, 'deleted': True}
    if action == 'cancel':
        obj = accounting.cancel_entry(kind, entity_id)
        return {'entity_type': kind, 'entity_id': obj.id, 'status': obj.status}
    abort(400, description=f'Unsupported action {action}')


def _execute_invoice(req: ApprovalRequest, data: Dict[str, Any]) -> Dict[str, Any]:
    if req.action == 'create':
        inv = invoices.create_invoice(data, req.requested_by)
    elif req.action == 'update':
        inv = invoices.update_invoice(req.entity_id, data)
    elif req.action == 'delete':
        invoices.delete_invoice(req.entity_id)
        return {'entity_type': 'invoice', 'entity_id': req.entity_id, 'deleted': True}
    elif req.action == 'cancel':
        inv = invoices.cancel_invoice(req.entity_id)
    else:
        abort(400, description=f'Unsupported action {req.action}')
    return {'entity_type': 'invoice', 'entity_id': inv.id, 'status': inv.status}


def get_request(request_id: int) -> ApprovalRequest:
    req = get_db().get(ApprovalRequest, request_id)
    if req is None:
        abort(404, description='Request not found')
    return req


def _close(req: ApprovalRequest, status: str, reviewer_id: int, notes: Optional[str]):
    session = get_db()
    now = datetime.now()
    result = session.execute(
        update(ApprovalRequest)
        .where(ApprovalRequest.id == req.id, ApprovalRequest.status == ApprovalRequest.STATUS_PENDING)
        .values(status=status, reviewed_by=reviewer_id, reviewed_at=now, review_notes=notes)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        abort(400, description=ALREADY_PROCESSED)
    session.commit()
    req.status = status
    req.reviewed_by = reviewer_id
    req.reviewed_at = now
    req.review_notes = notes


def approve(request_id: int, reviewer_id: int, notes: Optional[str] = None) -> Dict[str, Any]:
    req = get_request(request_id)
    if req.status != ApprovalRequest.STATUS_PENDING:
        abort(400, description=ALREADY_PROCESSED)
    try:
        result = execute(req)
    except NotFound as exc:
        get_db().rollback()
        abort(400, description=f'Cannot execute request: {exc.description}')
    _close(req, ApprovalRequest.STATUS_APPROVED, reviewer_id, notes)
    return result


def reject(request_id: int, reviewer_id: int, notes: Optional[str]) -> ApprovalRequest:
    if not notes or not str(notes).strip():
        abort(400, description='Rejection reason required')
    req = get_request(request_id)
    if req.status != ApprovalRequest.STATUS_PENDING:
        abort(400, description=ALREADY_PROCESSED)
    _close(req, ApprovalRequest.STATUS_REJECTED, reviewer_id, str(notes).strip())
    return req
