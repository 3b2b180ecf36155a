import json
from flask import Blueprint, request
from sqlalchemy import func
from goldtouch import get_db
from goldtouch.models.approval import ApprovalRequest
from goldtouch.models.authz import User
from goldtouch.constants.permissions import REVIEWER_ROLES
from goldtouch.decorators.auth import login_required, require_roles
from goldtouch.services import approvals as approval_service
from goldtouch.services.audit import log_audit
from goldtouch.services.notifications import create_notification, create_notification_for_roles
from goldtouch.services.policy import current_actor
from goldtouch.utils.filters import apply_filters, eq
from goldtouch.utils.listing import paginated
from goldtouch.utils.serialize import row_json
from goldtouch.utils.validation import json_body, parse_int, require_fields

approvals_bp = Blueprint('approvals', __name__)


def _request_json(req: ApprovalRequest, requester_name=None):
    out = row_json(req)
    try:
        out['request_data'] = json.loads(req.request_data or '{}')
    except ValueError:
        out['request_data'] = req.request_data
    if requester_name is not None:
        out['requested_by_name'] = requester_name
    return out


def _with_names(q):
    return q.add_columns(User.name).outerjoin(User, User.id == ApprovalRequest.requested_by)


@approvals_bp.post('')
@login_required
def create_request():
    actor = current_actor()
    data = json_body()
    require_fields(data, 'entity_type', 'action')
    req = approval_service.file_request(
        data['entity_type'],
        data['action'],
        data.get('request_data'),
        actor.user_id,
        parse_int(data.get('entity_id'), 'entity_id', minimum=0),
    )
    log_audit(actor.user_id, 'CREATE_APPROVAL_REQUEST', req.entity_type, req.entity_id or None,
              f'{req.action} request #{req.id}')
    create_notification_for_roles(REVIEWER_ROLES, 'New approval request', exclude_user_id=actor.user_id,
                                  from_user_id=actor.user_id, type='action',
                                  message=f'{actor.name} requested {req.action} on {req.entity_type}',
                                  link='/approvals', entity_type='approval_request', entity_id=req.id)
    return _request_json(req), 201


@approvals_bp.get('/pending')
@require_roles(*REVIEWER_ROLES)
def list_pending():
    q = _with_names(get_db().query(ApprovalRequest)).filter(ApprovalRequest.status == ApprovalRequest.STATUS_PENDING)
    return paginated(q.order_by(ApprovalRequest.id.asc()), lambda row: _request_json(row[0], row[1]))


@approvals_bp.get('')
@require_roles(*REVIEWER_ROLES)
def list_requests():
    q = _with_names(get_db().query(ApprovalRequest))
    q = apply_filters(q, {
        'status': eq(ApprovalRequest.status, allowed=ApprovalRequest.ALL_STATUSES),
        'entity_type': eq(ApprovalRequest.entity_type, allowed=ApprovalRequest.ENTITY_TYPES),
        'requested_by': eq(ApprovalRequest.requested_by, coerce=int),
    }, request.args)
    return paginated(q.order_by(ApprovalRequest.id.desc()), lambda row: _request_json(row[0], row[1]))


@approvals_bp.get('/mine')
@login_required
def my_requests():
    q = get_db().query(ApprovalRequest).filter(ApprovalRequest.requested_by == current_actor().user_id)
    q = apply_filters(q, {'status': eq(ApprovalRequest.status, allowed=ApprovalRequest.ALL_STATUSES)}, request.args)
    return paginated(q.order_by(ApprovalRequest.id.desc()), _request_json)


@approvals_bp.get('/pending-count')
@require_roles(*REVIEWER_ROLES)
def pending_count():
    count = get_db().query(func.count(ApprovalRequest.id)) \
        .filter(ApprovalRequest.status == ApprovalRequest.STATUS_PENDING).scalar()
    return {'count': int(count or 0)}


@approvals_bp.post('/<int:request_id>/approve')
@require_roles(*REVIEWER_ROLES)
def approve_request(request_id: int):
    actor = current_actor()
    notes = json_body().get('notes')
    result = approval_service.approve(request_id, actor.user_id, notes)
    req = approval_service.get_request(request_id)
    log_audit(actor.user_id, 'APPROVE_REQUEST', req.entity_type, result.get('entity_id') or None,
              f'request #{req.id} {req.action}')
    create_notification(req.requested_by, 'Your request was approved', from_user_id=actor.user_id, type='success',
                        message=notes or f'{req.action} {req.entity_type}', link='/approvals',
                        entity_type='approval_request', entity_id=req.id)
    return {'request': _request_json(req), 'result': result}


@approvals_bp.post('/<int:request_id>/reject')
@require_roles(*REVIEWER_ROLES)
def reject_request(request_id: int):
    actor = current_actor()
    req = approval_service.reject(request_id, actor.user_id, json_body().get('notes'))
    log_audit(actor.user_id, 'REJECT_REQUEST', req.entity_type, req.entity_id or None,
              f'request #{req.id}: {req.review_notes}')
    create_notification(req.requested_by, 'Your request was rejected', from_user_id=actor.user_id, type='warning',
                        message=req.review_notes, link='/approvals', entity_type='approval_request',
                        entity_id=req.id)
    return _request_json(req)
