from __future__ import annotations
from typing import Optional
from flask import current_app, has_request_context, request
from goldtouch import get_db
from goldtouch.models.audit import AuditLog


def client_ip() -> Optional[str]:
    """Caller IP: first X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    if not has_request_context():
        return None
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        first = forwarded.split(',')[0].strip()
        if first:
            return first
    real_ip = request.headers.get('X-Real-IP')
    if real_ip:
        return real_ip.strip()
    return request.remote_addr


def log_audit(
    user_id: Optional[int],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    details: Optional[str] = None,
) -> Optional[AuditLog]:
    """Append one audit row and commit it.

    Best effort: a storage failure is logged and rolled back, never raised, so an
    audit problem cannot fail the operation being audited.
    """
    session = get_db()
    try:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=int(entity_id) if entity_id is not None else None,
            details=details,
            ip_address=client_ip(),
        )
        session.add(entry)
        session.commit()
        return entry
    except Exception:
        session.rollback()
        current_app.logger.warning('Audit insert failed for action %s', action, exc_info=True)
        return None
