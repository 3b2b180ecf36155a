from __future__ import annotations
"""Audit logging decorator so mutating views do not repeat log_audit() calls.

Usage:

@audit_log('CREATE_CLIENT', entity_type='client', entity_id_key='id')
def create_client():
    ... return _client_json(client), 201

@audit_log('UPDATE_USER_ROLE', entity_type='user', entity_id_arg='user_id',
           details_builder=lambda data, kwargs: f"role -> {data.get('role')}")
def update_role(user_id): ...

Parameters:
  action: audit action code (e.g. CREATE_CLIENT)
  entity_type: entity label stored on the row (client, project, invoice, ...)
  entity_id_key: key in the returned JSON object whose value becomes entity_id
  entity_id_arg: view keyword argument used when entity_id_key is absent
  details_builder: callable(data, kwargs) -> str for the free-text details column

Views return dict, (dict, status) or (dict, status, headers); only the payload is
inspected and the original return value is passed through untouched. Nothing is
logged when the view raises.
"""

from functools import wraps
from typing import Any, Callable, Optional

from flask import g
from goldtouch.services.audit import log_audit


def _extract_payload(rv: Any):
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def audit_log(
    action: str,
    *,
    entity_type: Optional[str] = None,
    entity_id_key: Optional[str] = 'id',
    entity_id_arg: Optional[str] = None,
    details_builder: Optional[Callable[[dict, dict], Optional[str]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and isinstance(data.get(entity_id_key), int):
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            details = None
            if details_builder:
                details = details_builder(data, kwargs)
            actor = g.get('actor')
            log_audit(actor.user_id if actor else None, action, entity_type, entity_id, details)
            return rv
        return wrapper
    return outer
