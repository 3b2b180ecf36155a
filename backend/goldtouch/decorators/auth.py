from functools import wraps
from flask import abort
from goldtouch.services.policy import current_actor, ensure_perm


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_actor()
        return fn(*args, **kwargs)
    return wrapper


def require_section(section: str):
    """Resolve the actor and run the section check before the view body."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ensure_perm(current_actor(), section)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_roles(*roles: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_actor().role not in roles:
                abort(403, description='Role not permitted')
            return fn(*args, **kwargs)
        return wrapper
    return outer
