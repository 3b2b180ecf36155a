from __future__ import annotations
from typing import Iterable, Optional
from flask import current_app
from sqlalchemy import select
from goldtouch import get_db
from goldtouch.models.authz import User
from goldtouch.models.notification import Notification


def _build(user_id: int, title: str, *, from_user_id: Optional[int] = None, type: str = 'info',
           message: Optional[str] = None, link: Optional[str] = None, entity_type: Optional[str] = None,
           entity_id: Optional[int] = None) -> Notification:
    if type not in Notification.ALL_TYPES:
        type = 'info'
    return Notification(
        user_id=user_id,
        from_user_id=from_user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        entity_type=entity_type,
        entity_id=entity_id,
        is_read=False,
    )


def create_notification(user_id: int, title: str, **kwargs) -> Optional[Notification]:
    """Insert one notification for ``user_id``. Failures are logged and swallowed."""
    session = get_db()
    try:
        note = _build(user_id, title, **kwargs)
        session.add(note)
        session.commit()
        return note
    except Exception:
        session.rollback()
        current_app.logger.warning('Notification insert failed for user %s', user_id, exc_info=True)
        return None


def create_notification_for_roles(roles: Iterable[str], title: str, *, exclude_user_id: Optional[int] = None,
                                  **kwargs) -> int:
    """Fan out one row per active user holding any of ``roles``; returns the number written."""
    session = get_db()
    try:
        recipients = session.execute(
            select(User.id).where(User.role.in_(list(roles)), User.is_active.is_(True)).order_by(User.id)
        ).scalars().all()
        count = 0
        for uid in recipients:
            if exclude_user_id is not None and uid == exclude_user_id:
                continue
            session.add(_build(uid, title, **kwargs))
            count += 1
        session.commit()
        return count
    except Exception:
        session.rollback()
        current_app.logger.warning('Role notification fan-out failed for %s', list(roles), exc_info=True)
        return 0
