#!/usr/bin/env python
"""Idempotent bootstrap for the first administrator account.

Usage:
    python backend/scripts/seed_admin.py                  # create admin if missing
    python backend/scripts/seed_admin.py --dry-run        # run logic then rollback (no DB changes)
    python backend/scripts/seed_admin.py --show-users     # print user counts per role afterwards

The e-mail and password come from SEED_ADMIN_EMAIL / SEED_ADMIN_PASSWORD
(defaults: admin@goldentouch.local / ChangeMe123!).
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, func

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from goldtouch import create_app, get_db  # type: ignore
from goldtouch.constants.permissions import ROLE_ADMIN
from goldtouch.models.authz import Base, User
from goldtouch.models import (  # noqa: F401
    accounting, approval, attachment, audit, client, hr, invoice, notification, project,
)


def ensure_schema(session):
    # Lightweight fallback for a fresh database; real deployments run alembic upgrade
    Base.metadata.create_all(session.get_bind())


def ensure_initial_admin(session) -> bool:
    email = os.getenv('SEED_ADMIN_EMAIL', 'admin@goldentouch.local').strip().lower()
    existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing:
        if existing.role != ROLE_ADMIN or not existing.is_active:
            existing.role = ROLE_ADMIN
            existing.is_active = True
            print(f"[INFO] Restored admin role for {email}")
        return False
    user = User(name=os.getenv('SEED_ADMIN_NAME', 'Administrator'), email=email, role=ROLE_ADMIN, is_active=True)
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    session.flush()
    print(f"[INFO] Created initial admin user {email} with temporary password.")
    return True


def print_user_summary(session):
    rows = session.execute(select(User.role, func.count(User.id)).group_by(User.role).order_by(User.role)).all()
    if not rows:
        print("[INFO] No users present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count")
    print('-' * (name_w + 8))
    for role, cnt in rows:
        print(f"{role.ljust(name_w)} | {str(cnt).rjust(5)}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed the initial administrator account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_admin.py\n  dry run: seed_admin.py --dry-run\n  show users: seed_admin.py --show-users\n""")
    )
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--show-users', action='store_true', help='Print user counts per role after seeding')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        ensure_schema(session)
        created = ensure_initial_admin(session)
        if args.show_users:
            print_user_summary(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) Admin would be created: {created}")
        else:
            session.commit()
            print(f"[DONE] Admin created: {created}")


if __name__ == '__main__':
    main()
