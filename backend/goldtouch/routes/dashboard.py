from datetime import date, datetime
from flask import Blueprint, abort, request
from sqlalchemy import func, select
from goldtouch import get_db
from goldtouch.decorators.auth import require_section
from goldtouch.models.accounting import Expense
from goldtouch.models.client import Client
from goldtouch.models.invoice import Invoice
from goldtouch.models.project import Project, ProjectTask
from goldtouch.services.policy import can_view_financials, current_actor
from goldtouch.services.reports import bucket_key, build_buckets
from goldtouch.utils.validation import parse_int

dashboard_bp = Blueprint('dashboard', __name__)

DEFAULT_MONTHS = 6
MAX_MONTHS = 24


def _count(model) -> int:
    return get_db().execute(select(func.count(model.id))).scalar_one()


@dashboard_bp.get('/stats')
@require_section('dashboard')
def stats():
    return {
        'total_clients': _count(Client),
        'total_projects': _count(Project),
        'total_invoices': _count(Invoice),
        'total_tasks': _count(ProjectTask),
    }


@dashboard_bp.get('/projects-by-status')
@require_section('dashboard')
def projects_by_status():
    counts = dict(get_db().execute(select(Project.status, func.count(Project.id)).group_by(Project.status)).all())
    return {status: counts.get(status, 0) for status in Project.ALL_STATUSES}


@dashboard_bp.get('/monthly-revenue')
@require_section('dashboard')
def monthly_revenue():
    """Invoice totals and expenses recorded per month, oldest month first."""
    if not can_view_financials(current_actor()):
        abort(403, description='Financial figures not permitted')
    months = parse_int(request.args.get('months'), 'months', minimum=1) or DEFAULT_MONTHS
    if months > MAX_MONTHS:
        abort(400, description=f'months must be <= {MAX_MONTHS}')
    today = date.today()
    first = today.year * 12 + today.month - months
    start = datetime(first // 12, first % 12 + 1, 1)
    acc = {key: {'revenue': 0, 'expenses': 0} for key in build_buckets(start.date(), today, 'month')}
    session = get_db()
    invoices = session.execute(
        select(Invoice.created_at, Invoice.total).where(
            Invoice.created_at >= start,
            Invoice.type == Invoice.TYPE_INVOICE,
            Invoice.status != Invoice.STATUS_CANCELLED,
        )
    ).all()
    for created, total in invoices:
        key = bucket_key(created, 'month')
        if key in acc:
            acc[key]['revenue'] += total or 0
    expenses = session.execute(
        select(Expense.created_at, Expense.amount).where(
            Expense.created_at >= start,
            Expense.status != Expense.STATUS_CANCELLED,
        )
    ).all()
    for created, amount in expenses:
        key = bucket_key(created, 'month')
        if key in acc:
            acc[key]['expenses'] += amount or 0
    return {'data': [dict(month=key, **values) for key, values in acc.items()]}
