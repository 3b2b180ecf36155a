from __future__ import annotations
"""Financial reports: range summary, bucketed time series and status breakdowns.

All sums are integers. Rows are bucketed in Python from their date column, so
``summary`` and ``timeseries`` see exactly the same rows for the same range and
filters, and the summary net always equals the sum of the bucket nets.
"""
import csv
import io
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from flask import abort

from goldtouch import get_db
from goldtouch.models.accounting import Expense, Installment, Purchase, Sale
from goldtouch.models.invoice import Invoice
from goldtouch.utils.validation import parse_date, parse_int

GRANULARITIES = ('day', 'month')
EPOCH = date(1970, 1, 1)
CSV_BOM = '\ufeff'
# upper bound on buckets per series (ten years of days)
MAX_BUCKETS = 3660


@dataclass(frozen=True)
class Source:
    key: str
    model: type
    date_attr: str
    amount_attr: str
    statuses: Tuple[str, ...]
    # statuses counted when the caller gives no status filter
    default_statuses: Tuple[str, ...]
    filter_param: str
    csv_prefix: str
    has_client: bool = False

    @property
    def date_col(self):
        return getattr(self.model, self.date_attr)

    @property
    def amount_col(self):
        return getattr(self.model, self.amount_attr)


def _not_cancelled(statuses: Iterable[str]) -> Tuple[str, ...]:
    return tuple(s for s in statuses if s != 'cancelled')


SOURCES: Dict[str, Source] = {
    'invoices': Source('invoices', Invoice, 'issue_date', 'total', Invoice.ALL_STATUSES,
                       (Invoice.STATUS_PAID,), 'invoice_status', 'inv', has_client=True),
    'purchases': Source('purchases', Purchase, 'purchase_date', 'amount', Purchase.ALL_STATUSES,
                        (Purchase.STATUS_COMPLETED,), 'purchase_status', 'pur'),
    'expenses': Source('expenses', Expense, 'expense_date', 'amount', Expense.ALL_STATUSES,
                       _not_cancelled(Expense.ALL_STATUSES), 'expense_status', 'exp'),
    'installments': Source('installments', Installment, 'created_at', 'amount', Installment.ALL_STATUSES,
                           (Installment.STATUS_PAID,), 'installment_status', 'inst'),
    'sales': Source('sales', Sale, 'sale_date', 'amount', Sale.ALL_STATUSES,
                    (Sale.STATUS_COMPLETED,), 'sale_status', 'sale', has_client=True),
}
REVENUE = ('invoices', 'installments', 'sales')
COSTS = ('purchases', 'expenses')


@dataclass(frozen=True)
class ReportFilters:
    client_id: Optional[int] = None
    project_id: Optional[int] = None
    # source key -> explicit statuses; a present key replaces the default rule
    statuses: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def counted(self, source: Source) -> Tuple[str, ...]:
        return self.statuses.get(source.key) or source.default_statuses

    def listed(self, source: Source) -> Tuple[str, ...]:
        return self.statuses.get(source.key) or source.statuses


def filters_from_args(args) -> ReportFilters:
    """Build filters from request args; status params may repeat."""
    statuses: Dict[str, Tuple[str, ...]] = {}
    for source in SOURCES.values():
        values = [v.strip() for raw in args.getlist(source.filter_param) for v in raw.split(',') if v.strip()]
        if any(v not in source.statuses for v in values):
            abort(400, description=f'{source.filter_param} invalid')
        if values:
            statuses[source.key] = tuple(dict.fromkeys(values))
    return ReportFilters(
        client_id=parse_int(args.get('client_id'), 'client_id'),
        project_id=parse_int(args.get('project_id'), 'project_id'),
        statuses=statuses,
    )


def resolve_range(from_raw: Any, to_raw: Any, default_from: Optional[date] = None,
                  default_to: Optional[date] = None) -> Tuple[date, date]:
    start = parse_date(from_raw, 'from')
    end = parse_date(to_raw, 'to')
    start_day = start.date() if start else default_from
    end_day = end.date() if end else default_to
    if start_day is None:
        abort(400, description='from required')
    if end_day is None:
        abort(400, description='to required')
    if start_day > end_day:
        abort(400, description='from must not be after to')
    if end_day >= date.max:
        abort(400, description='to out of range')
    return start_day, end_day


def validate_granularity(granularity: Optional[str], default: str = 'day') -> str:
    value = granularity or default
    if value not in GRANULARITIES:
        abort(400, description='granularity invalid')
    return value


def bucket_key(value: datetime, granularity: str) -> str:
    if granularity == 'month':
        return f'{value.year:04d}-{value.month:02d}'
    return f'{value.year:04d}-{value.month:02d}-{value.day:02d}'


def bucket_count(start: date, end: date, granularity: str) -> int:
    if granularity == 'month':
        return (end.year - start.year) * 12 + end.month - start.month + 1
    return (end - start).days + 1


def build_buckets(start: date, end: date, granularity: str) -> List[str]:
    """Every bucket key between ``start`` and ``end`` inclusive, in order."""
    if bucket_count(start, end, granularity) > MAX_BUCKETS:
        abort(400, description=f'Range too large: at most {MAX_BUCKETS} {granularity} buckets')
    keys: List[str] = []
    if granularity == 'day':
        cursor = start
        while cursor <= end:
            keys.append(bucket_key(cursor, 'day'))
            cursor += timedelta(days=1)
        return keys
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append(f'{year:04d}-{month:02d}')
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return keys


def _rows(source: Source, start: date, end: date, filters: ReportFilters,
          statuses: Optional[Iterable[str]] = None) -> List[Tuple[datetime, str, int]]:
    model = source.model
    q = get_db().query(source.date_col, model.status, source.amount_col).filter(
        source.date_col >= datetime(start.year, start.month, start.day),
        source.date_col < datetime(end.year, end.month, end.day) + timedelta(days=1),
    )
    if model is Invoice:
        q = q.filter(Invoice.type == Invoice.TYPE_INVOICE)
    if model is Sale:
        # invoice-generated sales are already counted through their invoice
        q = q.filter(Sale.invoice_id.is_(None))
    if statuses is not None:
        q = q.filter(model.status.in_(list(statuses)))
    if filters.project_id is not None:
        q = q.filter(model.project_id == filters.project_id)
    if filters.client_id is not None and source.has_client:
        q = q.filter(model.client_id == filters.client_id)
    return [(d, s, int(a or 0)) for d, s, a in q.all() if d is not None]


def _total(source: Source, start: date, end: date, filters: ReportFilters, statuses: Iterable[str]) -> int:
    return sum(amount for _, _, amount in _rows(source, start, end, filters, statuses))


def summary(start: Optional[date] = None, end: Optional[date] = None,
            filters: Optional[ReportFilters] = None) -> Dict[str, int]:
    filters = filters or ReportFilters()
    start = start or EPOCH
    end = end or date.today()
    inv, inst = SOURCES['invoices'], SOURCES['installments']
    totals = {key: _total(SOURCES[key], start, end, filters, filters.counted(SOURCES[key])) for key in SOURCES}
    net = sum(totals[k] for k in REVENUE) - sum(totals[k] for k in COSTS)
    return {
        'invoices_total': _total(inv, start, end, filters,
                                 filters.statuses.get('invoices') or _not_cancelled(inv.statuses)),
        'paid_invoices_total': totals['invoices'],
        'purchases_total': totals['purchases'],
        'expenses_total': totals['expenses'],
        'installments_total': _total(inst, start, end, filters,
                                     filters.statuses.get('installments') or _not_cancelled(inst.statuses)),
        'manual_sales_total': totals['sales'],
        'net': net,
    }


def timeseries(start: date, end: date, granularity: str = 'day',
               filters: Optional[ReportFilters] = None) -> List[Dict[str, Any]]:
    filters = filters or ReportFilters()
    keys = build_buckets(start, end, granularity)
    acc = {k: {name: 0 for name in SOURCES} for k in keys}
    for name, source in SOURCES.items():
        for when, _, amount in _rows(source, start, end, filters, filters.counted(source)):
            key = bucket_key(when, granularity)
            if key in acc:
                acc[key][name] += amount
    out = []
    for key in keys:
        b = acc[key]
        out.append({
            'date_key': key,
            'invoices': b['invoices'],
            'installments': b['installments'],
            'expenses': b['expenses'],
            'purchases': b['purchases'],
            'sales': b['sales'],
            'net': sum(b[k] for k in REVENUE) - sum(b[k] for k in COSTS),
        })
    return out


def timeseries_breakdown(start: date, end: date, granularity: str = 'day',
                         filters: Optional[ReportFilters] = None) -> List[Dict[str, Any]]:
    """Per bucket, per source: ``{status: amount}`` for every listed status."""
    filters = filters or ReportFilters()
    keys = build_buckets(start, end, granularity)
    listed = {name: filters.listed(source) for name, source in SOURCES.items()}
    acc = {k: {name: {s: 0 for s in listed[name]} for name in SOURCES} for k in keys}
    for name, source in SOURCES.items():
        for when, status, amount in _rows(source, start, end, filters, listed[name]):
            key = bucket_key(when, granularity)
            if key in acc:
                acc[key][name][status] += amount
    return [dict(date_key=key, **acc[key]) for key in keys]


def _csv_text(header: List[str], rows: Iterable[List[Any]]) -> str:
    output = io.StringIO()
    output.write(CSV_BOM)
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return output.getvalue()


def timeseries_csv(buckets: List[Dict[str, Any]]) -> str:
    return _csv_text(
        ['date', 'invoices', 'installments', 'expenses', 'net'],
        ([b['date_key'], b['invoices'], b['installments'], b['expenses'], b['net']] for b in buckets),
    )


def breakdown_csv(buckets: List[Dict[str, Any]], filters: Optional[ReportFilters] = None) -> str:
    filters = filters or ReportFilters()
    columns = [(name, s) for name, source in SOURCES.items() for s in filters.listed(source)]
    header = ['date'] + [f'{SOURCES[name].csv_prefix}:{s}' for name, s in columns]
    return _csv_text(header, ([b['date_key']] + [b[name][s] for name, s in columns] for b in buckets))
