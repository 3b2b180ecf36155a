from __future__ import annotations
"""Session-level create/update/delete/cancel routines for the accounting ledgers.

The accounting blueprint and the approval executor both go through these
functions, so a request approved later behaves exactly like the direct call.
Routines flush but never commit; the caller owns the transaction boundary.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Type

from flask import abort
from sqlalchemy import select

from goldtouch import get_db
from goldtouch.models.accounting import (
    Expense, BoqItem, Installment, Sale, Purchase, PAYMENT_METHODS, LOCKED_STATUSES,
)
from goldtouch.models.client import Client
from goldtouch.models.invoice import Invoice
from goldtouch.models.project import Project
from goldtouch.utils.numbering import next_number
from goldtouch.utils.validation import parse_date, parse_int


@dataclass(frozen=True)
class Field:
    kind: str = 'str'  # str | int | date | choice | ref
    required: bool = False
    choices: Tuple[str, ...] = ()
    minimum: Optional[int] = None
    ref: Optional[Type] = None


@dataclass(frozen=True)
class LedgerSpec:
    model: Type
    label: str
    fields: Dict[str, Field]
    number_prefix: Optional[str] = None
    number_field: Optional[str] = None
    before_save: Optional[Callable[[Any], None]] = None
    extra_defaults: Dict[str, Any] = field(default_factory=dict)


def _coerce(spec: LedgerSpec, data: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    session = get_db()
    out: Dict[str, Any] = {}
    for name, f in spec.fields.items():
        if name not in data:
            if f.required and not partial:
                abort(400, description=f'{name} required')
            continue
        raw = data.get(name)
        if raw is None or raw == '':
            if f.required:
                abort(400, description=f'{name} required')
            out[name] = None
            continue
        if f.kind == 'int':
            out[name] = parse_int(raw, name, minimum=f.minimum)
        elif f.kind == 'ref':
            ref_id = parse_int(raw, name)
            if session.get(f.ref, ref_id) is None:
                abort(400, description=f'{name} not found')
            out[name] = ref_id
        elif f.kind == 'date':
            out[name] = parse_date(raw, name)
        elif f.kind == 'choice':
            if raw not in f.choices:
                abort(400, description=f'{name} invalid')
            out[name] = raw
        else:
            if not isinstance(raw, str):
                abort(400, description=f'{name} must be string')
            out[name] = raw.strip()
    return out


def _boq_total(item: BoqItem):
    item.total = int(item.quantity) * int(item.unit_price)


def _installment_paid_date(inst: Installment):
    if inst.status == Installment.STATUS_PAID and inst.paid_date is None:
        inst.paid_date = datetime.now()


LEDGERS: Dict[str, LedgerSpec] = {
    'expense': LedgerSpec(
        model=Expense,
        label='Expense',
        fields={
            'project_id': Field('ref', ref=Project),
            'category': Field('str', required=True),
            'description': Field('str', required=True),
            'amount': Field('int', required=True, minimum=0),
            'expense_date': Field('date', required=True),
            'receipt': Field('str'),
            'status': Field('choice', choices=Expense.ALL_STATUSES),
        },
    ),
    'boq': LedgerSpec(
        model=BoqItem,
        label='BOQ item',
        fields={
            'project_id': Field('ref', required=True, ref=Project),
            'item_name': Field('str', required=True),
            'description': Field('str'),
            'quantity': Field('int', required=True, minimum=0),
            'unit': Field('str'),
            'unit_price': Field('int', required=True, minimum=0),
            'category': Field('str'),
        },
        before_save=_boq_total,
    ),
    'installment': LedgerSpec(
        model=Installment,
        label='Installment',
        fields={
            'project_id': Field('ref', required=True, ref=Project),
            'invoice_id': Field('ref', ref=Invoice),
            'installment_number': Field('int', minimum=1),
            'amount': Field('int', required=True, minimum=0),
            'due_date': Field('date', required=True),
            'paid_date': Field('date'),
            'status': Field('choice', choices=Installment.ALL_STATUSES),
            'payment_method': Field('str'),
            'notes': Field('str'),
        },
        before_save=_installment_paid_date,
    ),
    'sale': LedgerSpec(
        model=Sale,
        label='Sale',
        fields={
            'client_id': Field('ref', required=True, ref=Client),
            'project_id': Field('ref', ref=Project),
            'description': Field('str', required=True),
            'amount': Field('int', required=True, minimum=0),
            'payment_method': Field('choice', choices=PAYMENT_METHODS),
            'sale_date': Field('date', required=True),
            'status': Field('choice', choices=Sale.ALL_STATUSES),
            'invoice_id': Field('ref', ref=Invoice),
            'notes': Field('str'),
        },
        number_prefix='SAL',
        number_field='sale_number',
    ),
    'purchase': LedgerSpec(
        model=Purchase,
        label='Purchase',
        fields={
            'supplier_name': Field('str', required=True),
            'project_id': Field('ref', ref=Project),
            'description': Field('str', required=True),
            'amount': Field('int', required=True, minimum=0),
            'payment_method': Field('choice', choices=PAYMENT_METHODS),
            'purchase_date': Field('date', required=True),
            'status': Field('choice', choices=Purchase.ALL_STATUSES),
            'category': Field('str'),
            'notes': Field('str'),
        },
        number_prefix='PUR',
        number_field='purchase_number',
    ),
}


def ledger(kind: str) -> LedgerSpec:
    spec = LEDGERS.get(kind)
    if spec is None:
        abort(400, description=f'Unknown entity type {kind}')
    return spec


def get_entry(kind: str, entry_id: int):
    spec = ledger(kind)
    obj = get_db().get(spec.model, entry_id)
    if obj is None:
        abort(404, description=f'{spec.label} not found')
    return obj


def create_entry(kind: str, data: Dict[str, Any], user_id: int):
    spec = ledger(kind)
    values = _coerce(spec, data, partial=False)
    obj = spec.model(**values)
    if spec.number_field:
        setattr(obj, spec.number_field, next_number(spec.number_prefix))
    if hasattr(spec.model, 'created_by'):
        obj.created_by = user_id
    if spec.model is Installment and obj.installment_number is None:
        obj.installment_number = _next_installment_number(obj.project_id)
    if spec.before_save:
        spec.before_save(obj)
    session = get_db()
    session.add(obj)
    session.flush()
    return obj


def update_entry(kind: str, entry_id: int, data: Dict[str, Any]):
    spec = ledger(kind)
    obj = get_entry(kind, entry_id)
    values = _coerce(spec, data, partial=True)
    if 'status' in values and getattr(obj, 'status', None) in LOCKED_STATUSES and values['status'] != obj.status:
        abort(400, description=f'{spec.label} is locked in status {obj.status}')
    for key, value in values.items():
        setattr(obj, key, value)
    if spec.before_save:
        spec.before_save(obj)
    get_db().flush()
    return obj


def delete_entry(kind: str, entry_id: int) -> int:
    spec = ledger(kind)
    obj = get_entry(kind, entry_id)
    if getattr(obj, 'status', None) in LOCKED_STATUSES:
        abort(400, description=f'Cannot delete {spec.label.lower()} in status {obj.status}')
    session = get_db()
    session.delete(obj)
    session.flush()
    return entry_id


def cancel_entry(kind: str, entry_id: int):
    spec = ledger(kind)
    obj = get_entry(kind, entry_id)
    cancelled = getattr(spec.model, 'STATUS_CANCELLED', None)
    if cancelled is None:
        abort(400, description=f'{spec.label} cannot be cancelled')
    if obj.status == cancelled:
        abort(400, description=f'{spec.label} already cancelled')
    if obj.status in LOCKED_STATUSES:
        abort(400, description=f'{spec.label} is locked in status {obj.status}')
    obj.status = cancelled
    get_db().flush()
    return obj


def mark_installment_paid(installment_id: int, paid_date: Optional[datetime] = None,
                          payment_method: Optional[str] = None) -> Installment:
    inst = get_entry('installment', installment_id)
    if inst.status == Installment.STATUS_PAID:
        abort(400, description='Installment already paid')
    if inst.status == Installment.STATUS_CANCELLED:
        abort(400, description='Installment is cancelled')
    inst.status = Installment.STATUS_PAID
    inst.paid_date = paid_date or datetime.now()
    if payment_method:
        inst.payment_method = payment_method
    get_db().flush()
    return inst


def _next_installment_number(project_id: int) -> int:
    existing = get_db().execute(
        select(Installment.installment_number).where(Installment.project_id == project_id)
    ).scalars().all()
    return (max(existing) if existing else 0) + 1


def sum_amount(kind: str, project_id: Optional[int] = None, statuses=None, exclude_statuses=None) -> int:
    """Integer sum of the ledger's amount column (``total`` for BOQ items)."""
    spec = ledger(kind)
    model = spec.model
    column = model.total if model is BoqItem else model.amount
    q = get_db().query(column)
    if project_id is not None:
        q = q.filter(model.project_id == project_id)
    if statuses:
        q = q.filter(model.status.in_(list(statuses)))
    if exclude_statuses:
        q = q.filter(model.status.notin_(list(exclude_statuses)))
    return sum(int(v or 0) for (v,) in q.all())


def project_financials(project_id: int) -> Dict[str, int]:
    boq_total = sum_amount('boq', project_id)
    expenses_total = sum_amount('expense', project_id, exclude_statuses=[Expense.STATUS_CANCELLED])
    installments_total = sum_amount('installment', project_id, exclude_statuses=[Installment.STATUS_CANCELLED])
    paid_installments = sum_amount('installment', project_id, statuses=[Installment.STATUS_PAID])
    purchases_total = sum_amount('purchase', project_id, statuses=[Purchase.STATUS_COMPLETED])
    sales_total = sum_amount('sale', project_id, statuses=[Sale.STATUS_COMPLETED])
    return {
        'project_id': project_id,
        'boq_total': boq_total,
        'expenses_total': expenses_total,
        'installments_total': installments_total,
        'paid_installments_total': paid_installments,
        'purchases_total': purchases_total,
        'sales_total': sales_total,
        'balance': paid_installments + sales_total - purchases_total - expenses_total,
    }


def overall_financials() -> Dict[str, int]:
    expenses_total = sum_amount('expense', exclude_statuses=[Expense.STATUS_CANCELLED])
    paid_installments = sum_amount('installment', statuses=[Installment.STATUS_PAID])
    pending_installments = sum_amount('installment', statuses=[Installment.STATUS_PENDING, Installment.STATUS_OVERDUE])
    purchases_total = sum_amount('purchase', statuses=[Purchase.STATUS_COMPLETED])
    sales_total = sum_amount('sale', statuses=[Sale.STATUS_COMPLETED])
    return {
        'expenses_total': expenses_total,
        'paid_installments_total': paid_installments,
        'pending_installments_total': pending_installments,
        'purchases_total': purchases_total,
        'sales_total': sales_total,
        'balance': paid_installments + sales_total - purchases_total - expenses_total,
    }
