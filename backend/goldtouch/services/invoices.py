from __future__ import annotations
from typing import Any, Dict, List
from flask import abort
from sqlalchemy import select

from goldtouch import get_db
from goldtouch.models.accounting import Sale
from goldtouch.models.client import Client
from goldtouch.models.invoice import Invoice, InvoiceItem
from goldtouch.models.project import Project
from goldtouch.utils.fsm import TransitionValidator
from goldtouch.utils.numbering import next_number
from goldtouch.utils.validation import parse_date, parse_int, require_fields, validate_status

INVOICE_FSM = TransitionValidator({
    Invoice.STATUS_DRAFT: {Invoice.STATUS_SENT, Invoice.STATUS_CANCELLED},
    Invoice.STATUS_SENT: {Invoice.STATUS_PAID, Invoice.STATUS_CANCELLED},
    Invoice.STATUS_PAID: set(),
    Invoice.STATUS_CANCELLED: set(),
})

# status of the sale booked for an invoice, per invoice status
SALE_STATUS_FOR = {
    Invoice.STATUS_DRAFT: Sale.STATUS_PENDING,
    Invoice.STATUS_SENT: Sale.STATUS_PENDING,
    Invoice.STATUS_PAID: Sale.STATUS_COMPLETED,
    Invoice.STATUS_CANCELLED: Sale.STATUS_CANCELLED,
}


def _items(raw_items: Any) -> List[InvoiceItem]:
    if not isinstance(raw_items, list):
        abort(400, description='items must be a list')
    items = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict) or not raw.get('description'):
            abort(400, description=f'items[{idx}].description required')
        quantity = parse_int(raw.get('quantity', 1), f'items[{idx}].quantity', minimum=0)
        unit_price = parse_int(raw.get('unit_price', 0), f'items[{idx}].unit_price', minimum=0)
        items.append(InvoiceItem(description=str(raw['description']), quantity=quantity, unit_price=unit_price,
                                 total=quantity * unit_price))
    return items


def _recompute(invoice: Invoice):
    invoice.subtotal = sum(i.total for i in invoice.items)
    invoice.total = invoice.subtotal + (invoice.tax or 0) - (invoice.discount or 0)
    if invoice.total < 0:
        abort(400, description='discount exceeds invoice amount')


def _apply_scalars(invoice: Invoice, data: Dict[str, Any]):
    session = get_db()
    if 'client_id' in data:
        client_id = parse_int(data['client_id'], 'client_id')
        if client_id is None or session.get(Client, client_id) is None:
            abort(400, description='client_id not found')
        invoice.client_id = client_id
    if 'project_id' in data:
        project_id = parse_int(data['project_id'], 'project_id')
        if project_id is not None and session.get(Project, project_id) is None:
            abort(400, description='project_id not found')
        invoice.project_id = project_id
    if 'issue_date' in data:
        invoice.issue_date = parse_date(data['issue_date'], 'issue_date', required=True)
    if 'due_date' in data:
        invoice.due_date = parse_date(data['due_date'], 'due_date')
    for key in ('tax', 'discount'):
        if key in data:
            setattr(invoice, key, parse_int(data[key], key, minimum=0) or 0)
    for key in ('notes', 'terms'):
        if key in data:
            setattr(invoice, key, data[key])


def linked_sales(invoice_id: int) -> List[Sale]:
    return list(get_db().execute(select(Sale).where(Sale.invoice_id == invoice_id)).scalars())


def _sync_linked_sale(invoice: Invoice):
    for sale in linked_sales(invoice.id):
        sale.client_id = invoice.client_id
        sale.project_id = invoice.project_id
        sale.amount = invoice.total
        sale.sale_date = invoice.issue_date
        sale.status = SALE_STATUS_FOR[invoice.status]


def get_invoice(invoice_id: int) -> Invoice:
    invoice = get_db().get(Invoice, invoice_id)
    if invoice is None:
        abort(404, description='Invoice not found')
    return invoice


def create_invoice(data: Dict[str, Any], user_id: int) -> Invoice:
    require_fields(data, 'client_id', 'issue_date')
    inv_type = validate_status(data.get('type', Invoice.TYPE_INVOICE), Invoice.ALL_TYPES, 'type')
    invoice = Invoice(
        type=inv_type,
        invoice_number=next_number('QUO' if inv_type == Invoice.TYPE_QUOTE else 'INV'),
        status=Invoice.STATUS_DRAFT,
        created_by=user_id,
        tax=0,
        discount=0,
    )
    _apply_scalars(invoice, data)
    invoice.items = _items(data.get('items') or [])
    _recompute(invoice)
    session = get_db()
    session.add(invoice)
    session.flush()
    if invoice.type == Invoice.TYPE_INVOICE:
        session.add(Sale(
            sale_number=next_number('SAL'),
            client_id=invoice.client_id,
            project_id=invoice.project_id,
            description=f'Invoice #{invoice.invoice_number}',
            amount=invoice.total,
            payment_method='bank_transfer',
            sale_date=invoice.issue_date,
            status=SALE_STATUS_FOR[invoice.status],
            invoice_id=invoice.id,
            created_by=user_id,
        ))
        session.flush()
    return invoice


def update_invoice(invoice_id: int, data: Dict[str, Any]) -> Invoice:
    invoice = get_invoice(invoice_id)
    if invoice.status != Invoice.STATUS_DRAFT:
        abort(400, description='Only draft invoices can be edited')
    _apply_scalars(invoice, data)
    if 'items' in data:
        invoice.items = _items(data['items'])
    _recompute(invoice)
    _sync_linked_sale(invoice)
    get_db().flush()
    return invoice


def set_invoice_status(invoice_id: int, status: str) -> Invoice:
    invoice = get_invoice(invoice_id)
    validate_status(status, Invoice.ALL_STATUSES)
    INVOICE_FSM.assert_can_transition(invoice.status, status)
    invoice.status = status
    _sync_linked_sale(invoice)
    get_db().flush()
    return invoice


def cancel_invoice(invoice_id: int) -> Invoice:
    return set_invoice_status(invoice_id, Invoice.STATUS_CANCELLED)


def delete_invoice(invoice_id: int) -> int:
    invoice = get_invoice(invoice_id)
    if invoice.status == Invoice.STATUS_PAID:
        abort(400, description='Paid invoices cannot be deleted')
    session = get_db()
    for sale in linked_sales(invoice_id):
        session.delete(sale)
    session.delete(invoice)
    session.flush()
    return invoice_id


def invoice_json(invoice: Invoice, with_items: bool = True) -> Dict[str, Any]:
    from goldtouch.utils.serialize import row_json
    out = row_json(invoice)
    if with_items:
        out['items'] = [row_json(i) for i in invoice.items]
    return out
