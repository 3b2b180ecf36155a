from flask import Blueprint, request
from goldtouch import get_db
from goldtouch.models.invoice import Invoice
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import require_section
from goldtouch.services import invoices as invoice_service
from goldtouch.services.invoices import invoice_json
from goldtouch.services.policy import current_actor, require_modifier
from goldtouch.utils.filters import apply_filters, date_range, eq
from goldtouch.utils.listing import paginated
from goldtouch.utils.sorting import apply_multi_sort
from goldtouch.utils.validation import json_body

invoices_bp = Blueprint('invoices', __name__)


@invoices_bp.get('')
@require_section('invoices')
def list_invoices():
    q = get_db().query(Invoice)
    q = apply_filters(q, {
        'type': eq(Invoice.type, allowed=Invoice.ALL_TYPES),
        'status': eq(Invoice.status, allowed=Invoice.ALL_STATUSES),
        'client_id': eq(Invoice.client_id, coerce=int),
        'project_id': eq(Invoice.project_id, coerce=int),
        'from': date_range(Invoice.issue_date, 'from'),
        'to': date_range(Invoice.issue_date, 'to'),
    }, request.args)
    allowed = {'issue_date': Invoice.issue_date, 'total': Invoice.total, 'status': Invoice.status,
               'invoice_number': Invoice.invoice_number, 'id': Invoice.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Invoice.id, default_desc=True)
    return paginated(q, lambda i: invoice_json(i, with_items=False))


@invoices_bp.get('/<int:invoice_id>')
@require_section('invoices')
def get_invoice(invoice_id: int):
    return invoice_json(invoice_service.get_invoice(invoice_id))


@invoices_bp.post('')
@require_section('invoices')
@audit_log('CREATE_INVOICE', entity_type='invoice', details_builder=lambda d, kw: d.get('invoice_number'))
def create_invoice():
    actor = current_actor()
    require_modifier(actor, 'invoices', 'create')
    invoice = invoice_service.create_invoice(json_body(), actor.user_id)
    get_db().commit()
    return invoice_json(invoice), 201


@invoices_bp.put('/<int:invoice_id>')
@require_section('invoices')
@audit_log('UPDATE_INVOICE', entity_type='invoice')
def update_invoice(invoice_id: int):
    require_modifier(current_actor(), 'invoices', 'edit')
    invoice = invoice_service.update_invoice(invoice_id, json_body())
    get_db().commit()
    return invoice_json(invoice)


@invoices_bp.post('/<int:invoice_id>/status')
@require_section('invoices')
@audit_log('UPDATE_INVOICE_STATUS', entity_type='invoice', details_builder=lambda d, kw: f"status -> {d.get('status')}")
def update_invoice_status(invoice_id: int):
    require_modifier(current_actor(), 'invoices', 'edit')
    data = json_body()
    invoice = invoice_service.set_invoice_status(invoice_id, data.get('status'))
    get_db().commit()
    return invoice_json(invoice)


@invoices_bp.delete('/<int:invoice_id>')
@require_section('invoices')
@audit_log('DELETE_INVOICE', entity_type='invoice', entity_id_arg='invoice_id')
def delete_invoice(invoice_id: int):
    require_modifier(current_actor(), 'invoices', 'delete')
    invoice_service.delete_invoice(invoice_id)
    get_db().commit()
    return {'success': True}
