from flask import Blueprint, request, abort
from sqlalchemy import func
from goldtouch import get_db
from goldtouch.models.accounting import BoqItem, Installment
from goldtouch.models.project import Project
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import require_section
from goldtouch.services import accounting as ledgers
from goldtouch.services.policy import current_actor, require_modifier
from goldtouch.utils.filters import apply_filters, date_range, eq
from goldtouch.utils.listing import paginated
from goldtouch.utils.serialize import row_json
from goldtouch.utils.sorting import apply_multi_sort
from goldtouch.utils.validation import json_body, parse_date, parse_int

acc_bp = Blueprint('accounting', __name__)

DIRECT_CHANGE_DENIED = 'Direct changes require an approval request'

# ledger kind -> URL segment, date column used by from/to filters
ROUTES = {
    'expense': ('expenses', 'expense_date'),
    'boq': ('boq', None),
    'installment': ('installments', 'due_date'),
    'sale': ('sales', 'sale_date'),
    'purchase': ('purchases', 'purchase_date'),
}


def _require_auto_approve():
    require_modifier(current_actor(), 'accounting', 'auto_approve', DIRECT_CHANGE_DENIED)


def _filtered(kind: str):
    spec = ledgers.ledger(kind)
    model = spec.model
    q = get_db().query(model)
    specs = {'project_id': eq(model.project_id, coerce=int)}
    if hasattr(model, 'status'):
        specs['status'] = eq(model.status, allowed=model.ALL_STATUSES)
    if hasattr(model, 'client_id'):
        specs['client_id'] = eq(model.client_id, coerce=int)
    if hasattr(model, 'category'):
        specs['category'] = eq(model.category)
    date_attr = ROUTES[kind][1]
    if date_attr:
        specs['from'] = date_range(getattr(model, date_attr), 'from')
        specs['to'] = date_range(getattr(model, date_attr), 'to')
    return apply_filters(q, specs, request.args)


def _register(kind: str):
    segment = ROUTES[kind][0]
    spec = ledgers.ledger(kind)
    model = spec.model
    upper = kind.upper()
    date_attr = ROUTES[kind][1]

    @require_section('accounting')
    def list_view():
        allowed = {'id': model.id}
        if date_attr:
            allowed[date_attr] = getattr(model, date_attr)
        if hasattr(model, 'amount'):
            allowed['amount'] = model.amount
        q = apply_multi_sort(_filtered(kind), request.args.get('sort'), allowed, model.id, default_desc=True)
        return paginated(q, row_json)

    @require_section('accounting')
    def get_view(entry_id: int):
        return row_json(ledgers.get_entry(kind, entry_id))

    @require_section('accounting')
    @audit_log(f'CREATE_{upper}', entity_type=kind)
    def create_view():
        _require_auto_approve()
        obj = ledgers.create_entry(kind, json_body(), current_actor().user_id)
        get_db().commit()
        return row_json(obj), 201

    @require_section('accounting')
    @audit_log(f'UPDATE_{upper}', entity_type=kind)
    def update_view(entry_id: int):
        _require_auto_approve()
        obj = ledgers.update_entry(kind, entry_id, json_body())
        get_db().commit()
        return row_json(obj)

    @require_section('accounting')
    @audit_log(f'DELETE_{upper}', entity_type=kind, entity_id_arg='entry_id')
    def delete_view(entry_id: int):
        _require_auto_approve()
        ledgers.delete_entry(kind, entry_id)
        get_db().commit()
        return {'success': True}

    @require_section('accounting')
    def summary_view():
        if model is BoqItem:
            project_id = parse_int(request.args.get('project_id'), 'project_id', required=True)
            count = get_db().query(func.count(BoqItem.id)).filter(BoqItem.project_id == project_id).scalar()
            return {'project_id': project_id, 'count': int(count or 0),
                    'total': ledgers.sum_amount('boq', project_id)}
        rows = _filtered(kind).with_entities(model.status, func.count(model.id), func.coalesce(func.sum(model.amount), 0)) \
            .group_by(model.status).all()
        by_status = {status: {'count': int(count), 'total': int(total)} for status, count, total in rows}
        return {
            'by_status': by_status,
            'total': sum(v['total'] for s, v in by_status.items() if s != 'cancelled'),
            'count': sum(v['count'] for v in by_status.values()),
        }

    acc_bp.add_url_rule(f'/{segment}', f'list_{kind}', list_view, methods=['GET'])
    acc_bp.add_url_rule(f'/{segment}/summary', f'summary_{kind}', summary_view, methods=['GET'])
    acc_bp.add_url_rule(f'/{segment}/<int:entry_id>', f'get_{kind}', get_view, methods=['GET'])
    acc_bp.add_url_rule(f'/{segment}', f'create_{kind}', create_view, methods=['POST'])
    acc_bp.add_url_rule(f'/{segment}/<int:entry_id>', f'update_{kind}', update_view, methods=['PUT'])
    acc_bp.add_url_rule(f'/{segment}/<int:entry_id>', f'delete_{kind}', delete_view, methods=['DELETE'])

    if hasattr(model, 'STATUS_CANCELLED'):
        @require_section('accounting')
        @audit_log(f'CANCEL_{upper}', entity_type=kind)
        def cancel_view(entry_id: int):
            _require_auto_approve()
            obj = ledgers.cancel_entry(kind, entry_id)
            get_db().commit()
            return row_json(obj)

        acc_bp.add_url_rule(f'/{segment}/<int:entry_id>/cancel', f'cancel_{kind}', cancel_view, methods=['POST'])


for _kind in ROUTES:
    _register(_kind)


@acc_bp.post('/installments/<int:entry_id>/mark-paid')
@require_section('accounting')
@audit_log('MARK_INSTALLMENT_PAID', entity_type='installment')
def mark_installment_paid(entry_id: int):
    _require_auto_approve()
    data = json_body()
    method = data.get('payment_method')
    if method is not None and not isinstance(method, str):
        abort(400, description='payment_method must be string')
    inst: Installment = ledgers.mark_installment_paid(entry_id, parse_date(data.get('paid_date'), 'paid_date'), method)
    get_db().commit()
    return row_json(inst)


@acc_bp.get('/projects/<int:project_id>/financials')
@require_section('accounting')
def project_financials(project_id: int):
    if get_db().get(Project, project_id) is None:
        abort(404, description='Project not found')
    return ledgers.project_financials(project_id)


@acc_bp.get('/overview')
@require_section('accounting')
def overview():
    return ledgers.overall_financials()
