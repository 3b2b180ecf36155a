from flask import Blueprint, request, abort
from sqlalchemy import select, func
from goldtouch import get_db
from goldtouch.models.client import Client
from goldtouch.models.invoice import Invoice
from goldtouch.models.project import Project
from goldtouch.constants.permissions import ROLE_ADMIN
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import login_required, require_roles, require_section
from goldtouch.services.invoices import invoice_json
from goldtouch.services.policy import current_actor, require_modifier
from goldtouch.utils.filters import apply_filters
from goldtouch.utils.listing import paginated
from goldtouch.utils.numbering import next_number
from goldtouch.utils.serialize import row_json
from goldtouch.utils.sorting import apply_multi_sort
from goldtouch.utils.validation import json_body, require_fields

clients_bp = Blueprint('clients', __name__)

_EDITABLE = ('name', 'email', 'phone', 'address', 'city', 'notes')


def _get_client(client_id: int) -> Client:
    client = get_db().get(Client, client_id)
    if not client:
        abort(404, description='Client not found')
    return client


@clients_bp.get('')
@require_section('clients')
def list_clients():
    q = get_db().query(Client)
    q = apply_filters(q, {
        'search': {'op': lambda qu, v: qu.filter(
            Client.name.ilike(f'%{v}%') | Client.email.ilike(f'%{v}%') | Client.phone.ilike(f'%{v}%')
            | Client.client_number.ilike(f'%{v}%'))},
        'city': {'op': lambda qu, v: qu.filter(Client.city == v)},
    }, request.args)
    allowed = {'name': Client.name, 'client_number': Client.client_number, 'id': Client.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Client.id, default_desc=True)
    return paginated(q, row_json)


@clients_bp.get('/names')
@login_required
def client_names():
    rows = get_db().execute(select(Client.id, Client.name).order_by(Client.name)).all()
    return {'data': [{'id': cid, 'name': name} for cid, name in rows]}


@clients_bp.get('/<int:client_id>')
@require_section('clients')
def get_client(client_id: int):
    client = _get_client(client_id)
    session = get_db()
    out = row_json(client)
    out['projects'] = [row_json(p) for p in session.query(Project).filter(Project.client_id == client.id)
                       .order_by(Project.id.desc())]
    out['invoices'] = [invoice_json(i, with_items=False) for i in session.query(Invoice)
                       .filter(Invoice.client_id == client.id).order_by(Invoice.id.desc())]
    return out


@clients_bp.post('')
@require_section('clients')
@audit_log('CREATE_CLIENT', entity_type='client', details_builder=lambda d, kw: d.get('name'))
def create_client():
    actor = current_actor()
    require_modifier(actor, 'clients', 'create')
    data = json_body()
    require_fields(data, 'name')
    client = Client(client_number=next_number('CLT'), created_by=actor.user_id)
    for key in _EDITABLE:
        if key in data:
            setattr(client, key, data[key])
    client.name = str(data['name']).strip()
    session = get_db()
    session.add(client)
    session.commit()
    return row_json(client), 201


@clients_bp.put('/<int:client_id>')
@require_section('clients')
@audit_log('UPDATE_CLIENT', entity_type='client')
def update_client(client_id: int):
    require_modifier(current_actor(), 'clients', 'edit')
    data = json_body()
    client = _get_client(client_id)
    if 'name' in data and not data['name']:
        abort(400, description='name required')
    for key in _EDITABLE:
        if key in data:
            setattr(client, key, data[key])
    get_db().commit()
    return row_json(client)


@clients_bp.delete('/<int:client_id>')
@require_roles(ROLE_ADMIN)
@audit_log('DELETE_CLIENT', entity_type='client', entity_id_arg='client_id')
def delete_client(client_id: int):
    client = _get_client(client_id)
    session = get_db()
    projects = session.execute(select(func.count(Project.id)).where(Project.client_id == client.id)).scalar_one()
    invoices = session.execute(select(func.count(Invoice.id)).where(Invoice.client_id == client.id)).scalar_one()
    if projects or invoices:
        abort(409, description='Client has projects or invoices and cannot be deleted')
    session.delete(client)
    session.commit()
    return {'success': True}
