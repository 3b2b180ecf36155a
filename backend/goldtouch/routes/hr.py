from datetime import date, datetime
from typing import Optional
from flask import Blueprint, request, abort
from sqlalchemy import select
from goldtouch import get_db
from goldtouch.models.authz import User
from goldtouch.models.hr import Attendance, Employee, Leave, Payroll
from goldtouch.constants.permissions import HR_MANAGER_ROLES, LEVEL_FULL
from goldtouch.decorators.audit import audit_log
from goldtouch.decorators.auth import require_roles, require_section
from goldtouch.services import attendance as attendance_service
from goldtouch.services.notifications import create_notification, create_notification_for_roles
from goldtouch.services.policy import Actor, current_actor, get_permission_level, has_role
from goldtouch.utils.filters import apply_filters, date_range, eq
from goldtouch.utils.fsm import TransitionValidator
from goldtouch.utils.listing import paginated
from goldtouch.utils.serialize import row_json
from goldtouch.utils.validation import json_body, parse_date, parse_int, require_fields, validate_status

hr_bp = Blueprint('hr', __name__)

LEAVE_FSM = TransitionValidator({
    Leave.STATUS_PENDING: {Leave.STATUS_APPROVED, Leave.STATUS_REJECTED},
    Leave.STATUS_APPROVED: set(),
    Leave.STATUS_REJECTED: set(),
})


def _is_manager(actor: Actor) -> bool:
    return has_role(actor, *HR_MANAGER_ROLES) or get_permission_level(actor.role, 'hr') == LEVEL_FULL


def _employee_for(user_id: int) -> Optional[Employee]:
    return get_db().execute(select(Employee).where(Employee.user_id == user_id)).scalar_one_or_none()


def _own_employee(actor: Actor) -> Employee:
    employee = _employee_for(actor.user_id)
    if employee is None:
        abort(404, description='No employee record for current user')
    return employee


def _get(model, row_id: int, label: str):
    row = get_db().get(model, row_id)
    if row is None:
        abort(404, description=f'{label} not found')
    return row


def _employee_json(employee: Employee, user: Optional[User] = None):
    out = row_json(employee)
    if user is not None:
        out['name'] = user.name
        out['email'] = user.email
    return out


def _attendance_json(row: Attendance):
    out = row_json(row, exclude=('minutes_worked',))
    out['hours_worked'] = round(row.minutes_worked / 60, 2) if row.minutes_worked is not None else None
    out['minutes_worked'] = row.minutes_worked
    return out


def _today() -> datetime:
    now = datetime.now()
    return datetime(now.year, now.month, now.day)


# --- Employees ---

@hr_bp.get('/employees')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
def list_employees():
    q = get_db().query(Employee, User).join(User, User.id == Employee.user_id)
    q = apply_filters(q, {
        'status': eq(Employee.status, allowed=Employee.ALL_STATUSES),
        'department': eq(Employee.department),
    }, request.args)
    return paginated(q.order_by(Employee.id.asc()), lambda row: _employee_json(row[0], row[1]))


@hr_bp.get('/employees/me')
@require_section('hr')
def my_employee():
    actor = current_actor()
    employee = _own_employee(actor)
    return _employee_json(employee, get_db().get(User, actor.user_id))


def _apply_employee(employee: Employee, data: dict):
    if 'employee_number' in data:
        if not data['employee_number']:
            abort(400, description='employee_number required')
        employee.employee_number = str(data['employee_number']).strip()
    for key in ('department', 'position'):
        if key in data:
            setattr(employee, key, data[key])
    if 'hire_date' in data:
        employee.hire_date = parse_date(data['hire_date'], 'hire_date', required=True)
    if 'salary' in data:
        employee.salary = parse_int(data['salary'], 'salary', minimum=0)
    if 'status' in data:
        employee.status = validate_status(data['status'], Employee.ALL_STATUSES)


@hr_bp.post('/employees')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('CREATE_EMPLOYEE', entity_type='employee', details_builder=lambda d, kw: d.get('employee_number'))
def create_employee():
    data = json_body()
    require_fields(data, 'user_id', 'employee_number', 'hire_date')
    session = get_db()
    user_id = parse_int(data['user_id'], 'user_id', required=True)
    if session.get(User, user_id) is None:
        abort(400, description='user_id not found')
    if _employee_for(user_id) is not None:
        abort(409, description='User already has an employee record')
    number = str(data['employee_number']).strip()
    if session.execute(select(Employee.id).where(Employee.employee_number == number)).scalar_one_or_none():
        abort(409, description='employee_number already exists')
    employee = Employee(user_id=user_id, status=Employee.STATUS_ACTIVE)
    _apply_employee(employee, data)
    session.add(employee)
    session.commit()
    return _employee_json(employee), 201


@hr_bp.put('/employees/<int:employee_id>')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('UPDATE_EMPLOYEE', entity_type='employee')
def update_employee(employee_id: int):
    employee = _get(Employee, employee_id, 'Employee')
    _apply_employee(employee, json_body())
    get_db().commit()
    return _employee_json(employee)


@hr_bp.delete('/employees/<int:employee_id>')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('DELETE_EMPLOYEE', entity_type='employee', entity_id_arg='employee_id')
def delete_employee(employee_id: int):
    employee = _get(Employee, employee_id, 'Employee')
    session = get_db()
    session.delete(employee)
    session.commit()
    return {'success': True}


# --- Attendance ---

@hr_bp.post('/attendance/check-in')
@require_section('hr')
def check_in():
    actor = current_actor()
    employee = _own_employee(actor)
    data = json_body()
    session = get_db()
    today = _today()
    existing = session.execute(
        select(Attendance.id).where(Attendance.employee_id == employee.id, Attendance.date == today)
    ).scalar_one_or_none()
    if existing:
        abort(409, description='Already checked in today')
    status = validate_status(data.get('status') or 'present', Attendance.ALL_STATUSES)
    row = Attendance(employee_id=employee.id, date=today, check_in=datetime.now(), status=status,
                     notes=data.get('notes'))
    session.add(row)
    session.commit()
    return _attendance_json(row), 201


@hr_bp.post('/attendance/check-out')
@require_section('hr')
def check_out():
    actor = current_actor()
    employee = _own_employee(actor)
    session = get_db()
    row = session.execute(
        select(Attendance).where(Attendance.employee_id == employee.id, Attendance.date == _today())
    ).scalar_one_or_none()
    if row is None or row.check_in is None:
        abort(400, description='No check-in recorded today')
    if row.check_out is not None:
        abort(400, description='Already checked out today')
    row.check_out = datetime.now()
    row.minutes_worked = max(0, int((row.check_out - row.check_in).total_seconds() // 60))
    session.commit()
    return _attendance_json(row)


@hr_bp.get('/attendance')
@require_section('hr')
def list_attendance():
    actor = current_actor()
    q = get_db().query(Attendance)
    if not _is_manager(actor):
        q = q.filter(Attendance.employee_id == _own_employee(actor).id)
    q = apply_filters(q, {
        'employee_id': eq(Attendance.employee_id, coerce=int),
        'status': eq(Attendance.status, allowed=Attendance.ALL_STATUSES),
        'from': date_range(Attendance.date, 'from'),
        'to': date_range(Attendance.date, 'to'),
    }, request.args)
    return paginated(q.order_by(Attendance.date.desc(), Attendance.id.desc()), _attendance_json)


@hr_bp.get('/attendance/summary')
@require_section('hr')
def attendance_summary():
    actor = current_actor()
    employee_id = parse_int(request.args.get('employee_id'), 'employee_id')
    if employee_id is None:
        employee_id = _own_employee(actor).id
    elif not _is_manager(actor):
        own = _employee_for(actor.user_id)
        if own is None or own.id != employee_id:
            abort(403, description='Only HR managers can view other employees')
    today = date.today()
    month = parse_int(request.args.get('month'), 'month', minimum=1) or today.month
    if month > 12:
        abort(400, description='month must be <= 12')
    year = parse_int(request.args.get('year'), 'year', minimum=2000) or today.year
    if year > 9999:
        abort(400, description='year out of range')
    return attendance_service.month_summary(employee_id, month, year)


@hr_bp.post('/attendance/import')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('IMPORT_ATTENDANCE', entity_type='attendance',
           details_builder=lambda d, kw: f"created {d.get('created')}, skipped {d.get('skipped')}")
def import_attendance():
    data = json_body()
    csv_data = data.get('csv_data')
    if not isinstance(csv_data, str) or not csv_data.strip():
        abort(400, description='csv_data required')
    result = attendance_service.import_csv(csv_data)
    get_db().commit()
    return result.as_dict()


# --- Payroll ---

@hr_bp.get('/payroll')
@require_section('hr')
def list_payroll():
    actor = current_actor()
    q = get_db().query(Payroll)
    if not _is_manager(actor):
        q = q.filter(Payroll.employee_id == _own_employee(actor).id)
    q = apply_filters(q, {
        'employee_id': eq(Payroll.employee_id, coerce=int),
        'month': eq(Payroll.month, coerce=int, allowed=range(1, 13)),
        'year': eq(Payroll.year, coerce=int),
        'status': eq(Payroll.status, allowed=Payroll.ALL_STATUSES),
    }, request.args)
    return paginated(q.order_by(Payroll.year.desc(), Payroll.month.desc(), Payroll.id.desc()), row_json)


@hr_bp.post('/payroll')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('CREATE_PAYROLL', entity_type='payroll',
           details_builder=lambda d, kw: f"{d.get('month')}/{d.get('year')} net {d.get('net_salary')}")
def create_payroll():
    actor = current_actor()
    data = json_body()
    employee_id = parse_int(data.get('employee_id'), 'employee_id', required=True)
    employee = get_db().get(Employee, employee_id)
    if employee is None:
        abort(400, description='employee_id not found')
    month = parse_int(data.get('month'), 'month', required=True, minimum=1)
    if month > 12:
        abort(400, description='month must be <= 12')
    year = parse_int(data.get('year'), 'year', required=True, minimum=2000)
    base = parse_int(data.get('base_salary', employee.salary), 'base_salary', required=True, minimum=0)
    bonuses = parse_int(data.get('bonuses'), 'bonuses', minimum=0) or 0
    deductions = parse_int(data.get('deductions'), 'deductions', minimum=0) or 0
    session = get_db()
    duplicate = session.execute(
        select(Payroll.id).where(Payroll.employee_id == employee_id, Payroll.month == month, Payroll.year == year)
    ).scalar_one_or_none()
    if duplicate:
        abort(409, description='Payroll already exists for this employee and period')
    row = Payroll(employee_id=employee_id, month=month, year=year, base_salary=base, bonuses=bonuses,
                  deductions=deductions, net_salary=base + bonuses - deductions, status=Payroll.STATUS_PENDING,
                  notes=data.get('notes'), created_by=actor.user_id)
    session.add(row)
    session.commit()
    create_notification(employee.user_id, 'Payroll issued', from_user_id=actor.user_id, type='info',
                        message=f'Payroll for {month:02d}/{year}: {row.net_salary}', link='/hr',
                        entity_type='payroll', entity_id=row.id)
    return row_json(row), 201


@hr_bp.post('/payroll/<int:payroll_id>/mark-paid')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('MARK_PAYROLL_PAID', entity_type='payroll')
def mark_payroll_paid(payroll_id: int):
    row = _get(Payroll, payroll_id, 'Payroll')
    if row.status == Payroll.STATUS_PAID:
        abort(400, description='Payroll already paid')
    row.status = Payroll.STATUS_PAID
    row.payment_date = datetime.now()
    get_db().commit()
    return row_json(row)


@hr_bp.put('/payroll/<int:payroll_id>')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('UPDATE_PAYROLL', entity_type='payroll')
def update_payroll(payroll_id: int):
    row = _get(Payroll, payroll_id, 'Payroll')
    data = json_body()
    amounts = {key: data[key] for key in ('base_salary', 'bonuses', 'deductions') if key in data}
    if amounts and row.status == Payroll.STATUS_PAID:
        abort(400, description='Paid payroll amounts cannot be changed')
    for key, value in amounts.items():
        setattr(row, key, parse_int(value, key, required=True, minimum=0))
    row.net_salary = row.base_salary + row.bonuses - row.deductions
    if 'notes' in data:
        row.notes = data['notes']
    if 'status' in data:
        row.status = validate_status(data['status'], Payroll.ALL_STATUSES)
        if row.status == Payroll.STATUS_PAID:
            row.payment_date = parse_date(data.get('payment_date'), 'payment_date') or row.payment_date or datetime.now()
        else:
            row.payment_date = None
    elif 'payment_date' in data:
        row.payment_date = parse_date(data['payment_date'], 'payment_date')
    get_db().commit()
    return row_json(row)


@hr_bp.delete('/payroll/<int:payroll_id>')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('DELETE_PAYROLL', entity_type='payroll', entity_id_arg='payroll_id')
def delete_payroll(payroll_id: int):
    row = _get(Payroll, payroll_id, 'Payroll')
    session = get_db()
    session.delete(row)
    session.commit()
    return {'success': True}


@hr_bp.get('/payroll/<int:payroll_id>/payslip')
@require_section('hr')
def payslip(payroll_id: int):
    actor = current_actor()
    row = _get(Payroll, payroll_id, 'Payroll')
    session = get_db()
    employee = session.get(Employee, row.employee_id)
    if not _is_manager(actor) and (employee is None or employee.user_id != actor.user_id):
        abort(403, description='Only HR managers can view other payslips')
    user = session.get(User, employee.user_id) if employee is not None else None
    return {
        'payroll': row_json(row),
        'employee': _employee_json(employee, user) if employee is not None else None,
        'period': f'{row.month:02d}/{row.year}',
    }


# --- Leaves ---

@hr_bp.get('/leaves')
@require_section('hr')
def list_leaves():
    actor = current_actor()
    q = get_db().query(Leave)
    if not _is_manager(actor):
        q = q.filter(Leave.employee_id == _own_employee(actor).id)
    q = apply_filters(q, {
        'employee_id': eq(Leave.employee_id, coerce=int),
        'status': eq(Leave.status, allowed=Leave.ALL_STATUSES),
        'leave_type': eq(Leave.leave_type, allowed=Leave.ALL_TYPES),
    }, request.args)
    return paginated(q.order_by(Leave.id.desc()), row_json)


@hr_bp.post('/leaves')
@require_section('hr')
@audit_log('CREATE_LEAVE', entity_type='leave', details_builder=lambda d, kw: f"{d.get('leave_type')} {d.get('days')}d")
def create_leave():
    actor = current_actor()
    employee = _own_employee(actor)
    data = json_body()
    require_fields(data, 'leave_type', 'start_date', 'end_date')
    leave_type = validate_status(data['leave_type'], Leave.ALL_TYPES, 'leave_type')
    start = parse_date(data['start_date'], 'start_date', required=True)
    end = parse_date(data['end_date'], 'end_date', required=True)
    if end.date() < start.date():
        abort(400, description='end_date must not be before start_date')
    days = (end.date() - start.date()).days + 1
    leave = Leave(employee_id=employee.id, leave_type=leave_type, start_date=start, end_date=end, days=days,
                  reason=data.get('reason'), status=Leave.STATUS_PENDING)
    session = get_db()
    session.add(leave)
    session.commit()
    create_notification_for_roles(HR_MANAGER_ROLES, 'New leave request', exclude_user_id=actor.user_id,
                                  from_user_id=actor.user_id, type='action',
                                  message=f'{actor.name}: {leave_type} leave, {days} day(s)', link='/hr',
                                  entity_type='leave', entity_id=leave.id)
    return row_json(leave), 201


def _decide_leave(leave_id: int, status: str, notes):
    actor = current_actor()
    leave = _get(Leave, leave_id, 'Leave')
    LEAVE_FSM.assert_can_transition(leave.status, status)
    leave.status = status
    leave.approved_by = actor.user_id
    leave.approved_at = datetime.now()
    if notes is not None:
        leave.notes = notes
    get_db().commit()
    employee = get_db().get(Employee, leave.employee_id)
    if employee is not None:
        create_notification(employee.user_id, f'Leave request {status}', from_user_id=actor.user_id,
                            type='success' if status == Leave.STATUS_APPROVED else 'warning',
                            message=notes, link='/hr', entity_type='leave', entity_id=leave.id)
    return row_json(leave)


@hr_bp.post('/leaves/<int:leave_id>/approve')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('APPROVE_LEAVE', entity_type='leave')
def approve_leave(leave_id: int):
    return _decide_leave(leave_id, Leave.STATUS_APPROVED, json_body().get('notes'))


@hr_bp.post('/leaves/<int:leave_id>/reject')
@require_section('hr')
@require_roles(*HR_MANAGER_ROLES)
@audit_log('REJECT_LEAVE', entity_type='leave')
def reject_leave(leave_id: int):
    return _decide_leave(leave_id, Leave.STATUS_REJECTED, json_body().get('notes'))
