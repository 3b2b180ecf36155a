from goldtouch import get_db
from goldtouch.models.notification import Notification
from tests.test_utils_seed import auth_headers, make_employee, make_user


def test_employee_management_is_hr_only(client, app_instance):
    hr_headers = auth_headers(app_instance, make_user('hr_manager'))
    staff = make_user('designer')
    resp = client.post('/hr/employees', json={'user_id': staff.id, 'employee_number': f'E-{staff.id}',
                                              'hire_date': '2023-09-01', 'salary': 4200,
                                              'department': 'Design'}, headers=hr_headers)
    assert resp.status_code == 201, resp.get_json()
    dup = client.post('/hr/employees', json={'user_id': staff.id, 'employee_number': f'E2-{staff.id}',
                                             'hire_date': '2023-09-01'}, headers=hr_headers)
    assert dup.status_code == 409
    assert client.get('/hr/employees', headers=auth_headers(app_instance, staff)).status_code == 403
    me = client.get('/hr/employees/me', headers=auth_headers(app_instance, staff)).get_json()
    assert me['department'] == 'Design'
    assert me['email'] == staff.email


def test_employee_without_record_gets_404(client, app_instance):
    resp = client.post('/hr/attendance/check-in', headers=auth_headers(app_instance, make_user('employee')))
    assert resp.status_code == 404


def test_attendance_check_in_and_out(client, app_instance):
    user = make_user('employee')
    make_employee(user)
    headers = auth_headers(app_instance, user)
    assert client.post('/hr/attendance/check-out', headers=headers).status_code == 400
    first = client.post('/hr/attendance/check-in', json={}, headers=headers)
    assert first.status_code == 201
    assert first.get_json()['check_out'] is None
    assert client.post('/hr/attendance/check-in', json={}, headers=headers).status_code == 409
    out = client.post('/hr/attendance/check-out', headers=headers)
    assert out.status_code == 200
    body = out.get_json()
    assert body['minutes_worked'] >= 0
    assert body['hours_worked'] == round(body['minutes_worked'] / 60, 2)
    assert client.post('/hr/attendance/check-out', headers=headers).status_code == 400
    rows = client.get('/hr/attendance', headers=headers).get_json()['data']
    assert len(rows) == 1


def test_leave_request_flow(client, app_instance):
    hr = make_user('hr_manager')
    user = make_user('employee')
    employee = make_employee(user)
    headers = auth_headers(app_instance, user)
    bad = client.post('/hr/leaves', json={'leave_type': 'annual', 'start_date': '2024-08-10',
                                          'end_date': '2024-08-05'}, headers=headers)
    assert bad.status_code == 400
    resp = client.post('/hr/leaves', json={'leave_type': 'annual', 'start_date': '2024-08-05',
                                           'end_date': '2024-08-09', 'reason': 'Family trip'}, headers=headers)
    assert resp.status_code == 201
    leave = resp.get_json()
    assert leave['days'] == 5
    assert leave['status'] == 'pending'
    assert leave['employee_id'] == employee.id
    assert get_db().query(Notification).filter_by(user_id=hr.id, entity_type='leave',
                                                  entity_id=leave['id']).count() == 1

    # employees cannot decide their own leave
    assert client.post(f"/hr/leaves/{leave['id']}/approve", json={}, headers=headers).status_code == 403
    hr_headers = auth_headers(app_instance, hr)
    approved = client.post(f"/hr/leaves/{leave['id']}/approve", json={'notes': 'Enjoy'}, headers=hr_headers)
    assert approved.status_code == 200
    assert approved.get_json()['status'] == 'approved'
    assert approved.get_json()['approved_by'] == hr.id
    assert client.post(f"/hr/leaves/{leave['id']}/reject", json={}, headers=hr_headers).status_code == 400
    assert get_db().query(Notification).filter_by(user_id=user.id, entity_type='leave').count() == 1

    mine = client.get('/hr/leaves', headers=headers).get_json()['data']
    assert [row['id'] for row in mine] == [leave['id']]


def test_payroll_net_and_duplicates(client, app_instance):
    user = make_user('employee')
    employee = make_employee(user, salary=5000)
    hr_headers = auth_headers(app_instance, make_user('hr_manager'))
    resp = client.post('/hr/payroll', json={'employee_id': employee.id, 'month': 3, 'year': 2024,
                                            'bonuses': 600, 'deductions': 250}, headers=hr_headers)
    assert resp.status_code == 201, resp.get_json()
    row = resp.get_json()
    assert row['base_salary'] == 5000
    assert row['net_salary'] == 5350
    dup = client.post('/hr/payroll', json={'employee_id': employee.id, 'month': 3, 'year': 2024},
                      headers=hr_headers)
    assert dup.status_code == 409
    assert client.post('/hr/payroll', json={'employee_id': employee.id, 'month': 13, 'year': 2024},
                       headers=hr_headers).status_code == 400
    paid = client.post(f"/hr/payroll/{row['id']}/mark-paid", headers=hr_headers)
    assert paid.get_json()['status'] == 'paid'
    assert client.post(f"/hr/payroll/{row['id']}/mark-paid", headers=hr_headers).status_code == 400
    own = client.get('/hr/payroll', headers=auth_headers(app_instance, user)).get_json()['data']
    assert [p['id'] for p in own] == [row['id']]


def test_payroll_edit_payslip_and_delete(client, app_instance):
    user = make_user('employee')
    employee = make_employee(user, salary=4000)
    hr_headers = auth_headers(app_instance, make_user('hr_manager'))
    own_headers = auth_headers(app_instance, user)
    row = client.post('/hr/payroll', json={'employee_id': employee.id, 'month': 4, 'year': 2024},
                      headers=hr_headers).get_json()
    edited = client.put(f"/hr/payroll/{row['id']}", json={'bonuses': 500, 'deductions': 100, 'notes': 'Overtime'},
                        headers=hr_headers)
    assert edited.status_code == 200
    assert edited.get_json()['net_salary'] == 4400
    assert client.put(f"/hr/payroll/{row['id']}", json={'bonuses': 1}, headers=own_headers).status_code == 403
    paid = client.put(f"/hr/payroll/{row['id']}", json={'status': 'paid'}, headers=hr_headers).get_json()
    assert paid['status'] == 'paid'
    assert paid['payment_date'] is not None
    locked = client.put(f"/hr/payroll/{row['id']}", json={'bonuses': 900}, headers=hr_headers)
    assert locked.status_code == 400

    slip = client.get(f"/hr/payroll/{row['id']}/payslip", headers=own_headers)
    assert slip.status_code == 200
    body = slip.get_json()
    assert body['period'] == '04/2024'
    assert body['payroll']['net_salary'] == 4400
    assert body['employee']['email'] == user.email
    assert body['employee']['name'] == user.name
    stranger = make_user('employee')
    make_employee(stranger)
    assert client.get(f"/hr/payroll/{row['id']}/payslip",
                      headers=auth_headers(app_instance, stranger)).status_code == 403
    assert client.get(f"/hr/payroll/{row['id']}/payslip", headers=hr_headers).status_code == 200

    assert client.delete(f"/hr/payroll/{row['id']}", headers=own_headers).status_code == 403
    assert client.delete(f"/hr/payroll/{row['id']}", headers=hr_headers).status_code == 200
    assert client.get(f"/hr/payroll/{row['id']}/payslip", headers=hr_headers).status_code == 404


def test_attendance_csv_import_and_month_summary(client, app_instance):
    user = make_user('employee')
    employee = make_employee(user)
    hr_headers = auth_headers(app_instance, make_user('hr_manager'))
    number = employee.employee_number
    csv_data = '\n'.join([
        'employeeNumber,date,checkIn,checkOut',
        f'{number},2024-05-06,08:55,17:00',
        f'{number},2024-05-07,09:40,17:10',
        f'{number},2024-05-08,,',
        f'{number},2024-05-09,09:15,17:00',
        'NOBODY-1,2024-05-06,09:00,17:00',
        f'{number},2024-05-06,09:00,17:00',
    ])
    resp = client.post('/hr/attendance/import', json={'csv_data': csv_data}, headers=hr_headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json() == {'created': 4, 'late': 1, 'absent': 1, 'skipped': 2}
    again = client.post('/hr/attendance/import', json={'csv_data': csv_data}, headers=hr_headers).get_json()
    assert again['created'] == 0
    assert again['skipped'] == 6

    summary = client.get(f'/hr/attendance/summary?employee_id={employee.id}&month=5&year=2024',
                         headers=hr_headers).get_json()
    assert summary['total_days'] == 4
    assert summary['present_days'] == 2
    assert summary['late_days'] == 1
    assert summary['absent_days'] == 1
    assert summary['total_hours'] == 23.33
    assert summary['average_hours'] == 5.83
    own_headers = auth_headers(app_instance, user)
    mine = client.get('/hr/attendance/summary?month=5&year=2024', headers=own_headers).get_json()
    assert mine == summary
    empty = client.get('/hr/attendance/summary?month=6&year=2024', headers=own_headers).get_json()
    assert empty['total_days'] == 0
    assert empty['average_hours'] == 0


def test_attendance_import_and_summary_access(client, app_instance):
    user = make_user('employee')
    make_employee(user)
    other = make_employee(make_user('employee'))
    own_headers = auth_headers(app_instance, user)
    hr_headers = auth_headers(app_instance, make_user('hr_manager'))
    assert client.get(f'/hr/attendance/summary?employee_id={other.id}', headers=own_headers).status_code == 403
    assert client.get('/hr/attendance/summary?month=13', headers=own_headers).status_code == 400
    assert client.post('/hr/attendance/import', json={'csv_data': 'date\n2024-05-06'},
                       headers=own_headers).status_code == 403
    bad = client.post('/hr/attendance/import', json={'csv_data': 'name,day\nx,2024-05-06'}, headers=hr_headers)
    assert bad.status_code == 400
    assert client.post('/hr/attendance/import', json={}, headers=hr_headers).status_code == 400
