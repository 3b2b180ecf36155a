from __future__ import annotations
"""Attendance month summaries and bulk import from a CSV export.

Import rows are ``employee_number,date[,check_in,check_out]`` with ``HH:MM``
times. A row without a check-in is recorded as absent; a check-in later than
the shift start plus the grace period is recorded as late.
"""
import calendar
import csv
import io
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from flask import abort, current_app
from sqlalchemy import select

from goldtouch import get_db
from goldtouch.models.hr import Attendance, Employee

# header spellings accepted for each column
COLUMN_ALIASES = {
    'employee_number': ('employee_number', 'employeenumber'),
    'date': ('date',),
    'check_in': ('check_in', 'checkin'),
    'check_out': ('check_out', 'checkout'),
}


@dataclass
class ImportResult:
    created: int = 0
    late: int = 0
    absent: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


def month_summary(employee_id: int, month: int, year: int) -> Dict[str, object]:
    start = datetime(year, month, 1)
    end = start + timedelta(days=calendar.monthrange(year, month)[1])
    rows = get_db().execute(
        select(Attendance.status, Attendance.minutes_worked).where(
            Attendance.employee_id == employee_id,
            Attendance.date >= start,
            Attendance.date < end,
        )
    ).all()
    total_days = len(rows)
    total_hours = round(sum(minutes or 0 for _, minutes in rows) / 60, 2)
    return {
        'employee_id': employee_id,
        'month': month,
        'year': year,
        'total_days': total_days,
        'present_days': sum(1 for status, _ in rows if status == 'present'),
        'absent_days': sum(1 for status, _ in rows if status == 'absent'),
        'late_days': sum(1 for status, _ in rows if status == 'late'),
        'total_hours': total_hours,
        'average_hours': round(total_hours / total_days, 2) if total_days else 0,
    }


def _columns(header) -> Dict[str, int]:
    names = [h.strip().lower() for h in header]
    found = {}
    for key, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in names:
                found[key] = names.index(alias)
                break
    if 'employee_number' not in found or 'date' not in found:
        abort(400, description='CSV must include employee_number,date[,check_in,check_out]')
    return found


def _cell(row, columns: Dict[str, int], key: str) -> str:
    idx = columns.get(key)
    if idx is None or idx >= len(row):
        return ''
    return row[idx].strip()


def _at(day: datetime, hhmm: str) -> Optional[datetime]:
    if not hhmm:
        return None
    try:
        parsed = datetime.strptime(hhmm, '%H:%M')
    except ValueError:
        return None
    return day.replace(hour=parsed.hour, minute=parsed.minute)


def import_csv(csv_data: str) -> ImportResult:
    """Insert one attendance row per CSV line (flushed, not committed).

    Lines for unknown employees, unreadable dates or days already recorded
    are counted as skipped.
    """
    result = ImportResult()
    reader = csv.reader(io.StringIO(csv_data.lstrip('\ufeff').strip()))
    lines = [line for line in reader if any(c.strip() for c in line)]
    if len(lines) < 2:
        return result
    columns = _columns(lines[0])
    shift_start = datetime.strptime(current_app.config['HR_SHIFT_START'], '%H:%M')
    grace = timedelta(minutes=current_app.config['HR_SHIFT_GRACE_MINUTES'])
    session = get_db()
    by_number = {e.employee_number: e for e in session.execute(select(Employee)).scalars()}
    seen = set()
    for row in lines[1:]:
        employee = by_number.get(_cell(row, columns, 'employee_number'))
        try:
            day = datetime.strptime(_cell(row, columns, 'date'), '%Y-%m-%d')
        except ValueError:
            day = None
        if employee is None or day is None or (employee.id, day) in seen:
            result.skipped += 1
            continue
        exists = session.execute(
            select(Attendance.id).where(Attendance.employee_id == employee.id, Attendance.date == day)
        ).scalar_one_or_none()
        if exists:
            result.skipped += 1
            continue
        check_in = _at(day, _cell(row, columns, 'check_in'))
        check_out = _at(day, _cell(row, columns, 'check_out'))
        status = 'present'
        if check_in is None:
            status = 'absent'
            result.absent += 1
        elif check_in - day.replace(hour=shift_start.hour, minute=shift_start.minute) > grace:
            status = 'late'
            result.late += 1
        minutes = None
        if check_in is not None and check_out is not None:
            minutes = max(0, int((check_out - check_in).total_seconds() // 60))
        session.add(Attendance(employee_id=employee.id, date=day, check_in=check_in, check_out=check_out,
                               minutes_worked=minutes, status=status, notes='Imported'))
        seen.add((employee.id, day))
        result.created += 1
    session.flush()
    current_app.logger.info('Attendance import: %s', result.as_dict())
    return result
