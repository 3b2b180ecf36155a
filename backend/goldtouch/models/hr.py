from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, UniqueConstraint, func
from typing import Optional
from datetime import datetime

from .authz import Base


class Employee(Base):
    __tablename__ = 'employees'
    STATUS_ACTIVE = 'active'
    STATUS_ON_LEAVE = 'on_leave'
    STATUS_TERMINATED = 'terminated'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_ON_LEAVE, STATUS_TERMINATED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)
    employee_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100))
    position: Mapped[Optional[str]] = mapped_column(String(100))
    hire_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    salary: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class Attendance(Base):
    __tablename__ = 'attendance'
    ALL_STATUSES = ('present', 'absent', 'late', 'half_day')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    check_in: Mapped[Optional[datetime]] = mapped_column(DateTime)
    check_out: Mapped[Optional[datetime]] = mapped_column(DateTime)
    # Whole minutes worked; rendered as hours by the API
    minutes_worked: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default='present')
    notes: Mapped[Optional[str]] = mapped_column(Text)
    __table_args__ = (UniqueConstraint('employee_id', 'date', name='uq_attendance_employee_day'),)


class Payroll(Base):
    __tablename__ = 'payroll'
    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    ALL_STATUSES = (STATUS_PENDING, STATUS_PAID)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    base_salary: Mapped[int] = mapped_column(Integer, nullable=False)
    bonuses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    deductions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    net_salary: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    __table_args__ = (UniqueConstraint('employee_id', 'month', 'year', name='uq_payroll_employee_period'),)


class Leave(Base):
    __tablename__ = 'leaves'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
    ALL_TYPES = ('annual', 'sick', 'emergency', 'unpaid')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(ForeignKey('employees.id', ondelete='CASCADE'), nullable=False, index=True)
    leave_type: Mapped[str] = mapped_column(String(16), nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    days: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    approved_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

__all__ = ['Employee', 'Attendance', 'Payroll', 'Leave']
