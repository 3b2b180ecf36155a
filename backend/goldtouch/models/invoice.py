from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, text
from typing import Optional
from datetime import datetime

from .authz import Base


class Invoice(Base):
    __tablename__ = 'invoices'
    TYPE_INVOICE = 'invoice'
    TYPE_QUOTE = 'quote'
    ALL_TYPES = (TYPE_INVOICE, TYPE_QUOTE)
    # draft -> sent -> paid (terminal); draft|sent -> cancelled (terminal)
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_PAID = 'paid'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_PAID, STATUS_CANCELLED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_INVOICE)
    client_id: Mapped[int] = mapped_column(ForeignKey('clients.id'), nullable=False, index=True)
    project_id: Mapped[Optional[int]] = mapped_column(ForeignKey('projects.id'), index=True)
    issue_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_DRAFT, index=True)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    terms: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))
    items = relationship('InvoiceItem', back_populates='invoice', cascade='all, delete-orphan', order_by='InvoiceItem.id')


class InvoiceItem(Base):
    __tablename__ = 'invoice_items'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    invoice = relationship('Invoice', back_populates='items')

__all__ = ['Invoice', 'InvoiceItem']
