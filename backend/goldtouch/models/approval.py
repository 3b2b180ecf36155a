from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, func
from typing import Optional
from datetime import datetime

from .authz import Base


class ApprovalRequest(Base):
    __tablename__ = 'approval_requests'
    # pending -> approved | rejected, exactly once
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)
    ENTITY_TYPES = ('expense', 'sale', 'purchase', 'invoice', 'boq', 'installment')
    ACTIONS = ('create', 'update', 'delete', 'cancel')
    # entity_id for create requests, the target does not exist yet
    NEW_ENTITY_ID = 0
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False, default=NEW_ENTITY_ID)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    request_data: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    requested_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    reviewed_by: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    review_notes: Mapped[Optional[str]] = mapped_column(Text)

__all__ = ['ApprovalRequest']
