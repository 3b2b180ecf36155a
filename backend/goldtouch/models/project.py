from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, ForeignKey, DateTime, UniqueConstraint, text
from typing import Optional
from datetime import datetime

from .authz import Base


class Project(Base):
    __tablename__ = 'projects'
    # Only in_progress projects may change status (admins excepted)
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = (STATUS_IN_PROGRESS, STATUS_DELIVERED, STATUS_CANCELLED)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    client_id: Mapped[int] = mapped_column(ForeignKey('clients.id'), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_IN_PROGRESS, index=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    budget: Mapped[Optional[int]] = mapped_column(Integer)
    assigned_to: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), index=True)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))
    team = relationship('ProjectTeamMember', back_populates='project', cascade='all, delete-orphan')


class ProjectTeamMember(Base):
    __tablename__ = 'project_team'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey('projects.id', ondelete='CASCADE'), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role: Mapped[Optional[str]] = mapped_column(String(64))
    added_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    project = relationship('Project', back_populates='team')
    __table_args__ = (UniqueConstraint('project_id', 'user_id', name='uq_project_team_member'),)


class ProjectTask(Base):
    __tablename__ = 'project_tasks'
    STATUS_PLANNED = 'planned'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_DONE = 'done'
    STATUS_CANCELLED = 'cancelled'
    ALL_STATUSES = (STATUS_PLANNED, STATUS_IN_PROGRESS, STATUS_DONE, STATUS_CANCELLED)
    ALL_PRIORITIES = ('low', 'medium', 'high', 'critical')
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True)
    parent_id: Mapped[Optional[int]] = mapped_column(ForeignKey('project_tasks.id', ondelete='SET NULL'))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PLANNED)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default='medium')
    assigned_to: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id'), index=True)
    estimate_hours: Mapped[Optional[int]] = mapped_column(Integer)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), server_onupdate=text('CURRENT_TIMESTAMP'))


class TaskComment(Base):
    __tablename__ = 'task_comments'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey('project_tasks.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'))

__all__ = ['Project', 'ProjectTeamMember', 'ProjectTask', 'TaskComment']
