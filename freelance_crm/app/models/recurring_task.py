"""Recurring billing/maintenance obligation and its audit log."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.base_class import Base
from freelance_crm.app.models.enums import TaskFrequency, enum_type


class RecurringTask(Base):
    __tablename__ = "recurring_tasks"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    frequency = Column(enum_type(TaskFrequency), nullable=False, default=TaskFrequency.MONTHLY)
    next_due_at = Column(Date, nullable=False)
    last_run_at = Column(Date, nullable=True)
    started_at = Column(Date, nullable=True)
    ends_at = Column(Date, nullable=True)
    amount = Column(Numeric(10, 2), nullable=True)
    billing_notes = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    client = relationship("Client", back_populates="recurring_tasks")
    logs = relationship(
        "RecurringTaskLog",
        back_populates="recurring_task",
        cascade="all, delete-orphan",
        order_by="RecurringTaskLog.id",
    )


class RecurringTaskLog(Base):
    __tablename__ = "recurring_task_logs"

    id = Column(Integer, primary_key=True, index=True)
    recurring_task_id = Column(Integer, ForeignKey("recurring_tasks.id"), nullable=False, index=True)
    due_date = Column(Date, nullable=False)
    action = Column(String(30), nullable=False)
    reminder_id = Column(Integer, ForeignKey("reminders.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    recurring_task = relationship("RecurringTask", back_populates="logs")
