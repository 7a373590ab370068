"""Reminder model: a due-date notice, optionally attached to one record."""

from dataclasses import dataclass

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from freelance_crm.app.core.time import ensure_aware, utc_now
from freelance_crm.app.db.base_class import Base
from freelance_crm.app.models.enums import (
    RemindableType,
    ReminderPriority,
    ReminderRecurrence,
    enum_type,
)


@dataclass(frozen=True)
class RemindableRef:
    type: RemindableType
    id: int


class Reminder(Base):
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    remindable_type = Column(enum_type(RemindableType), nullable=True)
    remindable_id = Column(Integer, nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=False)
    snoozed_until = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    recurrence = Column(enum_type(ReminderRecurrence), nullable=True)
    priority = Column(enum_type(ReminderPriority), nullable=False, default=ReminderPriority.NORMAL)
    is_system = Column(Boolean, nullable=False, default=False)
    system_type = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    owner = relationship("User", foreign_keys=[user_id])

    @property
    def remindable(self) -> RemindableRef | None:
        if self.remindable_type is None or self.remindable_id is None:
            return None
        return RemindableRef(RemindableType(self.remindable_type), self.remindable_id)

    @remindable.setter
    def remindable(self, ref: RemindableRef | None) -> None:
        self.remindable_type = ref.type if ref else None
        self.remindable_id = ref.id if ref else None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def effective_due_at(self):
        return ensure_aware(self.snoozed_until or self.due_at)
