"""Time tracked against an hourly project."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, event
from sqlalchemy.orm import relationship

from freelance_crm.app.core.time import minutes_between, utc_now
from freelance_crm.app.db.base_class import Base


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    description = Column(Text, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    billable = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    project = relationship("Project", back_populates="time_entries")
    invoice = relationship("Invoice", back_populates="time_entries")

    @property
    def is_running(self) -> bool:
        return self.started_at is not None and self.ended_at is None and self.duration_minutes is None

    @property
    def is_invoiced(self) -> bool:
        return self.invoice_id is not None

    def calculate_duration(self):
        return minutes_between(self.started_at, self.ended_at)


@event.listens_for(TimeEntry, "before_insert")
@event.listens_for(TimeEntry, "before_update")
def _derive_duration(mapper, connection, target):
    duration = target.calculate_duration()
    if duration is not None:
        target.duration_minutes = duration
