"""Project (offer/engagement) and its ordered line items."""

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.base_class import Base
from freelance_crm.app.models.enums import (
    INVOICEABLE_PROJECT_STATUSES,
    ProjectStatus,
    ProjectType,
    enum_type,
)

TWO_PLACES = Decimal("0.01")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    reference = Column(String(100), nullable=True)
    type = Column(enum_type(ProjectType), nullable=False, default=ProjectType.FIXED)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    fixed_price = Column(Numeric(10, 2), nullable=True)
    status = Column(enum_type(ProjectStatus), nullable=False, default=ProjectStatus.DRAFT)
    offer_date = Column(Date, nullable=True)
    offer_valid_until = Column(Date, nullable=True)
    offer_sent_at = Column(DateTime(timezone=True), nullable=True)
    offer_accepted_at = Column(DateTime(timezone=True), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    client = relationship("Client", back_populates="projects")
    items = relationship(
        "ProjectItem",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="ProjectItem.position",
    )
    invoices = relationship("Invoice", back_populates="project")
    time_entries = relationship("TimeEntry", back_populates="project", cascade="all, delete-orphan")

    @property
    def is_hourly(self) -> bool:
        return self.type == ProjectType.HOURLY

    def can_be_invoiced(self) -> bool:
        return self.status in INVOICEABLE_PROJECT_STATUSES

    @property
    def total_value(self) -> Decimal:
        if self.type == ProjectType.FIXED and self.fixed_price:
            return Decimal(self.fixed_price)
        total = sum((Decimal(item.quantity) * Decimal(item.unit_price) for item in self.items), Decimal("0"))
        return total.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    def _hours(self, entries) -> Decimal:
        minutes = sum((entry.duration_minutes or 0) for entry in entries)
        return (Decimal(minutes) / Decimal(60)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

    @property
    def total_hours(self) -> Decimal:
        return self._hours(self.time_entries)

    @property
    def billable_hours(self) -> Decimal:
        return self._hours(e for e in self.time_entries if e.billable)

    @property
    def unbilled_hours(self) -> Decimal:
        return self._hours(e for e in self.time_entries if e.billable and e.invoice_id is None)

    @property
    def unbilled_amount(self) -> Decimal:
        if not self.is_hourly or self.hourly_rate is None:
            return Decimal("0.00")
        return (self.unbilled_hours * Decimal(self.hourly_rate)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class ProjectItem(Base):
    __tablename__ = "project_items"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False, default=Decimal("1.00"))
    unit = Column(String(50), nullable=True)
    unit_price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    position = Column(Integer, nullable=False, default=1)

    project = relationship("Project", back_populates="items")

    @property
    def total(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.unit_price)
