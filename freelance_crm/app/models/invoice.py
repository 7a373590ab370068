"""Invoice model for billing."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.base_class import Base
from freelance_crm.app.models.enums import InvoiceStatus, enum_type


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)

    number = Column(String(20), nullable=False, unique=True, index=True)
    status = Column(enum_type(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT)
    issued_at = Column(Date, nullable=True)
    due_at = Column(Date, nullable=True)
    paid_at = Column(Date, nullable=True)
    payment_method = Column(String(50), nullable=True)

    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    vat_rate = Column(Numeric(5, 2), nullable=False, default=0)
    vat_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False, default=0)

    service_period_start = Column(Date, nullable=True)
    service_period_end = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    footer_text = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    client = relationship("Client", back_populates="invoices")
    project = relationship("Project", back_populates="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    time_entries = relationship("TimeEntry", back_populates="invoice")

    @property
    def is_draft(self) -> bool:
        return self.status == InvoiceStatus.DRAFT
