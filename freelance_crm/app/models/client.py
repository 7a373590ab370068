"""Client model: the company or person projects and invoices are addressed to."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from freelance_crm.app.core.time import utc_now
from freelance_crm.app.db.base_class import Base
from freelance_crm.app.models.enums import ClientType, enum_type


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(enum_type(ClientType), nullable=False, default=ClientType.COMPANY)
    company_name = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    vat_id = Column(String(50), nullable=True)
    street = Column(String(255), nullable=True)
    postal_code = Column(String(20), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(2), nullable=True, default="DE")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="clients")
    projects = relationship("Project", back_populates="client")
    invoices = relationship("Invoice", back_populates="client")
    recurring_tasks = relationship("RecurringTask", back_populates="client")

    @property
    def display_name(self) -> str:
        if self.type == ClientType.COMPANY and self.company_name:
            return self.company_name
        return self.contact_name or f"Kunde #{self.id}"
