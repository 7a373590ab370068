"""Per-year invoice number counter; its row is the lock number allocation serialises on."""

from sqlalchemy import Column, Integer

from freelance_crm.app.db.base_class import Base


class InvoiceSequence(Base):
    __tablename__ = "invoice_sequences"

    year = Column(Integer, primary_key=True, autoincrement=False)
    last_value = Column(Integer, nullable=False, default=0)
