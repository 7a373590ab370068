"""Invoice line item."""

from decimal import Decimal

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from freelance_crm.app.db.base_class import Base
from freelance_crm.app.services.money import line_gross_total, line_total, line_vat_amount


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    quantity = Column(Numeric(10, 2), nullable=False, default=Decimal("1.00"))
    unit = Column(String(50), nullable=True)
    unit_price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    # Shown per line only; invoice totals use Invoice.vat_rate
    vat_rate = Column(Numeric(5, 2), nullable=False, default=Decimal("19.00"))
    position = Column(Integer, nullable=False, default=1)

    invoice = relationship("Invoice", back_populates="items")

    @property
    def total(self) -> Decimal:
        return line_total(self.quantity, self.unit_price)

    @property
    def vat_amount(self) -> Decimal:
        return line_vat_amount(self.quantity, self.unit_price, self.vat_rate)

    @property
    def gross_total(self) -> Decimal:
        return line_gross_total(self.quantity, self.unit_price, self.vat_rate)
