"""Money and VAT arithmetic.

Amounts stay unrounded ``Decimal`` values until the final quantize, so a long
list of line items does not pick up rounding drift. Invoice-level VAT is the
invoice ``vat_rate`` applied to the summed subtotal; per-line VAT is for display
and export only and is never added into the invoice total.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Decimal) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    vat_amount: Decimal
    total: Decimal


def calculate_totals(items: Iterable, vat_rate) -> InvoiceTotals:
    """Compute subtotal, VAT and total for items exposing quantity/unit_price.

    Items may be ORM rows, dicts or any object with ``quantity`` and
    ``unit_price`` attributes.
    """
    subtotal = Decimal("0")
    for item in items:
        if isinstance(item, dict):
            quantity, unit_price = item.get("quantity"), item.get("unit_price")
        else:
            quantity, unit_price = item.quantity, item.unit_price
        subtotal += to_decimal(quantity) * to_decimal(unit_price)

    vat_amount = subtotal * (to_decimal(vat_rate) / HUNDRED)
    total = subtotal + vat_amount
    return InvoiceTotals(
        subtotal=round_money(subtotal),
        vat_amount=round_money(vat_amount),
        total=round_money(total),
    )


def line_total(quantity, unit_price) -> Decimal:
    return round_money(to_decimal(quantity) * to_decimal(unit_price))


def line_vat_amount(quantity, unit_price, vat_rate) -> Decimal:
    net = to_decimal(quantity) * to_decimal(unit_price)
    return round_money(net * (to_decimal(vat_rate) / HUNDRED))


def line_gross_total(quantity, unit_price, vat_rate) -> Decimal:
    net = to_decimal(quantity) * to_decimal(unit_price)
    return round_money(net + net * (to_decimal(vat_rate) / HUNDRED))


def recalculate_invoice(invoice) -> InvoiceTotals:
    """Overwrite the stored money fields of ``invoice`` from its items."""
    totals = calculate_totals(invoice.items, invoice.vat_rate)
    invoice.subtotal = totals.subtotal
    invoice.vat_amount = totals.vat_amount
    invoice.total = totals.total
    return totals


def format_eur(value) -> str:
    """German currency formatting, e.g. ``1.190,00 €``."""
    formatted = f"{round_money(to_decimal(value)):,.2f}"
    return formatted.replace(",", "_").replace(".", ",").replace("_", ".") + " €"
