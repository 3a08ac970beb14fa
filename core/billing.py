"""
Invoice arithmetic.

Amounts are rounded half-up to the cent at every step, not only at the end:

    line total   = round(price * quantity)
    subtotal     = round(sum(line totals))
    discount     = round(min(discount, subtotal))
    taxable      = subtotal - discount
    gst          = round(taxable * gst% / 100)
    service      = round(taxable * service% / 100)
    grand total  = round(subtotal + gst + service - discount)

Retrieved totals match stored totals exactly because the stored values are
the rounded ones.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from pydantic import BaseModel

from core.models.invoice import BillableItem, ChargeLine, InvoiceLine

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Quantize to two places, half-up. Floats go through str() to avoid binary noise."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class InvoiceTotals(BaseModel):
    """Aggregates computed from priced lines."""

    subtotal: Decimal
    discount: Decimal
    gst: ChargeLine
    service_charge: ChargeLine
    grand_total: Decimal


def price_lines(items: Iterable[BillableItem]) -> list[InvoiceLine]:
    """Turn billable items into invoice lines, preserving order."""
    return [
        InvoiceLine(
            dish_name=item.dish_name,
            quantity=item.quantity,
            price=to_money(item.price),
            total=to_money(to_money(item.price) * item.quantity),
            menu_item_id=item.menu_item_id,
        )
        for item in items
    ]


def compute_totals(
    lines: Iterable[InvoiceLine],
    gst_percentage: Decimal,
    service_charge_percentage: Decimal,
    discount_amount: Decimal,
) -> InvoiceTotals:
    """
    Compute invoice aggregates from already-priced lines.

    Args:
        lines: Invoice lines with rounded totals
        gst_percentage: GST rate, 0-100
        service_charge_percentage: Service charge rate, 0-100
        discount_amount: Requested flat discount; capped at the subtotal

    Returns:
        InvoiceTotals with every amount rounded to the cent
    """
    subtotal = to_money(sum((line.total for line in lines), Decimal("0")))
    discount = to_money(min(Decimal(discount_amount), subtotal))
    taxable = subtotal - discount

    gst_pct = Decimal(gst_percentage)
    service_pct = Decimal(service_charge_percentage)
    gst_amount = to_money(taxable * gst_pct / HUNDRED)
    service_amount = to_money(taxable * service_pct / HUNDRED)

    grand_total = to_money(subtotal + gst_amount + service_amount - discount)

    return InvoiceTotals(
        subtotal=subtotal,
        discount=discount,
        gst=ChargeLine(percentage=gst_pct, amount=gst_amount),
        service_charge=ChargeLine(percentage=service_pct, amount=service_amount),
        grand_total=grand_total,
    )


def totals_match(expected: InvoiceTotals, subtotal, gst_amount, service_amount, discount, grand_total) -> bool:
    """Whether externally supplied amounts agree with `expected` to the cent."""
    pairs = [
        (expected.subtotal, subtotal),
        (expected.gst.amount, gst_amount),
        (expected.service_charge.amount, service_amount),
        (expected.discount, discount),
        (expected.grand_total, grand_total),
    ]
    return all(abs(to_money(actual) - wanted) < CENT for wanted, actual in pairs)
