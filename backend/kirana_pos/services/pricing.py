# Overview: Pure pricing math for carts and sales: subtotal, discount, GST split, total, change.

"""
Pricing calculator.

Selling prices are tax-inclusive MRPs, so GST is a breakdown of the price the
customer already pays and is never added on top:

    subtotal        = sum(unit_price * quantity)
    discount_amount = subtotal * value / 100 (percent) or value (amount),
                      clamped to [0, subtotal]
    total_tax       = sum(unit_price * quantity * gst_rate / 100)
    cgst = sgst     = total_tax / 2
    total           = subtotal - discount_amount

Everything stays unrounded Decimal until PriceBreakdown.rounded() (or
round_money) at display/persistence time.

Discounts above the subtotal (percent > 100 or a flat amount larger than the
bill) are clamped, so a total is never negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Protocol

from ..money import HUNDRED, ZERO, round_money, to_decimal

DISCOUNT_TYPES = ("amount", "percent")


class PricedLine(Protocol):
    unit_price: Decimal
    quantity: Decimal
    gst_rate: Decimal


@dataclass(frozen=True)
class Discount:
    value: Decimal = ZERO
    type: str = "amount"

    def __post_init__(self):
        if self.type not in DISCOUNT_TYPES:
            raise ValueError(f"discount type must be one of {', '.join(DISCOUNT_TYPES)}")
        object.__setattr__(self, "value", to_decimal(self.value))

    @property
    def percent(self) -> Decimal:
        """Percent recorded on the sale; 0 for flat discounts."""
        if self.type != "percent":
            return ZERO
        return min(max(self.value, ZERO), HUNDRED)


NO_DISCOUNT = Discount()


@dataclass(frozen=True)
class TaxBreakdown:
    total_tax: Decimal
    cgst: Decimal
    sgst: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Decimal
    discount_amount: Decimal
    discount_percent: Decimal
    tax: TaxBreakdown
    total: Decimal

    def rounded(self) -> "PriceBreakdown":
        # total is re-derived from the rounded parts so subtotal - discount == total holds to the paisa
        sub = round_money(self.subtotal)
        disc = round_money(self.discount_amount)
        return PriceBreakdown(
            subtotal=sub,
            discount_amount=disc,
            discount_percent=self.discount_percent,
            tax=TaxBreakdown(
                total_tax=round_money(self.tax.total_tax),
                cgst=round_money(self.tax.cgst),
                sgst=round_money(self.tax.sgst),
            ),
            total=sub - disc,
        )

    def to_dict(self) -> dict:
        r = self.rounded()
        return {
            "subtotal": str(r.subtotal),
            "discount_amount": str(r.discount_amount),
            "discount_percent": str(r.discount_percent),
            "total_tax": str(r.tax.total_tax),
            "cgst": str(r.tax.cgst),
            "sgst": str(r.tax.sgst),
            "total": str(r.total),
        }


def line_amount(line: PricedLine) -> Decimal:
    return to_decimal(line.unit_price) * to_decimal(line.quantity)


def line_gst(line: PricedLine) -> Decimal:
    return line_amount(line) * to_decimal(line.gst_rate) / HUNDRED


def subtotal(lines: Iterable[PricedLine]) -> Decimal:
    return sum((line_amount(line) for line in lines), ZERO)


def discount_amount(subtotal_value: Decimal, discount: Discount = NO_DISCOUNT) -> Decimal:
    if discount.type == "percent":
        raw = subtotal_value * discount.value / HUNDRED
    else:
        raw = discount.value
    return min(max(raw, ZERO), max(subtotal_value, ZERO))


def tax_breakdown(lines: Iterable[PricedLine]) -> TaxBreakdown:
    total_tax = sum((line_gst(line) for line in lines), ZERO)
    half = total_tax / 2
    return TaxBreakdown(total_tax=total_tax, cgst=half, sgst=half)


def total(subtotal_value: Decimal, discount_value: Decimal) -> Decimal:
    return subtotal_value - discount_value


def change_due(total_value: Decimal, amount_received: Decimal | None) -> Decimal:
    if amount_received is None:
        return ZERO
    return max(ZERO, to_decimal(amount_received) - to_decimal(total_value))


def price_lines(lines: Iterable[PricedLine], discount: Discount = NO_DISCOUNT) -> PriceBreakdown:
    lines = list(lines)
    sub = subtotal(lines)
    disc = discount_amount(sub, discount)
    return PriceBreakdown(
        subtotal=sub,
        discount_amount=disc,
        discount_percent=discount.percent,
        tax=tax_breakdown(lines),
        total=total(sub, disc),
    )


def invoice_amounts(lines: Iterable[PricedLine], discount: Discount = NO_DISCOUNT) -> PriceBreakdown:
    """
    Rounded amounts for a persisted invoice.

    Each line subtotal is stored rounded, so the invoice subtotal is the sum of
    the rounded line amounts; that keeps sum(item.subtotal) == sale.subtotal.
    For whole-paisa lines this is identical to price_lines(...).rounded().
    """
    lines = list(lines)
    sub = sum((round_money(line_amount(line)) for line in lines), ZERO)
    disc = round_money(discount_amount(sub, discount))
    tax = tax_breakdown(lines)
    return PriceBreakdown(
        subtotal=sub,
        discount_amount=disc,
        discount_percent=discount.percent,
        tax=TaxBreakdown(
            total_tax=round_money(tax.total_tax),
            cgst=round_money(tax.cgst),
            sgst=round_money(tax.sgst),
        ),
        total=sub - disc,
    )
