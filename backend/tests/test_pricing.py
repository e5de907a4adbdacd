from decimal import Decimal

import pytest

from kirana_pos.services import pricing
from kirana_pos.services.cart import CartItem
from kirana_pos.services.pricing import Discount


def _item(product_id, price, qty, gst):
    return CartItem(
        product_id=product_id,
        name=f"Item {product_id}",
        unit_price=Decimal(price),
        gst_rate=Decimal(gst),
        quantity=Decimal(qty),
    )


@pytest.fixture
def lines():
    return [_item(1, "22.00", "2", "5"), _item(2, "10.00", "3", "18")]


def test_ten_percent_discount_breakdown(lines):
    price = pricing.price_lines(lines, Discount(Decimal("10"), "percent")).rounded()

    assert price.subtotal == Decimal("74.00")
    assert price.discount_amount == Decimal("7.40")
    assert price.total == Decimal("66.60")
    assert price.tax.total_tax == Decimal("7.60")
    assert price.tax.cgst == Decimal("3.80")
    assert price.tax.sgst == Decimal("3.80")
    assert price.discount_percent == Decimal("10")


def test_tax_is_not_added_to_total(lines):
    price = pricing.price_lines(lines)
    assert price.total == price.subtotal


@pytest.mark.parametrize("discount", [
    Discount(Decimal("150"), "percent"),
    Discount(Decimal("500"), "amount"),
])
def test_discount_clamped_to_subtotal(lines, discount):
    price = pricing.price_lines(lines, discount)
    assert price.discount_amount == price.subtotal
    assert price.total == Decimal("0")


def test_negative_discount_clamped_to_zero(lines):
    price = pricing.price_lines(lines, Discount(Decimal("-5"), "amount"))
    assert price.discount_amount == Decimal("0")
    assert price.total == price.subtotal


def test_flat_discount_has_no_percent(lines):
    price = pricing.price_lines(lines, Discount(Decimal("4"), "amount"))
    assert price.discount_percent == Decimal("0")
    assert price.total == Decimal("70")


def test_unknown_discount_type_rejected():
    with pytest.raises(ValueError):
        Discount(Decimal("1"), "coupon")


def test_change_due():
    assert pricing.change_due(Decimal("66.60"), Decimal("70.00")) == Decimal("3.40")
    assert pricing.change_due(Decimal("66.60"), None) == Decimal("0")
    assert pricing.change_due(Decimal("66.60"), Decimal("60")) == Decimal("0")


def test_invoice_amounts_sum_rounded_lines():
    # 3 x 0.333 and 3 x 0.335 do not land on whole paise
    lines = [_item(1, "0.333", "3", "0"), _item(2, "0.335", "3", "0")]
    amounts = pricing.invoice_amounts(lines)

    line_totals = [Decimal("1.00"), Decimal("1.01")]
    assert amounts.subtotal == sum(line_totals)
    assert amounts.total == amounts.subtotal - amounts.discount_amount


def test_rounded_total_derived_from_rounded_parts():
    lines = [_item(1, "10.005", "1", "0")]
    price = pricing.price_lines(lines, Discount(Decimal("0.004"), "amount")).rounded()
    assert price.total == price.subtotal - price.discount_amount


def test_empty_cart_prices_to_zero():
    price = pricing.price_lines([])
    assert price.subtotal == Decimal("0")
    assert price.total == Decimal("0")
    assert price.tax.total_tax == Decimal("0")
