from decimal import Decimal

import pytest

from kirana_pos.services import held_bill_service
from kirana_pos.services.cart import Cart
from kirana_pos.services.held_bill_service import HeldBillNotFound
from kirana_pos.validation import ValidationError


def test_hold_and_resume_round_trip(db_session, scenario_cart):
    cart, salt, biscuit = scenario_cart
    cart.set_discount(10, "percent")
    original = cart.snapshot()

    bill = held_bill_service.hold_bill(cart, held_by="cashier-1", bill_name="Sharma ji")
    assert bill.subtotal is not None
    assert [b.id for b in held_bill_service.list_held_bills()] == [bill.id]

    data = held_bill_service.resume_bill(bill.id)
    restored = Cart.from_snapshot(data["cart"])

    assert restored.snapshot()["items"] == original["items"]
    assert restored.discount.type == "percent"
    assert restored.discount.value == 10
    assert restored.total() == cart.total()
    assert data["bill_name"] == "Sharma ji"
    assert held_bill_service.list_held_bills() == []


def test_fractional_percent_discount_survives_hold(db_session, scenario_cart):
    cart, _, _ = scenario_cart
    cart.set_discount("12.34", "percent")

    bill = held_bill_service.hold_bill(cart, held_by="cashier-1")
    restored = Cart.from_snapshot(held_bill_service.resume_bill(bill.id)["cart"])

    assert restored.discount.value == Decimal("12.34")
    assert restored.discount_amount() == cart.discount_amount()


def test_hold_leaves_live_cart_untouched(db_session, scenario_cart):
    cart, _, _ = scenario_cart
    held_bill_service.hold_bill(cart, held_by="cashier-1")
    assert len(cart.lines()) == 2


def test_cannot_hold_empty_cart(db_session):
    with pytest.raises(ValidationError):
        held_bill_service.hold_bill(Cart(), held_by="cashier-1")


def test_second_resume_fails(db_session, scenario_cart):
    cart, _, _ = scenario_cart
    bill = held_bill_service.hold_bill(cart, held_by="cashier-1")
    held_bill_service.resume_bill(bill.id)

    with pytest.raises(HeldBillNotFound):
        held_bill_service.resume_bill(bill.id)


def test_delete_is_idempotent(db_session, scenario_cart):
    cart, _, _ = scenario_cart
    bill = held_bill_service.hold_bill(cart, held_by="cashier-1")

    assert held_bill_service.delete_held_bill(bill.id) is True
    assert held_bill_service.delete_held_bill(bill.id) is False
    with pytest.raises(HeldBillNotFound):
        held_bill_service.get_held_bill(bill.id)


def test_list_is_most_recent_first(db_session, scenario_cart):
    cart, _, _ = scenario_cart
    first = held_bill_service.hold_bill(cart, held_by="cashier-1", bill_name="first")
    second = held_bill_service.hold_bill(cart, held_by="cashier-2", bill_name="second")

    ids = [b.id for b in held_bill_service.list_held_bills()]
    assert ids == [second.id, first.id]
