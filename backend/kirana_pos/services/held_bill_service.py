# Overview: Held (suspended) bills: hold a cart snapshot, resume exactly once, delete, list.

from __future__ import annotations

import logging

from sqlalchemy import delete

from ..extensions import db
from ..models import HeldBill
from ..money import round_money
from ..validation import NotFoundError, ValidationError
from .cart import Cart
from .concurrency import run_in_write_transaction

logger = logging.getLogger(__name__)


class HeldBillNotFound(NotFoundError):
    """The held bill does not exist (never held, already resumed, or deleted)."""


def hold_bill(cart: Cart, *, held_by: str, bill_name: str | None = None) -> HeldBill:
    """
    Persist a deep copy of the cart. The live cart is left untouched; callers
    clear it once the hold is committed.
    """
    if cart.is_empty():
        raise ValidationError("Cannot hold an empty cart")

    snapshot = cart.snapshot()
    price = cart.price().rounded()
    name = (bill_name or "").strip() or None
    if name and len(name) > 128:
        raise ValidationError("bill_name exceeds max length 128")

    bill = HeldBill(
        bill_name=name,
        items=snapshot["items"],
        discount_value=round_money(cart.discount.value),
        discount_type=snapshot["discount_type"],
        subtotal=price.subtotal,
        discount=price.discount_amount,
        held_by=held_by,
    )
    db.session.add(bill)
    db.session.commit()
    logger.info("Bill held id=%s items=%s by %s", bill.id, len(snapshot["items"]), held_by)
    return bill


def resume_bill(held_bill_id: int) -> dict:
    """
    Atomically take a held bill out of the store and return its data.

    The read and the delete share one write transaction and the delete's
    rowcount decides the winner: of two concurrent resumes exactly one gets
    the bill, the other gets HeldBillNotFound.
    """
    def _op():
        bill = db.session.get(HeldBill, held_bill_id, populate_existing=True)
        if bill is None:
            raise HeldBillNotFound(f"Held bill {held_bill_id} not found")
        data = bill.to_dict()
        data["cart"] = bill.cart_snapshot()
        db.session.expunge(bill)

        result = db.session.execute(
            delete(HeldBill)
            .where(HeldBill.id == held_bill_id)
        )
        if result.rowcount != 1:
            raise HeldBillNotFound(f"Held bill {held_bill_id} not found")
        return data

    try:
        data = run_in_write_transaction(_op)
    except HeldBillNotFound:
        logger.info("Resume of held bill %s lost (already resumed or deleted)", held_bill_id)
        raise
    logger.info("Held bill resumed id=%s", held_bill_id)
    return data


def delete_held_bill(held_bill_id: int) -> bool:
    """Idempotent: returns False when there was nothing to delete."""
    result = db.session.execute(
        delete(HeldBill)
        .where(HeldBill.id == held_bill_id)
    )
    db.session.commit()
    return bool(result.rowcount)


def get_held_bill(held_bill_id: int) -> HeldBill:
    bill = db.session.get(HeldBill, held_bill_id)
    if bill is None:
        raise HeldBillNotFound(f"Held bill {held_bill_id} not found")
    return bill


def list_held_bills() -> list[HeldBill]:
    """Most recent first."""
    return (
        db.session.query(HeldBill)
        .order_by(HeldBill.held_at.desc(), HeldBill.id.desc())
        .all()
    )
