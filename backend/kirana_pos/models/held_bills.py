from __future__ import annotations

from ..extensions import db
from ..money import decimal_str, money_str
from ..time_utils import to_utc_z, utcnow


class HeldBill(db.Model):
    """
    Suspended cart waiting to be resumed.

    items is a JSON deep copy of the cart lines taken at hold time (numbers as
    strings), so later edits to the live cart never reach it.

    CONSUMPTION: A held bill is consumed exactly once, either by resume (which
    deletes the row in the same transaction that reads it) or by delete.
    Any staff member may resume any bill.
    """
    __tablename__ = "held_bills"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    bill_name = db.Column(db.String(128), nullable=True)

    items = db.Column(db.JSON, nullable=False)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_type = db.Column(db.String(8), nullable=False, default="amount")

    # Amounts at hold time, for the pending-bills list
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    held_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    held_by = db.Column(db.String(64), nullable=False)

    def cart_snapshot(self) -> dict:
        return {
            "items": [dict(item) for item in (self.items or [])],
            "discount_value": decimal_str(self.discount_value),
            "discount_type": self.discount_type,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_name": self.bill_name,
            "items": [dict(item) for item in (self.items or [])],
            "item_count": len(self.items or []),
            "discount_value": decimal_str(self.discount_value),
            "discount_type": self.discount_type,
            "subtotal": money_str(self.subtotal),
            "discount": money_str(self.discount),
            "held_at": to_utc_z(self.held_at),
            "held_by": self.held_by,
        }
