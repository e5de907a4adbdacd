from __future__ import annotations

from ..extensions import db
from ..money import decimal_str, money_str, quantity_str
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Finalized sale (invoice).

    IMMUTABLE: Amounts and items never change after insert. Only status moves
    completed -> returned / cancelled.

    IDEMPOTENCY: finalize_attempt_id is the client-generated key of the
    checkout attempt that produced this sale. A retried attempt finds this row
    instead of creating a second sale.

    PRICING: selling prices are tax-inclusive, so total_amount is
    subtotal - discount_amount and the GST columns are an informational
    breakdown, not an addition.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_status_sale_date", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "INV-2026-00042")
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)
    finalize_attempt_id = db.Column(db.String(64), nullable=False, unique=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    cgst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sgst_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    # cash, upi, card
    payment_mode = db.Column(db.String(8), nullable=False, index=True)
    amount_received = db.Column(db.Numeric(12, 2), nullable=True)
    change_returned = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # completed, returned, cancelled
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    sale_date = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    created_by = db.Column(db.String(64), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    items = db.relationship(
        "SaleItem",
        backref=db.backref("sale", lazy=True),
        order_by="SaleItem.line_number",
        lazy=True,
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "finalize_attempt_id": self.finalize_attempt_id,
            "subtotal": money_str(self.subtotal),
            "discount_amount": money_str(self.discount_amount),
            "discount_percent": decimal_str(self.discount_percent),
            "cgst_amount": money_str(self.cgst_amount),
            "sgst_amount": money_str(self.sgst_amount),
            "total_tax": money_str(self.total_tax),
            "total_amount": money_str(self.total_amount),
            "payment_mode": self.payment_mode,
            "amount_received": money_str(self.amount_received),
            "change_returned": money_str(self.change_returned),
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
            "created_by": self.created_by,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Frozen copy of a cart line at sale time; later product edits never alter it."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "line_number", name="uq_sale_items_sale_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    unit = db.Column(db.String(32), nullable=False)

    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False)
    gst_amount = db.Column(db.Numeric(12, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "line_number": self.line_number,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "barcode": self.barcode,
            "unit": self.unit,
            "quantity": quantity_str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "discount": money_str(self.discount),
            "gst_rate": decimal_str(self.gst_rate),
            "gst_amount": money_str(self.gst_amount),
            "subtotal": money_str(self.subtotal),
        }
