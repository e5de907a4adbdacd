from __future__ import annotations

from ..extensions import db
from ..money import money_str, quantity_str
from ..time_utils import to_utc_z, utcnow


class StockMovement(db.Model):
    """
    Append-only stock ledger entry.

    IMMUTABLE: Rows are never updated or deleted.

    QUANTITY: Always a non-negative magnitude. Direction comes from
    movement_type:
    - stock_in:   new_stock = previous_stock + quantity
    - stock_out:  new_stock = previous_stock - quantity
    - adjustment: new_stock is the counted target, quantity = |new - previous|

    SALES: Movements written by sale finalization carry sale_id + sale_line.
    The unique constraint makes a second movement for the same sale line
    impossible, so a blind retry cannot double-apply stock. A sale with fewer
    movements than items is incomplete and shows up in reconciliation.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.UniqueConstraint("sale_id", "sale_line", name="uq_stock_movements_sale_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Denormalized for audit (survives product renames)
    product_name = db.Column(db.String(255), nullable=False)

    # stock_in, stock_out, adjustment
    movement_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=True)

    previous_stock = db.Column(db.Numeric(12, 3), nullable=False)
    new_stock = db.Column(db.Numeric(12, 3), nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    sale_line = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    created_by = db.Column(db.String(64), nullable=False)

    product = db.relationship("Product")

    @property
    def signed_delta(self):
        if self.movement_type == "stock_in":
            return self.quantity
        if self.movement_type == "stock_out":
            return -self.quantity
        return self.new_stock - self.previous_stock

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "movement_type": self.movement_type,
            "quantity": quantity_str(self.quantity),
            "reason": self.reason,
            "supplier_name": self.supplier_name,
            "purchase_price": money_str(self.purchase_price),
            "previous_stock": quantity_str(self.previous_stock),
            "new_stock": quantity_str(self.new_stock),
            "sale_id": self.sale_id,
            "sale_line": self.sale_line,
            "created_at": to_utc_z(self.created_at),
            "created_by": self.created_by,
        }
