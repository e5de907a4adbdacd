from __future__ import annotations

from ..extensions import db
from ..money import decimal_str, money_str, quantity_str
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data.

    STOCK DESIGN DECISION:
    current_stock is a cached projection of the stock ledger (StockMovement rows).
    - Catalog edits never write it; PRODUCT_POLICY does not list it as writable.
    - Only stock_service changes it, with single conditional UPDATE statements.
    - Opening stock given at creation is booked as a stock_in movement, so
      replaying the ledger from zero always reproduces current_stock.

    BARCODES:
    Barcodes are optional and NOT unique. Two active products may share one
    (re-used supplier codes, loose items); lookups surface every match.

    DELETE:
    Products are never removed (historical sales reference them). Deleting
    flips status to 'inactive'.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_barcode_status", "barcode", "status"),
        db.Index("ix_products_status_name", "status", "name"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="Others")
    unit = db.Column(db.String(32), nullable=False, default="Piece")
    brand = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)

    purchase_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # Tax-inclusive MRP
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)

    current_stock = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    min_stock_level = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    expiry_date = db.Column(db.Date, nullable=True)

    # GST percent (0, 5, 12, 18, 28)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "brand": self.brand,
            "description": self.description,
            "purchase_price": money_str(self.purchase_price),
            "selling_price": money_str(self.selling_price),
            "current_stock": quantity_str(self.current_stock),
            "min_stock_level": quantity_str(self.min_stock_level),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "gst_rate": decimal_str(self.gst_rate),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
