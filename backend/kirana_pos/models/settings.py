from __future__ import annotations

from ..extensions import db
from ..money import decimal_str
from ..time_utils import to_utc_z, utcnow

SETTINGS_ROW_ID = 1


class ShopSettings(db.Model):
    """
    Shop-wide settings (singleton row, id=1).

    Billing reads: invoice_prefix, starting_invoice_number, tax_inclusive,
    enable_discount, max_discount_percent, show_gst_breakdown.
    Stock alerts read: low_stock_threshold, expiry_alert_days.
    The rest is passed through to receipt rendering.
    """
    __tablename__ = "shop_settings"

    id = db.Column(db.Integer, primary_key=True, default=SETTINGS_ROW_ID)

    shop_name = db.Column(db.String(128), nullable=False, default="My Kirana Store")
    address_line1 = db.Column(db.String(255), nullable=True)
    address_line2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(64), nullable=True)
    state = db.Column(db.String(64), nullable=True)
    pincode = db.Column(db.String(16), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(128), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)

    receipt_header = db.Column(db.String(255), nullable=True, default="Welcome!")
    receipt_footer = db.Column(db.String(255), nullable=True, default="Thank you! Visit again!")

    invoice_prefix = db.Column(db.String(16), nullable=False, default="INV")
    starting_invoice_number = db.Column(db.Integer, nullable=False, default=1)

    tax_inclusive = db.Column(db.Boolean, nullable=False, default=True)
    enable_discount = db.Column(db.Boolean, nullable=False, default=True)
    max_discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=50)
    show_gst_breakdown = db.Column(db.Boolean, nullable=False, default=True)

    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    expiry_alert_days = db.Column(db.Integer, nullable=False, default=7)

    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "shop_name": self.shop_name,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "city": self.city,
            "state": self.state,
            "pincode": self.pincode,
            "phone": self.phone,
            "email": self.email,
            "gstin": self.gstin,
            "receipt_header": self.receipt_header,
            "receipt_footer": self.receipt_footer,
            "invoice_prefix": self.invoice_prefix,
            "starting_invoice_number": self.starting_invoice_number,
            "tax_inclusive": self.tax_inclusive,
            "enable_discount": self.enable_discount,
            "max_discount_percent": decimal_str(self.max_discount_percent),
            "show_gst_breakdown": self.show_gst_breakdown,
            "low_stock_threshold": self.low_stock_threshold,
            "expiry_alert_days": self.expiry_alert_days,
            "updated_at": to_utc_z(self.updated_at),
        }
