from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ShopSettings, SETTINGS_ROW_ID
from ..validation import ModelValidationPolicy, enforce_rules_settings, validate_payload

logger = logging.getLogger(__name__)


SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "shop_name", "address_line1", "address_line2", "city", "state", "pincode",
        "phone", "email", "gstin", "receipt_header", "receipt_footer",
        "invoice_prefix", "starting_invoice_number",
        "tax_inclusive", "enable_discount", "max_discount_percent", "show_gst_breakdown",
        "low_stock_threshold", "expiry_alert_days",
    },
    required_on_create=set(),
)


def get_settings() -> ShopSettings:
    """
    Return the settings singleton, creating the default row on first use.

    The default row is committed on its own; call this before opening a write
    transaction, not inside one.
    """
    settings = db.session.get(ShopSettings, SETTINGS_ROW_ID)
    if settings is not None:
        return settings

    settings = ShopSettings(id=SETTINGS_ROW_ID)
    db.session.add(settings)
    try:
        db.session.commit()
    except IntegrityError:
        # Another worker created it first
        db.session.rollback()
        settings = db.session.get(ShopSettings, SETTINGS_ROW_ID)
    return settings


def update_settings(patch: dict) -> ShopSettings:
    """
    Partial update. Raising starting_invoice_number also moves the invoice
    counter forward; lowering it never rewinds issued numbers.
    """
    from .invoice_service import advance_counter

    cleaned = validate_payload(model=ShopSettings, payload=patch, policy=SETTINGS_POLICY, partial=True)
    enforce_rules_settings(cleaned)

    settings = get_settings()
    for key, value in cleaned.items():
        setattr(settings, key, value)
    db.session.commit()

    if "starting_invoice_number" in cleaned:
        advance_counter(cleaned["starting_invoice_number"])

    logger.info("Shop settings updated: %s", ", ".join(sorted(cleaned)))
    return settings
