from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money import to_decimal
from .time_utils import parse_iso_date, parse_iso_datetime


# Maximum price: Rs 99,99,999.99
# Keeps values inside Numeric(12, 2) and rejects nonsensical prices
MAX_PRICE = Decimal("9999999.99")

GST_RATES = (Decimal("0"), Decimal("5"), Decimal("12"), Decimal("18"), Decimal("28"))

PRODUCT_STATUSES = ("active", "inactive")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., stock would go negative)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level missing record."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which columns a client may write, and which a create must supply.

    Anything outside writable_fields is rejected outright, so computed columns
    (current_stock, ids, timestamps) can never be set through a payload.
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{key} must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        digits = value.strip()
        # "12.0", "1e3" and friends are refused rather than truncated
        if digits.removeprefix("-").isdigit():
            return int(digits)
    raise ValidationError(f"{key} must be a whole number")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{key} must be true or false")


def _as_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        parsed = parse_iso_datetime(value) if isinstance(value, str) else None
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    return parsed


def _as_date(key: str, value: Any) -> date | None:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")


def _coerce_value(col, value: Any):
    """JSON value -> Python value for the column's type."""
    if value is None:
        return None

    coltype = col.type
    if isinstance(coltype, Numeric):
        # Money, quantities and rates; numbers or numeric strings
        try:
            return to_decimal(value)
        except ValueError:
            raise ValidationError(f"{col.key} must be a number")
    if isinstance(coltype, Integer):
        return _as_int(col.key, value)
    if isinstance(coltype, Boolean):
        return _as_bool(col.key, value)
    if isinstance(coltype, DateTime):
        return _as_datetime(col.key, value)
    if isinstance(coltype, Date):
        return _as_date(col.key, value)
    if isinstance(coltype, (String, Text)):
        return str(value).strip()
    return value


def _check_text(col, key: str, value):
    """Blank required text is an error; blank optional text becomes NULL."""
    if not isinstance(col.type, (String, Text)) or not isinstance(value, str):
        return value
    if value == "":
        if not col.nullable:
            raise ValidationError(f"{key} cannot be blank")
        return None
    limit = getattr(col.type, "length", None)
    if limit and len(value) > limit:
        raise ValidationError(f"{key} exceeds max length {limit}")
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the model's columns and the policy.

    Returns a patch holding only writable fields, coerced to column types.
    partial=False (create) also enforces required_on_create; partial=True
    (update) validates just the keys present.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted((policy.required_on_create or set()) - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    unknown = [k for k in payload if k not in policy.writable_fields or k not in cols]
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    patch: dict = {}
    for key, raw in payload.items():
        col = cols[key]
        if raw is None and not col.nullable:
            raise ValidationError(f"{key} cannot be null")
        patch[key] = _check_text(col, key, _coerce_value(col, raw))
    return patch


def parse_quantity(value: Any, field: str = "quantity") -> Decimal:
    """Parse a quantity from request input; sign checks are left to the caller."""
    try:
        return to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")


def parse_money(value: Any, field: str = "amount") -> Decimal:
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    if amount > MAX_PRICE:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")
    return amount


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("purchase_price", "selling_price"):
        if field in patch and patch[field] is not None:
            price = patch[field]
            if price < 0:
                raise ValidationError(f"{field} must be >= 0")
            if price > MAX_PRICE:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")

    if "min_stock_level" in patch and patch["min_stock_level"] is not None:
        if patch["min_stock_level"] < 0:
            raise ValidationError("min_stock_level must be >= 0")

    if "gst_rate" in patch and patch["gst_rate"] is not None:
        if patch["gst_rate"] not in GST_RATES:
            allowed = ", ".join(str(r) for r in GST_RATES)
            raise ValidationError(f"gst_rate must be one of {allowed}")

    if "status" in patch and patch["status"] not in PRODUCT_STATUSES:
        raise ValidationError("status must be active or inactive")


def enforce_rules_settings(patch: dict) -> None:
    if "max_discount_percent" in patch:
        value = patch["max_discount_percent"]
        if value is None or value < 0 or value > 100:
            raise ValidationError("max_discount_percent must be between 0 and 100")

    if "starting_invoice_number" in patch:
        value = patch["starting_invoice_number"]
        if value is None or value < 1:
            raise ValidationError("starting_invoice_number must be >= 1")

    for field in ("low_stock_threshold", "expiry_alert_days"):
        if field in patch and (patch[field] is None or patch[field] < 0):
            raise ValidationError(f"{field} must be >= 0")

    if "invoice_prefix" in patch:
        prefix = patch["invoice_prefix"]
        if not prefix or not prefix.replace("_", "").isalnum():
            raise ValidationError("invoice_prefix must be letters, digits or underscores")
