# backend/kirana_pos/services/products_service.py
"""
Products Service

Catalog operations the billing engine depends on. current_stock is not a
catalog field: it is only written by the stock ledger (stock_service).
Opening stock given at creation is booked as a ledger movement in the same
transaction as the product insert.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_product,
    parse_quantity,
    validate_payload,
)
from .concurrency import run_in_write_transaction
from .stock_service import OPENING_STOCK_REASON, apply_movement

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "barcode", "name", "category", "unit", "brand", "description",
    "purchase_price", "selling_price", "min_stock_level", "expiry_date",
    "gst_rate", "status",
}

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create={"name", "selling_price"},
)

SEARCH_LIMIT = 20


@dataclass
class BarcodeLookup:
    """
    Result of a barcode scan.

    status: "none", "single" or "multiple". Several active products may share
    one barcode; "multiple" hands every match back so the cashier chooses.
    """
    barcode: str
    products: list[Product] = field(default_factory=list)

    @property
    def status(self) -> str:
        if not self.products:
            return "none"
        if len(self.products) == 1:
            return "single"
        return "multiple"

    @property
    def product(self) -> Product | None:
        return self.products[0] if self.status == "single" else None

    def to_dict(self) -> dict:
        return {
            "barcode": self.barcode,
            "status": self.status,
            "products": [p.to_dict() for p in self.products],
        }


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def require_product(product_id: int) -> Product:
    product = get_product(product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def list_active_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.status == "active")
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def list_products(
    status: str | None = None,
    category: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if status:
        base_query = base_query.filter(Product.status == status)
    if category:
        base_query = base_query.filter(Product.category == category)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    # If no pagination requested, return all items
    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)  # Default 20, max 100
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def search_products(text: str, limit: int = SEARCH_LIMIT) -> list[Product]:
    """Case-insensitive substring match over name, barcode, brand and category (active only)."""
    q = (text or "").strip()
    if not q:
        return []
    pattern = f"%{q}%"
    return (
        db.session.query(Product)
        .filter(
            Product.status == "active",
            or_(
                Product.name.ilike(pattern),
                Product.barcode.ilike(pattern),
                Product.brand.ilike(pattern),
                Product.category.ilike(pattern),
            ),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .limit(limit)
        .all()
    )


def lookup_by_barcode(barcode: str) -> BarcodeLookup:
    code = (barcode or "").strip()
    if not code:
        raise ValidationError("barcode is required")
    products = (
        db.session.query(Product)
        .filter(Product.barcode == code, Product.status == "active")
        .order_by(Product.id.asc())
        .all()
    )
    return BarcodeLookup(barcode=code, products=products)


def barcode_in_use(barcode: str | None, exclude_product_id: int | None = None) -> list[Product]:
    """Other active products carrying this barcode (a warning, never a rejection)."""
    if not barcode:
        return []
    query = db.session.query(Product).filter(Product.barcode == barcode, Product.status == "active")
    if exclude_product_id is not None:
        query = query.filter(Product.id != exclude_product_id)
    return query.order_by(Product.id.asc()).all()


def create_product(*, patch: dict, opening_stock=None, created_by: str) -> Product:
    """
    Create a product, booking any opening stock as a stock_in movement.

    Product row and opening movement commit together.
    """
    cleaned = validate_payload(model=Product, payload=patch, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(cleaned)

    opening = None
    if opening_stock not in (None, ""):
        opening = parse_quantity(opening_stock, "opening_stock")
        if opening < 0:
            raise ValidationError("opening_stock must be >= 0")

    def _op():
        p = Product(current_stock=0)
        apply_product_patch(p, cleaned)
        db.session.add(p)
        db.session.flush()

        if opening:
            apply_movement(
                p.id,
                "stock_in",
                opening,
                reason=OPENING_STOCK_REASON,
                purchase_price=p.purchase_price,
                created_by=created_by,
                commit=False,
            )
        return p

    product = run_in_write_transaction(_op)
    logger.info("Product created id=%s name=%s", product.id, product.name)
    return product


def update_product(product_id: int, patch: dict) -> Product:
    """Partial catalog update; current_stock is not writable here."""
    if "current_stock" in (patch or {}):
        raise ValidationError("current_stock changes must go through stock movements")

    cleaned = validate_payload(model=Product, payload=patch, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(cleaned)

    product = require_product(product_id)
    apply_product_patch(product, cleaned)
    db.session.commit()
    return product


def delete_product(product_id: int) -> Product:
    """Soft delete: historical sales keep referencing the row."""
    product = require_product(product_id)
    product.status = "inactive"
    db.session.commit()
    logger.info("Product deactivated id=%s", product_id)
    return product
