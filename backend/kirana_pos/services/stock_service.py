# Overview: Stock ledger: append-only movements and the cached Product.current_stock projection.

"""
Stock Ledger Invariants (authoritative)

Ledger model:
- StockMovement rows are append-only; nothing updates or deletes them.
- Product.current_stock is a cache of the ledger:
      current_stock == sum(signed deltas of all movements for the product)
  Opening stock is booked as a stock_in movement, so the sum starts at zero.
- quantity on a movement is always a magnitude:
      stock_in    new = previous + quantity
      stock_out   new = previous - quantity   (rejected if new < 0)
      adjustment  new = target, quantity = |target - previous|

Atomicity:
- Every cache update is a compare-and-swap:
      UPDATE products SET current_stock = :new
      WHERE id = :id AND current_stock = :previous
  A lost swap raises StaleDataError, which run_with_retry turns into a fresh
  attempt (re-read, re-check, re-swap). New values are computed in Decimal,
  never with SQL arithmetic, so the equality check is exact.
- The movement row is written in the same transaction as the swap.

Sales:
- record_sale_line() is the finalizer's variant. It never commits and is
  keyed by (sale_id, sale_line) with a unique constraint, so a sale line can
  move stock at most once.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Product, StockMovement
from ..money import ZERO, quantity_str, round_quantity, to_decimal
from ..time_utils import today, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, parse_money, parse_quantity
from .concurrency import lock_for_update, run_in_write_transaction
from .settings_service import get_settings

logger = logging.getLogger(__name__)

MOVEMENT_TYPES = ("stock_in", "stock_out", "adjustment")
SALE_REASON = "sale"
OPENING_STOCK_REASON = "opening stock"


class StockConflict(ConflictError):
    """Requested quantity exceeds the stock on hand at commit time."""


def _locked_product(product_id: int) -> Product:
    product = lock_for_update(
        db.session.query(Product).filter_by(id=product_id).populate_existing()
    ).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _swap_stock(product: Product, previous: Decimal, new: Decimal, *, require_active: bool = False) -> None:
    stmt = update(Product).where(
        Product.id == product.id,
        Product.current_stock == previous,
    )
    if require_active:
        stmt = stmt.where(Product.status == "active")
    stmt = stmt.values(current_stock=new, updated_at=utcnow()).execution_options(synchronize_session=False)

    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise StaleDataError(f"Stock for product {product.id} changed concurrently")
    set_committed_value(product, "current_stock", new)


def _insufficient(product: Product, requested: Decimal, available: Decimal) -> StockConflict:
    return StockConflict(
        f"Insufficient stock for {product.name}",
        details={
            "product_id": product.id,
            "product_name": product.name,
            "requested": quantity_str(requested),
            "available": quantity_str(available),
        },
    )


def _validate_movement(movement_type: str, quantity, reason: str | None) -> Decimal:
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of {', '.join(MOVEMENT_TYPES)}")

    qty = round_quantity(parse_quantity(quantity))
    if movement_type == "adjustment":
        if qty < 0:
            raise ValidationError("adjustment target cannot be negative")
    elif qty <= 0:
        raise ValidationError("quantity must be > 0")

    if movement_type == "stock_out" and not (reason or "").strip():
        raise ValidationError("reason is required for stock out")
    return qty


def _apply_locked(
    product: Product,
    movement_type: str,
    qty: Decimal,
    *,
    reason: str | None,
    supplier_name: str | None,
    purchase_price: Decimal | None,
    created_by: str,
) -> StockMovement:
    previous = to_decimal(product.current_stock)

    if movement_type == "stock_in":
        new = previous + qty
        magnitude = qty
    elif movement_type == "stock_out":
        new = previous - qty
        if new < 0:
            raise _insufficient(product, qty, previous)
        magnitude = qty
    else:
        new = qty
        magnitude = abs(new - previous)

    _swap_stock(product, previous, new)

    # Latest supplier cost wins
    if movement_type == "stock_in" and purchase_price is not None:
        product.purchase_price = purchase_price

    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        movement_type=movement_type,
        quantity=magnitude,
        reason=(reason or "").strip() or None,
        supplier_name=(supplier_name or "").strip() or None,
        purchase_price=purchase_price,
        previous_stock=previous,
        new_stock=new,
        created_at=utcnow(),
        created_by=created_by,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_movement(
    product_id: int,
    movement_type: str,
    quantity,
    *,
    created_by: str,
    reason: str | None = None,
    supplier_name: str | None = None,
    purchase_price=None,
    commit: bool = True,
) -> StockMovement:
    """
    Append one stock movement and update the cached stock.

    For adjustment, quantity is the counted absolute target.
    commit=False runs inside the caller's transaction (e.g., product creation
    booking its opening stock) and leaves commit/rollback to the caller.
    """
    qty = _validate_movement(movement_type, quantity, reason)
    price = parse_money(purchase_price, "purchase_price") if purchase_price not in (None, "") else None

    def _op():
        product = _locked_product(product_id)
        return _apply_locked(
            product,
            movement_type,
            qty,
            reason=reason,
            supplier_name=supplier_name,
            purchase_price=price,
            created_by=created_by,
        )

    if not commit:
        return _op()

    movement = run_in_write_transaction(_op)
    logger.info(
        "Stock %s product=%s qty=%s %s -> %s by %s",
        movement.movement_type,
        movement.product_id,
        movement.quantity,
        movement.previous_stock,
        movement.new_stock,
        created_by,
    )
    return movement


def record_sale_line(
    product_id: int,
    quantity: Decimal,
    *,
    sale_id: int,
    sale_line: int,
    created_by: str,
    allow_oversell: bool = False,
) -> StockMovement:
    """
    Decrement stock for one sale line inside the finalizer's transaction.

    The product must be active and hold at least `quantity`, else StockConflict.
    With allow_oversell the stock is clamped at zero instead and the movement
    records the quantity actually removed.
    """
    product = _locked_product(product_id)
    if not product.is_active:
        raise StockConflict(
            f"{product.name} is no longer available",
            details={"product_id": product.id, "product_name": product.name, "status": product.status},
        )

    previous = to_decimal(product.current_stock)
    new = previous - quantity
    if new < 0:
        if not allow_oversell:
            raise _insufficient(product, quantity, previous)
        logger.warning(
            "Oversell on product=%s requested=%s available=%s (clamped to 0)",
            product.id, quantity, previous,
        )
        new = ZERO

    _swap_stock(product, previous, new, require_active=True)

    movement = StockMovement(
        product_id=product.id,
        product_name=product.name,
        movement_type="stock_out",
        quantity=previous - new,
        reason=SALE_REASON,
        previous_stock=previous,
        new_stock=new,
        sale_id=sale_id,
        sale_line=sale_line,
        created_at=utcnow(),
        created_by=created_by,
    )
    db.session.add(movement)
    return movement


def history(
    product_id: int | None = None,
    movement_type: str | None = None,
    limit: int = 100,
    sale_id: int | None = None,
) -> list[StockMovement]:
    """Most recent movements first."""
    if movement_type and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of {', '.join(MOVEMENT_TYPES)}")

    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if movement_type:
        query = query.filter(StockMovement.movement_type == movement_type)
    if sale_id is not None:
        query = query.filter(StockMovement.sale_id == sale_id)

    limit = max(1, min(int(limit), 1000))
    return (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def low_stock() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.status == "active", Product.current_stock <= Product.min_stock_level)
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )


def expiring_within(days: int) -> list[Product]:
    """Active products expiring on or before today + days (already expired included)."""
    cutoff = today() + timedelta(days=int(days))
    return (
        db.session.query(Product)
        .filter(
            Product.status == "active",
            Product.expiry_date.isnot(None),
            Product.expiry_date <= cutoff,
        )
        .order_by(Product.expiry_date.asc(), Product.name.asc())
        .all()
    )


def stock_alerts() -> dict:
    """Low-stock and expiry alerts using the shop's alert settings."""
    settings = get_settings()
    buffer = Decimal(settings.low_stock_threshold)
    current_day = today()

    low = []
    for product in low_stock():
        shortfall = to_decimal(product.min_stock_level) - to_decimal(product.current_stock)
        low.append({
            **product.to_dict(),
            "reorder_quantity": quantity_str(max(ZERO, shortfall + buffer)),
        })

    expiring = []
    for product in expiring_within(settings.expiry_alert_days):
        expiring.append({
            **product.to_dict(),
            "days_left": (product.expiry_date - current_day).days,
        })

    return {
        "low_stock": low,
        "expiring": expiring,
        "expiry_alert_days": settings.expiry_alert_days,
    }


def replay_stock(product_id: int) -> Decimal:
    """Recompute stock from the ledger alone (Decimal sum in insertion order)."""
    movements = (
        db.session.query(StockMovement)
        .filter(StockMovement.product_id == product_id)
        .order_by(StockMovement.id.asc())
        .all()
    )
    stock = ZERO
    for movement in movements:
        stock += to_decimal(movement.signed_delta)
    return stock


def verify_stock(product_id: int) -> dict:
    product = db.session.query(Product).filter_by(id=product_id).populate_existing().first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    replayed = replay_stock(product_id)
    cached = to_decimal(product.current_stock)
    return {
        "product_id": product.id,
        "product_name": product.name,
        "cached_stock": quantity_str(cached),
        "ledger_stock": quantity_str(replayed),
        "consistent": round_quantity(replayed) == round_quantity(cached),
    }
