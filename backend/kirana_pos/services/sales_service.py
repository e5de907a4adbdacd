"""
Sales Service - cart to immutable sale

Finalize state machine (terminal states COMMITTED / ABORTED):

    DRAFT          cart has >= 1 item, every quantity > 0
    PRICED         pricing computed; cash must cover the total
    NUMBERED       invoice number reserved in a FinalizeAttempt row (own commit)
    PERSISTED      Sale + SaleItems inserted            \
    STOCK_APPLIED  one stock_out movement per line       > one DB transaction
    COMMITTED      attempt marked committed             /

IDEMPOTENCY: every finalize carries an attempt id (client generated, or made
up here when the caller has none). A retry with the same id:
- returns the already committed sale unchanged, or
- reuses the reserved invoice number if the first try died after NUMBERED, or
- raises FinalizeAborted if the first try hit a stock conflict.

NUMBERING: a reserved number is never handed out again. Aborted attempts leave
gaps in the sequence; duplicates are impossible (unique invoice_number).

DETECTION: a Sale with fewer sale movements than items is incomplete;
find_incomplete_sales() and find_stale_attempts() feed `flask sales reconcile`.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import FinalizeAttempt, Sale, SaleItem, StockMovement
from ..money import money_str, round_money, round_quantity
from ..time_utils import day_bounds, today, utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, parse_money
from . import pricing
from .cart import Cart
from .concurrency import PersistenceFailure, run_in_write_transaction
from .invoice_service import allocate_invoice_number, ensure_counter
from .settings_service import get_settings
from .stock_service import StockConflict, record_sale_line

logger = logging.getLogger(__name__)

PAYMENT_MODES = ("cash", "upi", "card")
SALE_STATUSES = ("completed", "returned", "cancelled")
STATUS_TRANSITIONS = {
    "completed": {"returned", "cancelled"},
}


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientPayment(SaleError):
    """Cash received is less than the bill total. Nothing was written."""


class FinalizeAborted(SaleError):
    """The attempt already ended in a stock conflict; start a new attempt."""


@dataclass
class FinalizeResult:
    sale: dict
    change: Decimal
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "sale": self.sale,
            "change": money_str(self.change),
            "replayed": self.replayed,
        }


def _validate_cart(cart: Cart) -> None:
    if cart.is_empty():
        raise ValidationError("Cart is empty")
    for item in cart.lines():
        if round_quantity(item.quantity) <= 0:
            raise ValidationError(f"Quantity for {item.name} must be > 0")


def _sale_for_attempt(attempt_id: str) -> Sale | None:
    return (
        db.session.query(Sale)
        .filter_by(finalize_attempt_id=attempt_id)
        .populate_existing()
        .first()
    )


def _replay(sale: Sale) -> FinalizeResult:
    return FinalizeResult(sale=sale.to_dict(), change=sale.change_returned, replayed=True)


def _mark_attempt(attempt_id: str, status: str, reason: str | None = None) -> bool:
    """Move a NUMBERED attempt to status; False when it had already left NUMBERED."""
    def _op():
        return db.session.query(FinalizeAttempt).filter_by(
            attempt_id=attempt_id, status="numbered",
        ).update(
            {"status": status, "failure_reason": reason, "updated_at": utcnow()},
            synchronize_session=False,
        )

    return bool(run_in_write_transaction(_op))


def _reserve_invoice_number(attempt_id: str, prefix: str, created_by: str) -> tuple[str, str]:
    """NUMBERED: returns (invoice_number, attempt status); reuses an earlier reservation."""
    def _op():
        attempt = (
            db.session.query(FinalizeAttempt)
            .filter_by(attempt_id=attempt_id)
            .populate_existing()
            .first()
        )
        if attempt is not None:
            return attempt.invoice_number, attempt.status

        number = allocate_invoice_number(prefix)
        db.session.add(FinalizeAttempt(
            attempt_id=attempt_id,
            invoice_number=number,
            status="numbered",
            created_by=created_by,
        ))
        db.session.flush()
        return number, "numbered"

    return run_in_write_transaction(_op)


def finalize_sale(
    cart: Cart,
    payment_mode: str,
    amount_received=None,
    *,
    created_by: str,
    attempt_id: str | None = None,
    notes: str | None = None,
    allow_oversell: bool | None = None,
) -> FinalizeResult:
    """
    Turn the cart into a committed sale and apply its stock effects.

    On success the cart is cleared and the receipt-ready sale plus the change
    to hand back are returned.

    Raises:
        ValidationError: empty cart, bad quantity, unknown payment mode
        InsufficientPayment: cash received < total (nothing written)
        StockConflict: a line exceeds stock at commit (attempt aborted)
        FinalizeAborted: this attempt id was aborted earlier
        PersistenceFailure: store unavailable; retry with the same attempt id
    """
    attempt_id = (attempt_id or "").strip() or uuid.uuid4().hex
    if len(attempt_id) > 64:
        raise ValidationError("attempt_id exceeds max length 64")

    # A retry of an attempt that already committed gets the same sale back
    existing = _sale_for_attempt(attempt_id)
    if existing is not None:
        cart.clear()
        return _replay(existing)

    # DRAFT
    _validate_cart(cart)
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError(f"payment_mode must be one of {', '.join(PAYMENT_MODES)}")
    if allow_oversell is None:
        allow_oversell = bool(current_app.config.get("ALLOW_OVERSELL", False))

    # PRICED on the quantities that will be stored
    lines = [replace(item, quantity=round_quantity(item.quantity)) for item in cart.lines()]
    amounts = pricing.invoice_amounts(lines, cart.discount)
    if payment_mode == "cash":
        if amount_received in (None, ""):
            raise InsufficientPayment(
                "Amount received is required for cash payments",
                details={"total": money_str(amounts.total)},
            )
        received = round_money(parse_money(amount_received, "amount_received"))
        if received < amounts.total:
            raise InsufficientPayment(
                "Amount received is less than the bill total",
                details={
                    "total": money_str(amounts.total),
                    "amount_received": money_str(received),
                    "shortfall": money_str(amounts.total - received),
                },
            )
    else:
        received = amounts.total
    change = round_money(pricing.change_due(amounts.total, received))

    # NUMBERED
    settings = get_settings()
    prefix = settings.invoice_prefix
    ensure_counter(settings.starting_invoice_number)
    invoice_number, status = _reserve_invoice_number(attempt_id, prefix, created_by)
    if status == "aborted":
        raise FinalizeAborted(
            "This checkout attempt was aborted; start a new one",
            details={"attempt_id": attempt_id, "invoice_number": invoice_number},
        )

    # PERSISTED + STOCK_APPLIED + COMMITTED
    def _persist():
        already = _sale_for_attempt(attempt_id)
        if already is not None:
            return already, True

        sale = Sale(
            invoice_number=invoice_number,
            finalize_attempt_id=attempt_id,
            subtotal=amounts.subtotal,
            discount_amount=amounts.discount_amount,
            discount_percent=amounts.discount_percent,
            cgst_amount=amounts.tax.cgst,
            sgst_amount=amounts.tax.sgst,
            total_tax=amounts.tax.total_tax,
            total_amount=amounts.total,
            payment_mode=payment_mode,
            amount_received=received,
            change_returned=change,
            status="completed",
            sale_date=utcnow(),
            created_by=created_by,
            notes=(notes or "").strip() or None,
        )
        db.session.add(sale)
        db.session.flush()

        for line_number, item in enumerate(lines, start=1):
            quantity = round_quantity(item.quantity)
            db.session.add(SaleItem(
                sale_id=sale.id,
                line_number=line_number,
                product_id=item.product_id,
                product_name=item.name,
                barcode=item.barcode,
                unit=item.unit,
                quantity=quantity,
                unit_price=round_money(item.unit_price),
                discount=0,
                gst_rate=item.gst_rate,
                gst_amount=round_money(pricing.line_gst(item)),
                subtotal=round_money(pricing.line_amount(item)),
            ))
            record_sale_line(
                item.product_id,
                quantity,
                sale_id=sale.id,
                sale_line=line_number,
                created_by=created_by,
                allow_oversell=allow_oversell,
            )

        committed = db.session.query(FinalizeAttempt).filter_by(
            attempt_id=attempt_id, status="numbered",
        ).update(
            {"status": "committed", "updated_at": utcnow()},
            synchronize_session=False,
        )
        if committed != 1:
            # Aborted (e.g. by reconcile) while this retry was in flight
            raise FinalizeAborted(
                "This checkout attempt was aborted; start a new one",
                details={"attempt_id": attempt_id, "invoice_number": invoice_number},
            )
        db.session.flush()
        return sale, False

    try:
        sale, replayed = run_in_write_transaction(_persist)
    except StockConflict as exc:
        _mark_attempt(attempt_id, "aborted", str(exc))
        logger.warning("Sale %s aborted (stock conflict): %s", invoice_number, exc.details)
        raise
    except IntegrityError:
        # A concurrent retry of this same attempt committed first
        db.session.rollback()
        already = _sale_for_attempt(attempt_id)
        if already is None:
            raise
        cart.clear()
        return _replay(already)
    except PersistenceFailure as exc:
        exc.details.update({"attempt_id": attempt_id, "invoice_number": invoice_number})
        logger.error("Sale %s not persisted, retryable with attempt %s", invoice_number, attempt_id)
        raise

    cart.clear()
    if replayed:
        return _replay(sale)

    logger.info(
        "Sale committed %s total=%s mode=%s lines=%s by %s",
        invoice_number, money_str(amounts.total), payment_mode, len(lines), created_by,
    )
    return FinalizeResult(sale=sale.to_dict(), change=change)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return sale


def get_sale_by_invoice(invoice_number: str) -> Sale:
    sale = db.session.query(Sale).filter_by(invoice_number=invoice_number).first()
    if sale is None:
        raise NotFoundError(f"Sale {invoice_number} not found")
    return sale


def list_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    status: str | None = "completed",
    payment_mode: str | None = None,
    limit: int | None = None,
) -> list[Sale]:
    """Sales in [start, end] (inclusive), newest first."""
    if status and status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SALE_STATUSES)}")

    query = db.session.query(Sale)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    if status:
        query = query.filter(Sale.status == status)
    if payment_mode:
        query = query.filter(Sale.payment_mode == payment_mode)
    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def todays_sales() -> list[Sale]:
    start, end = day_bounds(today())
    return list_sales(start, end)


def update_sale_status(sale_id: int, status: str) -> Sale:
    """
    completed -> returned | cancelled. Amounts and items stay untouched and no
    stock is moved back; restocking a return is a separate stock_in movement.
    """
    if status not in SALE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SALE_STATUSES)}")

    sale = get_sale(sale_id)
    allowed = STATUS_TRANSITIONS.get(sale.status, set())
    if status not in allowed:
        raise ConflictError(
            f"Cannot change sale status from {sale.status} to {status}",
            details={"sale_id": sale.id, "status": sale.status},
        )
    sale.status = status
    db.session.commit()
    logger.info("Sale %s marked %s", sale.invoice_number, status)
    return sale


def find_incomplete_sales() -> list[dict]:
    """Sales whose stock movements do not cover every item."""
    item_counts = (
        db.session.query(SaleItem.sale_id.label("sale_id"), func.count(SaleItem.id).label("item_count"))
        .group_by(SaleItem.sale_id)
        .subquery()
    )
    move_counts = (
        db.session.query(StockMovement.sale_id.label("sale_id"), func.count(StockMovement.id).label("move_count"))
        .filter(StockMovement.sale_id.isnot(None))
        .group_by(StockMovement.sale_id)
        .subquery()
    )
    moves = func.coalesce(move_counts.c.move_count, 0)
    rows = (
        db.session.query(Sale, item_counts.c.item_count, moves)
        .join(item_counts, item_counts.c.sale_id == Sale.id)
        .outerjoin(move_counts, move_counts.c.sale_id == Sale.id)
        .filter(moves < item_counts.c.item_count)
        .order_by(Sale.id.asc())
        .all()
    )
    return [
        {
            "sale_id": sale.id,
            "invoice_number": sale.invoice_number,
            "items": items,
            "movements": movements,
        }
        for sale, items, movements in rows
    ]


def find_stale_attempts(older_than: timedelta = timedelta(minutes=15)) -> list[FinalizeAttempt]:
    """Attempts stuck in NUMBERED (no sale) for longer than older_than."""
    cutoff = utcnow() - older_than
    return (
        db.session.query(FinalizeAttempt)
        .outerjoin(Sale, Sale.finalize_attempt_id == FinalizeAttempt.attempt_id)
        .filter(
            FinalizeAttempt.status == "numbered",
            FinalizeAttempt.created_at < cutoff,
            Sale.id.is_(None),
        )
        .order_by(FinalizeAttempt.created_at.asc())
        .all()
    )


def abort_stale_attempts(older_than: timedelta = timedelta(minutes=15)) -> int:
    """Mark stale attempts aborted; their invoice numbers stay consumed."""
    attempt_ids = [a.attempt_id for a in find_stale_attempts(older_than)]
    aborted = sum(1 for attempt_id in attempt_ids if _mark_attempt(attempt_id, "aborted", "abandoned"))
    if aborted:
        logger.info("Aborted %s stale finalize attempts", aborted)
    return aborted


def build_receipt(sale: Sale) -> dict:
    """Receipt-ready payload: the sale plus the shop details printed around it."""
    settings = get_settings()
    shop = settings.to_dict()
    return {
        "shop": {
            key: shop[key]
            for key in (
                "shop_name", "address_line1", "address_line2", "city", "state",
                "pincode", "phone", "email", "gstin", "receipt_header", "receipt_footer",
            )
        },
        "show_gst_breakdown": settings.show_gst_breakdown,
        "sale": sale.to_dict(),
    }
