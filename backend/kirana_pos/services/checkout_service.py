# Overview: Caller-facing checkout operations; one in-memory cart per terminal.

"""
Checkout surface used by the billing screen.

Each checkout terminal (browser tab, counter PC) owns one Cart held in the
process-wide TerminalRegistry. All operations on a terminal's cart run under
that terminal's lock, so two requests from the same terminal never interleave
an edit with a finalize. Shared state (stock, invoice counter, held bills) is
protected by the services underneath, not by these locks.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from decimal import Decimal

from flask import current_app

from ..money import HUNDRED, ZERO, quantity_str, round_quantity, to_decimal
from ..validation import NotFoundError, ValidationError, parse_quantity
from . import held_bill_service, products_service, sales_service, stock_service
from .cart import Cart
from .products_service import BarcodeLookup
from .settings_service import get_settings

MAX_TERMINAL_ID_LENGTH = 64


class _Terminal:
    def __init__(self):
        self.lock = threading.RLock()
        self.cart = Cart()


class TerminalRegistry:
    """Process-wide map of terminal id -> cart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._terminals: dict[str, _Terminal] = {}

    def _get(self, terminal_id: str) -> _Terminal:
        with self._lock:
            terminal = self._terminals.get(terminal_id)
            if terminal is None:
                terminal = _Terminal()
                self._terminals[terminal_id] = terminal
            return terminal

    @contextmanager
    def cart(self, terminal_id: str):
        terminal = self._get(terminal_id)
        with terminal.lock:
            yield terminal.cart

    def terminal_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._terminals)

    def reset(self) -> None:
        with self._lock:
            self._terminals.clear()


def _registry() -> TerminalRegistry:
    return current_app.extensions["kirana_terminals"]


def _terminal_cart(terminal_id: str):
    terminal_id = (terminal_id or "").strip()
    if not terminal_id or len(terminal_id) > MAX_TERMINAL_ID_LENGTH:
        raise ValidationError("terminal id is required (max 64 characters)")
    return _registry().cart(terminal_id)


def _positive_quantity(quantity) -> Decimal:
    qty = round_quantity(parse_quantity(quantity))
    if qty <= 0:
        raise ValidationError("quantity must be at least 0.001")
    return qty


def _stock_warnings(cart: Cart) -> list[dict]:
    """Lines asking for more than the stock seen when they were added."""
    warnings = []
    for item in cart.lines():
        if item.quantity > item.available_stock:
            warnings.append({
                "product_id": item.product_id,
                "name": item.name,
                "requested": quantity_str(item.quantity),
                "available": quantity_str(item.available_stock),
            })
    return warnings


def _summary(cart: Cart) -> dict:
    settings = get_settings()
    data = cart.to_dict()
    data["stock_warnings"] = _stock_warnings(cart)
    data["show_gst_breakdown"] = settings.show_gst_breakdown
    data["tax_inclusive"] = settings.tax_inclusive
    return data


def cart_summary(terminal_id: str) -> dict:
    with _terminal_cart(terminal_id) as cart:
        return _summary(cart)


def get_cart_snapshot(terminal_id: str) -> dict:
    with _terminal_cart(terminal_id) as cart:
        return cart.snapshot()


def add_to_cart(terminal_id: str, product_id: int, quantity=1) -> dict:
    qty = _positive_quantity(quantity)
    product = products_service.require_product(product_id)
    if not product.is_active:
        raise ValidationError(f"{product.name} is inactive")

    with _terminal_cart(terminal_id) as cart:
        cart.add_item(product, qty)
        return _summary(cart)


def scan_barcode(terminal_id: str, barcode: str, quantity=1) -> dict:
    """
    Add the product behind a barcode.

    A single match is added. No match raises NotFoundError. Several matches add
    nothing and return the candidates for the cashier to choose from.
    """
    qty = _positive_quantity(quantity)
    result = lookup_by_barcode(barcode)
    if result.status == "none":
        raise NotFoundError(f"No product with barcode {result.barcode}")

    with _terminal_cart(terminal_id) as cart:
        if result.status == "single":
            cart.add_item(result.product, qty)
        summary = _summary(cart)
    return {"lookup": result.to_dict(), "cart": summary}


def update_cart_quantity(terminal_id: str, product_id: int, quantity) -> dict:
    qty = parse_quantity(quantity)
    with _terminal_cart(terminal_id) as cart:
        cart.update_quantity(product_id, qty)
        return _summary(cart)


def remove_from_cart(terminal_id: str, product_id: int) -> dict:
    with _terminal_cart(terminal_id) as cart:
        cart.remove_item(product_id)
        return _summary(cart)


def clear_cart(terminal_id: str) -> dict:
    with _terminal_cart(terminal_id) as cart:
        cart.clear()
        return _summary(cart)


def apply_discount(terminal_id: str, value, discount_type: str = "amount") -> dict:
    """
    Set the bill discount within the shop's limits.

    Rejected when discounts are disabled or the discount exceeds
    max_discount_percent of the current subtotal. The calculator clamps to the
    subtotal regardless.
    """
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError("discount must be a number")
    if amount < 0:
        raise ValidationError("discount cannot be negative")

    settings = get_settings()
    if amount > 0 and not settings.enable_discount:
        raise ValidationError("Discounts are disabled")
    max_percent = to_decimal(settings.max_discount_percent)

    with _terminal_cart(terminal_id) as cart:
        if discount_type == "percent":
            if amount > max_percent:
                raise ValidationError(f"Discount cannot exceed {max_percent}%")
        elif discount_type == "amount":
            subtotal = cart.subtotal()
            if amount > 0 and subtotal > ZERO and amount * HUNDRED / subtotal > max_percent:
                raise ValidationError(f"Discount cannot exceed {max_percent}% of the bill")
        cart.set_discount(amount, discount_type)
        return _summary(cart)


def hold_current_cart(terminal_id: str, *, held_by: str, bill_name: str | None = None) -> dict:
    """Park the cart as a held bill and empty the terminal."""
    with _terminal_cart(terminal_id) as cart:
        bill = held_bill_service.hold_bill(cart, held_by=held_by, bill_name=bill_name)
        cart.clear()
        return bill.to_dict()


def resume_held_bill(terminal_id: str, held_bill_id: int) -> dict:
    """
    Take the held bill out of the store and load it into this terminal's cart,
    replacing whatever the cart held.
    """
    with _terminal_cart(terminal_id) as cart:
        data = held_bill_service.resume_bill(held_bill_id)
        cart.load_snapshot(data["cart"])
        return {"held_bill": data, "cart": _summary(cart)}


def finalize_current_sale(
    terminal_id: str,
    payment_mode: str,
    amount_received=None,
    *,
    created_by: str,
    attempt_id: str | None = None,
    notes: str | None = None,
) -> dict:
    with _terminal_cart(terminal_id) as cart:
        result = sales_service.finalize_sale(
            cart,
            payment_mode,
            amount_received,
            created_by=created_by,
            attempt_id=attempt_id,
            notes=notes,
        )
        return result.to_dict()


def record_stock_movement(product_id: int, movement_type: str, quantity, *, created_by: str, **meta) -> dict:
    """meta: reason, supplier_name, purchase_price."""
    movement = stock_service.apply_movement(
        product_id,
        movement_type,
        quantity,
        created_by=created_by,
        reason=meta.get("reason"),
        supplier_name=meta.get("supplier_name"),
        purchase_price=meta.get("purchase_price"),
    )
    return movement.to_dict()


def lookup_by_barcode(barcode: str) -> BarcodeLookup:
    return products_service.lookup_by_barcode(barcode)
