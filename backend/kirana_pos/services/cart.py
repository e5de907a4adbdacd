# Overview: In-memory cart for one checkout terminal; pricing delegates to pricing.py.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..money import ZERO, decimal_str, round_money, round_quantity, to_decimal
from ..validation import NotFoundError, ValidationError
from . import pricing
from .pricing import Discount, PriceBreakdown, TaxBreakdown


@dataclass
class CartItem:
    """
    Product snapshot plus quantity.

    available_stock is the stock seen when the item was added; it only feeds
    warnings in the cart view. The finalizer re-checks real stock atomically.
    discount is a reserved per-line discount and is not used in totals.
    """
    product_id: int
    name: str
    unit_price: Decimal
    gst_rate: Decimal
    quantity: Decimal
    barcode: str | None = None
    unit: str = "Piece"
    category: str | None = None
    available_stock: Decimal = ZERO
    discount: Decimal = ZERO

    @classmethod
    def from_product(cls, product, quantity: Decimal) -> "CartItem":
        return cls(
            product_id=product.id,
            name=product.name,
            unit_price=to_decimal(product.selling_price),
            gst_rate=to_decimal(product.gst_rate),
            quantity=quantity,
            barcode=product.barcode,
            unit=product.unit,
            category=product.category,
            available_stock=to_decimal(product.current_stock),
        )

    @property
    def line_total(self) -> Decimal:
        return pricing.line_amount(self)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "barcode": self.barcode,
            "unit": self.unit,
            "category": self.category,
            "unit_price": decimal_str(self.unit_price),
            "gst_rate": decimal_str(self.gst_rate),
            "quantity": decimal_str(self.quantity),
            "available_stock": decimal_str(self.available_stock),
            "discount": decimal_str(self.discount),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(
            product_id=int(data["product_id"]),
            name=data["name"],
            unit_price=to_decimal(data["unit_price"]),
            gst_rate=to_decimal(data["gst_rate"]),
            quantity=round_quantity(data["quantity"]),
            barcode=data.get("barcode"),
            unit=data.get("unit") or "Piece",
            category=data.get("category"),
            available_stock=to_decimal(data.get("available_stock", "0")),
            discount=to_decimal(data.get("discount", "0")),
        )


@dataclass
class Cart:
    """Line items keyed by product id in insertion order, plus one bill-level discount."""
    items: dict[int, CartItem] = field(default_factory=dict)
    discount: Discount = field(default_factory=Discount)

    def is_empty(self) -> bool:
        return not self.items

    def lines(self) -> list[CartItem]:
        return list(self.items.values())

    def add_item(self, product, quantity=1) -> CartItem | None:
        """
        Merge by product id (increment) or append.

        Quantities are kept at 3 decimal places, the precision they are stored
        with; anything that rounds to zero or less changes nothing.
        """
        qty = round_quantity(quantity)
        if qty <= 0:
            return None
        existing = self.items.get(product.id)
        if existing:
            existing.quantity += qty
            return existing
        item = CartItem.from_product(product, qty)
        self.items[product.id] = item
        return item

    def update_quantity(self, product_id: int, quantity) -> CartItem | None:
        """Set the quantity (3 decimal places); zero or less removes the line."""
        qty = round_quantity(quantity)
        if qty <= 0:
            self.remove_item(product_id)
            return None
        item = self.items.get(product_id)
        if item is None:
            raise NotFoundError(f"Product {product_id} is not in the cart")
        item.quantity = qty
        return item

    def remove_item(self, product_id: int) -> None:
        self.items.pop(product_id, None)

    def clear(self) -> None:
        self.items.clear()
        self.discount = Discount()

    def set_discount(self, value, discount_type: str = "amount") -> Discount:
        try:
            discount = Discount(value=to_decimal(value), type=discount_type)
        except ValueError as exc:
            raise ValidationError(str(exc))
        if discount.value < 0:
            raise ValidationError("discount cannot be negative")
        if discount.value != round_money(discount.value):
            raise ValidationError("discount allows at most 2 decimal places")
        self.discount = discount
        return discount

    def subtotal(self) -> Decimal:
        return pricing.subtotal(self.lines())

    def discount_amount(self) -> Decimal:
        return pricing.discount_amount(self.subtotal(), self.discount)

    def tax_breakdown(self) -> TaxBreakdown:
        return pricing.tax_breakdown(self.lines())

    def total(self) -> Decimal:
        return pricing.total(self.subtotal(), self.discount_amount())

    def price(self) -> PriceBreakdown:
        return pricing.price_lines(self.lines(), self.discount)

    def snapshot(self) -> dict:
        """JSON-safe deep copy; editing the cart afterwards never changes it."""
        return {
            "items": [item.to_dict() for item in self.items.values()],
            "discount_value": decimal_str(self.discount.value),
            "discount_type": self.discount.type,
        }

    def load_snapshot(self, snapshot: dict) -> None:
        """Replace the cart contents with a snapshot."""
        items = [CartItem.from_dict(d) for d in snapshot.get("items") or []]
        self.items = {item.product_id: item for item in items}
        self.discount = Discount(
            value=to_decimal(snapshot.get("discount_value") or "0"),
            type=snapshot.get("discount_type") or "amount",
        )

    @classmethod
    def from_snapshot(cls, snapshot: dict) -> "Cart":
        cart = cls()
        cart.load_snapshot(snapshot)
        return cart

    def to_dict(self) -> dict:
        data = self.snapshot()
        data["items"] = [
            {**item.to_dict(), "line_total": str(round_money(item.line_total))}
            for item in self.items.values()
        ]
        data.update(self.price().to_dict())
        data["item_count"] = len(self.items)
        return data
