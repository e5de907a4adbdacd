# Overview: Read-only sales and stock reports; amounts are summed in Decimal.

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..money import ZERO, money_str, quantity_str, to_decimal
from ..time_utils import day_bounds, today
from ..validation import ValidationError
from .sales_service import PAYMENT_MODES, list_sales
from .settings_service import get_settings
from . import stock_service

STOCK_FILTERS = ("all", "low", "out", "ok")
MAX_REPORT_DAYS = 366


def _range_bounds(start_date: date, end_date: date):
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    if (end_date - start_date).days >= MAX_REPORT_DAYS:
        raise ValidationError(f"Report range cannot exceed {MAX_REPORT_DAYS} days")
    start, _ = day_bounds(start_date)
    _, end = day_bounds(end_date)
    return start, end


def _completed_items(start_date: date, end_date: date):
    start, end = _range_bounds(start_date, end_date)
    return (
        db.session.query(SaleItem, Product.category)
        .join(Sale, Sale.id == SaleItem.sale_id)
        .outerjoin(Product, Product.id == SaleItem.product_id)
        .filter(Sale.status == "completed", Sale.sale_date >= start, Sale.sale_date <= end)
        .all()
    )


def sales_summary(start_date: date, end_date: date) -> dict:
    """Totals for completed sales in the inclusive date range."""
    start, end = _range_bounds(start_date, end_date)
    sales = list_sales(start, end)

    total_sales = sum((to_decimal(s.total_amount) for s in sales), ZERO)
    total_discount = sum((to_decimal(s.discount_amount) for s in sales), ZERO)
    total_tax = sum((to_decimal(s.total_tax) for s in sales), ZERO)
    items_sold = sum(
        (to_decimal(item.quantity) for s in sales for item in s.items),
        ZERO,
    )

    by_mode = {mode: {"count": 0, "total": ZERO} for mode in PAYMENT_MODES}
    for sale in sales:
        bucket = by_mode.setdefault(sale.payment_mode, {"count": 0, "total": ZERO})
        bucket["count"] += 1
        bucket["total"] += to_decimal(sale.total_amount)

    bills = len(sales)
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "total_sales": money_str(total_sales),
        "total_bills": bills,
        "average_bill": money_str(total_sales / bills if bills else ZERO),
        "items_sold": quantity_str(items_sold),
        "total_discount": money_str(total_discount),
        "total_tax": money_str(total_tax),
        "payment_modes": {
            mode: {"count": v["count"], "total": money_str(v["total"])}
            for mode, v in by_mode.items()
        },
        "sales": [s.to_dict(include_items=False) for s in sales],
    }


def daily_sales(start_date: date, end_date: date) -> list[dict]:
    """One row per calendar day (days without sales included with zero)."""
    start, end = _range_bounds(start_date, end_date)
    totals: dict[date, Decimal] = defaultdict(lambda: ZERO)
    counts: dict[date, int] = defaultdict(int)
    for sale in list_sales(start, end):
        day = sale.sale_date.date()
        totals[day] += to_decimal(sale.total_amount)
        counts[day] += 1

    rows = []
    day = start_date
    while day <= end_date:
        rows.append({
            "date": day.isoformat(),
            "bills": counts.get(day, 0),
            "total": money_str(totals.get(day, ZERO)),
        })
        day += timedelta(days=1)
    return rows


def product_performance(start_date: date, end_date: date, limit: int = 20) -> dict:
    """Top products by quantity and by revenue, plus per-category totals."""
    products: dict[int, dict] = {}
    categories: dict[str, dict] = {}

    for item, category in _completed_items(start_date, end_date):
        stats = products.setdefault(item.product_id, {
            "product_id": item.product_id,
            "name": item.product_name,
            "category": category,
            "quantity": ZERO,
            "revenue": ZERO,
        })
        stats["quantity"] += to_decimal(item.quantity)
        stats["revenue"] += to_decimal(item.subtotal)

        cat = categories.setdefault(category or "Others", {"quantity": ZERO, "revenue": ZERO})
        cat["quantity"] += to_decimal(item.quantity)
        cat["revenue"] += to_decimal(item.subtotal)

    def _row(stats: dict) -> dict:
        return {
            **stats,
            "quantity": quantity_str(stats["quantity"]),
            "revenue": money_str(stats["revenue"]),
        }

    by_quantity = sorted(products.values(), key=lambda s: (-s["quantity"], s["name"]))[:limit]
    by_revenue = sorted(products.values(), key=lambda s: (-s["revenue"], s["name"]))[:limit]

    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "top_by_quantity": [_row(s) for s in by_quantity],
        "top_by_revenue": [_row(s) for s in by_revenue],
        "categories": [
            {"category": name, "quantity": quantity_str(v["quantity"]), "revenue": money_str(v["revenue"])}
            for name, v in sorted(categories.items(), key=lambda kv: -kv[1]["revenue"])
        ],
    }


def stock_report(category: str | None = None, stock_filter: str = "all", search: str | None = None) -> dict:
    """Active products with stock valuation at purchase and at retail price."""
    if stock_filter not in STOCK_FILTERS:
        raise ValidationError(f"stock_filter must be one of {', '.join(STOCK_FILTERS)}")

    active = (
        db.session.query(Product)
        .filter(Product.status == "active")
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    def _is_low(p: Product) -> bool:
        return ZERO < to_decimal(p.current_stock) <= to_decimal(p.min_stock_level)

    def _is_out(p: Product) -> bool:
        return to_decimal(p.current_stock) == ZERO

    needle = (search or "").strip().lower()
    selected = []
    for p in active:
        if category and p.category != category:
            continue
        if needle and needle not in p.name.lower() and needle not in (p.barcode or ""):
            continue
        if stock_filter == "low" and not _is_low(p):
            continue
        if stock_filter == "out" and not _is_out(p):
            continue
        if stock_filter == "ok" and to_decimal(p.current_stock) <= to_decimal(p.min_stock_level):
            continue
        selected.append(p)

    stock_value = sum((to_decimal(p.current_stock) * to_decimal(p.purchase_price) for p in selected), ZERO)
    retail_value = sum((to_decimal(p.current_stock) * to_decimal(p.selling_price) for p in selected), ZERO)

    return {
        "products": [p.to_dict() for p in selected],
        "count": len(selected),
        "total_stock_value": money_str(stock_value),
        "total_retail_value": money_str(retail_value),
        "low_stock_count": sum(1 for p in active if _is_low(p)),
        "out_of_stock_count": sum(1 for p in active if _is_out(p)),
    }


def dashboard_stats() -> dict:
    """Today's counters for the dashboard cards."""
    current_day = today()
    start, end = day_bounds(current_day)
    sales = list_sales(start, end)

    total = sum((to_decimal(s.total_amount) for s in sales), ZERO)
    cash = sum((to_decimal(s.total_amount) for s in sales if s.payment_mode == "cash"), ZERO)
    items = sum((to_decimal(i.quantity) for s in sales for i in s.items), ZERO)

    low_stock = len(stock_service.low_stock())
    expiring = len(stock_service.expiring_within(get_settings().expiry_alert_days))

    return {
        "date": current_day.isoformat(),
        "total_sales": money_str(total),
        "total_bills": len(sales),
        "items_sold": quantity_str(items),
        "cash_sales": money_str(cash),
        "digital_sales": money_str(total - cash),
        "low_stock_count": low_stock,
        "expiring_count": expiring,
    }
