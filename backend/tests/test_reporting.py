from datetime import timedelta

import pytest

from kirana_pos.services import reporting_service, sales_service
from kirana_pos.services.cart import Cart
from kirana_pos.time_utils import today
from kirana_pos.validation import ValidationError


@pytest.fixture
def two_sales(db_session, make_product):
    salt = make_product(name="Tata Salt 1kg", price="22.00", stock="20", gst="5", category="Groceries")
    soap = make_product(name="Lux Soap", price="35.00", stock="10", gst="18", category="Personal Care")

    cart = Cart()
    cart.add_item(salt, 2)
    cart.add_item(soap, 1)
    cart.set_discount("4.00", "amount")
    cash = sales_service.finalize_sale(cart, "cash", "100", created_by="cashier-1")

    cart.add_item(salt, 1)
    upi = sales_service.finalize_sale(cart, "upi", created_by="cashier-1")
    return cash, upi, salt, soap


def test_sales_summary(two_sales):
    summary = reporting_service.sales_summary(today(), today())

    assert summary["total_bills"] == 2
    assert summary["total_sales"] == "97.00"
    assert summary["total_discount"] == "4.00"
    assert summary["items_sold"] == "4"
    assert summary["payment_modes"]["cash"] == {"count": 1, "total": "75.00"}
    assert summary["payment_modes"]["upi"] == {"count": 1, "total": "22.00"}
    assert summary["payment_modes"]["card"]["count"] == 0


def test_returned_sales_excluded(two_sales):
    cash, _, _, _ = two_sales
    sales_service.update_sale_status(cash.sale["id"], "returned")
    assert reporting_service.sales_summary(today(), today())["total_sales"] == "22.00"


def test_daily_sales_fills_empty_days(two_sales):
    rows = reporting_service.daily_sales(today() - timedelta(days=2), today())
    assert [r["bills"] for r in rows] == [0, 0, 2]
    assert rows[-1]["total"] == "97.00"


def test_product_performance(two_sales):
    report = reporting_service.product_performance(today(), today())

    assert report["top_by_quantity"][0]["name"] == "Tata Salt 1kg"
    assert report["top_by_quantity"][0]["quantity"] == "3"
    assert report["top_by_revenue"][0]["revenue"] == "66.00"
    categories = {c["category"]: c["revenue"] for c in report["categories"]}
    assert categories == {"Groceries": "66.00", "Personal Care": "35.00"}


def test_stock_report_filters(two_sales):
    report = reporting_service.stock_report()
    assert report["count"] == 2

    low = reporting_service.stock_report(stock_filter="low")
    assert low["count"] == 0

    search = reporting_service.stock_report(search="lux")
    assert [p["name"] for p in search["products"]] == ["Lux Soap"]

    with pytest.raises(ValidationError):
        reporting_service.stock_report(stock_filter="negative")


def test_range_validation(db_session):
    with pytest.raises(ValidationError):
        reporting_service.sales_summary(today(), today() - timedelta(days=1))
    with pytest.raises(ValidationError):
        reporting_service.daily_sales(today() - timedelta(days=400), today())


def test_dashboard(two_sales):
    stats = reporting_service.dashboard_stats()
    assert stats["total_bills"] == 2
    assert stats["cash_sales"] == "75.00"
    assert stats["digital_sales"] == "22.00"
