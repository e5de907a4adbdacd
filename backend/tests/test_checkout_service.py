
import pytest

from kirana_pos.services import checkout_service, held_bill_service, settings_service
from kirana_pos.services.held_bill_service import HeldBillNotFound
from kirana_pos.validation import NotFoundError, ValidationError


class TestTerminalCheckout:
    def test_carts_are_per_terminal(self, db_session, make_product):
        product = make_product()
        checkout_service.add_to_cart("counter-1", product.id, 2)

        assert checkout_service.cart_summary("counter-1")["item_count"] == 1
        assert checkout_service.cart_summary("counter-2")["item_count"] == 0

    def test_add_rejects_bad_input(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            checkout_service.add_to_cart("counter-1", product.id, 0)
        with pytest.raises(NotFoundError):
            checkout_service.add_to_cart("counter-1", 999, 1)
        with pytest.raises(ValidationError):
            checkout_service.add_to_cart("", product.id, 1)

    def test_inactive_product_cannot_be_added(self, db_session, make_product):
        from kirana_pos.services import products_service

        product = make_product()
        products_service.delete_product(product.id)
        with pytest.raises(ValidationError):
            checkout_service.add_to_cart("counter-1", product.id, 1)

    def test_stock_warning_when_over_available(self, db_session, make_product):
        product = make_product(stock="2")
        summary = checkout_service.add_to_cart("counter-1", product.id, 3)
        assert summary["stock_warnings"][0]["available"] == "2"

    def test_scan_single_none_and_multiple(self, db_session, make_product):
        make_product(name="Parle-G", barcode="111")
        make_product(name="Lux Red", barcode="222")
        make_product(name="Lux Pink", barcode="222")

        result = checkout_service.scan_barcode("counter-1", "111")
        assert result["lookup"]["status"] == "single"
        assert result["cart"]["item_count"] == 1

        result = checkout_service.scan_barcode("counter-1", "222")
        assert result["lookup"]["status"] == "multiple"
        assert len(result["lookup"]["products"]) == 2
        assert result["cart"]["item_count"] == 1

        with pytest.raises(NotFoundError):
            checkout_service.scan_barcode("counter-1", "999")

    def test_discount_limits(self, db_session, make_product):
        product = make_product(price="100.00")
        checkout_service.add_to_cart("counter-1", product.id, 1)

        summary = checkout_service.apply_discount("counter-1", 10, "percent")
        assert summary["total"] == "90.00"

        with pytest.raises(ValidationError):
            checkout_service.apply_discount("counter-1", 60, "percent")
        with pytest.raises(ValidationError):
            checkout_service.apply_discount("counter-1", 51, "amount")

        settings_service.update_settings({"enable_discount": False})
        with pytest.raises(ValidationError):
            checkout_service.apply_discount("counter-1", 5, "amount")
        assert checkout_service.apply_discount("counter-1", 0, "amount")["discount_amount"] == "0.00"

    def test_hold_and_resume_on_another_terminal(self, db_session, make_product):
        product = make_product(price="30.00")
        checkout_service.add_to_cart("counter-1", product.id, 2)
        bill = checkout_service.hold_current_cart("counter-1", held_by="cashier-1", bill_name="Verma")

        assert checkout_service.cart_summary("counter-1")["item_count"] == 0

        resumed = checkout_service.resume_held_bill("counter-2", bill["id"])
        assert resumed["cart"]["subtotal"] == "60.00"
        assert held_bill_service.list_held_bills() == []

        with pytest.raises(HeldBillNotFound):
            checkout_service.resume_held_bill("counter-3", bill["id"])

    def test_finalize_current_sale(self, db_session, make_product):
        product = make_product(price="22.00", stock="5")
        checkout_service.add_to_cart("counter-1", product.id, 2)

        result = checkout_service.finalize_current_sale(
            "counter-1", "cash", "50", created_by="cashier-1", attempt_id="t-1",
        )
        assert result["change"] == "6.00"
        assert result["sale"]["total_amount"] == "44.00"
        assert checkout_service.cart_summary("counter-1")["item_count"] == 0

    def test_record_stock_movement(self, db_session, make_product):
        product = make_product(stock="5")
        movement = checkout_service.record_stock_movement(
            product.id, "stock_in", "2.5", created_by="owner-1", supplier_name="Metro",
        )
        assert movement["new_stock"] == "7.5"
        assert movement["supplier_name"] == "Metro"
