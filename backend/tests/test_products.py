from decimal import Decimal

import pytest

from kirana_pos.models import Product
from kirana_pos.services import products_service
from kirana_pos.validation import NotFoundError, ValidationError


class TestProducts:
    def test_create_requires_name_and_price(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product(patch={"name": "No Price"}, created_by="owner-1")

    def test_create_without_opening_stock(self, db_session):
        product = products_service.create_product(
            patch={"name": "Maggi", "selling_price": "14.00", "gst_rate": "12"},
            created_by="owner-1",
        )
        assert product.current_stock == Decimal("0")
        assert product.category == "Others"

    @pytest.mark.parametrize("patch", [
        {"name": "Bad GST", "selling_price": "10", "gst_rate": "7"},
        {"name": "Negative", "selling_price": "-1"},
        {"name": "Huge", "selling_price": "100000000"},
        {"name": "Stocked", "selling_price": "10", "current_stock": "5"},
    ])
    def test_invalid_products(self, db_session, patch):
        with pytest.raises(ValidationError):
            products_service.create_product(patch=patch, created_by="owner-1")

    def test_negative_opening_stock(self, db_session):
        with pytest.raises(ValidationError):
            products_service.create_product(
                patch={"name": "Salt", "selling_price": "20"},
                opening_stock="-1",
                created_by="owner-1",
            )
        assert db_session.query(Product).count() == 0

    def test_update_cannot_touch_stock(self, db_session, make_product):
        product = make_product()
        with pytest.raises(ValidationError):
            products_service.update_product(product.id, {"current_stock": 99})

    def test_update_and_soft_delete(self, db_session, make_product):
        product = make_product(name="Sugar 1kg", price="45.00")
        products_service.update_product(product.id, {"selling_price": "47.50", "brand": "Madhur"})
        assert products_service.require_product(product.id).selling_price == Decimal("47.50")

        products_service.delete_product(product.id)
        assert products_service.require_product(product.id).status == "inactive"
        assert products_service.list_active_products() == []

    def test_require_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            products_service.require_product(404)

    def test_search_over_name_brand_barcode_category(self, db_session, make_product):
        make_product(name="Amul Butter", barcode="8901262010016", brand="Amul", category="Dairy")
        make_product(name="Toor Dal", category="Groceries")
        inactive = make_product(name="Amul Cheese", brand="Amul")
        products_service.delete_product(inactive.id)

        assert [p.name for p in products_service.search_products("amul")] == ["Amul Butter"]
        assert [p.name for p in products_service.search_products("0100")] == ["Amul Butter"]
        assert [p.name for p in products_service.search_products("grocer")] == ["Toor Dal"]
        assert products_service.search_products("  ") == []

    def test_barcode_lookup_outcomes(self, db_session, make_product):
        single = make_product(name="Parle-G", barcode="111")
        twin_a = make_product(name="Lux Soap Red", barcode="222")
        twin_b = make_product(name="Lux Soap Pink", barcode="222")

        assert products_service.lookup_by_barcode("000").status == "none"

        result = products_service.lookup_by_barcode(" 111 ")
        assert result.status == "single"
        assert result.product.id == single.id

        result = products_service.lookup_by_barcode("222")
        assert result.status == "multiple"
        assert result.product is None
        assert [p.id for p in result.products] == [twin_a.id, twin_b.id]

        with pytest.raises(ValidationError):
            products_service.lookup_by_barcode("")

    def test_duplicate_barcode_is_reported_not_rejected(self, db_session, make_product):
        first = make_product(name="Lux Soap Red", barcode="222")
        second = make_product(name="Lux Soap Pink", barcode="222")
        assert [p.id for p in products_service.barcode_in_use("222", exclude_product_id=second.id)] == [first.id]

    def test_pagination(self, db_session, make_product):
        for i in range(5):
            make_product(name=f"Item {i}")
        page = products_service.list_products(page=2, per_page=2)
        assert page["count"] == 2
        assert page["pagination"]["total"] == 5
        assert page["pagination"]["total_pages"] == 3
        assert page["pagination"]["has_next"] is True
