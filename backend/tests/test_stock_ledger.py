from datetime import timedelta
from decimal import Decimal

import pytest

from kirana_pos.models import Product, StockMovement
from kirana_pos.services import stock_service
from kirana_pos.services.stock_service import StockConflict
from kirana_pos.time_utils import today
from kirana_pos.validation import NotFoundError, ValidationError


def _stock(db_session, product_id):
    return db_session.query(Product.current_stock).filter_by(id=product_id).scalar()


class TestStockLedger:
    def test_opening_stock_is_a_movement(self, db_session, make_product):
        product = make_product(stock="12")
        movements = stock_service.history(product_id=product.id)

        assert len(movements) == 1
        assert movements[0].movement_type == "stock_in"
        assert movements[0].reason == stock_service.OPENING_STOCK_REASON
        assert movements[0].quantity == Decimal("12")

    def test_stock_in_out_and_adjustment(self, db_session, make_product):
        product = make_product(stock="10")

        m_in = stock_service.apply_movement(product.id, "stock_in", 5, created_by="owner-1", supplier_name="Metro")
        assert (m_in.previous_stock, m_in.new_stock) == (Decimal("10"), Decimal("15"))

        m_out = stock_service.apply_movement(product.id, "stock_out", "2.5", created_by="owner-1", reason="damaged")
        assert m_out.new_stock == Decimal("12.5")

        m_adj = stock_service.apply_movement(product.id, "adjustment", 9, created_by="owner-1", reason="count")
        assert m_adj.quantity == Decimal("3.5")
        assert m_adj.signed_delta == Decimal("-3.5")
        assert _stock(db_session, product.id) == Decimal("9")

    def test_replay_matches_cached_stock(self, db_session, make_product):
        product = make_product(stock="20")
        stock_service.apply_movement(product.id, "stock_in", 7, created_by="owner-1")
        stock_service.apply_movement(product.id, "stock_out", 4, created_by="owner-1", reason="expired")
        stock_service.apply_movement(product.id, "adjustment", 30, created_by="owner-1")
        stock_service.apply_movement(product.id, "stock_out", "0.25", created_by="owner-1", reason="sample")

        assert stock_service.replay_stock(product.id) == Decimal("29.75")
        result = stock_service.verify_stock(product.id)
        assert result["consistent"] is True
        assert result["cached_stock"] == "29.75"

    def test_stock_out_requires_reason(self, db_session, make_product):
        product = make_product(stock="5")
        with pytest.raises(ValidationError):
            stock_service.apply_movement(product.id, "stock_out", 1, created_by="owner-1")
        assert _stock(db_session, product.id) == Decimal("5")

    def test_negative_stock_rejected_and_unchanged(self, db_session, make_product):
        product = make_product(stock="5")
        with pytest.raises(StockConflict) as exc:
            stock_service.apply_movement(product.id, "stock_out", 6, created_by="owner-1", reason="theft")

        assert exc.value.details["available"] == "5"
        assert _stock(db_session, product.id) == Decimal("5")
        assert db_session.query(StockMovement).filter_by(product_id=product.id).count() == 1

    @pytest.mark.parametrize("movement_type,qty", [
        ("stock_in", 0),
        ("stock_in", -2),
        ("adjustment", -1),
        ("restock", 1),
    ])
    def test_invalid_movements(self, db_session, make_product, movement_type, qty):
        product = make_product(stock="5")
        with pytest.raises(ValidationError):
            stock_service.apply_movement(product.id, movement_type, qty, created_by="owner-1", reason="x")

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            stock_service.apply_movement(999, "stock_in", 1, created_by="owner-1")

    def test_stock_in_updates_purchase_price(self, db_session, make_product):
        product = make_product(stock="5", purchase_price="15.00")
        stock_service.apply_movement(product.id, "stock_in", 10, created_by="owner-1", purchase_price="16.50")
        assert db_session.get(Product, product.id).purchase_price == Decimal("16.50")

    def test_history_filters(self, db_session, make_product):
        a = make_product(name="Atta", stock="5")
        make_product(name="Dal", stock="5")
        stock_service.apply_movement(a.id, "stock_out", 1, created_by="owner-1", reason="damaged")

        assert len(stock_service.history(product_id=a.id)) == 2
        outs = stock_service.history(movement_type="stock_out")
        assert [m.product_id for m in outs] == [a.id]
        with pytest.raises(ValidationError):
            stock_service.history(movement_type="gift")


class TestStockAlerts:
    def test_low_stock_and_reorder_quantity(self, db_session, make_product, settings):
        low = make_product(name="Ghee", stock="2", min_stock_level="5")
        make_product(name="Rice", stock="50", min_stock_level="5")

        assert [p.id for p in stock_service.low_stock()] == [low.id]
        alerts = stock_service.stock_alerts()
        # shortfall 3 + low_stock_threshold 10
        assert alerts["low_stock"][0]["reorder_quantity"] == "13"

    def test_expiring_within(self, db_session, make_product):
        soon = make_product(name="Bread", expiry_date=(today() + timedelta(days=2)).isoformat())
        expired = make_product(name="Curd", expiry_date=(today() - timedelta(days=1)).isoformat())
        make_product(name="Honey", expiry_date=(today() + timedelta(days=90)).isoformat())

        ids = [p.id for p in stock_service.expiring_within(7)]
        assert ids == [expired.id, soon.id]

        alerts = stock_service.stock_alerts()
        assert {a["name"]: a["days_left"] for a in alerts["expiring"]} == {"Curd": -1, "Bread": 2}
