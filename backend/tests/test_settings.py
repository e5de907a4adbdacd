from decimal import Decimal

import pytest

from kirana_pos.models import SETTINGS_ROW_ID, ShopSettings
from kirana_pos.services import settings_service
from kirana_pos.validation import ValidationError


class TestSettings:
    def test_defaults_created_once(self, db_session):
        first = settings_service.get_settings()
        second = settings_service.get_settings()

        assert first.id == second.id == SETTINGS_ROW_ID
        assert db_session.query(ShopSettings).count() == 1
        assert first.invoice_prefix == "INV"
        assert first.tax_inclusive is True
        assert first.max_discount_percent == Decimal("50")

    def test_partial_update(self, db_session):
        settings = settings_service.update_settings({"shop_name": "Gupta General Store", "gstin": "29ABCDE1234F1Z5"})
        assert settings.shop_name == "Gupta General Store"
        assert settings.gstin == "29ABCDE1234F1Z5"
        assert settings.invoice_prefix == "INV"

    def test_unknown_field_rejected(self, db_session):
        with pytest.raises(ValidationError):
            settings_service.update_settings({"owner_password": "x"})

    @pytest.mark.parametrize("patch", [
        {"max_discount_percent": 150},
        {"max_discount_percent": -1},
        {"starting_invoice_number": 0},
        {"expiry_alert_days": -3},
        {"invoice_prefix": "IN V"},
    ])
    def test_rules_enforced(self, db_session, patch):
        with pytest.raises(ValidationError):
            settings_service.update_settings(patch)
