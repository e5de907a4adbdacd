"""
Multi-terminal races against a file-backed SQLite database.

Each worker thread runs in its own app context (own session, own connection),
the way concurrent requests do.
"""

import os
import tempfile
import threading
import unittest
from dataclasses import replace
from decimal import Decimal

from kirana_pos import create_app
from kirana_pos.extensions import db
from kirana_pos.models import Product, Sale
from kirana_pos.services import held_bill_service, products_service, sales_service, stock_service
from kirana_pos.services.cart import Cart
from kirana_pos.services.held_bill_service import HeldBillNotFound
from kirana_pos.services.invoice_service import ensure_counter
from kirana_pos.services.settings_service import get_settings
from kirana_pos.services.stock_service import StockConflict


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        fd, self.db_path = tempfile.mkstemp(suffix=".sqlite3")
        os.close(fd)
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{self.db_path}",
            "DB_LOCK_TIMEOUT_SECONDS": 15,
        })
        with self.app.app_context():
            db.create_all()
            ensure_counter(get_settings().starting_invoice_number)

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.engine.dispose()
        os.remove(self.db_path)

    def _product(self, name, stock, price="10.00"):
        with self.app.app_context():
            product = products_service.create_product(
                patch={"name": name, "selling_price": price},
                opening_stock=stock,
                created_by="tester",
            )
            cart = Cart()
            cart.add_item(product, 1)
            return product.id, cart.lines()[0]

    def _run_parallel(self, jobs):
        """Start every job at once; returns [(result, exception)] in job order."""
        barrier = threading.Barrier(len(jobs))
        outcomes = [None] * len(jobs)

        def _worker(index, job):
            with self.app.app_context():
                barrier.wait()
                try:
                    outcomes[index] = (job(), None)
                except Exception as exc:  # collected for assertions
                    outcomes[index] = (None, exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=_worker, args=(i, job)) for i, job in enumerate(jobs)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        return outcomes

    def _cart(self, line, quantity):
        cart = Cart()
        cart.items[line.product_id] = replace(line, quantity=Decimal(quantity))
        return cart

    def _stock(self, product_id):
        with self.app.app_context():
            return db.session.query(Product.current_stock).filter_by(id=product_id).scalar()

    def test_parallel_finalize_gets_distinct_invoice_numbers(self):
        product_id, line = self._product("Parle-G", "50")
        jobs = [
            (lambda cart=self._cart(line, 1), i=i: sales_service.finalize_sale(
                cart, "upi", created_by=f"terminal-{i}", attempt_id=f"attempt-{i}"
            ))
            for i in range(8)
        ]

        outcomes = self._run_parallel(jobs)

        errors = [exc for _, exc in outcomes if exc is not None]
        self.assertEqual(errors, [])
        numbers = {result.sale["invoice_number"] for result, _ in outcomes}
        self.assertEqual(len(numbers), 8)
        self.assertEqual(self._stock(product_id), Decimal("42"))

    def test_two_sales_race_for_last_units(self):
        product_id, line = self._product("Saffron", "5")
        jobs = [
            (lambda cart=self._cart(line, 3), i=i: sales_service.finalize_sale(
                cart, "card", created_by=f"terminal-{i}", attempt_id=f"race-{i}"
            ))
            for i in range(2)
        ]

        outcomes = self._run_parallel(jobs)

        successes = [result for result, exc in outcomes if exc is None]
        conflicts = [exc for _, exc in outcomes if isinstance(exc, StockConflict)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(self._stock(product_id), Decimal("2"))
        with self.app.app_context():
            self.assertEqual(db.session.query(Sale).count(), 1)
            self.assertTrue(stock_service.verify_stock(product_id)["consistent"])

    def test_resume_is_exactly_once(self):
        _, line = self._product("Atta 5kg", "10")
        with self.app.app_context():
            bill = held_bill_service.hold_bill(self._cart(line, 2), held_by="cashier-1")
            bill_id = bill.id

        outcomes = self._run_parallel([
            lambda: held_bill_service.resume_bill(bill_id),
            lambda: held_bill_service.resume_bill(bill_id),
        ])

        successes = [result for result, exc in outcomes if exc is None]
        missing = [exc for _, exc in outcomes if isinstance(exc, HeldBillNotFound)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(missing), 1)
        self.assertEqual(successes[0]["cart"]["items"][0]["quantity"], "2")

    def test_parallel_stock_outs_keep_ledger_consistent(self):
        product_id, _ = self._product("Eggs", "10")
        jobs = [
            (lambda i=i: stock_service.apply_movement(
                product_id, "stock_out", 1, created_by=f"staff-{i}", reason="breakage"
            ))
            for i in range(6)
        ]

        outcomes = self._run_parallel(jobs)

        self.assertEqual([exc for _, exc in outcomes if exc is not None], [])
        self.assertEqual(self._stock(product_id), Decimal("4"))
        with self.app.app_context():
            self.assertTrue(stock_service.verify_stock(product_id)["consistent"])


if __name__ == "__main__":
    unittest.main()
