"""
Purchase coordinator tests.

Verifies:
- A purchase decrements stock and appends one record, atomically
- Failed purchases leave stock and history untouched
- Racing buyers never oversell
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from shopmate.errors import InsufficientStock, InvalidInput, NotFound, TransientStorageFailure
from shopmate.extensions import db
from shopmate.models import PurchaseRecord
from shopmate.services.purchase_service import PurchaseCoordinator


def record_count() -> int:
    return db.session.scalar(select(func.count()).select_from(PurchaseRecord))


def current_stock(services, item_id: int) -> int:
    db.session.expire_all()
    return services.ledger.get_item(item_id).stock


def locked_error() -> OperationalError:
    return OperationalError("INSERT INTO purchases", {}, Exception("database is locked"))


class TestPurchase:

    def test_success(self, services, customer, widget):
        record = services.purchases.purchase(1, 3, customer.id)

        assert record.item_id == 1
        assert record.quantity == 3
        assert record.user_id == customer.id
        assert record.purchased_at is not None
        assert current_stock(services, 1) == 7
        assert record_count() == 1

    def test_whole_stock(self, services, customer, widget):
        services.purchases.purchase(1, 10, customer.id)
        assert current_stock(services, 1) == 0

        with pytest.raises(InsufficientStock):
            services.purchases.purchase(1, 1, customer.id)
        assert record_count() == 1

    def test_insufficient_stock(self, services, customer, widget):
        with pytest.raises(InsufficientStock) as exc:
            services.purchases.purchase(1, 11, customer.id)

        assert str(exc.value) == "Insufficient stock"
        assert current_stock(services, 1) == 10
        assert record_count() == 0

    def test_unknown_item(self, services, customer):
        with pytest.raises(NotFound):
            services.purchases.purchase(42, 1, customer.id)
        assert record_count() == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "abc", "", None, True])
    def test_invalid_quantity(self, services, customer, widget, quantity):
        with pytest.raises(InvalidInput) as exc:
            services.purchases.purchase(1, quantity, customer.id)

        assert str(exc.value) == "Invalid quantity"
        assert current_stock(services, 1) == 10
        assert record_count() == 0

    @pytest.mark.parametrize("quantity", [10 ** 20, 2 ** 63, "99999999999999999999"])
    def test_quantity_beyond_integer_range(self, services, customer, widget, quantity):
        with pytest.raises(InvalidInput) as exc:
            services.purchases.purchase(1, quantity, customer.id)

        assert str(exc.value) == "Invalid quantity"
        assert current_stock(services, 1) == 10
        assert record_count() == 0

    def test_largest_storable_quantity_is_insufficient(self, services, customer, widget):
        with pytest.raises(InsufficientStock):
            services.purchases.purchase(1, 2 ** 63 - 1, customer.id)
        assert current_stock(services, 1) == 10

    def test_item_id_beyond_integer_range(self, services, customer):
        with pytest.raises(InvalidInput) as exc:
            services.purchases.purchase(10 ** 20, 1, customer.id)
        assert str(exc.value) == "Invalid item ID"

    def test_quantity_as_numeric_string(self, services, customer, widget):
        services.purchases.purchase(1, "2", customer.id)
        assert current_stock(services, 1) == 8

    @pytest.mark.parametrize("item_id", [0, -3, "x"])
    def test_invalid_item_id(self, services, customer, item_id):
        with pytest.raises(InvalidInput):
            services.purchases.purchase(item_id, 1, customer.id)

    def test_history_survives_item_deletion(self, services, customer, widget):
        services.purchases.purchase(1, 2, customer.id)
        services.ledger.delete_item(1)

        history = services.purchases.history_for_user(customer.id)
        assert [(r.item_id, r.quantity) for r in history] == [(1, 2)]


class TestRollback:
    """Whatever fails after the decrement, the decrement is undone."""

    def test_storage_error_after_decrement(self, services, customer, widget, monkeypatch):
        def fail(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(services.purchases, "_append_record", fail)

        with pytest.raises(TransientStorageFailure) as exc:
            services.purchases.purchase(1, 3, customer.id)

        assert str(exc.value) == "Transaction failed"
        assert current_stock(services, 1) == 10
        assert record_count() == 0

    def test_unexpected_error_after_decrement(self, services, customer, widget, monkeypatch):
        def fail(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(services.purchases, "_append_record", fail)

        with pytest.raises(RuntimeError):
            services.purchases.purchase(1, 3, customer.id)

        assert current_stock(services, 1) == 10
        assert record_count() == 0

    def test_lock_contention_is_retried_then_reported(self, services, customer, widget, monkeypatch):
        coordinator = PurchaseCoordinator(db.session, services.ledger, retry_attempts=3, retry_backoff=0)
        calls = []

        def fail(*args, **kwargs):
            calls.append(args)
            raise locked_error()

        monkeypatch.setattr(coordinator, "_append_record", fail)

        with pytest.raises(TransientStorageFailure):
            coordinator.purchase(1, 3, customer.id)

        assert len(calls) == 3
        assert current_stock(services, 1) == 10
        assert record_count() == 0

    def test_retry_applies_the_purchase_once(self, services, customer, widget, monkeypatch):
        coordinator = PurchaseCoordinator(db.session, services.ledger, retry_attempts=3, retry_backoff=0)
        real_append = coordinator._append_record
        calls = []

        def flaky(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise locked_error()
            return real_append(*args, **kwargs)

        monkeypatch.setattr(coordinator, "_append_record", flaky)

        coordinator.purchase(1, 3, customer.id)

        assert len(calls) == 2
        assert current_stock(services, 1) == 7
        assert record_count() == 1


class TestHistory:

    def test_newest_first_and_only_own(self, services, customer, widget):
        bob = services.credentials.create_user("bob", "pw2")
        first = services.purchases.purchase(1, 1, customer.id)
        services.purchases.purchase(1, 1, bob.id)
        second = services.purchases.purchase(1, 2, customer.id)

        history = services.purchases.history_for_user(customer.id)
        assert [r.id for r in history] == [second.id, first.id]

    def test_empty(self, services, customer):
        assert services.purchases.history_for_user(customer.id) == []


@pytest.mark.concurrency
class TestConcurrentPurchases:
    """
    N buyers race for the same item; exactly min(N, stock // quantity)
    succeed and stock ends at stock - successes * quantity.
    """

    def _race(self, app, services, user_id, buyers, quantity):
        # Generous retries: SQLite serializes writers, contention is expected
        coordinator = PurchaseCoordinator(
            db.session, services.ledger, retry_attempts=20, retry_backoff=0.01,
        )
        db.session.commit()
        start = threading.Barrier(buyers)

        def buy():
            with app.app_context():
                start.wait()
                try:
                    coordinator.purchase(1, quantity, user_id)
                    return "ok"
                except InsufficientStock:
                    return "insufficient"

        with ThreadPoolExecutor(max_workers=buyers) as pool:
            futures = [pool.submit(buy) for _ in range(buyers)]
            return [f.result() for f in futures]

    @pytest.mark.parametrize(
        "stock,buyers,quantity",
        [
            (5, 8, 1),
            (7, 6, 2),
            (20, 6, 3),
        ],
    )
    def test_never_oversells(self, app, services, customer, stock, buyers, quantity):
        services.ledger.create_item(1, "Hot item", stock)

        outcomes = self._race(app, services, customer.id, buyers, quantity)

        expected = min(buyers, stock // quantity)
        assert outcomes.count("ok") == expected
        assert outcomes.count("insufficient") == buyers - expected
        assert current_stock(services, 1) == stock - expected * quantity
        assert record_count() == expected
