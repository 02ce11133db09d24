"""Stock Ledger: conditional decrement and unconditional release."""

import pytest

from storefront.data.models import ProductModel
from storefront.domain.exceptions import (
    InsufficientStockError,
    NotFoundError,
    ProductUnavailableError,
    ValidationError,
)
from storefront.repos.stock_repo import StockLedger


class TestReserve:

    def test_decrements_on_hand_quantity(self, db, catalog, stock):
        StockLedger(db).reserve(catalog.widget, None, 3)
        db.commit()
        assert stock(catalog.widget) == 7

    def test_successful_reservations_never_exceed_stock(self, session_factory, catalog, stock):
        # Gadget has 2 units; five independent buyers try to take one each
        succeeded = 0
        for _ in range(5):
            session = session_factory()
            try:
                StockLedger(session).reserve(catalog.gadget, None, 1)
                session.commit()
                succeeded += 1
            except InsufficientStockError:
                session.rollback()
            finally:
                session.close()

        assert succeeded == 2
        assert stock(catalog.gadget) == 0

    def test_stale_availability_check_cannot_oversell(self, session_factory, catalog, stock):
        first, second = session_factory(), session_factory()
        try:
            # both buyers saw two units before either wrote
            assert first.get(ProductModel, catalog.gadget).quantity == 2
            assert second.get(ProductModel, catalog.gadget).quantity == 2

            StockLedger(first).reserve(catalog.gadget, None, 2)
            first.commit()

            with pytest.raises(InsufficientStockError) as exc:
                StockLedger(second).reserve(catalog.gadget, None, 1)
            second.rollback()
        finally:
            first.close()
            second.close()

        assert exc.value.product_name == "Gadget"
        assert exc.value.available == 0
        assert stock(catalog.gadget) == 0

    def test_more_than_available_fails_and_leaves_stock(self, db, catalog, stock):
        with pytest.raises(InsufficientStockError, match="Gadget"):
            StockLedger(db).reserve(catalog.gadget, None, 3)
        db.rollback()
        assert stock(catalog.gadget) == 2

    def test_variant_stock_is_used(self, db, catalog, stock):
        StockLedger(db).reserve(catalog.shirt, catalog.shirt_m, 4)
        db.commit()
        assert stock(catalog.shirt, catalog.shirt_m) == 0
        assert stock(catalog.shirt) == 0

        with pytest.raises(InsufficientStockError):
            StockLedger(db).reserve(catalog.shirt, catalog.shirt_m, 1)

    def test_inactive_product(self, db, catalog):
        with pytest.raises(ProductUnavailableError, match="Retired"):
            StockLedger(db).reserve(catalog.retired, None, 1)

    def test_missing_product(self, db, catalog):
        with pytest.raises(NotFoundError):
            StockLedger(db).reserve(9999, None, 1)

    def test_variant_of_another_product(self, db, catalog):
        with pytest.raises(NotFoundError, match="Variant"):
            StockLedger(db).reserve(catalog.widget, catalog.shirt_m, 1)

    def test_non_positive_quantity(self, db, catalog):
        with pytest.raises(ValidationError):
            StockLedger(db).reserve(catalog.widget, None, 0)


class TestRelease:

    def test_increments_without_upper_bound(self, db, catalog, stock):
        assert StockLedger(db).release(catalog.gadget, None, 5) is True
        db.commit()
        assert stock(catalog.gadget) == 7

    def test_variant_release(self, db, catalog, stock):
        StockLedger(db).release(catalog.shirt, catalog.shirt_xl, 2)
        db.commit()
        assert stock(catalog.shirt, catalog.shirt_xl) == 3

    def test_missing_product_is_skipped(self, db, catalog):
        assert StockLedger(db).release(9999, None, 1) is False


class TestAvailable:

    def test_product_and_variant_scope(self, db, catalog):
        ledger = StockLedger(db)
        shirt = db.get(ProductModel, catalog.shirt)
        assert ledger.available(db.get(ProductModel, catalog.widget), None) == 10
        assert ledger.available(shirt, catalog.shirt_xl) == 1
