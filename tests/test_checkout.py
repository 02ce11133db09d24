"""Checkout Orchestrator: validation, totals, atomic order placement."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.data.models import CartItemModel, OrderModel, ProductModel
from storefront.domain.exceptions import (
    ConcurrencyConflictError,
    EmptyCartError,
    InsufficientStockError,
    InvalidAddressError,
    OrderNumberExhaustedError,
    ProductUnavailableError,
    ValidationError,
)
from storefront.services.cart_service import CartService
from storefront.services.checkout_service import CheckoutService, generate_order_number
from tests.fakes import RecordingNotifier


def _order_count(session_factory) -> int:
    session = session_factory()
    try:
        return session.execute(select(func.count(OrderModel.id))).scalar()
    finally:
        session.close()


def _cart_quantities(session_factory) -> list[tuple[int, int | None, int]]:
    session = session_factory()
    try:
        rows = session.execute(
            select(CartItemModel.product_id, CartItemModel.variant_id, CartItemModel.quantity)
            .order_by(CartItemModel.id)
        ).all()
        return [tuple(r) for r in rows]
    finally:
        session.close()


@pytest.fixture()
def filled_cart(db, catalog):
    svc = CartService(db)
    svc.add_line(catalog.customer, catalog.widget, None, 2)
    svc.add_line(catalog.customer, catalog.shirt, catalog.shirt_xl, 1)
    return catalog


class TestCheckoutHappyPath:

    def test_creates_order_and_debits_stock(self, db, filled_cart, notifier, stock, session_factory):
        catalog = filled_cart
        order = CheckoutService(db, notifier).checkout(catalog.customer, catalog.address, "STRIPE")

        assert order["status"] == "PENDING"
        assert order["payment_status"] == "PENDING"
        assert order["subtotal"] == Decimal("550.00")
        assert order["tax"] == Decimal("99.00")
        assert order["shipping_cost"] == Decimal("0")
        assert order["discount"] == Decimal("0")
        assert order["total"] == Decimal("649.00")
        assert order["order_number"].startswith("ORD-")

        assert stock(catalog.widget) == 8
        assert stock(catalog.shirt, catalog.shirt_xl) == 0
        assert _cart_quantities(session_factory) == []
        assert notifier.sent == [("order_confirmed", order["order_number"])]

    def test_small_order_pays_shipping(self, db, catalog, notifier):
        CartService(db).add_line(catalog.customer, catalog.widget, None, 1)
        order = CheckoutService(db, notifier).checkout(catalog.customer, catalog.address, "STRIPE")

        assert order["shipping_cost"] == Decimal("50.00")
        assert order["total"] == Decimal("168.00")

    def test_cash_on_delivery_is_confirmed_immediately(self, db, filled_cart, notifier):
        order = CheckoutService(db, notifier).checkout(
            filled_cart.customer, filled_cart.address, "CASH_ON_DELIVERY"
        )
        assert order["status"] == "CONFIRMED"
        assert order["payment_status"] == "PENDING"

    def test_items_and_address_are_frozen(self, db, filled_cart, notifier):
        catalog = filled_cart
        order = CheckoutService(db, notifier).checkout(catalog.customer, catalog.address, "STRIPE", notes="Ring twice")

        widget = db.get(ProductModel, catalog.widget)
        widget.name = "Widget Pro"
        widget.price = Decimal("999.00")
        db.commit()

        saved = db.get(OrderModel, order["id"])
        names = sorted(i.name for i in saved.items)
        assert names == ["Shirt (XL)", "Widget"]
        widget_item = next(i for i in saved.items if i.product_id == catalog.widget)
        assert widget_item.price == Decimal("100.00")
        assert widget_item.total == Decimal("200.00")
        assert saved.shipping_city == "Bengaluru"
        assert saved.notes == "Ring twice"

    def test_discount_policy_reduces_total(self, db, filled_cart, notifier):
        def ten_percent(lines, subtotal):
            return subtotal / 10

        order = CheckoutService(db, notifier, discount_policy=ten_percent).checkout(
            filled_cart.customer, filled_cart.address, "STRIPE"
        )
        assert order["discount"] == Decimal("55.00")
        assert order["total"] == Decimal("594.00")

    def test_notification_failure_does_not_affect_order(self, db, filled_cart, session_factory):
        order = CheckoutService(db, RecordingNotifier(fail=True)).checkout(
            filled_cart.customer, filled_cart.address, "STRIPE"
        )
        assert order["id"] is not None
        assert _order_count(session_factory) == 1


class TestCheckoutPreconditions:

    def test_empty_cart(self, db, catalog, notifier):
        with pytest.raises(EmptyCartError):
            CheckoutService(db, notifier).checkout(catalog.customer, catalog.address, "STRIPE")

    def test_address_of_another_user(self, db, filled_cart, notifier, session_factory):
        with pytest.raises(InvalidAddressError):
            CheckoutService(db, notifier).checkout(filled_cart.customer, filled_cart.other_address, "STRIPE")
        assert len(_cart_quantities(session_factory)) == 2

    def test_unknown_payment_method(self, db, filled_cart, notifier):
        with pytest.raises(ValidationError, match="payment method"):
            CheckoutService(db, notifier).checkout(filled_cart.customer, filled_cart.address, "BARTER")

    def test_inactive_product_is_named(self, db, filled_cart, notifier):
        db.get(ProductModel, filled_cart.widget).is_active = False
        db.commit()

        with pytest.raises(ProductUnavailableError, match="Widget"):
            CheckoutService(db, notifier).checkout(filled_cart.customer, filled_cart.address, "STRIPE")

    def test_insufficient_stock_leaves_cart_and_no_order(self, db, filled_cart, notifier, session_factory, stock):
        db.get(ProductModel, filled_cart.widget).quantity = 1
        db.commit()
        before = _cart_quantities(session_factory)

        with pytest.raises(InsufficientStockError, match="Widget"):
            CheckoutService(db, notifier).checkout(filled_cart.customer, filled_cart.address, "STRIPE")

        assert _cart_quantities(session_factory) == before
        assert _order_count(session_factory) == 0
        assert stock(filled_cart.shirt, filled_cart.shirt_xl) == 1
        assert notifier.sent == []


class TestCheckoutAtomicity:

    def test_order_number_collision_is_regenerated(self, db, catalog, notifier):
        numbers = iter(["ORD-TAKEN", "ORD-TAKEN", "ORD-FRESH"])
        CartService(db).add_line(catalog.customer, catalog.widget, None, 1)
        CheckoutService(db, notifier, order_number_generator=lambda: "ORD-TAKEN").checkout(
            catalog.customer, catalog.address, "STRIPE"
        )

        CartService(db).add_line(catalog.customer, catalog.widget, None, 1)
        order = CheckoutService(db, notifier, order_number_generator=lambda: next(numbers)).checkout(
            catalog.customer, catalog.address, "STRIPE"
        )
        assert order["order_number"] == "ORD-FRESH"

    def test_order_number_exhaustion_fails_closed(self, db, catalog, notifier, session_factory, stock):
        CartService(db).add_line(catalog.customer, catalog.widget, None, 1)
        CheckoutService(db, notifier, order_number_generator=lambda: "ORD-TAKEN").checkout(
            catalog.customer, catalog.address, "STRIPE"
        )
        CartService(db).add_line(catalog.customer, catalog.widget, None, 2)

        calls = []

        def always_taken():
            calls.append(1)
            return "ORD-TAKEN"

        svc = CheckoutService(
            db, notifier, order_number_generator=always_taken, max_order_number_attempts=3
        )
        with pytest.raises(OrderNumberExhaustedError):
            svc.checkout(catalog.customer, catalog.address, "STRIPE")

        assert len(calls) == 3
        assert _order_count(session_factory) == 1
        assert _cart_quantities(session_factory) == [(catalog.widget, None, 2)]
        assert stock(catalog.widget) == 9

    def test_reserve_conflict_is_retried_once_then_surfaced(
        self, db, filled_cart, notifier, session_factory, stock
    ):
        svc = CheckoutService(db, notifier)
        real_reserve = svc.stock.reserve
        attempts = []

        def flaky_reserve(product_id, variant_id, quantity):
            if variant_id is not None:
                attempts.append(product_id)
                raise InsufficientStockError(product_id, "Shirt (XL)", 0)
            return real_reserve(product_id, variant_id, quantity)

        svc.stock.reserve = flaky_reserve

        with pytest.raises(ConcurrencyConflictError):
            svc.checkout(filled_cart.customer, filled_cart.address, "STRIPE")

        assert len(attempts) == 2
        assert _order_count(session_factory) == 0
        assert len(_cart_quantities(session_factory)) == 2
        # widget reservation from the failed attempts was rolled back
        assert stock(filled_cart.widget) == 10

    def test_reserve_conflict_recovers_on_retry(self, db, filled_cart, notifier, session_factory):
        svc = CheckoutService(db, notifier)
        real_reserve = svc.stock.reserve
        failures = []

        def reserve_fails_once(product_id, variant_id, quantity):
            if not failures:
                failures.append(product_id)
                raise InsufficientStockError(product_id, None, 0)
            return real_reserve(product_id, variant_id, quantity)

        svc.stock.reserve = reserve_fails_once

        order = svc.checkout(filled_cart.customer, filled_cart.address, "STRIPE")

        assert order["total"] == Decimal("649.00")
        assert _order_count(session_factory) == 1
        assert notifier.events() == ["order_confirmed"]

    def test_write_failure_rolls_everything_back(self, db, filled_cart, notifier, session_factory, stock):
        svc = CheckoutService(db, notifier)

        def broken_clear(cart_id):
            raise RuntimeError("disk full")

        svc.carts.clear_cart = broken_clear

        with pytest.raises(RuntimeError):
            svc.checkout(filled_cart.customer, filled_cart.address, "STRIPE")

        assert _order_count(session_factory) == 0
        assert len(_cart_quantities(session_factory)) == 2
        assert stock(filled_cart.widget) == 10
        assert stock(filled_cart.shirt, filled_cart.shirt_xl) == 1
        assert notifier.sent == []


def test_generated_order_numbers_have_expected_shape():
    number = generate_order_number()
    prefix, date, suffix = number.split("-")
    assert prefix == "ORD"
    assert len(date) == 8 and date.isdigit()
    assert len(suffix) == 6
    assert not set(suffix) & set("0O1I")
