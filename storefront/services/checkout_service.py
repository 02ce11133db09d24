# storefront/services/checkout_service.py
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Sequence

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.data.models.cart import CartModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.enums import OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.exceptions import (
    ConcurrencyConflictError,
    EmptyCartError,
    InsufficientStockError,
    InvalidAddressError,
    NotFoundError,
    OrderNumberExhaustedError,
    ProductUnavailableError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.product_repo import AddressRepo
from storefront.repos.stock_repo import StockLedger
from storefront.services.cart_service import price_cart_item
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import order_to_dict
from storefront.services.pricing import DiscountPolicy, PriceSummary, PricedLine, no_discount, summarize
from storefront.utils.retry import conflict_retry
from storefront.utils.settings import ORDER_NUMBER_MAX_ATTEMPTS, ORDER_NUMBER_PREFIX
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#bez 0/O i 1/I - numer czytany przez klienta przez telefon
_ORDER_NUMBER_ALPHABET = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")


def generate_order_number() -> str:
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"{ORDER_NUMBER_PREFIX}-{datetime.now(timezone.utc):%Y%m%d}-{suffix}"


class CheckoutService:
    """
    Use Case: zamiana koszyka w zamowienie.

    1. Walidacja: niepusty koszyk, adres usera, produkty aktywne, ilosc <= stan na zywo
    2. Podsumowanie cen z biezacych pozycji (hook na rabat)
    3. Unikalny numer zamowienia (ograniczona liczba prob)
    4. Jedna transakcja: zamowienie + zamrozone pozycje, reserve dla kazdej pozycji, czyszczenie koszyka
    5. Po commicie powiadomienie (async, bledy tylko logowane)

    Konflikt wspolbieznosci przy commicie -> jedna automatyczna powtorka calego use case.
    """

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService | None = None,
        discount_policy: DiscountPolicy = no_discount,
        order_number_generator: Callable[[], str] = generate_order_number,
        max_order_number_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS,
    ):
        self.db = db
        self.carts = CartRepo(db)
        self.orders = OrderRepo(db)
        self.addresses = AddressRepo(db)
        self.stock = StockLedger(db)
        self.notification_service = notification_service or NotificationService()
        self.discount_policy = discount_policy
        self.order_number_generator = order_number_generator
        self.max_order_number_attempts = max_order_number_attempts

    @conflict_retry()
    def checkout(
        self,
        user_id: int,
        address_id: int,
        payment_method: str,
        notes: str | None = None,
    ) -> Dict[str, Any]:

        method = self._parse_payment_method(payment_method)

        cart = self.carts.get_cart_by_user(user_id)
        items = self.carts.get_cart_items(cart.id) if cart else []
        if not items:
            raise EmptyCartError()

        address = self.addresses.get_user_address(address_id, user_id)
        if address is None:
            raise InvalidAddressError()

        #walidacja na zywo - jeszcze poza transakcja zapisu
        for item in items:
            product = item.product
            if not product.is_active:
                raise ProductUnavailableError(product.id, product.name)

            available = item.variant.quantity if item.variant is not None else product.quantity
            if item.quantity > available:
                raise InsufficientStockError(product.id, product.name, available)

        lines = [price_cart_item(i) for i in items]
        summary = summarize(lines, self.discount_policy)
        order_number = self._allocate_order_number()

        logger.info(
            f"Checkout user {user_id}: {len(lines)} lines, total {summary.total}, order {order_number}"
        )

        order = self._place_order(user_id, cart, address, method, notes, lines, summary, order_number)

        #po commicie - blad wysylki nie dotyka zamowienia
        try:
            self.notification_service.send_order_confirmed(order)
        except Exception:
            logger.exception(f"Order confirmation for {order.order_number} failed")

        return order_to_dict(order)

    def _place_order(
        self,
        user_id: int,
        cart: CartModel,
        address: AddressModel,
        method: PaymentMethod,
        notes: str | None,
        lines: Sequence[PricedLine],
        summary: PriceSummary,
        order_number: str,
    ) -> OrderModel:

        #COD potwierdzone od razu, reszta czeka na platnosc
        status = OrderStatus.CONFIRMED if method is PaymentMethod.CASH_ON_DELIVERY else OrderStatus.PENDING

        try:
            order = OrderModel(
                order_number=order_number,
                user_id=user_id,
                address_id=address.id,
                shipping_full_name=address.full_name,
                shipping_street=address.street,
                shipping_city=address.city,
                shipping_state=address.state,
                shipping_postal_code=address.postal_code,
                shipping_country=address.country,
                shipping_phone=address.phone,
                payment_method=method.value,
                payment_status=PaymentStatus.PENDING.value,
                status=status.value,
                subtotal=summary.subtotal,
                tax=summary.tax,
                shipping_cost=summary.shipping,
                discount=summary.discount,
                total=summary.total,
                notes=notes or None,
                items=[
                    OrderItemModel(
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        name=line.name,
                        sku=line.sku,
                        price=line.unit_price,
                        quantity=line.quantity,
                        total=line.line_total,
                    )
                    for line in lines
                ],
            )
            self.orders.add_order(order)

            for line in lines:
                self.stock.reserve(line.product_id, line.variant_id, line.quantity)

            self.carts.clear_cart(cart.id)
            self.db.commit()

        except (InsufficientStockError, ProductUnavailableError, NotFoundError) as e:
            #walidacja przeszla, a reserve nie - ktos w miedzyczasie zmienil stan
            self.db.rollback()
            logger.warning(f"Stock changed during checkout of order {order_number}: {e.message}")
            raise ConcurrencyConflictError(f"{e.message}, please retry") from e

        except (OperationalError, IntegrityError) as e:
            self.db.rollback()
            logger.warning(f"Checkout of order {order_number} could not commit: {e}")
            raise ConcurrencyConflictError() from e

        except Exception:
            self.db.rollback()
            logger.exception(f"Checkout of order {order_number} failed, rolled back")
            raise

        self.db.refresh(order)
        logger.info(f"Zamowienie {order.order_number} utworzone, koszyk {cart.id} wyczyszczony")
        return order

    def _allocate_order_number(self) -> str:
        for attempt in range(1, self.max_order_number_attempts + 1):
            candidate = self.order_number_generator()
            if not self.orders.order_number_exists(candidate):
                return candidate
            logger.warning(f"Order number collision on {candidate} (attempt {attempt})")

        raise OrderNumberExhaustedError(self.max_order_number_attempts)

    @staticmethod
    def _parse_payment_method(value: str) -> PaymentMethod:
        try:
            return PaymentMethod(value)
        except ValueError:
            raise ValidationError(f"Unsupported payment method: {value}") from None
