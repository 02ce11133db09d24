# storefront/services/cart_merge_service.py
from typing import Any, Dict, Iterable

import pydantic
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.exceptions import ConcurrencyConflictError, NotFoundError
from storefront.domain.schemas import GuestCartLine
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.cart_service import CartService
from storefront.services.guest_cart_store import GuestCartStore
from storefront.services.pricing import DiscountPolicy, no_discount
from storefront.utils.retry import conflict_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartMergeService:
    """
    Laczy koszyk goscia z koszykiem serwerowym przy logowaniu.

    Kazda pozycja osobno: brak produktu / nieaktywny / brak stanu -> ostrzezenie i skip,
    reszta upsert z przycieciem do stanu. Po przetworzeniu (nie przed!) koszyk goscia
    jest czyszczony bezwarunkowo, drugi merge na pustym koszyku goscia nic nie robi.
    """

    def __init__(
        self,
        db: Session,
        guest_store: GuestCartStore | None = None,
        discount_policy: DiscountPolicy = no_discount,
    ):
        self.carts = CartRepo(db)
        self.products = ProductRepo(db)
        self.users = UserRepo(db)
        self.guest_store = guest_store
        self.cart_service = CartService(db, discount_policy)

    @conflict_retry()
    def merge(
        self,
        user_id: int,
        guest_lines: Iterable[Dict[str, Any]] | None = None,
        guest_token: str | None = None,
    ) -> Dict[str, Any]:

        if self.users.get_user(user_id) is None:
            raise NotFoundError("User not found")

        lines = list(guest_lines or [])
        if guest_token and self.guest_store is not None:
            lines.extend(self.guest_store.load(guest_token))

        merged = 0
        warnings: list[str] = []

        try:
            cart = self.carts.get_or_create_cart(user_id)
            for raw in lines:
                warning, ok = self._merge_line(cart, raw)
                if warning:
                    warnings.append(warning)
                if ok:
                    merged += 1
            self.carts.commit()
        except IntegrityError as e:
            #rownolegly merge lub dodanie tej samej pozycji - cala operacja od nowa
            self.carts.rollback()
            logger.warning(f"Concurrent cart update while merging guest cart of user {user_id}")
            raise ConcurrencyConflictError() from e
        except Exception:
            self.carts.rollback()
            raise

        #czyszczenie dopiero po commicie, awaria w trakcie nie gubi pozycji goscia
        if guest_token and self.guest_store is not None:
            self.guest_store.clear(guest_token)

        logger.info(
            f"Merged {merged} of {len(lines)} guest lines into cart {cart.id} "
            f"for user {user_id}, {len(warnings)} warnings"
        )

        return {
            "merged": merged,
            "warnings": warnings,
            "cart": self.cart_service.render(cart),
        }

    def _merge_line(self, cart: CartModel, raw: Any) -> tuple[str | None, bool]:
        try:
            line = GuestCartLine.model_validate(raw)
        except pydantic.ValidationError:
            logger.warning(f"Skipping malformed guest cart entry: {raw!r}")
            return f"Invalid guest cart entry: {raw!r}", False

        product = self.products.get_product(line.product_id)
        if product is None or not product.is_active:
            logger.warning(f"Skipping guest line, product {line.product_id} not found or inactive")
            return f"Product {line.product_id} not found or inactive", False

        available = product.quantity
        if line.variant_id is not None:
            variant = next((v for v in product.variants if v.id == line.variant_id), None)
            if variant is None:
                logger.warning(f"Skipping guest line, variant {line.variant_id} of product {product.id} not found")
                return f"Variant {line.variant_id} of {product.name} not found", False
            available = variant.quantity

        if available <= 0:
            logger.warning(f"Skipping guest line, {product.name} is out of stock")
            return f"{product.name} is out of stock", False

        existing = self.carts.find_line(cart.id, product.id, line.variant_id)
        requested = line.quantity + (existing.quantity if existing else 0)
        new_quantity = min(requested, available)

        warning = None
        if new_quantity < requested:
            warning = f"Only {available} of {product.name} available, quantity set to {new_quantity}"
            logger.warning(f"Guest merge clamp: {warning}")

        if existing:
            existing.quantity = new_quantity
        else:
            self.carts.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product.id,
                    variant_id=line.variant_id,
                    quantity=new_quantity,
                )
            )

        return warning, True
