from typing import Dict, Any
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel, VariantModel
from storefront.domain.exceptions import (
    ConcurrencyConflictError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    ProductUnavailableError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.product_repo import ProductRepo
from storefront.repos.stock_repo import StockLedger
from storefront.services.pricing import DiscountPolicy, PricedLine, no_discount, summarize
from storefront.utils.retry import conflict_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def unit_price(product: ProductModel, variant: VariantModel | None):
    if variant is not None and variant.price is not None:
        return variant.price
    return product.price


def price_cart_item(item: CartItemModel) -> PricedLine:
    product = item.product
    return PricedLine(
        product_id=product.id,
        variant_id=item.variant_id,
        name=product.name if item.variant is None else f"{product.name} ({item.variant.name})",
        sku=(item.variant.sku if item.variant is not None and item.variant.sku else product.sku),
        unit_price=unit_price(product, item.variant),
        quantity=item.quantity,
    )


class CartService:
    """
    Koszyk zalogowanego uzytkownika (jeden na usera).
    commands (add, set quantity, remove, clear) modyfikuja stan, kazda w krotkiej transakcji
    query (get) tylko odczyt, ceny zawsze na zywo z produktu
    """

    def __init__(self, db: Session, discount_policy: DiscountPolicy = no_discount):
        self.repo = CartRepo(db)
        self.products = ProductRepo(db)
        self.stock = StockLedger(db)
        self.discount_policy = discount_policy

    #query
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_or_create_cart(user_id)
        self.repo.commit()
        return self.render(cart)

    def render(self, cart: CartModel) -> Dict[str, Any]:
        items = self.repo.get_cart_items(cart.id)
        priced = [price_cart_item(i) for i in items]
        summary = summarize(priced, self.discount_policy)

        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "items": [
                {
                    "id": item.id,
                    "product_id": line.product_id,
                    "variant_id": line.variant_id,
                    "name": line.name,
                    "sku": line.sku,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "line_total": line.line_total,
                    "available": item.variant.quantity if item.variant is not None else item.product.quantity,
                    "is_active": item.product.is_active,
                }
                for item, line in zip(items, priced)
            ],
            "item_count": summary.item_count,
            "subtotal": summary.subtotal,
            "tax": summary.tax,
            "shipping": summary.shipping,
            "discount": summary.discount,
            "total": summary.total,
            "free_shipping_eligible": summary.free_shipping_eligible,
            "amount_needed_for_free_shipping": summary.amount_needed_for_free_shipping,
        }

    #commands
    @conflict_retry()
    def add_line(
        self,
        user_id: int,
        product_id: int,
        variant_id: int | None,
        quantity: int,
    ) -> Dict[str, Any]:

        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        product, variant = self.resolve(product_id, variant_id)
        available = variant.quantity if variant is not None else product.quantity

        if available <= 0:
            raise InsufficientStockError(product.id, product.name, 0)

        try:
            cart = self.repo.get_or_create_cart(user_id)
            line = self.repo.find_line(cart.id, product_id, variant_id)

            #duplikat (produkt, wariant) - sumujemy ilosci i przycinamy do stanu
            requested = (line.quantity if line else 0) + quantity
            new_quantity = min(requested, available)

            warning = None
            if new_quantity < requested:
                warning = f"Only {available} of {product.name} available, quantity set to {new_quantity}"
                logger.warning(f"Cart of user {user_id}: {warning}")

            if line:
                logger.info(f"Produkt {product_id} juz jest w koszyku, ilosc {line.quantity} -> {new_quantity}")
                line.quantity = new_quantity
            else:
                logger.info(f"Dodaje produkt {product_id} (wariant {variant_id}) do koszyka {cart.id}")
                self.repo.add_cart_item(
                    CartItemModel(
                        cart_id=cart.id,
                        product_id=product_id,
                        variant_id=variant_id,
                        quantity=new_quantity,
                    )
                )

            self.repo.commit()
        except IntegrityError as e:
            #ta sama pozycja dodana rownolegle - powtorka ja odczyta i zsumuje
            self.repo.rollback()
            logger.warning(f"Cart of user {user_id}: concurrent insert of product {product_id} (variant {variant_id})")
            raise ConcurrencyConflictError() from e
        except Exception:
            self.repo.rollback()
            raise

        return {"cart": self.render(cart), "warning": warning}

    def set_quantity(self, user_id: int, line_id: int, quantity: int) -> Dict[str, Any]:
        if quantity is None or quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        item = self._owned_line(user_id, line_id)
        product = item.product
        if not product.is_active:
            raise ProductUnavailableError(product.id, product.name)

        available = self.stock.available(product, item.variant_id)
        if quantity > available:
            raise InsufficientStockError(product.id, product.name, available)

        item.quantity = quantity
        self.repo.commit()

        logger.info(f"Pozycja {line_id} w koszyku {item.cart_id}: ilosc {quantity}")
        return self.render(item.cart)

    def remove_line(self, user_id: int, line_id: int) -> Dict[str, Any]:
        item = self._owned_line(user_id, line_id)
        cart = item.cart

        self.repo.delete_cart_item(item)
        self.repo.commit()

        logger.info(f"Pozycja {line_id} usunieta z koszyka {cart.id}")
        return self.render(cart)

    def clear(self, user_id: int) -> Dict[str, Any]:
        cart = self.repo.get_or_create_cart(user_id)
        removed = self.repo.clear_cart(cart.id)
        self.repo.commit()

        logger.info(f"Koszyk {cart.id} wyczyszczony, usunieto {removed} pozycji")
        return self.render(cart)

    #helpers
    def resolve(self, product_id: int, variant_id: int | None) -> tuple[ProductModel, VariantModel | None]:
        product = self.products.get_product(product_id)
        if product is None:
            raise NotFoundError("Product not found")
        if not product.is_active:
            raise ProductUnavailableError(product.id, product.name)

        variant = self.stock.get_variant(product, variant_id) if variant_id is not None else None
        return product, variant

    def _owned_line(self, user_id: int, line_id: int) -> CartItemModel:
        item = self.repo.get_cart_item(line_id)
        if item is None:
            raise NotFoundError("Cart item not found")
        if item.cart.user_id != user_id:
            raise ForbiddenError("Cart item belongs to another user")
        return item
