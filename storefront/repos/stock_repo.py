# storefront/repos/stock_repo.py
from sqlalchemy import update, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from storefront.data.models.product import ProductModel, VariantModel
from storefront.domain.exceptions import (
    InsufficientStockError,
    NotFoundError,
    ProductUnavailableError,
    ValidationError,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class StockLedger:
    """
    Jedyne miejsce ktore zmienia stan magazynowy.

    -reserve: warunkowy decrement w jednym UPDATE (quantity >= :q), nigdy ponizej zera
    -release: bezwarunkowy increment (anulowanie zamowienia)
    Oba dzialaja w transakcji wywolujacego, commit robi serwis.
    """

    def __init__(self, db: Session):
        self.db = db

    def available(self, product: ProductModel, variant_id: int | None) -> int:
        if variant_id is None:
            return product.quantity
        return self.get_variant(product, variant_id).quantity

    def get_variant(self, product: ProductModel, variant_id: int) -> VariantModel:
        variant = self.db.get(VariantModel, variant_id)
        if variant is None or variant.product_id != product.id:
            raise NotFoundError("Variant not found")
        return variant

    def reserve(self, product_id: int, variant_id: int | None, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")

        #UPDATE ... SET quantity = quantity - :q WHERE id = :id AND quantity >= :q
        #sprawdzenie i zapis w jednej instrukcji, dwa rownolegle checkouty nie zejda ponizej zera
        if variant_id is None:
            stmt = (
                update(ProductModel)
                .where(
                    ProductModel.id == product_id,
                    ProductModel.is_active.is_(True),
                    ProductModel.quantity >= quantity,
                )
                .values(quantity=ProductModel.quantity - quantity)
            )
        else:
            active_products = select(ProductModel.id).where(ProductModel.is_active.is_(True))
            stmt = (
                update(VariantModel)
                .where(
                    VariantModel.id == variant_id,
                    VariantModel.product_id == product_id,
                    VariantModel.product_id.in_(active_products),
                    VariantModel.quantity >= quantity,
                )
                .values(quantity=VariantModel.quantity - quantity)
            )

        result = self._execute(stmt)
        if result.rowcount == 1:
            self._expire_cached(product_id, variant_id)
            logger.info(f"Reserved {quantity} of product {product_id} (variant {variant_id})")
            return

        self._raise_reserve_failure(product_id, variant_id)

    def release(self, product_id: int, variant_id: int | None, quantity: int) -> bool:
        if quantity <= 0:
            raise ValidationError("Quantity must be at least 1")

        if variant_id is None:
            stmt = (
                update(ProductModel)
                .where(ProductModel.id == product_id)
                .values(quantity=ProductModel.quantity + quantity)
            )
        else:
            stmt = (
                update(VariantModel)
                .where(VariantModel.id == variant_id, VariantModel.product_id == product_id)
                .values(quantity=VariantModel.quantity + quantity)
            )

        result = self._execute(stmt)
        if result.rowcount == 0:
            logger.warning(
                f"Release skipped, product {product_id} (variant {variant_id}) no longer exists"
            )
            return False

        self._expire_cached(product_id, variant_id)
        logger.info(f"Released {quantity} of product {product_id} (variant {variant_id})")
        return True

    def _raise_reserve_failure(self, product_id: int, variant_id: int | None) -> None:
        #0 rows affected - odczyt po fakcie tylko zeby nazwac przyczyne
        product = self.db.get(ProductModel, product_id, populate_existing=True)
        if product is None:
            raise NotFoundError("Product not found")
        if not product.is_active:
            raise ProductUnavailableError(product.id, product.name)

        if variant_id is None:
            available = product.quantity
        else:
            variant = self.db.get(VariantModel, variant_id, populate_existing=True)
            if variant is None or variant.product_id != product.id:
                raise NotFoundError("Variant not found")
            available = variant.quantity

        raise InsufficientStockError(product.id, product.name, available)

    def _execute(self, stmt):
        #bez synchronizacji sesji - rowcount musi byc wiarygodny
        return self.db.execute(stmt.execution_options(synchronize_session=False))

    def _expire_cached(self, product_id: int, variant_id: int | None) -> None:
        model, pk = (ProductModel, product_id) if variant_id is None else (VariantModel, variant_id)
        cached = self.db.identity_map.get(identity_key(model, pk))
        if cached is not None:
            self.db.expire(cached, ["quantity"])
