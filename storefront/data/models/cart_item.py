from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, CheckConstraint, Index, text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=True)

    #bez ceny - cena zawsze czytana na zywo z produktu
    quantity = Column(Integer, nullable=False)

    cart = relationship("CartModel", back_populates="items")
    product = relationship("ProductModel")
    variant = relationship("VariantModel")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "variant_id", name="u_cart_product_variant"),
        #NULL != NULL w unique - osobny indeks dla pozycji bez wariantu
        Index(
            "u_cart_product_no_variant",
            "cart_id",
            "product_id",
            unique=True,
            postgresql_where=text("variant_id IS NULL"),
            sqlite_where=text("variant_id IS NULL"),
        ),
        CheckConstraint("quantity > 0", name="ck_cart_item_quantity_positive"),
    )
