from sqlalchemy import Column, Integer, ForeignKey, String, Numeric, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    sku = Column(String(64), nullable=True, unique=True)

    price = Column(Numeric(10, 2), nullable=False)
    #stan magazynowy gdy produkt nie ma wariantow
    quantity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    variants = relationship(
        "VariantModel",
        back_populates="product",
        cascade="all, delete-orphan",
    )

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),)


class VariantModel(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sku = Column(String(64), nullable=True, unique=True)

    #None = cena z produktu
    price = Column(Numeric(10, 2), nullable=True)
    quantity = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="variants")

    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_variant_quantity_non_negative"),)
