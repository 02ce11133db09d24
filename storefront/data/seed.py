# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal, init_db
from storefront.data.models import AddressModel, ProductModel, UserModel, VariantModel


def seed(session_factory=SessionLocal, bind=None):
    init_db(bind)
    db = session_factory()
    try:
        # not forcing: only seed if empty
        if db.query(UserModel).first():
            return

        customer = UserModel(id=1, name="Demo Customer", email="customer@example.com", role="CUSTOMER")
        admin = UserModel(id=2, name="Demo Admin", email="admin@example.com", role="ADMIN")
        db.add_all([customer, admin])

        db.add(
            AddressModel(
                user_id=1,
                full_name="Demo Customer",
                street="12 MG Road",
                city="Bengaluru",
                state="KA",
                postal_code="560001",
                country="India",
                phone="+91 98765 43210",
            )
        )

        tshirt = ProductModel(name="Cotton T-Shirt", sku="TSH-001", price=Decimal("299.00"), quantity=0)
        tshirt.variants = [
            VariantModel(name="M", sku="TSH-001-M", quantity=20),
            VariantModel(name="XL", sku="TSH-001-XL", price=Decimal("349.00"), quantity=5),
        ]
        db.add_all(
            [
                ProductModel(name="Keyboard", sku="KB-001", price=Decimal("199.99"), quantity=25),
                ProductModel(name="Mouse", sku="MS-001", price=Decimal("49.50"), quantity=100),
                ProductModel(name="Monitor", sku="MN-001", price=Decimal("899.00"), quantity=3),
                tshirt,
            ]
        )
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    seed()
