import os
from decimal import Decimal
from types import SimpleNamespace

import pytest

# engine modulu tworzony przy imporcie - nie moze wskazywac na postgresa w testach
os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy.orm import sessionmaker  # noqa: E402

from storefront.data.database import init_db, make_engine  # noqa: E402
from storefront.data.models import (  # noqa: E402
    AddressModel,
    ProductModel,
    UserModel,
    VariantModel,
)
from storefront.services.guest_cart_store import GuestCartStore  # noqa: E402
from tests.fakes import FakeRedis, RecordingNotifier  # noqa: E402


@pytest.fixture()
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'storefront.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def guest_store():
    return GuestCartStore(client=FakeRedis())


@pytest.fixture()
def catalog(db):
    """Users, addresses and a small catalogue with one variant product."""
    customer = UserModel(name="Asha", email="asha@example.com", role="CUSTOMER")
    other = UserModel(name="Ravi", email="ravi@example.com", role="CUSTOMER")
    admin = UserModel(name="Admin", email="admin@example.com", role="ADMIN")
    db.add_all([customer, other, admin])
    db.flush()

    home = AddressModel(
        user_id=customer.id,
        full_name="Asha K",
        street="12 MG Road",
        city="Bengaluru",
        state="KA",
        postal_code="560001",
        country="India",
        phone="+91 98765 43210",
    )
    elsewhere = AddressModel(
        user_id=other.id,
        full_name="Ravi S",
        street="4 Park Street",
        city="Kolkata",
        state="WB",
        postal_code="700016",
        country="India",
    )

    widget = ProductModel(name="Widget", sku="WID-1", price=Decimal("100.00"), quantity=10)
    gadget = ProductModel(name="Gadget", sku="GAD-1", price=Decimal("250.00"), quantity=2)
    retired = ProductModel(name="Retired", sku="RET-1", price=Decimal("10.00"), quantity=5, is_active=False)
    sold_out = ProductModel(name="Sold Out", sku="SOLD-1", price=Decimal("20.00"), quantity=0)
    shirt = ProductModel(name="Shirt", sku="SHT-1", price=Decimal("300.00"), quantity=0)
    shirt.variants = [
        VariantModel(name="M", sku="SHT-1-M", quantity=4),
        VariantModel(name="XL", sku="SHT-1-XL", price=Decimal("350.00"), quantity=1),
    ]

    db.add_all([home, elsewhere, widget, gadget, retired, sold_out, shirt])
    db.commit()

    return SimpleNamespace(
        customer=customer.id,
        other=other.id,
        admin=admin.id,
        address=home.id,
        other_address=elsewhere.id,
        widget=widget.id,
        gadget=gadget.id,
        retired=retired.id,
        sold_out=sold_out.id,
        shirt=shirt.id,
        shirt_m=shirt.variants[0].id,
        shirt_xl=shirt.variants[1].id,
    )


@pytest.fixture()
def stock(session_factory):
    """Read on-hand stock through a fresh session."""

    def read(product_id, variant_id=None) -> int:
        session = session_factory()
        try:
            if variant_id is None:
                return session.get(ProductModel, product_id).quantity
            return session.get(VariantModel, variant_id).quantity
        finally:
            session.close()

    return read
