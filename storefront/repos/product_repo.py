from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.data.models.address import AddressModel


class ProductRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)


class AddressRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_user_address(self, address_id: int, user_id: int) -> AddressModel | None:
        address = self.db.get(AddressModel, address_id)
        if address is None or address.user_id != user_id:
            return None
        return address
