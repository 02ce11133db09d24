# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, List
from decimal import Decimal
from datetime import datetime


class GuestCartLine(BaseModel):
    """Pozycja koszyka goscia - {productId, variantId?, quantity} z klienta."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., gt=0, alias="productId")
    variant_id: int | None = Field(None, gt=0, alias="variantId")
    quantity: int = Field(..., gt=0)


class AddCartLineIn(BaseModel):
    """Schema dla dodawania produktu do koszyka."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi byc > 0)")
    variant_id: int | None = Field(None, gt=0, description="ID wariantu, opcjonalnie")
    quantity: int = Field(1, description="Ilosc produktu")


class UpdateCartLineIn(BaseModel):
    quantity: int


class MergeCartIn(BaseModel):
    """
    Surowe pozycje z local storage klienta. Walidowane pojedynczo w merge,
    zla pozycja daje ostrzezenie zamiast bledu calego zadania.
    """

    items: List[dict[str, Any]] = Field(default_factory=list, alias="guestCartItems")

    model_config = ConfigDict(populate_by_name=True)


class CartLineOut(BaseModel):
    id: int
    product_id: int
    variant_id: int | None = None
    name: str
    sku: str | None = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    available: int
    is_active: bool


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    cart_id: int
    user_id: int
    items: List[CartLineOut]
    item_count: int
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal
    free_shipping_eligible: bool
    amount_needed_for_free_shipping: Decimal


class AddCartLineOut(BaseModel):
    cart: CartOut
    warning: str | None = None


class MergeCartOut(BaseModel):
    merged: int
    warnings: List[str]
    cart: CartOut


class GuestCartOut(BaseModel):
    items: List[GuestCartLine]

    model_config = ConfigDict(populate_by_name=True)


class CheckoutIn(BaseModel):
    """Schema dla tworzenia zamowienia z koszyka."""

    address_id: int = Field(..., gt=0, description="ID adresu uzytkownika")
    payment_method: str = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)


class OrderActionIn(BaseModel):
    action: str


class AdminOrderStatusIn(BaseModel):
    status: str
    payment_status: str | None = None


class OrderItemOut(BaseModel):
    id: int
    product_id: int | None = None
    variant_id: int | None = None
    name: str
    sku: str | None = None
    price: Decimal
    quantity: int
    total: Decimal


class ShippingAddressOut(BaseModel):
    full_name: str
    street: str
    city: str
    state: str
    postal_code: str
    country: str
    phone: str | None = None


class OrderOut(BaseModel):
    """Schema dla zamowienia (response)."""

    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    payment_method: str
    shipping_address: ShippingAddressOut
    items: List[OrderItemOut]
    subtotal: Decimal
    tax: Decimal
    shipping_cost: Decimal
    discount: Decimal
    total: Decimal
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
