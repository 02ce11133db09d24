#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from storefront.api.deps import Identity, get_identity, get_guest_cart_store
from storefront.data.database import get_db
from storefront.domain.schemas import (
    AddCartLineIn,
    AddCartLineOut,
    CartOut,
    MergeCartIn,
    MergeCartOut,
    UpdateCartLineIn,
)
from storefront.services.cart_merge_service import CartMergeService
from storefront.services.cart_service import CartService
from storefront.services.guest_cart_store import GuestCartStore

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return CartService(db).get_cart(identity.user_id)


@router.post("", response_model=AddCartLineOut)
def add_line(
    payload: AddCartLineIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return CartService(db).add_line(
        user_id=identity.user_id,
        product_id=payload.product_id,
        variant_id=payload.variant_id,
        quantity=payload.quantity,
    )


@router.delete("", response_model=CartOut)
def clear_cart(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return CartService(db).clear(identity.user_id)


@router.post("/merge", response_model=MergeCartOut)
def merge_guest_cart(
    payload: MergeCartIn | None = None,
    x_guest_token: str | None = Header(None),
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    guest_store: GuestCartStore = Depends(get_guest_cart_store),
):
    """
    Merge koszyka goscia przy logowaniu - pozycje z body i/lub z magazynu
    pod tokenem X-Guest-Token. Zwraca koszyk + ostrzezenia per pozycja.
    """
    svc = CartMergeService(db, guest_store=guest_store)
    return svc.merge(
        identity.user_id,
        guest_lines=payload.items if payload else None,
        guest_token=x_guest_token,
    )


@router.patch("/{line_id}", response_model=CartOut)
def update_line(
    line_id: int,
    payload: UpdateCartLineIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return CartService(db).set_quantity(identity.user_id, line_id, payload.quantity)


@router.delete("/{line_id}", response_model=CartOut)
def remove_line(
    line_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
):
    return CartService(db).remove_line(identity.user_id, line_id)
