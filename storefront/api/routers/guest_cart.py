from fastapi import APIRouter, Depends, Header

from storefront.api.deps import get_guest_cart_store
from storefront.domain.schemas import GuestCartLine, GuestCartOut
from storefront.services.guest_cart_store import GuestCartStore

router = APIRouter(prefix="/guest-cart", tags=["guest-cart"])


@router.get("", response_model=GuestCartOut, response_model_by_alias=False)
def get_guest_cart(
    x_guest_token: str = Header(...),
    store: GuestCartStore = Depends(get_guest_cart_store),
):
    return {"items": store.load(x_guest_token)}


@router.post("", response_model=GuestCartOut, response_model_by_alias=False)
def add_guest_line(
    payload: GuestCartLine,
    x_guest_token: str = Header(...),
    store: GuestCartStore = Depends(get_guest_cart_store),
):
    #bez walidacji stanu - sprawdzane dopiero przy merge
    lines = store.add(x_guest_token, payload.product_id, payload.variant_id, payload.quantity)
    return {"items": lines}


@router.delete("", status_code=204)
def clear_guest_cart(
    x_guest_token: str = Header(...),
    store: GuestCartStore = Depends(get_guest_cart_store),
):
    store.clear(x_guest_token)
