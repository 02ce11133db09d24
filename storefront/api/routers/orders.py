# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import Identity, get_identity, get_notification_service
from storefront.data.database import get_db
from storefront.domain.schemas import CheckoutIn, OrderActionIn, OrderOut
from storefront.services.checkout_service import CheckoutService
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[OrderOut])
def list_orders(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    return OrderService(db, notifier).list_orders(identity.user_id)


@router.post("", response_model=OrderOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    """
    Tworzy zamowienie z koszyka uzytkownika.
    Wysyla powiadomienie asynchronicznie.
    """
    svc = CheckoutService(db, notification_service=notifier)
    return svc.checkout(
        user_id=identity.user_id,
        address_id=payload.address_id,
        payment_method=payload.payment_method,
        notes=payload.notes,
    )


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    return OrderService(db, notifier).get_order(identity.user_id, order_id)


@router.patch("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: int,
    payload: OrderActionIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    if payload.action != "cancel":
        raise HTTPException(status_code=400, detail="Invalid action")

    return OrderService(db, notifier).cancel_order(identity.user_id, order_id)
