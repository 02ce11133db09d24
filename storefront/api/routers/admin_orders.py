from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import Identity, require_admin, get_notification_service
from storefront.data.database import get_db
from storefront.domain.schemas import AdminOrderStatusIn, OrderOut
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    return OrderService(db, notifier).admin_get_order(order_id)


@router.patch("/{order_id}", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: AdminOrderStatusIn,
    _: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
):
    return OrderService(db, notifier).update_status(
        order_id,
        status=payload.status,
        payment_status=payload.payment_status,
    )
