# storefront/services/order_service.py
from typing import Any, Dict

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.enums import CANCELLABLE_STATUSES, OrderStatus, PaymentStatus
from storefront.domain.exceptions import (
    ConcurrencyConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from storefront.repos.order_repo import OrderRepo
from storefront.repos.stock_repo import StockLedger
from storefront.services.notification_service import NotificationService
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#statusy po ktorych klient dostaje maila
_NOTIFY_ON = {
    OrderStatus.SHIPPED: "send_order_shipped",
    OrderStatus.DELIVERED: "send_order_delivered",
}


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "shipping_address": {
            "full_name": order.shipping_full_name,
            "street": order.shipping_street,
            "city": order.shipping_city,
            "state": order.shipping_state,
            "postal_code": order.shipping_postal_code,
            "country": order.shipping_country,
            "phone": order.shipping_phone,
        },
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "variant_id": i.variant_id,
                "name": i.name,
                "sku": i.sku,
                "price": i.price,
                "quantity": i.quantity,
                "total": i.total,
            }
            for i in order.items
        ],
        "subtotal": order.subtotal,
        "tax": order.tax,
        "shipping_cost": order.shipping_cost,
        "discount": order.discount,
        "total": order.total,
        "notes": order.notes,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _parse_enum(enum_cls, value: str, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}") from None


class OrderService:
    """
    Cykl zycia zamowienia po checkoucie.

    -anulowanie przez klienta: tylko PENDING/PROCESSING, zwrot stanu + status w jednej transakcji
    -zmiana statusu przez admina: dowolny znany status, mail przy SHIPPED/DELIVERED
    """

    def __init__(self, db: Session, notification_service: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.stock = StockLedger(db)
        self.notification_service = notification_service or NotificationService()

    #query
    def list_orders(self, user_id: int) -> list[Dict[str, Any]]:
        return [order_to_dict(o) for o in self.repo.list_user_orders(user_id)]

    def get_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        return order_to_dict(self._owned_order(user_id, order_id))

    def admin_get_order(self, order_id: int) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order_to_dict(order)

    #commands
    def cancel_order(self, user_id: int, order_id: int) -> Dict[str, Any]:
        order = self._owned_order(user_id, order_id)

        if OrderStatus(order.status) not in CANCELLABLE_STATUSES:
            raise InvalidTransitionError(
                f"Order cannot be cancelled at this stage ({order.status})"
            )

        logger.info(f"Anulowanie zamowienia {order.order_number}")

        try:
            #warunkowa zmiana statusu - dwa rownolegle anulowania nie zwroca stanu dwa razy
            changed = self.repo.transition_status(
                order.id,
                from_statuses=[s.value for s in CANCELLABLE_STATUSES],
                to_status=OrderStatus.CANCELLED.value,
            )
            if changed == 0:
                raise InvalidTransitionError("Order cannot be cancelled at this stage")

            for item in order.items:
                if item.product_id is None:
                    logger.warning(f"Item {item.name} of order {order.order_number} has no product, stock not restored")
                    continue
                self.stock.release(item.product_id, item.variant_id, item.quantity)

            self.db.commit()
        except OperationalError as e:
            self.db.rollback()
            logger.warning(f"Cancellation of order {order_id} hit a conflict: {e}")
            raise ConcurrencyConflictError() from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(f"Zamowienie {order.order_number} anulowane, stan przywrocony")
        return order_to_dict(order)

    def update_status(
        self,
        order_id: int,
        status: str,
        payment_status: str | None = None,
    ) -> Dict[str, Any]:

        new_status = _parse_enum(OrderStatus, status, "status")
        new_payment_status = (
            _parse_enum(PaymentStatus, payment_status, "payment status")
            if payment_status is not None
            else None
        )

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        previous = order.status
        order.status = new_status.value
        if new_payment_status is not None:
            order.payment_status = new_payment_status.value

        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info(f"Zamowienie {order.order_number}: status {previous} -> {order.status}")

        #powiadomienie po commicie, blad nie cofa zmiany statusu
        if previous != new_status.value and new_status in _NOTIFY_ON:
            self._notify(_NOTIFY_ON[new_status], order)

        return order_to_dict(order)

    def _notify(self, method: str, order: OrderModel) -> None:
        try:
            getattr(self.notification_service, method)(order)
        except Exception:
            logger.exception(f"Notification {method} failed for order {order.order_number}")

    def _owned_order(self, user_id: int, order_id: int) -> OrderModel:
        order = self.repo.get_order(order_id)

        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user_id:
            raise ForbiddenError("Order belongs to another user")

        return order
