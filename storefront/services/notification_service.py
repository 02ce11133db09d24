# storefront/services/notification_service.py
from datetime import datetime, timedelta, timezone

from storefront.celery_worker import celery_app
from storefront.data.models.order import OrderModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ESTIMATED_DELIVERY_DAYS = 5


def order_payload(order: OrderModel) -> dict:
    """Dane zamowienia i klienta dla maila - tylko typy serializowalne do JSON."""
    user = order.user
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "customer_name": (user.name if user else None) or "Customer",
        "customer_email": user.email if user else None,
        "order_date": order.created_at.isoformat() if order.created_at else None,
        "items": [
            {"name": i.name, "sku": i.sku, "quantity": i.quantity, "price": str(i.price)}
            for i in order.items
        ],
        "subtotal": str(order.subtotal),
        "tax": str(order.tax),
        "shipping": str(order.shipping_cost),
        "discount": str(order.discount),
        "total": str(order.total),
        "shipping_address": {
            "full_name": order.shipping_full_name,
            "street": order.shipping_street,
            "city": order.shipping_city,
            "state": order.shipping_state,
            "postal_code": order.shipping_postal_code,
            "country": order.shipping_country,
        },
    }


class NotificationService:
    """
    Serwis do wysylania powiadomien.
    Uzywa Celery do asynchronicznego przetwarzania.

    Fire-and-forget: blad wysylki jest logowany i nigdy nie wraca do wywolujacego.
    """

    def send_order_confirmed(self, order: OrderModel) -> bool:
        return self._dispatch(send_order_confirmation_task, order)

    def send_order_shipped(self, order: OrderModel) -> bool:
        return self._dispatch(send_order_shipped_task, order)

    def send_order_delivered(self, order: OrderModel) -> bool:
        return self._dispatch(send_order_delivered_task, order)

    @staticmethod
    def _dispatch(task, order: OrderModel) -> bool:
        try:
            task.delay(order_payload(order))
        except Exception:
            logger.exception(f"Failed to dispatch {task.name} for order {order.order_number}")
            return False
        logger.info(f"Dispatched {task.name} for order {order.order_number}")
        return True


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(payload: dict):
    """
    Celery task - w prawdziwym systemie wyslalby email z faktura.
    Teraz tylko loguje.
    """
    logger.info(
        f"[NOTIFICATION] {payload.get('customer_email')}: "
        f"Order {payload['order_number']} confirmed, total {payload['total']}"
    )
    return {"order_number": payload["order_number"], "event": "order_confirmed", "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_order_shipped_task")
def send_order_shipped_task(payload: dict):
    estimated = datetime.now(timezone.utc) + timedelta(days=ESTIMATED_DELIVERY_DAYS)
    tracking_number = f"TRK{payload['order_number']}"

    logger.info(
        f"[NOTIFICATION] {payload.get('customer_email')}: "
        f"Order {payload['order_number']} shipped, tracking {tracking_number}, "
        f"estimated delivery {estimated.date().isoformat()}"
    )
    return {"order_number": payload["order_number"], "event": "order_shipped", "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_order_delivered_task")
def send_order_delivered_task(payload: dict):
    logger.info(
        f"[NOTIFICATION] {payload.get('customer_email')}: "
        f"Order {payload['order_number']} delivered"
    )
    return {"order_number": payload["order_number"], "event": "order_delivered", "status": "sent"}
