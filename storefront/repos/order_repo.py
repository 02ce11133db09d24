# storefront/repos/order_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, exists, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.get(OrderModel, order_id, options=[selectinload(OrderModel.items)])

    def list_user_orders(self, user_id: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .where(OrderModel.user_id == user_id)
                .options(selectinload(OrderModel.items))
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars()
        )

    def order_number_exists(self, order_number: str) -> bool:
        return self.db.execute(
            select(exists().where(OrderModel.order_number == order_number))
        ).scalar()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def transition_status(self, order_id: int, from_statuses: list[str], to_status: str) -> int:
        #UPDATE orders SET status = :to WHERE id = :id AND status IN (:from)
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status.in_(from_statuses))
            .values(status=to_status, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
