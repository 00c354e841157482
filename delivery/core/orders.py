from __future__ import annotations
import logging
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, or_, desc

from delivery import models
from delivery.api.schemas import OrderCreate, OrderOut
from delivery.core.notify import notify_order_changed, notify_order_removed
from delivery.realtime.broker import NotificationBroker

logger = logging.getLogger(__name__)


class OrderNotFound(LookupError):
    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidOrderChange(ValueError):
    pass


class OrderService:
    """Order persistence; every committed change is pushed to the broker."""

    def __init__(self, db: Session, broker: NotificationBroker):
        self.db = db
        self.broker = broker

    def _get(self, order_id: int) -> models.Order:
        order = self.db.get(models.Order, order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def _publish(self, order: models.Order) -> OrderOut:
        self.db.refresh(order)
        out = OrderOut.model_validate(order)
        notify_order_changed(self.broker, out)
        return out

    def create(self, data: OrderCreate) -> OrderOut:
        if not self.db.get(models.User, data.user_id):
            raise InvalidOrderChange(f"User {data.user_id} does not exist")
        if data.delivery_id is not None:
            self._require_courier(data.delivery_id)
        order = models.Order(
            title=data.title,
            description=data.description,
            status=models.OrderStatus.PENDING,
            establishment_name=data.establishment_name,
            establishment_address=data.establishment_address,
            price=data.price,
            user_id=data.user_id,
            delivery_id=data.delivery_id,
        )
        self.db.add(order)
        self.db.commit()
        logger.info("order created", extra={"order_id": order.id, "user_id": order.user_id})
        return self._publish(order)

    def get(self, order_id: int) -> OrderOut:
        return OrderOut.model_validate(self._get(order_id))

    def list_all(self) -> List[OrderOut]:
        rows = self.db.scalars(
            select(models.Order).order_by(desc(models.Order.created_at), desc(models.Order.id))
        ).all()
        return [OrderOut.model_validate(o) for o in rows]

    def list_for_user(self, user_id: int) -> List[OrderOut]:
        rows = self.db.scalars(
            select(models.Order)
            .where(or_(models.Order.user_id == user_id, models.Order.delivery_id == user_id))
            .order_by(desc(models.Order.created_at), desc(models.Order.id))
        ).all()
        return [OrderOut.model_validate(o) for o in rows]

    def update_status(self, order_id: int, status: str) -> OrderOut:
        try:
            new_status = models.OrderStatus(status)
        except ValueError:
            raise InvalidOrderChange(f"Invalid status: {status}") from None
        order = self._get(order_id)
        order.status = new_status
        self.db.add(order)
        self.db.commit()
        logger.info("order status updated", extra={"order_id": order.id, "event": new_status.value})
        return self._publish(order)

    def assign_delivery(self, order_id: int, delivery_id: int) -> OrderOut:
        order = self._get(order_id)
        self._require_courier(delivery_id)
        order.delivery_id = delivery_id
        order.status = models.OrderStatus.PICKUP
        self.db.add(order)
        self.db.commit()
        logger.info("delivery assigned", extra={"order_id": order.id, "user_id": delivery_id})
        return self._publish(order)

    def delete(self, order_id: int) -> None:
        order = self._get(order_id)
        owner, courier = order.user_id, order.delivery_id
        self.db.delete(order)
        self.db.commit()
        logger.info("order deleted", extra={"order_id": order_id, "user_id": owner})
        notify_order_removed(self.broker, order_id, owner, courier)

    def _require_courier(self, user_id: int) -> models.User:
        user: Optional[models.User] = self.db.get(models.User, user_id)
        if user is None or user.role != models.UserRole.DELIVERY:
            raise InvalidOrderChange("Invalid delivery user")
        return user
