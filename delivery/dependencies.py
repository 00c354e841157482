from typing import Generator
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from delivery.infra.db import SessionLocal
from delivery.realtime.broker import NotificationBroker
from delivery.core.orders import OrderService
from delivery.core.users import UserService


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_broker(request: Request) -> NotificationBroker:
    return request.app.state.broker


def get_order_service(
    db: Session = Depends(get_db),
    broker: NotificationBroker = Depends(get_broker),
) -> OrderService:
    return OrderService(db, broker)


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)
