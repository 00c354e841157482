from __future__ import annotations
import logging
from typing import List
from sqlalchemy.orm import Session
from sqlalchemy import select

from delivery import models
from delivery.api.schemas import UserCreate, UserOut

logger = logging.getLogger(__name__)


class UserNotFound(LookupError):
    def __init__(self, user_id: int):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class DuplicateUser(ValueError):
    pass


class UserService:
    """Customers and couriers that orders point at."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: UserCreate) -> UserOut:
        taken = self.db.scalar(select(models.User.id).where(models.User.name == data.name))
        if taken is not None:
            raise DuplicateUser(f"User name {data.name!r} is already taken")
        user = models.User(name=data.name, role=data.role, address=data.address)
        self.db.add(user)
        self.db.commit()
        logger.info("user created", extra={"user_id": user.id})
        return UserOut.model_validate(user)

    def get(self, user_id: int) -> UserOut:
        user = self.db.get(models.User, user_id)
        if not user:
            raise UserNotFound(user_id)
        return UserOut.model_validate(user)

    def list_all(self) -> List[UserOut]:
        rows = self.db.scalars(select(models.User).order_by(models.User.id)).all()
        return [UserOut.model_validate(u) for u in rows]
