from __future__ import annotations
from typing import List, Optional
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    String, Integer, DateTime, Enum as SAEnum, ForeignKey, Numeric, Text, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from delivery.infra.db import Base

class UserRole(str, Enum):
    CUSTOMER = "customer"
    DELIVERY = "delivery"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PICKUP = "pickup"
    IN_COMING = "in_coming"
    ARRIVED = "arrived"
    DELIVERED = "delivered"

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped["UserRole"] = mapped_column(SAEnum(UserRole, values_callable=lambda e: [m.value for m in e]), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), nullable=False)
    orders: Mapped[List["Order"]] = relationship(back_populates="user", foreign_keys="Order.user_id", cascade="all, delete-orphan")

class Order(Base):
    __tablename__ = "orders"
    __table_args__ = ( Index("ix_orders_status", "status"), )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped["OrderStatus"] = mapped_column(SAEnum(OrderStatus, values_callable=lambda e: [m.value for m in e]), default=OrderStatus.PENDING, nullable=False)
    establishment_name: Mapped[str] = mapped_column(String(255), nullable=False)
    establishment_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    delivery_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)
    user: Mapped["User"] = relationship(back_populates="orders", foreign_keys=[user_id])
    delivery: Mapped[Optional["User"]] = relationship(foreign_keys=[delivery_id])
