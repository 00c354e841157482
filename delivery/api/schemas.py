from __future__ import annotations
from typing import Any, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from delivery.models import OrderStatus, UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class OrderCreate(CamelModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    establishment_name: str = Field(min_length=1)
    establishment_address: str = ""
    price: float = Field(default=0, ge=0)
    user_id: int
    delivery_id: Optional[int] = None


class OrderOut(CamelModel):
    id: int
    title: str
    description: str
    status: OrderStatus
    establishment_name: str
    establishment_address: str
    price: float
    user_id: int
    delivery_id: Optional[int] = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StatusUpdate(CamelModel):
    status: str


class AssignDelivery(CamelModel):
    delivery_id: int


class BroadcastIn(BaseModel):
    event: str = Field(min_length=1)
    data: Any = None


class BroadcastOut(BaseModel):
    event: str
    delivered: int
    dropped: int


class UserCreate(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    role: UserRole = UserRole.CUSTOMER
    address: Optional[str] = None


class UserOut(CamelModel):
    id: int
    name: str
    role: UserRole
    address: Optional[str] = None
