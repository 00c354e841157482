from __future__ import annotations
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Response

from delivery.dependencies import get_order_service
from delivery.core.orders import OrderService, OrderNotFound, InvalidOrderChange
from delivery.api.schemas import OrderCreate, OrderOut, StatusUpdate, AssignDelivery

router = APIRouter(prefix="/api")


@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(body: OrderCreate, svc: OrderService = Depends(get_order_service)):
    try:
        return svc.create(body)
    except InvalidOrderChange as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/orders", response_model=List[OrderOut])
def list_orders(svc: OrderService = Depends(get_order_service)):
    return svc.list_all()


@router.get("/orders/user/{user_id}", response_model=List[OrderOut])
def list_user_orders(user_id: int, svc: OrderService = Depends(get_order_service)):
    return svc.list_for_user(user_id)


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    try:
        return svc.get(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")


@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int, body: StatusUpdate, svc: OrderService = Depends(get_order_service)
):
    try:
        return svc.update_status(order_id, body.status)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidOrderChange as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/orders/{order_id}/assign", response_model=OrderOut)
def assign_delivery(
    order_id: int, body: AssignDelivery, svc: OrderService = Depends(get_order_service)
):
    try:
        return svc.assign_delivery(order_id, body.delivery_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidOrderChange as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(order_id: int, svc: OrderService = Depends(get_order_service)):
    try:
        svc.delete(order_id)
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    return Response(status_code=204)
