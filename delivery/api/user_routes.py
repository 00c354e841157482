from __future__ import annotations
from typing import List
from fastapi import APIRouter, Depends, HTTPException

from delivery.dependencies import get_user_service
from delivery.core.users import UserService, UserNotFound, DuplicateUser
from delivery.api.schemas import UserCreate, UserOut

router = APIRouter(prefix="/api")


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(body: UserCreate, svc: UserService = Depends(get_user_service)):
    try:
        return svc.create(body)
    except DuplicateUser as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/users", response_model=List[UserOut])
def list_users(svc: UserService = Depends(get_user_service)):
    return svc.list_all()


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: int, svc: UserService = Depends(get_user_service)):
    try:
        return svc.get(user_id)
    except UserNotFound:
        raise HTTPException(status_code=404, detail="User not found")
