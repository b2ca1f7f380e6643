from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from stockroom.apps.orders.schemas import parse
from stockroom.database import get_db, get_read_db
from stockroom.models import User
from stockroom.security import get_current_active_user

from . import schemas, services

router = APIRouter(prefix="/products", tags=["catalog"])


@router.post("", response_model=schemas.ProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = parse(schemas.ProductCreate, data)
    product = services.create_product(db, owner_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(product)
    return product


@router.get("/{product_id}", response_model=schemas.ProductRead)
def get_product(
    product_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.get_product(db, owner_id=current_user.id, product_id=product_id)


@router.patch("/{product_id}", response_model=schemas.ProductRead)
def update_product(
    product_id: str,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = parse(schemas.ProductUpdate, data)
    product = services.update_product(db, owner_id=current_user.id, product_id=product_id, payload=payload)
    db.commit()
    db.refresh(product)
    return product
