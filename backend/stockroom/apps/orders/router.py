from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from stockroom.database import get_db, get_read_db
from stockroom.models import User
from stockroom.security import get_current_active_user

from . import presets, references, schemas, services

router = APIRouter(prefix="", tags=["orders"])


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@router.post(
    "/orders",
    response_model=schemas.OrderRead,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = schemas.parse_order_create(data)
    order = services.create_order(db, owner_id=current_user.id, payload=payload)
    db.refresh(order)
    return order


@router.get("/orders", response_model=schemas.OrderPage)
def list_orders(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    reference: Optional[str] = Query(None, max_length=500),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    rows, total = services.list_orders(
        db,
        owner_id=current_user.id,
        page=page,
        size=size,
        reference=reference,
        start=start,
        end=end,
    )
    return schemas.OrderPage(
        items=[schemas.OrderRead.model_validate(row) for row in rows],
        total=total,
        page=page,
        size=size,
    )


@router.get("/orders/{order_id}", response_model=schemas.OrderRead)
def get_order(
    order_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return services.get_order(db, owner_id=current_user.id, order_id=order_id)


@router.post("/orders/{order_id}/paid", response_model=schemas.OrderRead)
def mark_order_paid(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    order = services.mark_order_paid(db, owner_id=current_user.id, order_id=order_id)
    db.refresh(order)
    return order


@router.post("/orders/{order_id}/sent", response_model=schemas.OrderRead)
def mark_order_sent(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    order = services.mark_order_sent(db, owner_id=current_user.id, order_id=order_id)
    db.refresh(order)
    return order


@router.delete("/orders/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    services.delete_order(db, owner_id=current_user.id, order_id=order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Reference prefixes
# ---------------------------------------------------------------------------


@router.get("/order-prefixes", response_model=List[schemas.OrderReferencePrefixRead])
def list_prefixes(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return references.list_prefixes(db, owner_id=current_user.id)


@router.post(
    "/order-prefixes",
    response_model=schemas.OrderReferencePrefixRead,
    status_code=status.HTTP_201_CREATED,
)
def create_prefix(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = schemas.parse(schemas.OrderReferencePrefixCreate, data)
    prefix = references.create_prefix(db, owner_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(prefix)
    return prefix


@router.patch("/order-prefixes/{prefix_id}", response_model=schemas.OrderReferencePrefixRead)
def update_prefix(
    prefix_id: str,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = schemas.parse(schemas.OrderReferencePrefixUpdate, data)
    prefix = references.update_prefix(db, owner_id=current_user.id, prefix_id=prefix_id, payload=payload)
    db.commit()
    db.refresh(prefix)
    return prefix


@router.delete("/order-prefixes/{prefix_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_prefix(
    prefix_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    references.delete_prefix(db, owner_id=current_user.id, prefix_id=prefix_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/order-prefixes/{prefix_id}/next-reference", response_model=schemas.NextReferenceRead)
def preview_next_reference(
    prefix_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    reference = references.preview_next_reference(db, owner_id=current_user.id, prefix_id=prefix_id)
    return schemas.NextReferenceRead(prefix_id=prefix_id, reference=reference)


# ---------------------------------------------------------------------------
# Price modification presets
# ---------------------------------------------------------------------------


@router.get("/order-presets", response_model=List[schemas.PriceModificationPresetRead])
def list_presets(
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    return presets.list_presets(db, owner_id=current_user.id)


@router.post(
    "/order-presets",
    response_model=schemas.PriceModificationPresetRead,
    status_code=status.HTTP_201_CREATED,
)
def create_preset(
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = schemas.parse(schemas.PriceModificationPresetCreate, data)
    preset = presets.create_preset(db, owner_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(preset)
    return preset


@router.patch("/order-presets/{preset_id}", response_model=schemas.PriceModificationPresetRead)
def update_preset(
    preset_id: str,
    data: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    payload = schemas.parse(schemas.PriceModificationPresetUpdate, data)
    preset = presets.update_preset(db, owner_id=current_user.id, preset_id=preset_id, payload=payload)
    db.commit()
    db.refresh(preset)
    return preset


@router.delete("/order-presets/{preset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_preset(
    preset_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    presets.delete_preset(db, owner_id=current_user.id, preset_id=preset_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
