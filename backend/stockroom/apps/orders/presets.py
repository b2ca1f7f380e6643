from __future__ import annotations

from decimal import Decimal
from typing import List, Sequence

from sqlalchemy.orm import Session

from stockroom import errors

from . import models, pricing, schemas


def preset_to_modification(preset: models.OrderPriceModificationPreset) -> schemas.PriceModification:
    return schemas.PriceModification(type=preset.type, kind=preset.kind, value=preset.value)


def get_preset(db: Session, *, owner_id: str, preset_id: str) -> models.OrderPriceModificationPreset:
    preset = (
        db.query(models.OrderPriceModificationPreset)
        .filter(
            models.OrderPriceModificationPreset.id == preset_id,
            models.OrderPriceModificationPreset.user_id == owner_id,
        )
        .first()
    )
    if not preset:
        raise errors.NotFoundError("Price modification preset not found.", entity_id=preset_id)
    return preset


def resolve_preset_modifications(
    db: Session,
    *,
    owner_id: str,
    preset_ids: Sequence[str],
) -> List[schemas.PriceModification]:
    """Modifications for `preset_ids`, in the order given."""
    if not preset_ids:
        return []
    presets = {
        preset.id: preset
        for preset in db.query(models.OrderPriceModificationPreset)
        .filter(
            models.OrderPriceModificationPreset.user_id == owner_id,
            models.OrderPriceModificationPreset.id.in_(set(preset_ids)),
        )
        .all()
    }
    modifications = []
    for preset_id in preset_ids:
        preset = presets.get(preset_id)
        if preset is None:
            raise errors.NotFoundError("Price modification preset not found.", entity_id=preset_id)
        modifications.append(preset_to_modification(preset))
    return modifications


def list_presets(db: Session, *, owner_id: str) -> List[models.OrderPriceModificationPreset]:
    return (
        db.query(models.OrderPriceModificationPreset)
        .filter(models.OrderPriceModificationPreset.user_id == owner_id)
        .order_by(
            models.OrderPriceModificationPreset.sort_order,
            models.OrderPriceModificationPreset.name,
        )
        .all()
    )


def _rounded_value(value) -> Decimal:
    rounded = pricing.round_money(value)
    if rounded <= 0:
        raise errors.ValidationError(
            "Preset value must be at least 0.01.",
            detail=[{"field": "value", "reason": "must be >= 0.01 after rounding to cents"}],
        )
    return rounded


def create_preset(
    db: Session,
    *,
    owner_id: str,
    payload: schemas.PriceModificationPresetCreate,
) -> models.OrderPriceModificationPreset:
    preset = models.OrderPriceModificationPreset(
        user_id=owner_id,
        name=payload.name.strip(),
        type=payload.type,
        kind=payload.kind,
        value=_rounded_value(payload.value),
        sort_order=payload.sort_order,
    )
    db.add(preset)
    db.flush()
    return preset


def update_preset(
    db: Session,
    *,
    owner_id: str,
    preset_id: str,
    payload: schemas.PriceModificationPresetUpdate,
) -> models.OrderPriceModificationPreset:
    value = _rounded_value(payload.value) if payload.value is not None else None
    preset = get_preset(db, owner_id=owner_id, preset_id=preset_id)
    if payload.name is not None:
        preset.name = payload.name.strip()
    if payload.type is not None:
        preset.type = payload.type
    if payload.kind is not None:
        preset.kind = payload.kind
    if value is not None:
        preset.value = value
    if payload.sort_order is not None:
        preset.sort_order = payload.sort_order
    db.add(preset)
    db.flush()
    return preset


def delete_preset(db: Session, *, owner_id: str, preset_id: str) -> str:
    preset = get_preset(db, owner_id=owner_id, preset_id=preset_id)
    db.delete(preset)
    db.flush()
    return preset_id
