from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import BigInteger, Numeric, and_, cast, func, not_
from sqlalchemy.orm import Session

from stockroom import errors

from . import models, schemas

logger = logging.getLogger(__name__)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _suffix_number(reference: str, prefix: str) -> Optional[int]:
    if not reference.startswith(f"{prefix}-"):
        return None
    suffix = reference[len(prefix) + 1:]
    if not (suffix.isascii() and suffix.isdigit()):
        return None
    return int(suffix)


def _numeric_suffix(db: Session, suffix):
    """(digits-only filter, exact integer type) for the bound backend, or None."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return suffix.op("~")("^[0-9]+$"), Numeric()
    if dialect == "sqlite":
        return and_(suffix != "", not_(suffix.op("GLOB")("*[^0-9]*"))), BigInteger()
    return None


def next_reference(db: Session, *, owner_id: str, prefix: str) -> str:
    """
    Next sequential reference for `prefix`, scoped to the owner.

    Suffixes compare as integers, so ORD-10 follows ORD-9. References under
    the prefix whose suffix is not a plain number are ignored.
    """
    head = f"{prefix}-"
    suffix = func.substr(models.Order.reference, len(head) + 1)
    query = db.query(models.Order.reference).filter(
        models.Order.user_id == owner_id,
        models.Order.reference.like(f"{_escape_like(prefix)}-%", escape="\\"),
        # LIKE is case-insensitive on some backends; match the prefix exactly here.
        func.substr(models.Order.reference, 1, len(head)) == head,
    )
    numeric = _numeric_suffix(db, suffix)
    if numeric is None:
        numbers = [n for n in (_suffix_number(row.reference, prefix) for row in query) if n is not None]
        highest = max(numbers, default=0)
    else:
        digits, integer_type = numeric
        highest = query.filter(digits).with_entities(func.max(cast(suffix, integer_type))).scalar() or 0
    return f"{prefix}-{int(highest) + 1}"


def get_prefix(
    db: Session,
    *,
    owner_id: str,
    prefix_id: str,
    for_update: bool = False,
) -> models.OrderReferencePrefix:
    query = db.query(models.OrderReferencePrefix).filter(
        models.OrderReferencePrefix.id == prefix_id,
        models.OrderReferencePrefix.user_id == owner_id,
    )
    if for_update:
        query = query.with_for_update()
    prefix = query.first()
    if not prefix:
        raise errors.NotFoundError("Prefix not found.", entity_id=prefix_id)
    return prefix


def preview_next_reference(db: Session, *, owner_id: str, prefix_id: str) -> str:
    prefix = get_prefix(db, owner_id=owner_id, prefix_id=prefix_id)
    return next_reference(db, owner_id=owner_id, prefix=prefix.prefix)


def allocate_reference(db: Session, *, owner_id: str, prefix_id: str) -> str:
    """
    Reserve the next reference inside the caller's transaction.

    The prefix row lock serialises allocations for one prefix until the
    order insert commits. The orders unique constraint still backs this up.
    """
    prefix = get_prefix(db, owner_id=owner_id, prefix_id=prefix_id, for_update=True)
    return next_reference(db, owner_id=owner_id, prefix=prefix.prefix)


def reference_exists(db: Session, *, owner_id: str, reference: str) -> bool:
    return (
        db.query(models.Order.id)
        .filter(models.Order.user_id == owner_id, models.Order.reference == reference)
        .first()
        is not None
    )


# ---------------------------------------------------------------------------
# Prefix management
# ---------------------------------------------------------------------------


def list_prefixes(db: Session, *, owner_id: str) -> List[models.OrderReferencePrefix]:
    return (
        db.query(models.OrderReferencePrefix)
        .filter(models.OrderReferencePrefix.user_id == owner_id)
        .order_by(models.OrderReferencePrefix.sort_order, models.OrderReferencePrefix.prefix)
        .all()
    )


def _ensure_prefix_free(db: Session, *, owner_id: str, prefix: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(models.OrderReferencePrefix.id).filter(
        models.OrderReferencePrefix.user_id == owner_id,
        models.OrderReferencePrefix.prefix == prefix,
    )
    if exclude_id:
        query = query.filter(models.OrderReferencePrefix.id != exclude_id)
    if query.first() is not None:
        raise errors.ValidationError(
            "Prefix already exists.",
            entity_id=prefix,
            detail=[{"field": "prefix", "reason": "already exists"}],
        )


def create_prefix(
    db: Session,
    *,
    owner_id: str,
    payload: schemas.OrderReferencePrefixCreate,
) -> models.OrderReferencePrefix:
    value = payload.prefix.strip()
    _ensure_prefix_free(db, owner_id=owner_id, prefix=value)
    prefix = models.OrderReferencePrefix(user_id=owner_id, prefix=value)
    db.add(prefix)
    db.flush()
    return prefix


def update_prefix(
    db: Session,
    *,
    owner_id: str,
    prefix_id: str,
    payload: schemas.OrderReferencePrefixUpdate,
) -> models.OrderReferencePrefix:
    prefix = get_prefix(db, owner_id=owner_id, prefix_id=prefix_id, for_update=True)
    if payload.prefix is not None:
        value = payload.prefix.strip()
        _ensure_prefix_free(db, owner_id=owner_id, prefix=value, exclude_id=prefix.id)
        prefix.prefix = value
    if payload.sort_order is not None:
        prefix.sort_order = payload.sort_order
    db.add(prefix)
    db.flush()
    return prefix


def _lock_owner_prefixes(db: Session, *, owner_id: str) -> List[models.OrderReferencePrefix]:
    # Fixed lock order so concurrent deletes for one owner cannot deadlock.
    return (
        db.query(models.OrderReferencePrefix)
        .filter(models.OrderReferencePrefix.user_id == owner_id)
        .order_by(models.OrderReferencePrefix.id)
        .with_for_update()
        .all()
    )


def delete_prefix(db: Session, *, owner_id: str, prefix_id: str) -> str:
    """
    Delete a prefix unless it is the owner's last one.

    Every prefix row of the owner is locked first, so two concurrent deletes
    cannot both see a spare prefix and leave the owner with none.
    """
    owned = _lock_owner_prefixes(db, owner_id=owner_id)
    prefix = next((row for row in owned if row.id == prefix_id), None)
    if prefix is None:
        raise errors.NotFoundError("Prefix not found.", entity_id=prefix_id)
    if len(owned) <= 1:
        raise errors.ValidationError(
            "Cannot delete the last prefix. At least one is required to create orders.",
            entity_id=prefix_id,
        )
    db.delete(prefix)
    db.flush()
    logger.info("Order reference prefix deleted", extra={"owner_id": owner_id, "prefix_id": prefix_id})
    return prefix_id
