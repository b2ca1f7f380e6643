from __future__ import annotations

import logging
from typing import Dict, List, Mapping

from sqlalchemy import update
from sqlalchemy.orm import Session

from stockroom import errors
from stockroom.apps.catalog import models as catalog_models

logger = logging.getLogger(__name__)


def _load_quantities(
    db: Session,
    *,
    owner_id: str,
    product_ids: List[str],
    lock: bool,
) -> Dict[str, int]:
    query = (
        db.query(catalog_models.Product.id, catalog_models.Product.quantity)
        .filter(
            catalog_models.Product.user_id == owner_id,
            catalog_models.Product.id.in_(product_ids),
        )
        # Stable lock order keeps concurrent checkouts from deadlocking.
        .order_by(catalog_models.Product.id)
    )
    if lock:
        query = query.with_for_update()
    return {row.id: row.quantity for row in query.all()}


def _expire_quantities(db: Session, *, product_ids: Mapping[str, int]) -> None:
    # Bulk UPDATE bypasses the identity map; reload quantity on next access.
    for obj in list(db.identity_map.values()):
        if isinstance(obj, catalog_models.Product) and obj.id in product_ids:
            db.expire(obj, ["quantity"])


def validate_stock(
    db: Session,
    *,
    owner_id: str,
    required: Mapping[str, int],
    lock: bool = True,
) -> Dict[str, int]:
    """
    Check that every base product has at least the required quantity.

    With `lock`, the product rows stay locked until the caller's transaction
    ends, so the decrement that follows sees the same quantities. Returns the
    quantities that were read.
    """
    product_ids = sorted(required)
    if not product_ids:
        return {}
    on_hand = _load_quantities(db, owner_id=owner_id, product_ids=product_ids, lock=lock)
    for product_id in product_ids:
        available = on_hand.get(product_id, 0)
        if available < required[product_id]:
            logger.warning(
                "Insufficient stock",
                extra={
                    "owner_id": owner_id,
                    "product_id": product_id,
                    "required": required[product_id],
                    "available": available,
                },
            )
            raise errors.InsufficientStockError(
                product_id,
                required=required[product_id],
                available=available,
            )
    return on_hand


def decrement_stock(
    db: Session,
    *,
    owner_id: str,
    required: Mapping[str, int],
) -> None:
    """
    Subtract required quantities with a compare-and-swap update per product.

    The WHERE clause refuses to go below zero; a row that no longer matches
    means a concurrent writer got there first and the whole unit of work
    must roll back.
    """
    product = catalog_models.Product
    for product_id in sorted(required):
        quantity = required[product_id]
        result = db.execute(
            update(product)
            .where(
                product.id == product_id,
                product.user_id == owner_id,
                product.quantity >= quantity,
            )
            .values(quantity=product.quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = (
                db.query(product.quantity)
                .filter(product.id == product_id, product.user_id == owner_id)
                .scalar()
            )
            raise errors.InsufficientStockError(
                product_id,
                required=quantity,
                available=current or 0,
            )
    _expire_quantities(db, product_ids=required)
