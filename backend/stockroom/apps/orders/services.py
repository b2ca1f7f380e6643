from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockroom import errors
from stockroom.apps.audit import services as audit_services
from stockroom.apps.catalog import services as catalog_services
from stockroom.apps.catalog.schemas import CatalogEntry
from stockroom.apps.workflow import apply_transition

from . import bundles, models, presets, pricing, references, schemas, stock

logger = logging.getLogger(__name__)

ORDER_WORKFLOW = "order"
CREATABLE_STATUSES = (models.OrderStatusEnum.PREPARED, models.OrderStatusEnum.PAID)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def unit_of_work(db: Session) -> Iterator[None]:
    """Commit on success; roll back everything on any failure."""
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def _get_order(
    db: Session,
    *,
    owner_id: str,
    order_id: str,
    for_update: bool = False,
) -> models.Order:
    query = db.query(models.Order).filter(
        models.Order.id == order_id,
        models.Order.user_id == owner_id,
    )
    if for_update:
        query = query.with_for_update()
    order = query.first()
    if not order:
        raise errors.NotFoundError("Order not found.", entity_id=order_id)
    return order


def get_order(db: Session, *, owner_id: str, order_id: str) -> models.Order:
    return _get_order(db, owner_id=owner_id, order_id=order_id)


def list_orders(
    db: Session,
    *,
    owner_id: str,
    page: int = 1,
    size: int = 20,
    reference: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> Tuple[List[models.Order], int]:
    query = db.query(models.Order).filter(models.Order.user_id == owner_id)
    if reference:
        pattern = reference.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        query = query.filter(models.Order.reference.ilike(f"%{pattern}%", escape="\\"))
    if start:
        query = query.filter(models.Order.created_at >= start)
    if end:
        query = query.filter(models.Order.created_at <= end)
    total = query.count()
    rows = (
        query.order_by(models.Order.created_at.desc())
        .offset((max(page, 1) - 1) * size)
        .limit(size)
        .all()
    )
    return rows, total


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate_create(payload: schemas.OrderCreate) -> None:
    if not payload.items:
        raise errors.ValidationError(
            "At least one item required.",
            detail=[{"field": "items", "reason": "at least one item required"}],
        )
    if payload.status not in CREATABLE_STATUSES:
        raise errors.ValidationError(
            f"Orders cannot be created as {payload.status.value}.",
            detail=[{"field": "status", "reason": "must be prepared or paid"}],
        )
    if not (payload.reference and payload.reference.strip()) and not payload.prefix_id:
        raise errors.ValidationError(
            "Either reference or prefix_id is required.",
            detail=[{"field": "reference", "reason": "reference or prefix_id required"}],
        )
    for item in payload.items:
        if item.quantity < 1:
            raise errors.ValidationError(
                f"Quantity must be at least 1 for product {item.product_id}.",
                entity_id=item.product_id,
                detail=[{"field": "quantity", "reason": "must be >= 1"}],
            )


def _lines(items: Sequence) -> List[bundles.OrderLine]:
    return [bundles.OrderLine(item.product_id, int(item.quantity)) for item in items]


def _price_items(
    db: Session,
    *,
    owner_id: str,
    payload: schemas.OrderCreate,
    entries: Mapping[str, CatalogEntry],
) -> List[models.OrderItem]:
    items: List[models.OrderItem] = []
    for position, item in enumerate(payload.items):
        entry = entries[item.product_id]
        modifications = list(item.modifications) + presets.resolve_preset_modifications(
            db,
            owner_id=owner_id,
            preset_ids=item.preset_ids,
        )
        unit_price = pricing.resolve_unit_price(
            entry.price_tax_free,
            override=item.unit_price_tax_free,
            modifications=modifications,
            product_id=item.product_id,
        )
        items.append(
            models.OrderItem(
                product_id=item.product_id,
                position=position,
                quantity=item.quantity,
                unit_price_tax_free=unit_price,
                unit_price_tax_included=pricing.tax_included(unit_price, entry.vat_percent),
                price_modifications=[m.model_dump(mode="json") for m in modifications] or None,
            )
        )
    return items


def _reserve_reference(db: Session, *, owner_id: str, payload: schemas.OrderCreate) -> str:
    if payload.reference and payload.reference.strip():
        reference = payload.reference.strip()
        if references.reference_exists(db, owner_id=owner_id, reference=reference):
            raise errors.DuplicateReferenceError(reference)
        return reference
    return references.allocate_reference(db, owner_id=owner_id, prefix_id=payload.prefix_id)


def _flush_order(db: Session, *, order: models.Order) -> None:
    try:
        db.flush()
    except IntegrityError as exc:
        # Two writers raced past the existence check with the same reference.
        if "reference" in str(exc.orig).lower():
            raise errors.DuplicateReferenceError(order.reference) from exc
        raise


def _decrement(db: Session, *, owner_id: str, order_id: str, required: Dict[str, int]) -> None:
    stock.decrement_stock(db, owner_id=owner_id, required=required)
    audit_services.log_event(
        db,
        owner_id=owner_id,
        entity_type=ORDER_WORKFLOW,
        entity_id=order_id,
        action="stock_decrement",
        after={"required": required},
        critical=True,
    )


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def create_order(
    db: Session,
    *,
    owner_id: str,
    payload: schemas.OrderCreate,
) -> models.Order:
    _validate_create(payload)
    paid = payload.status == models.OrderStatusEnum.PAID

    with unit_of_work(db):
        entries = catalog_services.resolve_products(
            db,
            owner_id=owner_id,
            product_ids=[item.product_id for item in payload.items],
        )
        items = _price_items(db, owner_id=owner_id, payload=payload, entries=entries)
        reference = _reserve_reference(db, owner_id=owner_id, payload=payload)

        required: Dict[str, int] = {}
        if paid:
            required = bundles.expand_bundle_items(db, owner_id=owner_id, lines=_lines(payload.items))
            stock.validate_stock(db, owner_id=owner_id, required=required)

        order = models.Order(
            user_id=owner_id,
            reference=reference,
            status=payload.status,
            description=payload.description,
            paid_at=_utcnow() if paid else None,
            items=items,
        )
        db.add(order)
        _flush_order(db, order=order)

        if paid:
            _decrement(db, owner_id=owner_id, order_id=order.id, required=required)
        audit_services.log_event(
            db,
            owner_id=owner_id,
            entity_type=ORDER_WORKFLOW,
            entity_id=order.id,
            action="create",
            after={"reference": order.reference, "status": order.status.value},
            critical=True,
        )

    logger.info(
        "Order created",
        extra={
            "owner_id": owner_id,
            "order_id": order.id,
            "reference": order.reference,
            "status": order.status.value,
        },
    )
    return order


def mark_order_paid(db: Session, *, owner_id: str, order_id: str) -> models.Order:
    with unit_of_work(db):
        order = _get_order(db, owner_id=owner_id, order_id=order_id, for_update=True)
        lines = _lines(order.items)
        paid_at = _utcnow()
        apply_transition(
            db,
            owner_id=owner_id,
            entity_type=ORDER_WORKFLOW,
            entity_id=order.id,
            from_state=order.status.value,
            to_state=models.OrderStatusEnum.PAID.value,
            before_obj={"reference": order.reference},
            after_obj={"reference": order.reference, "paid_at": paid_at.isoformat(), "items": lines},
        )

        # Current composition, not a snapshot: bundles edited since creation
        # consume their new components.
        required = bundles.expand_bundle_items(db, owner_id=owner_id, lines=lines)
        stock.validate_stock(db, owner_id=owner_id, required=required)
        _decrement(db, owner_id=owner_id, order_id=order.id, required=required)

        order.status = models.OrderStatusEnum.PAID
        order.paid_at = paid_at
        db.add(order)
        db.flush()

    logger.info("Order marked paid", extra={"owner_id": owner_id, "order_id": order.id})
    return order


def mark_order_sent(db: Session, *, owner_id: str, order_id: str) -> models.Order:
    with unit_of_work(db):
        order = _get_order(db, owner_id=owner_id, order_id=order_id, for_update=True)
        apply_transition(
            db,
            owner_id=owner_id,
            entity_type=ORDER_WORKFLOW,
            entity_id=order.id,
            from_state=order.status.value,
            to_state=models.OrderStatusEnum.SENT.value,
            before_obj={"reference": order.reference},
            after_obj={"reference": order.reference},
        )
        order.status = models.OrderStatusEnum.SENT
        db.add(order)
        db.flush()

    logger.info("Order marked sent", extra={"owner_id": owner_id, "order_id": order.id})
    return order


def delete_order(db: Session, *, owner_id: str, order_id: str) -> str:
    with unit_of_work(db):
        order = _get_order(db, owner_id=owner_id, order_id=order_id, for_update=True)
        apply_transition(
            db,
            owner_id=owner_id,
            entity_type=ORDER_WORKFLOW,
            entity_id=order.id,
            from_state=order.status.value,
            to_state="deleted",
            before_obj={"reference": order.reference},
        )
        db.delete(order)
        db.flush()

    logger.info("Order deleted", extra={"owner_id": owner_id, "order_id": order_id})
    return order_id
