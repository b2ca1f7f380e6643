from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from stockroom import errors
from . import models, schemas

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _unique(ids: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for product_id in ids:
        seen.setdefault(product_id, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Catalog reader
# ---------------------------------------------------------------------------


def get_products(
    db: Session,
    *,
    owner_id: str,
    product_ids: Iterable[str],
) -> Dict[str, schemas.CatalogEntry]:
    """
    Resolve product ids to pricing, stock and kind.

    Only products owned by `owner_id` and not archived are returned. Ids that
    do not resolve are simply absent; callers decide whether that is fatal.
    """
    ids = _unique(product_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.Product)
        .filter(
            models.Product.user_id == owner_id,
            models.Product.id.in_(ids),
            models.Product.archived_at.is_(None),
        )
        .all()
    )
    return {
        row.id: schemas.CatalogEntry(
            id=row.id,
            price_tax_free=Decimal(row.price_tax_free),
            vat_percent=Decimal(row.vat_percent),
            quantity=row.quantity,
            kind=row.kind,
        )
        for row in rows
    }


def get_bundle_components(
    db: Session,
    *,
    bundle_ids: Iterable[str],
) -> Dict[str, List[schemas.BundleComponent]]:
    ids = _unique(bundle_ids)
    if not ids:
        return {}
    rows = (
        db.query(models.BundleItem, models.Product)
        .join(models.Product, models.Product.id == models.BundleItem.product_id)
        .filter(models.BundleItem.bundle_id.in_(ids))
        .order_by(models.BundleItem.bundle_id, models.BundleItem.position)
        .all()
    )
    components: Dict[str, List[schemas.BundleComponent]] = defaultdict(list)
    for item, component in rows:
        components[item.bundle_id].append(
            schemas.BundleComponent(
                product_id=item.product_id,
                quantity=item.quantity,
                kind=component.kind,
                archived=component.archived_at is not None,
            )
        )
    return dict(components)


def resolve_products(
    db: Session,
    *,
    owner_id: str,
    product_ids: Sequence[str],
) -> Dict[str, schemas.CatalogEntry]:
    """Like get_products, but every id must resolve or the whole call fails."""
    ids = _unique(product_ids)
    entries = get_products(db, owner_id=owner_id, product_ids=ids)
    missing = [product_id for product_id in ids if product_id not in entries]
    if not missing:
        return entries

    archived = {
        row.id
        for row in db.query(models.Product.id)
        .filter(
            models.Product.user_id == owner_id,
            models.Product.id.in_(missing),
            models.Product.archived_at.isnot(None),
        )
        .all()
    }
    for product_id in missing:
        if product_id in archived:
            raise errors.ArchivedProductError(
                f"Product is archived and cannot be ordered: {product_id}",
                entity_id=product_id,
            )
    raise errors.NotFoundError(
        f"Product not found or not owned: {missing[0]}",
        entity_id=missing[0],
    )


# ---------------------------------------------------------------------------
# Catalog maintenance
# ---------------------------------------------------------------------------


def get_product(
    db: Session,
    *,
    owner_id: str,
    product_id: str,
    for_update: bool = False,
) -> models.Product:
    query = db.query(models.Product).filter(
        models.Product.id == product_id,
        models.Product.user_id == owner_id,
    )
    if for_update:
        query = query.with_for_update()
    product = query.first()
    if not product:
        raise errors.NotFoundError("Product not found.", entity_id=product_id)
    return product


def validate_bundle_components(
    db: Session,
    *,
    owner_id: str,
    bundle_id: Optional[str],
    items: Sequence[schemas.BundleItemPayload],
) -> None:
    if not items:
        raise errors.InvalidCompositionError(
            "Bundle must have at least one component.",
            entity_id=bundle_id,
        )
    component_ids = [item.product_id for item in items]
    if bundle_id is not None and bundle_id in component_ids:
        raise errors.InvalidCompositionError("Bundle cannot contain itself.", entity_id=bundle_id)
    if len(set(component_ids)) != len(component_ids):
        raise errors.InvalidCompositionError(
            "Bundle components must be distinct products.",
            entity_id=bundle_id,
        )

    components = {
        row.id: row
        for row in db.query(models.Product)
        .filter(
            models.Product.user_id == owner_id,
            models.Product.id.in_(component_ids),
        )
        .all()
    }
    for product_id in component_ids:
        component = components.get(product_id)
        if component is None:
            raise errors.InvalidCompositionError(
                f"Invalid bundle component: {product_id}",
                entity_id=product_id,
            )
        if component.archived_at is not None:
            raise errors.InvalidCompositionError(
                f"Bundle component is archived: {product_id}",
                entity_id=product_id,
            )
        if component.kind != models.ProductKindEnum.SIMPLE:
            raise errors.InvalidCompositionError(
                f"Bundle components must be simple products: {product_id}",
                entity_id=product_id,
            )


def _replace_bundle_items(
    db: Session,
    *,
    product: models.Product,
    items: Sequence[schemas.BundleItemPayload],
) -> None:
    product.bundle_items.clear()
    db.flush()
    for position, item in enumerate(items):
        product.bundle_items.append(
            models.BundleItem(
                product_id=item.product_id,
                quantity=item.quantity,
                position=position,
            )
        )


def _is_component_of_any_bundle(db: Session, *, product_id: str) -> bool:
    return (
        db.query(models.BundleItem.bundle_id)
        .filter(models.BundleItem.product_id == product_id)
        .first()
        is not None
    )


def create_product(
    db: Session,
    *,
    owner_id: str,
    payload: schemas.ProductCreate,
) -> models.Product:
    if payload.kind == models.ProductKindEnum.BUNDLE:
        validate_bundle_components(db, owner_id=owner_id, bundle_id=None, items=payload.bundle_items)
    elif payload.bundle_items:
        raise errors.InvalidCompositionError("Only bundle products can have components.")

    product = models.Product(
        user_id=owner_id,
        name=payload.name.strip(),
        sku=payload.sku.strip(),
        description=payload.description,
        price_tax_free=_money(payload.price_tax_free),
        vat_percent=_money(payload.vat_percent),
        kind=payload.kind,
        quantity=0 if payload.kind == models.ProductKindEnum.BUNDLE else payload.quantity,
    )
    db.add(product)
    db.flush()
    if payload.kind == models.ProductKindEnum.BUNDLE:
        _replace_bundle_items(db, product=product, items=payload.bundle_items)
        db.flush()
    logger.info(
        "Product created",
        extra={"owner_id": owner_id, "product_id": product.id, "kind": product.kind.value},
    )
    return product


def update_product(
    db: Session,
    *,
    owner_id: str,
    product_id: str,
    payload: schemas.ProductUpdate,
) -> models.Product:
    # Same row lock as the order paths so quantity edits never lose a decrement.
    product = get_product(db, owner_id=owner_id, product_id=product_id, for_update=True)

    kind = payload.kind or product.kind
    becomes_bundle = kind == models.ProductKindEnum.BUNDLE
    if becomes_bundle and product.kind != models.ProductKindEnum.BUNDLE:
        if _is_component_of_any_bundle(db, product_id=product.id):
            raise errors.InvalidCompositionError(
                "A bundle component cannot become a bundle.",
                entity_id=product.id,
            )
        if payload.bundle_items is None:
            raise errors.InvalidCompositionError(
                "Bundle must have at least one component.",
                entity_id=product.id,
            )
    if payload.bundle_items is not None:
        if not becomes_bundle:
            raise errors.InvalidCompositionError(
                "Only bundle products can have components.",
                entity_id=product.id,
            )
        validate_bundle_components(
            db,
            owner_id=owner_id,
            bundle_id=product.id,
            items=payload.bundle_items,
        )

    if payload.name is not None:
        product.name = payload.name.strip()
    if payload.sku is not None:
        product.sku = payload.sku.strip()
    if payload.description is not None:
        product.description = payload.description
    if payload.price_tax_free is not None:
        product.price_tax_free = _money(payload.price_tax_free)
    if payload.vat_percent is not None:
        product.vat_percent = _money(payload.vat_percent)
    if payload.archived is not None:
        product.archived_at = datetime.now(timezone.utc) if payload.archived else None

    if becomes_bundle:
        product.quantity = 0
        if payload.bundle_items is not None:
            _replace_bundle_items(db, product=product, items=payload.bundle_items)
    else:
        if product.kind == models.ProductKindEnum.BUNDLE:
            product.bundle_items.clear()
        if payload.quantity is not None:
            product.quantity = payload.quantity
    product.kind = kind

    db.add(product)
    db.flush()
    return product
