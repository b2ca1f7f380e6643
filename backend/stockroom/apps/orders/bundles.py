from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, NamedTuple, Sequence

from sqlalchemy.orm import Session

from stockroom import errors
from stockroom.apps.catalog import services as catalog_services
from stockroom.apps.catalog.models import ProductKindEnum
from stockroom.apps.catalog.schemas import BundleComponent


class OrderLine(NamedTuple):
    product_id: str
    quantity: int


def compute_required_quantities(
    lines: Iterable[OrderLine],
    kinds: Mapping[str, ProductKindEnum],
    components: Mapping[str, Sequence[BundleComponent]],
) -> Dict[str, int]:
    """
    Flatten order lines into base (simple) product requirements.

    Simple lines count as themselves; bundle lines contribute
    line quantity x component quantity for each component. Pure summation,
    so the result does not depend on line order. Lines whose product is not
    in `kinds` are skipped; the loading wrapper rejects them beforehand.
    """
    required: Dict[str, int] = defaultdict(int)
    for line in lines:
        kind = kinds.get(line.product_id)
        if kind is None:
            continue
        if kind == ProductKindEnum.SIMPLE:
            required[line.product_id] += line.quantity
            continue
        for component in components.get(line.product_id, ()):
            required[component.product_id] += line.quantity * component.quantity
    return dict(required)


def _check_composition(bundle_id: str, components: Sequence[BundleComponent]) -> None:
    for component in components:
        if component.product_id == bundle_id or component.kind != ProductKindEnum.SIMPLE:
            raise errors.InvalidCompositionError(
                f"Bundle {bundle_id} has a non-simple component: {component.product_id}",
                entity_id=bundle_id,
            )
        if component.archived:
            raise errors.InvalidCompositionError(
                f"Bundle {bundle_id} has an archived component: {component.product_id}",
                entity_id=bundle_id,
            )


def expand_bundle_items(
    db: Session,
    *,
    owner_id: str,
    lines: Sequence[OrderLine],
) -> Dict[str, int]:
    """
    Load kinds and bundle compositions, then flatten `lines`.

    Uses the current catalog composition. Any line whose product does not
    resolve fails the whole expansion.
    """
    product_ids: List[str] = [line.product_id for line in lines]
    entries = catalog_services.resolve_products(db, owner_id=owner_id, product_ids=product_ids)

    kinds = {product_id: entry.kind for product_id, entry in entries.items()}
    bundle_ids = [product_id for product_id, kind in kinds.items() if kind == ProductKindEnum.BUNDLE]
    components = catalog_services.get_bundle_components(db, bundle_ids=bundle_ids)
    for bundle_id in bundle_ids:
        _check_composition(bundle_id, components.get(bundle_id, ()))

    return compute_required_quantities(lines, kinds, components)
