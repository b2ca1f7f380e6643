"""
Unit price arithmetic for order lines.

All amounts are Decimals rounded half-up to cents, the precision the order
item columns persist.
"""

from __future__ import annotations

import os
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from stockroom import errors

from . import models, schemas

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Upper bound for a line's unit price relative to the catalog price. Catches
# typos such as an extra digit; it is not a pricing policy.
MAX_PRICE_FACTOR = Decimal(os.getenv("ORDER_MAX_PRICE_FACTOR", "100"))


def round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def tax_included(price_tax_free: Decimal, vat_percent: Decimal) -> Decimal:
    price = Decimal(price_tax_free)
    return round_money(price * (1 + Decimal(vat_percent) / HUNDRED))


def apply_modification(base_price: Decimal, modification: schemas.PriceModification) -> Decimal:
    base = Decimal(base_price)
    value = Decimal(modification.value)
    relative = modification.kind == models.ModificationKindEnum.RELATIVE
    if modification.type == models.ModificationTypeEnum.INCREASE:
        result = base * (1 + value / HUNDRED) if relative else base + value
    else:
        result = base * (1 - value / HUNDRED) if relative else base - value
    return max(ZERO, round_money(result))


def apply_modifications(
    base_price: Decimal,
    modifications: Iterable[schemas.PriceModification],
) -> Decimal:
    result = round_money(base_price)
    for modification in modifications:
        result = apply_modification(result, modification)
    return result


def resolve_unit_price(
    catalog_price: Decimal,
    *,
    override: Optional[Decimal] = None,
    modifications: Iterable[schemas.PriceModification] = (),
    product_id: Optional[str] = None,
) -> Decimal:
    """
    Effective tax-free unit price of a line.

    An explicit override wins; otherwise modifications are folded over the
    catalog price. The result may not exceed MAX_PRICE_FACTOR times the
    catalog price.
    """
    base = Decimal(catalog_price)
    if override is not None and override >= 0:
        price = round_money(override)
    else:
        price = apply_modifications(base, modifications)

    max_price = round_money(base * MAX_PRICE_FACTOR)
    if price > max_price:
        raise errors.ValidationError(
            f"Unit price for product {product_id} exceeds maximum ({max_price})",
            entity_id=product_id,
            detail=[{"field": "unit_price_tax_free", "reason": f"must be <= {max_price}"}],
        )
    return price
