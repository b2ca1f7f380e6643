from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from . import models


class BundleItemPayload(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=2000)
    sku: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10_000)
    price_tax_free: Decimal = Field(..., ge=0)
    vat_percent: Decimal = Field(..., ge=0, le=100)
    kind: models.ProductKindEnum = models.ProductKindEnum.SIMPLE
    quantity: int = Field(default=0, ge=0)
    bundle_items: List[BundleItemPayload] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    sku: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10_000)
    price_tax_free: Optional[Decimal] = Field(default=None, ge=0)
    vat_percent: Optional[Decimal] = Field(default=None, ge=0, le=100)
    kind: Optional[models.ProductKindEnum] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    bundle_items: Optional[List[BundleItemPayload]] = None
    archived: Optional[bool] = None


class BundleItemRead(BaseModel):
    product_id: str
    quantity: int

    class Config:
        from_attributes = True


class ProductRead(BaseModel):
    id: str
    user_id: str
    name: str
    sku: str
    description: Optional[str] = None
    price_tax_free: Decimal
    vat_percent: Decimal
    kind: models.ProductKindEnum
    quantity: int
    archived_at: Optional[datetime] = None
    created_at: datetime
    bundle_items: List[BundleItemRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


@dataclass(frozen=True)
class CatalogEntry:
    """What order fulfillment needs to know about one orderable product."""

    id: str
    price_tax_free: Decimal
    vat_percent: Decimal
    quantity: int
    kind: models.ProductKindEnum


@dataclass(frozen=True)
class BundleComponent:
    product_id: str
    quantity: int
    kind: models.ProductKindEnum
    archived: bool = False
