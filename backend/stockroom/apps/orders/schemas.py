from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from stockroom import errors

from . import models

PREFIX_PATTERN = r"^[A-Za-z0-9_-]+$"

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class PriceModification(BaseModel):
    type: models.ModificationTypeEnum
    kind: models.ModificationKindEnum
    value: Decimal = Field(..., gt=0)


class OrderItemCreate(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    # Explicit tax-free unit price, e.g. already modified by the cart.
    unit_price_tax_free: Optional[Decimal] = Field(default=None, ge=0)
    modifications: List[PriceModification] = Field(default_factory=list)
    preset_ids: List[str] = Field(default_factory=list)


class OrderCreate(BaseModel):
    reference: Optional[str] = Field(default=None, min_length=1, max_length=500)
    prefix_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    status: models.OrderStatusEnum = models.OrderStatusEnum.PREPARED
    items: List[OrderItemCreate] = Field(default_factory=list)


class OrderItemRead(BaseModel):
    id: str
    product_id: str
    quantity: int
    unit_price_tax_free: Decimal
    unit_price_tax_included: Decimal
    price_modifications: Optional[List[PriceModification]] = None

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: str
    user_id: str
    reference: str
    status: models.OrderStatusEnum
    description: Optional[str] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    items: List[OrderItemRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class OrderPage(BaseModel):
    items: List[OrderRead]
    total: int
    page: int
    size: int


class OrderReferencePrefixCreate(BaseModel):
    prefix: str = Field(..., min_length=1, max_length=20, pattern=PREFIX_PATTERN)


class OrderReferencePrefixUpdate(BaseModel):
    prefix: Optional[str] = Field(default=None, min_length=1, max_length=20, pattern=PREFIX_PATTERN)
    sort_order: Optional[int] = None


class OrderReferencePrefixRead(BaseModel):
    id: str
    user_id: str
    prefix: str
    sort_order: int

    class Config:
        from_attributes = True


class NextReferenceRead(BaseModel):
    prefix_id: str
    reference: str


class PriceModificationPresetCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: models.ModificationTypeEnum
    kind: models.ModificationKindEnum
    value: Decimal = Field(..., gt=0)
    sort_order: int = 0


class PriceModificationPresetUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[models.ModificationTypeEnum] = None
    kind: Optional[models.ModificationKindEnum] = None
    value: Optional[Decimal] = Field(default=None, gt=0)
    sort_order: Optional[int] = None


class PriceModificationPresetRead(BaseModel):
    id: str
    user_id: str
    name: str
    type: models.ModificationTypeEnum
    kind: models.ModificationKindEnum
    value: Decimal
    sort_order: int

    class Config:
        from_attributes = True


def parse(schema: Type[SchemaT], data: Mapping[str, Any]) -> SchemaT:
    """Build a request struct, reporting bad input as errors.ValidationError."""
    try:
        return schema.model_validate(data)
    except PydanticValidationError as exc:
        raise errors.ValidationError.from_pydantic(exc) from exc


def parse_order_create(data: Mapping[str, Any]) -> OrderCreate:
    return parse(OrderCreate, data)
