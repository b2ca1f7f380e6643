from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from stockroom.database import Base, generate_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(enum_cls):
    return [member.value for member in enum_cls]


class OrderStatusEnum(str, enum.Enum):
    PREPARED = "prepared"
    PAID = "paid"
    SENT = "sent"


class ModificationTypeEnum(str, enum.Enum):
    INCREASE = "increase"
    DECREASE = "decrease"


class ModificationKindEnum(str, enum.Enum):
    FLAT = "flat"
    RELATIVE = "relative"


class OrderReferencePrefix(Base):
    __tablename__ = "order_reference_prefixes"
    __table_args__ = (
        UniqueConstraint("user_id", "prefix", name="uq_order_reference_prefix_user_prefix"),
    )

    id = Column(String(36), primary_key=True, default=generate_id, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    prefix = Column(String(20), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class OrderPriceModificationPreset(Base):
    __tablename__ = "order_price_modification_presets"
    __table_args__ = (
        CheckConstraint("value > 0", name="ck_order_price_modification_presets_value_positive"),
    )

    id = Column(String(36), primary_key=True, default=generate_id, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    type = Column(
        SAEnum(ModificationTypeEnum, name="price_modification_type_enum", values_callable=_values),
        nullable=False,
    )
    kind = Column(
        SAEnum(ModificationKindEnum, name="price_modification_kind_enum", values_callable=_values),
        nullable=False,
    )
    value = Column(Numeric(12, 2), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("user_id", "reference", name="uq_orders_user_reference"),
        Index("ix_orders_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_id, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reference = Column(String(500), nullable=False)
    status = Column(
        SAEnum(OrderStatusEnum, name="order_status_enum", values_callable=_values),
        nullable=False,
        default=OrderStatusEnum.PREPARED,
        index=True,
    )
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} reference={self.reference} status={self.status}>"


class OrderItem(Base):
    """Price snapshot of one order line; later catalog edits never touch it."""

    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(String(36), primary_key=True, default=generate_id, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False)
    unit_price_tax_free = Column(Numeric(12, 2), nullable=False)
    unit_price_tax_included = Column(Numeric(12, 2), nullable=False)
    price_modifications = Column(JSON, nullable=True)

    order = relationship("Order", back_populates="items")
