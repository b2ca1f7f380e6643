from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
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
)
from sqlalchemy.orm import relationship

from stockroom.database import Base, generate_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductKindEnum(str, enum.Enum):
    SIMPLE = "simple"
    BUNDLE = "bundle"


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_user_archived", "user_id", "archived_at"),
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("price_tax_free >= 0", name="ck_products_price_non_negative"),
    )

    id = Column(String(36), primary_key=True, default=generate_id, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(2000), nullable=False)
    sku = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price_tax_free = Column(Numeric(12, 2), nullable=False)
    vat_percent = Column(Numeric(5, 2), nullable=False)
    kind = Column(
        SAEnum(ProductKindEnum, name="product_kind_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProductKindEnum.SIMPLE,
    )
    # Bundles never hold stock; their availability derives from components.
    quantity = Column(Integer, nullable=False, default=0)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    bundle_items = relationship(
        "BundleItem",
        foreign_keys="BundleItem.bundle_id",
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="BundleItem.position",
        lazy="selectin",
    )

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku} kind={self.kind}>"


class BundleItem(Base):
    __tablename__ = "product_bundle_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_product_bundle_items_quantity_positive"),
        CheckConstraint("bundle_id <> product_id", name="ck_product_bundle_items_not_self"),
    )

    bundle_id = Column(String(36), ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True, index=True)
    quantity = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    bundle = relationship("Product", foreign_keys=[bundle_id], back_populates="bundle_items")
    component = relationship("Product", foreign_keys=[product_id])
