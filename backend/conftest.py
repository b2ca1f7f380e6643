from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"

import stockroom  # noqa: E402, F401
from stockroom.database import Base  # noqa: E402
from stockroom.models import User  # noqa: E402
from stockroom.apps.catalog import models as catalog_models  # noqa: E402
from stockroom.apps.orders import models as order_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


def _create_user(db, email: str) -> User:
    user = User(email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def owner(db_session) -> User:
    return _create_user(db_session, "owner@example.com")


@pytest.fixture()
def other_owner(db_session) -> User:
    return _create_user(db_session, "someone-else@example.com")


@pytest.fixture()
def make_product(db_session, owner):
    """Insert a product row directly, bypassing catalog validation."""

    def _make(
        *,
        name: str = "Widget",
        price: str = "5.00",
        vat: str = "20",
        quantity: int = 10,
        kind: catalog_models.ProductKindEnum = catalog_models.ProductKindEnum.SIMPLE,
        components=(),
        user_id=None,
        archived: bool = False,
    ) -> catalog_models.Product:
        product = catalog_models.Product(
            user_id=user_id or owner.id,
            name=name,
            sku=name.upper().replace(" ", "-"),
            price_tax_free=Decimal(price),
            vat_percent=Decimal(vat),
            kind=kind,
            quantity=0 if kind == catalog_models.ProductKindEnum.BUNDLE else quantity,
        )
        if archived:
            product.archived_at = datetime.now(timezone.utc)
        db_session.add(product)
        db_session.flush()
        for position, (component, component_qty) in enumerate(components):
            db_session.add(
                catalog_models.BundleItem(
                    bundle_id=product.id,
                    product_id=component.id,
                    quantity=component_qty,
                    position=position,
                )
            )
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture()
def make_prefix(db_session, owner):
    def _make(prefix: str = "ORD", *, user_id=None) -> order_models.OrderReferencePrefix:
        row = order_models.OrderReferencePrefix(user_id=user_id or owner.id, prefix=prefix)
        db_session.add(row)
        db_session.commit()
        return row

    return _make
