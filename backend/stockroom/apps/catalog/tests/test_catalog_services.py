from __future__ import annotations

from decimal import Decimal

import pytest

from stockroom import errors
from stockroom.apps.catalog import models, schemas, services

SIMPLE = models.ProductKindEnum.SIMPLE
BUNDLE = models.ProductKindEnum.BUNDLE


def _create(db, owner_id, **overrides):
    data = {
        "name": "Widget",
        "sku": "W-1",
        "price_tax_free": Decimal("5"),
        "vat_percent": Decimal("20"),
        "quantity": 10,
    }
    data.update(overrides)
    product = services.create_product(db, owner_id=owner_id, payload=schemas.ProductCreate(**data))
    db.commit()
    return product


def test_get_products_skips_archived_missing_and_foreign(db_session, owner, other_owner, make_product):
    live = make_product(name="Live", price="2.50", vat="5.5", quantity=3)
    archived = make_product(name="Archived", archived=True)
    foreign = make_product(name="Foreign", user_id=other_owner.id)

    entries = services.get_products(
        db_session,
        owner_id=owner.id,
        product_ids=[live.id, archived.id, foreign.id, "missing"],
    )

    assert list(entries) == [live.id]
    entry = entries[live.id]
    assert entry.price_tax_free == Decimal("2.50")
    assert entry.vat_percent == Decimal("5.50")
    assert entry.quantity == 3
    assert entry.kind == SIMPLE


def test_get_bundle_components_keeps_position_order(db_session, make_product):
    a = make_product(name="A")
    b = make_product(name="B")
    bundle = make_product(name="Kit", kind=BUNDLE, components=[(b, 2), (a, 1)])

    components = services.get_bundle_components(db_session, bundle_ids=[bundle.id])

    assert [(c.product_id, c.quantity) for c in components[bundle.id]] == [(b.id, 2), (a.id, 1)]


def test_resolve_products_distinguishes_archived(db_session, owner, make_product):
    archived = make_product(name="Archived", archived=True)

    with pytest.raises(errors.ArchivedProductError):
        services.resolve_products(db_session, owner_id=owner.id, product_ids=[archived.id])
    with pytest.raises(errors.NotFoundError):
        services.resolve_products(db_session, owner_id=owner.id, product_ids=["missing"])


def test_create_bundle_forces_zero_stock(db_session, owner):
    widget = _create(db_session, owner.id)

    bundle = _create(
        db_session,
        owner.id,
        name="Kit",
        sku="KIT",
        kind=BUNDLE,
        quantity=50,
        bundle_items=[{"product_id": widget.id, "quantity": 2}],
    )

    assert bundle.quantity == 0
    assert [(item.product_id, item.quantity) for item in bundle.bundle_items] == [(widget.id, 2)]


@pytest.mark.parametrize("case", ["empty", "duplicate", "missing", "archived", "bundle"])
def test_invalid_bundle_compositions(db_session, owner, make_product, case):
    widget = make_product(name="Widget")
    old = make_product(name="Old", archived=True)
    kit = make_product(name="Kit", kind=BUNDLE, components=[(widget, 1)])
    items = {
        "empty": [],
        "duplicate": [{"product_id": widget.id, "quantity": 1}, {"product_id": widget.id, "quantity": 2}],
        "missing": [{"product_id": "missing", "quantity": 1}],
        "archived": [{"product_id": old.id, "quantity": 1}],
        "bundle": [{"product_id": kit.id, "quantity": 1}],
    }[case]

    with pytest.raises(errors.InvalidCompositionError):
        _create(db_session, owner.id, name="New", sku="NEW", kind=BUNDLE, bundle_items=items)


def test_simple_product_cannot_have_components(db_session, owner, make_product):
    widget = make_product(name="Widget")

    with pytest.raises(errors.InvalidCompositionError):
        _create(db_session, owner.id, bundle_items=[{"product_id": widget.id, "quantity": 1}])


def test_bundle_cannot_contain_itself(db_session, owner, make_product):
    widget = make_product(name="Widget")
    kit = make_product(name="Kit", kind=BUNDLE, components=[(widget, 1)])

    with pytest.raises(errors.InvalidCompositionError):
        services.update_product(
            db_session,
            owner_id=owner.id,
            product_id=kit.id,
            payload=schemas.ProductUpdate(bundle_items=[{"product_id": kit.id, "quantity": 1}]),
        )


def test_update_product_fields_and_archive_toggle(db_session, owner, make_product):
    widget = make_product(name="Widget", quantity=10)

    updated = services.update_product(
        db_session,
        owner_id=owner.id,
        product_id=widget.id,
        payload=schemas.ProductUpdate(price_tax_free=Decimal("7.125"), quantity=4, archived=True),
    )
    db_session.commit()

    assert updated.price_tax_free == Decimal("7.13")
    assert updated.quantity == 4
    assert updated.is_archived

    restored = services.update_product(
        db_session,
        owner_id=owner.id,
        product_id=widget.id,
        payload=schemas.ProductUpdate(archived=False),
    )
    assert not restored.is_archived


def test_component_cannot_become_bundle(db_session, owner, make_product):
    widget = make_product(name="Widget")
    other = make_product(name="Other")
    make_product(name="Kit", kind=BUNDLE, components=[(widget, 1)])

    with pytest.raises(errors.InvalidCompositionError):
        services.update_product(
            db_session,
            owner_id=owner.id,
            product_id=widget.id,
            payload=schemas.ProductUpdate(kind=BUNDLE, bundle_items=[{"product_id": other.id, "quantity": 1}]),
        )


def test_bundle_back_to_simple_drops_components(db_session, owner, make_product):
    widget = make_product(name="Widget")
    kit = make_product(name="Kit", kind=BUNDLE, components=[(widget, 1)])

    updated = services.update_product(
        db_session,
        owner_id=owner.id,
        product_id=kit.id,
        payload=schemas.ProductUpdate(kind=SIMPLE, quantity=3),
    )
    db_session.commit()

    assert updated.kind == SIMPLE
    assert updated.quantity == 3
    assert services.get_bundle_components(db_session, bundle_ids=[kit.id]) == {}


def test_get_product_is_owner_scoped(db_session, other_owner, make_product):
    widget = make_product(name="Widget")

    with pytest.raises(errors.NotFoundError):
        services.get_product(db_session, owner_id=other_owner.id, product_id=widget.id)
