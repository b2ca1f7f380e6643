"""create stockroom schema

Revision ID: a1c3e5f7b9d0
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a1c3e5f7b9d0"
down_revision = None
branch_labels = None
depends_on = None


PRODUCT_KIND = sa.Enum("simple", "bundle", name="product_kind_enum")
ORDER_STATUS = sa.Enum("prepared", "paid", "sent", name="order_status_enum")
MODIFICATION_TYPE = sa.Enum("increase", "decrease", name="price_modification_type_enum")
MODIFICATION_KIND = sa.Enum("flat", "relative", name="price_modification_kind_enum")


def _owner_column() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.String(length=36),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_is_active", "users", ["is_active"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.String(length=36), nullable=False),
        _owner_column(),
        sa.Column("name", sa.String(length=2000), nullable=False),
        sa.Column("sku", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_tax_free", sa.Numeric(12, 2), nullable=False),
        sa.Column("vat_percent", sa.Numeric(5, 2), nullable=False),
        sa.Column("kind", PRODUCT_KIND, nullable=False, server_default="simple"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        sa.CheckConstraint("price_tax_free >= 0", name="ck_products_price_non_negative"),
    )
    op.create_index("ix_products_id", "products", ["id"], unique=False)
    op.create_index("ix_products_user_id", "products", ["user_id"], unique=False)
    op.create_index("ix_products_user_archived", "products", ["user_id", "archived_at"], unique=False)

    op.create_table(
        "product_bundle_items",
        sa.Column(
            "bundle_id",
            sa.String(length=36),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.String(length=36),
            sa.ForeignKey("products.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("bundle_id", "product_id"),
        sa.CheckConstraint("quantity >= 1", name="ck_product_bundle_items_quantity_positive"),
        sa.CheckConstraint("bundle_id <> product_id", name="ck_product_bundle_items_not_self"),
    )
    op.create_index(
        "ix_product_bundle_items_product_id",
        "product_bundle_items",
        ["product_id"],
        unique=False,
    )

    op.create_table(
        "order_reference_prefixes",
        sa.Column("id", sa.String(length=36), nullable=False),
        _owner_column(),
        sa.Column("prefix", sa.String(length=20), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "prefix", name="uq_order_reference_prefix_user_prefix"),
    )
    op.create_index("ix_order_reference_prefixes_id", "order_reference_prefixes", ["id"], unique=False)
    op.create_index(
        "ix_order_reference_prefixes_user_id",
        "order_reference_prefixes",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "order_price_modification_presets",
        sa.Column("id", sa.String(length=36), nullable=False),
        _owner_column(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", MODIFICATION_TYPE, nullable=False),
        sa.Column("kind", MODIFICATION_KIND, nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("value > 0", name="ck_order_price_modification_presets_value_positive"),
    )
    op.create_index(
        "ix_order_price_modification_presets_id",
        "order_price_modification_presets",
        ["id"],
        unique=False,
    )
    op.create_index(
        "ix_order_price_modification_presets_user_id",
        "order_price_modification_presets",
        ["user_id"],
        unique=False,
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), nullable=False),
        _owner_column(),
        sa.Column("reference", sa.String(length=500), nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="prepared"),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "reference", name="uq_orders_user_reference"),
    )
    op.create_index("ix_orders_id", "orders", ["id"], unique=False)
    op.create_index("ix_orders_user_id", "orders", ["user_id"], unique=False)
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_user_created", "orders", ["user_id", "created_at"], unique=False)

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column(
            "order_id",
            sa.String(length=36),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.String(length=36),
            sa.ForeignKey("products.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_tax_free", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit_price_tax_included", sa.Numeric(12, 2), nullable=False),
        sa.Column("price_modifications", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )
    op.create_index("ix_order_items_id", "order_items", ["id"], unique=False)
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)
    op.create_index("ix_order_items_product_id", "order_items", ["product_id"], unique=False)

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), nullable=False),
        _owner_column(),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("before", sa.JSON(), nullable=True),
        sa.Column("after", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_events_id", "audit_events", ["id"], unique=False)
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"], unique=False)
    op.create_index("ix_audit_events_entity_type", "audit_events", ["entity_type"], unique=False)
    op.create_index("ix_audit_events_entity_id", "audit_events", ["entity_id"], unique=False)
    op.create_index("ix_audit_events_action", "audit_events", ["action"], unique=False)
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"], unique=False)
    op.create_index(
        "ix_audit_events_user_entity",
        "audit_events",
        ["user_id", "entity_type", "entity_id"],
        unique=False,
    )
    op.create_index(
        "ix_audit_events_user_time_desc",
        "audit_events",
        ["user_id", sa.text("occurred_at DESC")],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("order_price_modification_presets")
    op.drop_table("order_reference_prefixes")
    op.drop_table("product_bundle_items")
    op.drop_table("products")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (MODIFICATION_KIND, MODIFICATION_TYPE, ORDER_STATUS, PRODUCT_KIND):
        enum_type.drop(bind, checkfirst=True)
