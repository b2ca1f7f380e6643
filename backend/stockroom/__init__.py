# backend/stockroom/__init__.py
"""
Import ORM models from each app so that:

- Alembic and Base.metadata.create_all() see all tables.
- Foreign keys between apps (order items -> products) always resolve.

The actual model classes are kept in stockroom/apps/*/models.py.
"""

from . import models as core_models                            # users
from .apps.catalog import models as catalog_models            # products + bundle items
from .apps.orders import models as orders_models              # orders, prefixes, presets
from .apps.audit import models as audit_models                # audit trail

__all__ = [
    "core_models",
    "catalog_models",
    "orders_models",
    "audit_models",
]
