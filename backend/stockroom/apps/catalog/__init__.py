"""
Catalog module.

Products, bundle compositions and the read path order fulfillment uses to
resolve prices, stock and kinds.
"""

from . import models  # noqa: F401
