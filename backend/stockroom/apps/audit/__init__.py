"""
Audit module.

Append-only record of lifecycle changes for orders and stock.
"""

from . import models  # noqa: F401
