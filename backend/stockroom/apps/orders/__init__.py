"""
Orders module.

Order lifecycle, bundle expansion, stock checks, pricing and sequential
references.
"""

from . import models  # noqa: F401
