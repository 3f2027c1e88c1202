"""Bakery costing: ingredient, recipe and product cost management.

The cost cascade engine converts units, derives recipe costs and product
prices, recomputes ingredient costs from purchases and keeps derived caches
and price history consistent with every cost change.
"""

from .utils.constants import APP_VERSION

__version__ = APP_VERSION
