"""Category reconciliation for imports."""

from inout.reconciliation.categories import (
    DEFAULT_CATEGORIES,
    CategoryReconciler,
    implied_categories,
    seed_default_categories,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "CategoryReconciler",
    "implied_categories",
    "seed_default_categories",
]
