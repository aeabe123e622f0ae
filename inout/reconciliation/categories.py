"""
Category Reconciliation

Makes sure every (category, kind) pair referenced by an import exists in
the taxonomy before the import commits.

IMPORTANT: Reconciliation is additive only. It never deletes, renames or
merges an existing category.

A failure to read the taxonomy is not fatal: the import goes ahead without
creating categories, and the failure is logged and audited.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from inout.audit.logger import AuditLogger
from inout.models.transaction import Category, NormalizedRow, TransactionKind
from inout.services.storage import CategoryStorageInterface, StorageError


logger = structlog.get_logger(__name__)


DEFAULT_CATEGORIES: list[tuple[str, TransactionKind]] = [
    ("Salary", TransactionKind.INCOME),
    ("Freelance", TransactionKind.INCOME),
    ("Investment", TransactionKind.INCOME),
    ("Rent", TransactionKind.OUTCOME),
    ("Groceries", TransactionKind.OUTCOME),
    ("Transport", TransactionKind.OUTCOME),
    ("Utilities", TransactionKind.OUTCOME),
    ("Entertainment", TransactionKind.OUTCOME),
]


def implied_categories(
    rows: Iterable[NormalizedRow],
) -> list[tuple[str, TransactionKind]]:
    """Distinct (name, resolved kind) pairs with a non-empty name, first-seen order."""
    seen: set[tuple[str, TransactionKind]] = set()
    pairs = []
    for row in rows:
        name = (row.category or "").strip()
        if not name:
            continue
        pair = (name, row.resolved_kind)
        if pair not in seen:
            seen.add(pair)
            pairs.append(pair)
    return pairs


class CategoryReconciler:
    """Creates the categories an import needs but the taxonomy lacks."""

    def __init__(
        self,
        category_storage: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = category_storage
        self._audit = audit_logger

    def reconcile(
        self,
        rows: Iterable[NormalizedRow],
        correlation_id: Optional[UUID] = None,
    ) -> list[Category]:
        """
        Stage one new category per missing pair.

        Nothing is committed here; the caller commits with the rest of the
        batch.

        Returns:
            The categories staged (empty if the taxonomy could not be read)
        """
        try:
            existing = self._storage.fetch_all()
        except StorageError as e:
            logger.warning(
                "category_reconciliation_skipped",
                error=str(e),
                correlation_id=str(correlation_id) if correlation_id else None,
            )
            if self._audit:
                self._audit.log_category_reconciliation_skipped(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return []

        known = {c.key for c in existing}
        created = []
        for name, kind in implied_categories(rows):
            if (name, kind) in known:
                continue
            category = self._storage.create(name, kind)
            known.add(category.key)
            created.append(category)
            if self._audit:
                self._audit.log_category_created(
                    category_id=category.id,
                    name=category.name,
                    kind=category.kind.value,
                    correlation_id=correlation_id,
                )

        return created


def seed_default_categories(storage: CategoryStorageInterface) -> list[Category]:
    """
    Create the default taxonomy if no category exists yet.

    Commits on success. Returns the categories created.
    """
    if storage.fetch_all():
        return []

    created = [storage.create(name, kind) for name, kind in DEFAULT_CATEGORIES]
    storage.commit()
    logger.info("default_categories_seeded", count=len(created))
    return created
