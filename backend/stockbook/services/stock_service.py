# Overview: Stock quantities derived from the inventory ledger, with stock_levels kept as a write-through cache.

"""
Stock invariants (authoritative)

- The inventory table is an append-only ledger and the only source of
  truth for quantity on hand.
- Signed fold: IN contributes +|quantity|, OUT contributes -|quantity|.
  Rows written signed (IN 50 / OUT -20) and rows written unsigned
  (OUT 20) fold to the same total.
- stock_levels.quantity is a projection. Every mutation here rewrites it
  with the recomputed ledger total; nothing increments it and nothing
  reads it back as current stock. Only low_stock_threshold is trusted
  from that table.
- An OUT movement that would take the total below zero is rejected
  before any write: no ledger row, no cache change.

Every query is single-table so the same code runs on all backends; joins
happen in memory through KeyedIndex.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..storage import KeyedIndex, StorageBackend, StorageError
from .errors import InsufficientStockError, ValidationError

logger = logging.getLogger(__name__)

TRANSACTION_IN = "IN"
TRANSACTION_OUT = "OUT"
TRANSACTION_TYPES = (TRANSACTION_IN, TRANSACTION_OUT)
DEFAULT_LOW_STOCK_THRESHOLD = 10


def signed_quantity(transaction_type: str, quantity) -> int:
    magnitude = abs(int(quantity or 0))
    if transaction_type == TRANSACTION_IN:
        return magnitude
    if transaction_type == TRANSACTION_OUT:
        return -magnitude
    return int(quantity or 0)


@dataclass(frozen=True)
class StockMovement:
    product_id: Any
    transaction_type: str
    quantity: int
    transaction_id: Any
    stock_before: int
    stock_after: int
    cache_updated: bool


class StockReconciler:
    def __init__(self, backend: StorageBackend):
        self.backend = backend

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def ledger_totals(self) -> KeyedIndex:
        """Product id -> signed ledger total, for every product with ledger rows."""
        totals = KeyedIndex()
        rows = self.backend.prepare(
            "SELECT product_id, transaction_type, quantity FROM inventory"
        ).all()
        for row in rows:
            product_id = row.get("product_id")
            if product_id is None:
                continue
            delta = signed_quantity(row.get("transaction_type"), row.get("quantity"))
            totals[product_id] = totals.get(product_id, 0) + delta
        return totals

    def current_stock(self, product_id) -> int:
        return self.ledger_totals().get(product_id, 0)

    def stock_overview(self, active_only: bool = True) -> list[dict]:
        if active_only:
            products = self.backend.prepare(
                "SELECT * FROM products WHERE is_active = 1 ORDER BY name"
            ).all()
        else:
            products = self.backend.prepare("SELECT * FROM products ORDER BY name").all()

        companies = KeyedIndex.from_rows(self.backend.prepare("SELECT id, name FROM companies").all())
        cache = KeyedIndex.from_rows(
            self.backend.prepare("SELECT * FROM stock_levels").all(), key="product_id"
        )
        totals = self.ledger_totals()

        overview = []
        for product in products:
            cached = cache.get(product["id"]) or {}
            threshold = cached.get("low_stock_threshold")
            if threshold is None:
                threshold = DEFAULT_LOW_STOCK_THRESHOLD
            stock = totals.get(product["id"], 0)
            company = companies.get(product.get("company_id")) or {}
            overview.append({
                "id": product["id"],
                "product_name": product.get("name"),
                "sku": product.get("sku"),
                "company_name": company.get("name"),
                "current_stock": stock,
                "low_stock_threshold": threshold,
                "is_low_stock": stock <= threshold,
                "updated_at": cached.get("updated_at"),
            })
        return overview

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_transaction(
        self,
        product_id,
        transaction_type: str,
        quantity,
        *,
        batch_number: str | None = None,
        expiry_date: str | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        """Append one ledger row and write the new ledger total through to the cache."""
        if product_id is None or product_id == "":
            raise ValidationError("product_id is required")
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(f"transaction_type must be one of {', '.join(TRANSACTION_TYPES)}")
        try:
            amount = int(quantity)
        except (TypeError, ValueError):
            raise ValidationError("quantity must be an integer") from None
        if amount <= 0:
            raise ValidationError("quantity must be greater than 0")

        # One ledger read per movement; the new total is the old one plus delta
        before = self.ledger_totals().get(product_id, 0)
        delta = signed_quantity(transaction_type, amount)
        if before + delta < 0:
            raise InsufficientStockError(product_id, requested=amount, available=before)

        result = self.backend.prepare(
            """
            INSERT INTO inventory
            (product_id, transaction_type, quantity, batch_number, expiry_date, notes)
            VALUES (?, ?, ?, ?, ?, ?)
            """
        ).run(product_id, transaction_type, delta, batch_number, expiry_date, notes)

        after = before + delta
        cache_updated = self._write_cache(product_id, after)

        logger.debug(
            "Recorded %s x%d for product %s: %d -> %d",
            transaction_type, amount, product_id, before, after,
        )
        return StockMovement(
            product_id=product_id,
            transaction_type=transaction_type,
            quantity=amount,
            transaction_id=result.last_insert_rowid,
            stock_before=before,
            stock_after=after,
            cache_updated=cache_updated,
        )

    def reconcile_cache(self) -> list[dict]:
        """Rewrite every cache row that disagrees with the ledger; returns the corrections."""
        totals = self.ledger_totals()
        cache = KeyedIndex.from_rows(
            self.backend.prepare("SELECT * FROM stock_levels").all(), key="product_id"
        )
        products = self.backend.prepare("SELECT id FROM products").all()

        corrections = []
        for product in products:
            expected = totals.get(product["id"], 0)
            cached = cache.get(product["id"])
            cached_quantity = None if cached is None else cached.get("quantity")
            if cached is not None and cached_quantity == expected:
                continue
            if cached is None and expected == 0:
                continue
            product_id = cached["product_id"] if cached is not None else product["id"]
            if self._write_cache(product_id, expected, existing=cached is not None):
                corrections.append({
                    "product_id": product["id"],
                    "cached": cached_quantity,
                    "ledger": expected,
                })

        if corrections:
            logger.info("Reconciled %d drifted stock cache rows", len(corrections))
        return corrections

    def _write_cache(self, product_id, quantity: int, existing: bool | None = None) -> bool:
        # The ledger row is already committed; a cache failure must not undo it.
        try:
            if existing is None:
                existing = self.backend.prepare(
                    "SELECT id FROM stock_levels WHERE product_id = ?"
                ).get(product_id) is not None
            if existing:
                self.backend.prepare(
                    "UPDATE stock_levels SET quantity = ?, updated_at = CURRENT_TIMESTAMP WHERE product_id = ?"
                ).run(quantity, product_id)
            else:
                self.backend.prepare(
                    "INSERT INTO stock_levels (product_id, quantity, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)"
                ).run(product_id, quantity)
            return True
        except StorageError:
            logger.exception("Stock cache update failed for product %s", product_id)
            return False
