# Overview: Sale submission and removal over the storage contract; stock moves go through the reconciler.

"""
Sales

Totals are computed once, at submission, and stored denormalized on the
sale row; they are never recomputed from items on read.

create_sale() checks stock for every product (quantities aggregated per
product) before writing anything. There is no multi-statement atomicity
across calls, so the pre-check is what keeps a rejected sale from leaving
a half-written invoice behind.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from ..storage import KeyedIndex, StorageBackend
from .errors import InsufficientStockError, ValidationError
from .stock_service import TRANSACTION_OUT, StockReconciler

logger = logging.getLogger(__name__)

CASH = "Cash"

_invoice_lock = threading.Lock()
_last_invoice_ms = 0


def next_invoice_number() -> str:
    """INV-<epoch ms>, strictly increasing within the process."""
    global _last_invoice_ms
    with _invoice_lock:
        now_ms = int(time.time() * 1000)
        _last_invoice_ms = max(now_ms, _last_invoice_ms + 1)
        return f"INV-{_last_invoice_ms}"


@dataclass(frozen=True)
class SaleLine:
    product_id: Any
    quantity: int
    unit_price: float
    discount: float = 0.0  # percent
    tax: float = 0.0  # percent, applied after discount

    @classmethod
    def from_dict(cls, data: dict) -> "SaleLine":
        if data.get("product_id") in (None, ""):
            raise ValidationError("product_id is required on every line")
        try:
            quantity = int(data.get("quantity"))
            unit_price = float(data.get("unit_price"))
            discount = float(data.get("discount") or 0)
            tax = float(data.get("tax") or 0)
        except (TypeError, ValueError):
            raise ValidationError("quantity, unit_price, discount and tax must be numbers") from None
        if quantity <= 0:
            raise ValidationError("quantity must be greater than 0")
        if unit_price < 0:
            raise ValidationError("unit_price cannot be negative")
        return cls(data["product_id"], quantity, unit_price, discount, tax)

    @property
    def gross(self) -> float:
        return self.quantity * self.unit_price

    @property
    def discount_amount(self) -> float:
        return self.gross * self.discount / 100

    @property
    def tax_amount(self) -> float:
        return (self.gross - self.discount_amount) * self.tax / 100

    @property
    def subtotal(self) -> float:
        return self.gross - self.discount_amount + self.tax_amount


@dataclass(frozen=True)
class SaleTotals:
    total_amount: float
    discount_amount: float
    tax_amount: float
    final_amount: float
    lines: tuple = field(default_factory=tuple)


def compute_totals(lines) -> SaleTotals:
    parsed = tuple(line if isinstance(line, SaleLine) else SaleLine.from_dict(line) for line in lines)
    total = sum(line.gross for line in parsed)
    discount = sum(line.discount_amount for line in parsed)
    tax = sum(line.tax_amount for line in parsed)
    return SaleTotals(
        total_amount=total,
        discount_amount=discount,
        tax_amount=tax,
        final_amount=total - discount + tax,
        lines=parsed,
    )


def _check_stock(reconciler: StockReconciler, lines: tuple) -> None:
    requested = KeyedIndex()
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    totals = reconciler.ledger_totals()
    for line in lines:
        wanted = requested[line.product_id]
        available = totals.get(line.product_id, 0)
        if available < wanted:
            raise InsufficientStockError(line.product_id, requested=wanted, available=available)


def create_sale(
    backend: StorageBackend,
    lines,
    *,
    customer_id=None,
    payment_method: str = CASH,
    notes: str | None = None,
) -> dict:
    """
    Record a sale with its items and the matching OUT ledger rows.

    Returns the sale summary (id, invoice_number and the stored totals).
    Raises ValidationError for bad input and InsufficientStockError before
    any write when a product cannot cover the requested quantity.
    """
    if not lines:
        raise ValidationError("A sale needs at least one line")
    totals = compute_totals(lines)
    reconciler = StockReconciler(backend)
    _check_stock(reconciler, totals.lines)

    customer_id = customer_id or None
    invoice_number = next_invoice_number()
    payment_status = "paid" if payment_method == CASH else "pending"

    result = backend.prepare(
        """
        INSERT INTO sales
        (invoice_number, customer_id, total_amount, discount_amount, tax_amount,
         final_amount, payment_method, payment_status, notes)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
    ).run(
        invoice_number,
        customer_id,
        totals.total_amount,
        totals.discount_amount,
        totals.tax_amount,
        totals.final_amount,
        payment_method,
        payment_status,
        notes,
    )
    sale_id = result.last_insert_rowid

    insert_item = backend.prepare(
        """
        INSERT INTO sale_items
        (sale_id, product_id, quantity, unit_price, discount, tax, subtotal)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """
    )
    for line in totals.lines:
        insert_item.run(
            sale_id,
            line.product_id,
            line.quantity,
            line.unit_price,
            line.discount,
            line.tax,
            line.subtotal,
        )
        reconciler.record_transaction(
            line.product_id,
            TRANSACTION_OUT,
            line.quantity,
            notes=f"Sale - Invoice: {invoice_number}",
        )

    if customer_id is not None and payment_method != CASH:
        _add_to_outstanding_balance(backend, customer_id, totals.final_amount)

    logger.info("Sale %s recorded (%d lines, %.2f)", invoice_number, len(totals.lines), totals.final_amount)
    return {
        "id": sale_id,
        "invoice_number": invoice_number,
        "customer_id": customer_id,
        "total_amount": totals.total_amount,
        "discount_amount": totals.discount_amount,
        "tax_amount": totals.tax_amount,
        "final_amount": totals.final_amount,
        "payment_method": payment_method,
        "payment_status": payment_status,
    }


def _add_to_outstanding_balance(backend: StorageBackend, customer_id, amount: float) -> None:
    # Read-modify-write: `SET x = x + ?` has no document-store rendering.
    customer = backend.prepare(
        "SELECT outstanding_balance FROM customers WHERE id = ?"
    ).get(customer_id)
    if customer is None:
        logger.warning("Credit sale for unknown customer %s; balance not updated", customer_id)
        return
    balance = float(customer.get("outstanding_balance") or 0)
    backend.prepare(
        "UPDATE customers SET outstanding_balance = ? WHERE id = ?"
    ).run(balance + amount, customer_id)


def delete_sale(backend: StorageBackend, sale_id) -> int:
    """Delete a sale and its items. Returns the number of sale rows removed."""
    # The embedded backend reports one change per write, so check first.
    if backend.prepare("SELECT id FROM sales WHERE id = ?").get(sale_id) is None:
        return 0
    # Relational backends cascade; the document store does not.
    backend.prepare("DELETE FROM sale_items WHERE sale_id = ?").run(sale_id)
    backend.prepare("DELETE FROM sales WHERE id = ?").run(sale_id)
    return 1
