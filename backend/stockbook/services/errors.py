# Overview: Business-rule failures raised by the service layer (distinct from storage errors).

from __future__ import annotations


class ValidationError(ValueError):
    """Caller input rejected before anything was written."""


class InsufficientStockError(Exception):
    """
    An OUT movement would drive the ledger total below zero.

    Carries the real numbers so the caller can show them instead of a
    generic failure.
    """

    def __init__(self, product_id, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        return {
            "error": "insufficient_stock",
            "product_id": self.product_id,
            "requested": self.requested,
            "available": self.available,
        }
