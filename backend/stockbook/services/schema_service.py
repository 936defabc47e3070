# Overview: Idempotent schema bootstrap for the relational database and the document store.

from __future__ import annotations

from pymongo import ASCENDING, DESCENDING

from ..extensions import db

# (collection, keys, options) for every document index.
DOCUMENT_INDEXES = [
    ("companies", [("name", ASCENDING)], {"unique": True}),
    ("companies", [("created_at", DESCENDING)], {}),
    ("products", [("company_id", ASCENDING)], {}),
    ("products", [("sku", ASCENDING)], {"unique": True, "sparse": True}),
    ("products", [("is_active", ASCENDING)], {}),
    ("products", [("created_at", DESCENDING)], {}),
    ("inventory", [("product_id", ASCENDING)], {}),
    ("inventory", [("created_at", DESCENDING)], {}),
    ("stock_levels", [("product_id", ASCENDING)], {"unique": True}),
    ("stock_levels", [("updated_at", DESCENDING)], {}),
    ("customers", [("name", ASCENDING)], {}),
    ("customers", [("created_at", DESCENDING)], {}),
    ("suppliers", [("name", ASCENDING)], {}),
    ("suppliers", [("created_at", DESCENDING)], {}),
    ("sales", [("invoice_number", ASCENDING)], {"unique": True, "sparse": True}),
    ("sales", [("customer_id", ASCENDING)], {}),
    ("sales", [("sale_date", DESCENDING)], {}),
    ("sales", [("created_at", DESCENDING)], {}),
    ("sale_items", [("sale_id", ASCENDING)], {}),
    ("sale_items", [("product_id", ASCENDING)], {}),
    ("payments", [("sale_id", ASCENDING)], {}),
    ("payments", [("customer_id", ASCENDING)], {}),
    ("payments", [("supplier_id", ASCENDING)], {}),
    ("payments", [("payment_date", DESCENDING)], {}),
    ("staff", [("is_active", ASCENDING)], {}),
    ("staff", [("created_at", DESCENDING)], {}),
    ("attendance", [("staff_id", ASCENDING), ("date", ASCENDING)], {"unique": True}),
    ("attendance", [("date", DESCENDING)], {}),
    ("expenses", [("expense_date", DESCENDING)], {}),
    ("expenses", [("category", ASCENDING)], {}),
]


def ensure_relational_schema() -> list[str]:
    """Create any missing tables. Safe to call repeatedly. Requires an app context."""
    from .. import models  # noqa: F401

    db.create_all()
    return sorted(db.metadata.tables)


def ensure_document_indexes(database) -> list[str]:
    """Create every document index (create_index is a no-op when it exists)."""
    created = []
    for collection, keys, options in DOCUMENT_INDEXES:
        created.append(database[collection].create_index(keys, **options))
    return created
