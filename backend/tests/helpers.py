"""Shared helpers for the storage tests (not fixtures)."""

import httpx

from stockbook.storage import Credentials

BASE_URL = "http://testserver"
ADMIN = Credentials("admin", "test-password")


def mock_client(handler) -> httpx.Client:
    """httpx client whose every request goes to `handler(request) -> Response`."""
    return httpx.Client(transport=httpx.MockTransport(handler), base_url=BASE_URL)


def seed_product(backend, product_id=None, *, company="Acme", name="Cola 500ml", sale_price=1.5):
    """Insert a company and one active product; returns the product id."""
    company_id = backend.prepare(
        "INSERT INTO companies (name, description) VALUES (?, ?)"
    ).run(company, "Beverages").last_insert_rowid

    if product_id is None:
        result = backend.prepare(
            "INSERT INTO products (company_id, name, sku, purchase_price, sale_price, is_active) "
            "VALUES (?, ?, ?, ?, ?, ?)"
        ).run(company_id, name, f"SKU-{name}", 1.0, sale_price, 1)
        return result.last_insert_rowid

    backend.prepare(
        "INSERT INTO products (id, company_id, name, sku, purchase_price, sale_price, is_active) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)"
    ).run(product_id, company_id, name, f"SKU-{name}", 1.0, sale_price, 1)
    return product_id
