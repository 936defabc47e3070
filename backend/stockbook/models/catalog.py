from __future__ import annotations

from ..extensions import db


class Company(db.Model):
    """Manufacturer/brand that products are grouped under."""
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"


class Product(db.Model):
    """
    Product master data.

    company_id is RESTRICT on delete: a company that still owns products
    cannot be removed. Deleting a product cascades to its ledger rows,
    stock cache row and sale items (never the other way round).

    is_active is an INTEGER flag (1/0) so the same raw SQL
    (`WHERE is_active = 1`) runs on SQLite and Postgres.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_company", "company_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer,
        db.ForeignKey("companies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(255), unique=True, nullable=True)
    barcode = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(255), nullable=True)
    bottle_size = db.Column(db.String(50), nullable=True)

    purchase_price = db.Column(db.Float, nullable=False, server_default="0")
    sale_price = db.Column(db.Float, nullable=False, server_default="0")
    tax_rate = db.Column(db.Float, server_default="0")
    discount_rate = db.Column(db.Float, server_default="0")
    is_active = db.Column(db.Integer, server_default="1")

    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"
