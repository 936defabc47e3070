from __future__ import annotations

from ..extensions import db


class InventoryTransaction(db.Model):
    """
    Append-only stock ledger entry; the source of truth for stock.

    - transaction_type is 'IN' or 'OUT'.
    - quantity is stored signed (IN positive, OUT negative).
    - Rows are never updated or deleted, except by cascade when the parent
      product is deleted.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.Index("ix_inventory_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    transaction_type = db.Column(db.String(50), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    batch_number = db.Column(db.String(255), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} product_id={self.product_id} "
            f"type={self.transaction_type} quantity={self.quantity}>"
        )


class StockLevel(db.Model):
    """
    Cached per-product stock projection.

    quantity is rewritten from the ledger total on every stock mutation and
    is never read back as the current stock. Only low_stock_threshold and
    updated_at are trusted from this table.
    """
    __tablename__ = "stock_levels"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    quantity = db.Column(db.Integer, nullable=False, server_default="0")
    low_stock_threshold = db.Column(db.Integer, server_default="10")

    updated_at = db.Column(db.DateTime, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<StockLevel product_id={self.product_id} quantity={self.quantity}>"
