from __future__ import annotations

from ..extensions import db


class Sale(db.Model):
    """
    Sale header.

    total/discount/tax/final amounts are computed when the sale is submitted
    and stored as-is; they are not recomputed from the items on read.
    """
    __tablename__ = "sales"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(255), unique=True, nullable=True)
    customer_id = db.Column(
        db.Integer,
        db.ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )
    sale_date = db.Column(db.DateTime, server_default=db.func.now())
    total_amount = db.Column(db.Float, nullable=False)
    discount_amount = db.Column(db.Float, server_default="0")
    tax_amount = db.Column(db.Float, server_default="0")
    final_amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(50), nullable=True)
    payment_status = db.Column(db.String(50), server_default="pending")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice={self.invoice_number!r}>"


class SaleItem(db.Model):
    """Line item; deleted with its sale and with its product."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.Index("ix_sale_items_sale", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(
        db.Integer,
        db.ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, server_default="0")
    tax = db.Column(db.Float, server_default="0")
    subtotal = db.Column(db.Float, nullable=False)


class Payment(db.Model):
    """Money received from a customer or paid to a supplier."""
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=True)
    amount = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(50), nullable=False)
    payment_date = db.Column(db.DateTime, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)
