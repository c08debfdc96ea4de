from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class Product(db.Model):
    """
    Product master data.

    Read-only from the ledger's point of view: documents reference products
    and batches belong to exactly one product, but no ledger operation
    writes here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    default_sale_price = db.Column(db.Integer, nullable=True)
    default_cost_price = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"


class Customer(db.Model):
    """Sale counterpart. Receivables are allocated against a customer's sales."""
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)


class Supplier(db.Model):
    """StockIn counterpart. Payables are allocated against a supplier's stock-ins."""
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
