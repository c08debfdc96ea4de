from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utcnow


class InventoryBatch(db.Model):
    """
    One received lot of a product.

    INVARIANTS:
    - 0 <= quantity_remaining <= quantity_received
    - quantity_remaining only moves through the batch tracker
      (services/batch_service.py) as a side effect of a StockIn or Sale
      operation; nothing else writes it
    - batch_code is unique per product
    - rows are never deleted; a cancelled StockIn leaves its batch at 0/0
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.UniqueConstraint("product_id", "batch_code", name="uq_batches_product_code"),
        db.CheckConstraint("quantity_remaining >= 0", name="ck_batches_remaining_nonneg"),
        db.CheckConstraint("quantity_remaining <= quantity_received", name="ck_batches_remaining_le_received"),
        db.Index("ix_batches_product_expiry", "product_id", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    stock_in_id = db.Column(db.Integer, db.ForeignKey("stock_ins.id"), nullable=True, index=True)

    batch_code = db.Column(db.String(64), nullable=False)

    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    quantity_remaining = db.Column(db.Integer, nullable=False, default=0)

    # Current unit cost; sale lines snapshot it, so later changes never rewrite history
    cost_price = db.Column(db.Integer, nullable=False, default=0)

    manufacture_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def quantity_sold(self) -> int:
        return self.quantity_received - self.quantity_remaining

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch id={self.id} product_id={self.product_id} code={self.batch_code!r} "
            f"remaining={self.quantity_remaining}/{self.quantity_received}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "stock_in_id": self.stock_in_id,
            "batch_code": self.batch_code,
            "quantity_received": self.quantity_received,
            "quantity_remaining": self.quantity_remaining,
            "cost_price": self.cost_price,
            "manufacture_date": to_iso_date(self.manufacture_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
