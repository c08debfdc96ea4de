from __future__ import annotations

from ..extensions import db
from ..primitives import DocumentStatus, DocumentType, PaymentStatus
from ..time_utils import to_iso_date, to_utc_z, utcnow


class Sale(db.Model):
    """
    Sale document (stock out to a customer).

    LIFECYCLE: ACTIVE -> CANCELLED (terminal). Edits happen in place while
    amount_paid = 0 and are recorded as DocumentRevision rows.

    MONEY FIELDS:
    - total_amount: sum of line totals (revenue)
    - total_cost: sum of quantity * cost snapshot
    - amount_paid: sum of ACTIVE payments; written only by the payment
      allocator and the void engine
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_sales_docnum"),
        # Allocation walks a customer's open sales oldest first
        db.Index("ix_sales_customer_status_created", "customer_id", "status", "created_at"),
        db.CheckConstraint("amount_paid >= 0", name="ck_sales_paid_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DocumentStatus.ACTIVE.value, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value, index=True)

    total_amount = db.Column(db.Integer, nullable=False, default=0)
    total_cost = db.Column(db.Integer, nullable=False, default=0)
    amount_paid = db.Column(db.Integer, nullable=False, default=0)

    cancel_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    document_type = DocumentType.SALE

    @property
    def outstanding(self) -> int:
        return self.total_amount - self.amount_paid

    def to_snapshot(self) -> dict:
        """Full structured state stored in revision records."""
        return {
            "customer_id": self.customer_id,
            "note": self.note,
            "status": self.status,
            "total_amount": self.total_amount,
            "total_cost": self.total_cost,
            "amount_paid": self.amount_paid,
            "items": [item.to_snapshot() for item in self.items],
        }

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "document_type": self.document_type.value,
            "document_number": self.document_number,
            "customer_id": self.customer_id,
            "note": self.note,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount": self.total_amount,
            "total_cost": self.total_cost,
            "profit": self.total_amount - self.total_cost,
            "amount_paid": self.amount_paid,
            "outstanding": self.outstanding,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """Sale line. One line per batch; cost_price is a snapshot taken when the line first appears."""
    __tablename__ = "sale_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "batch_id", name="uq_sale_items_sale_batch"),
        db.CheckConstraint("quantity > 0", name="ck_sale_items_qty_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    sale_price = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")
    batch = db.relationship("InventoryBatch")

    def to_snapshot(self) -> dict:
        return {
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "sale_price": self.sale_price,
            "cost_price": self.cost_price,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "batch_code": self.batch.batch_code if self.batch else None,
            "quantity": self.quantity,
            "sale_price": self.sale_price,
            "cost_price": self.cost_price,
            "line_total": self.line_total,
        }


class StockIn(db.Model):
    """
    Stock-in document (goods received from a supplier).

    Each line creates (or, on edit, adjusts) one InventoryBatch owned by
    this document. Cancelling zeroes those batches; it is refused once any
    of them has been sold from or once the document has payments.
    """
    __tablename__ = "stock_ins"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_stock_ins_docnum"),
        db.Index("ix_stock_ins_supplier_status_created", "supplier_id", "status", "created_at"),
        db.CheckConstraint("amount_paid >= 0", name="ck_stock_ins_paid_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_number = db.Column(db.String(64), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    note = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=DocumentStatus.ACTIVE.value, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PaymentStatus.UNPAID.value, index=True)

    total_amount = db.Column(db.Integer, nullable=False, default=0)
    amount_paid = db.Column(db.Integer, nullable=False, default=0)

    cancel_reason = db.Column(db.String(255), nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    supplier = db.relationship("Supplier")
    items = db.relationship(
        "StockInItem",
        back_populates="stock_in",
        order_by="StockInItem.id",
        cascade="all, delete-orphan",
    )
    landed_costs = db.relationship(
        "LandedCost",
        back_populates="stock_in",
        order_by="LandedCost.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    document_type = DocumentType.STOCK_IN

    @property
    def outstanding(self) -> int:
        return self.total_amount - self.amount_paid

    def to_snapshot(self) -> dict:
        return {
            "supplier_id": self.supplier_id,
            "note": self.note,
            "status": self.status,
            "total_amount": self.total_amount,
            "amount_paid": self.amount_paid,
            "items": [item.to_snapshot() for item in self.items],
        }

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "document_type": self.document_type.value,
            "document_number": self.document_number,
            "supplier_id": self.supplier_id,
            "note": self.note,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount": self.total_amount,
            "amount_paid": self.amount_paid,
            "outstanding": self.outstanding,
            "cancel_reason": self.cancel_reason,
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["landed_costs"] = [lc.to_dict() for lc in self.landed_costs]
        return data


class StockInItem(db.Model):
    """Stock-in line. Keyed by (product_id, batch_code) within its document."""
    __tablename__ = "stock_in_items"
    __table_args__ = (
        db.UniqueConstraint("stock_in_id", "product_id", "batch_code", name="uq_stock_in_items_doc_batch"),
        db.CheckConstraint("quantity > 0", name="ck_stock_in_items_qty_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_in_id = db.Column(db.Integer, db.ForeignKey("stock_ins.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=False, index=True)

    batch_code = db.Column(db.String(64), nullable=False)
    manufacture_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    cost_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    # Share of the document's landed costs assigned to this line
    landed_cost = db.Column(db.Integer, nullable=False, default=0)

    stock_in = db.relationship("StockIn", back_populates="items")
    product = db.relationship("Product")
    batch = db.relationship("InventoryBatch")

    def to_snapshot(self) -> dict:
        return {
            "product_id": self.product_id,
            "batch_code": self.batch_code,
            "manufacture_date": to_iso_date(self.manufacture_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "quantity": self.quantity,
            "cost_price": self.cost_price,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_in_id": self.stock_in_id,
            "product_id": self.product_id,
            "batch_id": self.batch_id,
            "batch_code": self.batch_code,
            "manufacture_date": to_iso_date(self.manufacture_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "quantity": self.quantity,
            "cost_price": self.cost_price,
            "line_total": self.line_total,
            "landed_cost": self.landed_cost,
        }


class LandedCost(db.Model):
    """Extra cost (freight, handling, ...) spread over a stock-in's batches after receipt."""
    __tablename__ = "stock_in_landed_costs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    stock_in_id = db.Column(db.Integer, db.ForeignKey("stock_ins.id"), nullable=False, index=True)
    cost_type = db.Column(db.String(64), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    allocation_method = db.Column(db.String(16), nullable=False)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    stock_in = db.relationship("StockIn", back_populates="landed_costs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_in_id": self.stock_in_id,
            "cost_type": self.cost_type,
            "amount": self.amount,
            "allocation_method": self.allocation_method,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentRevision(db.Model):
    """
    Append-only edit history for sales and stock-ins.

    IMMUTABLE: one row per successful edit, never updated or deleted.
    revision_number is 1..N per (document_type, document_id); the unique
    constraint turns a racing duplicate into an IntegrityError.
    """
    __tablename__ = "document_revisions"
    __table_args__ = (
        db.UniqueConstraint("document_type", "document_id", "revision_number", name="uq_revisions_doc_number"),
        db.Index("ix_revisions_doc", "document_type", "document_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(16), nullable=False)
    document_id = db.Column(db.Integer, nullable=False)
    revision_number = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=True)
    old_data = db.Column(db.JSON, nullable=False)
    new_data = db.Column(db.JSON, nullable=False)

    changed_by = db.Column(db.String(64), nullable=True)
    changed_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "document_id": self.document_id,
            "revision_number": self.revision_number,
            "reason": self.reason,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "changed_by": self.changed_by,
            "changed_at": to_utc_z(self.changed_at),
        }


class DocumentSequence(db.Model):
    """Per-type counter behind human-readable document numbers (SO-000123)."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_document_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
