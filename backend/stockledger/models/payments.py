from __future__ import annotations

from ..extensions import db
from ..primitives import PaymentRecordStatus
from ..time_utils import to_utc_z, utcnow


class Payment(db.Model):
    """
    One allocation of cash against one document.

    DIRECTION:
    - IN:  customer pays a SALE (receivable collection)
    - OUT: we pay a supplier's STOCK_IN (payable settlement)

    IMMUTABLE FINANCIAL EVENT:
    - amount and source are never changed after insert
    - corrections are void + re-allocate; voiding is a status transition
      (ACTIVE -> VOIDED) that keeps the row for audit
    - payments written by one allocation call share allocation_ref
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_source", "source_type", "source_id"),
        db.Index("ix_payments_created", "created_at"),
        db.CheckConstraint("amount > 0", name="ck_payments_amount_pos"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    direction = db.Column(db.String(8), nullable=False, index=True)
    source_type = db.Column(db.String(16), nullable=False)
    source_id = db.Column(db.Integer, nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    amount = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False, index=True)
    note = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PaymentRecordStatus.ACTIVE.value, index=True)
    void_reason = db.Column(db.String(255), nullable=True)
    voided_at = db.Column(db.DateTime, nullable=True)
    voided_by = db.Column(db.String(64), nullable=True)

    allocation_ref = db.Column(db.String(32), nullable=True, index=True)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    supplier = db.relationship("Supplier")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == PaymentRecordStatus.ACTIVE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "direction": self.direction,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "customer_id": self.customer_id,
            "supplier_id": self.supplier_id,
            "amount": self.amount,
            "method": self.method,
            "note": self.note,
            "status": self.status,
            "void_reason": self.void_reason,
            "voided_at": to_utc_z(self.voided_at),
            "voided_by": self.voided_by,
            "allocation_ref": self.allocation_ref,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
