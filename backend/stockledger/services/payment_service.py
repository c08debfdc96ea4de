# Overview: Payment allocator and void engine; the only writers of documents' amount_paid.

"""
Payment Service

ALLOCATION (one lump sum from a partner, oldest debt first):
- customers pay SALEs (direction IN), suppliers are paid for STOCK_INs (OUT)
- candidates: the partner's ACTIVE documents that are not PAID and have a
  positive total, locked and walked by (created_at, id)
- one Payment row per document touched, all sharing one allocation_ref
- money left over is reported back as ``remaining``; it is never stored
  as credit

VOID:
- ACTIVE -> VOIDED is a single conditional UPDATE, so of two concurrent
  voids exactly one wins; the loser gets AlreadyVoided
- the source document's amount_paid drops by the payment amount and its
  payment_status is re-derived in the same transaction
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import update

from ..errors import AlreadyVoided, InvariantViolation, NotFound, ValidationError
from ..extensions import db
from ..models import Customer, Payment, Sale, StockIn, Supplier
from ..primitives import (
    PARTNER_FLOW,
    DocumentStatus,
    DocumentType,
    Money,
    PartnerType,
    PaymentDirection,
    PaymentMethod,
    PaymentRecordStatus,
    PaymentStatus,
    parse_enum,
    parse_id,
)
from ..time_utils import utcnow
from .allocation import OpenDocument, plan_allocation
from .concurrency import lock_for_update, run_in_transaction
from .lifecycle_service import lock_document, refresh_payment_status, resolve_partner


PARTNER_MODELS = {
    PartnerType.CUSTOMER: Customer,
    PartnerType.SUPPLIER: Supplier,
}

DOCUMENT_MODELS = {
    DocumentType.SALE: Sale,
    DocumentType.STOCK_IN: StockIn,
}


@dataclass
class AllocationResult:
    total_allocated: int
    invoices_paid: int
    remaining: int
    allocation_ref: str | None = None
    payments: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_allocated": self.total_allocated,
            "invoices_paid": self.invoices_paid,
            "remaining": self.remaining,
            "allocation_ref": self.allocation_ref,
            "payments": [p.to_dict() for p in self.payments],
        }


# =============================================================================
# ALLOCATION
# =============================================================================

def _partner_column(model):
    return model.customer_id if model is Sale else model.supplier_id


def _lock_open_documents(model, partner_id: int) -> list:
    partner_col = _partner_column(model)
    query = (
        db.session.query(model)
        .filter(
            partner_col == partner_id,
            model.status == DocumentStatus.ACTIVE.value,
            model.payment_status != PaymentStatus.PAID.value,
            model.total_amount > 0,
        )
        .order_by(model.created_at, model.id)
    )
    return lock_for_update(query).all()


def allocate_payment(
    partner_type,
    partner_id,
    amount,
    method,
    note: str | None = None,
    created_by: str | None = None,
) -> AllocationResult:
    """
    Spread one payment over a partner's open documents, oldest first.

    Returns an AllocationResult; when the partner owes nothing, nothing is
    written and the whole amount comes back as ``remaining``.
    """
    partner_type = parse_enum(PartnerType, partner_type, "partner_type")
    partner_id = parse_id(partner_id, "partner_id")
    amount = Money.of(amount, "amount", positive=True).amount
    method = parse_enum(PaymentMethod, method, "method")
    note = str(note or "").strip() or None
    if note and len(note) > 255:
        raise ValidationError("note exceeds max length 255", details={"field": "note"})

    document_type, direction = PARTNER_FLOW[partner_type]
    model = DOCUMENT_MODELS[document_type]

    def _op():
        resolve_partner(PARTNER_MODELS[partner_type], partner_id)
        documents = _lock_open_documents(model, partner_id)
        plan = plan_allocation(
            [OpenDocument(d.id, d.created_at, d.total_amount, d.amount_paid) for d in documents],
            amount,
        )
        if not plan.allocations:
            return AllocationResult(total_allocated=0, invoices_paid=0, remaining=plan.remaining)

        by_id = {d.id: d for d in documents}
        allocation_ref = uuid.uuid4().hex
        now = utcnow()
        payments = []
        for allocation in plan.allocations:
            doc = by_id[allocation.document_id]
            doc.amount_paid += allocation.amount
            if doc.amount_paid > doc.total_amount:
                raise InvariantViolation(
                    f"Allocation would overpay {document_type.value} {doc.id}",
                    details={
                        "document_id": doc.id,
                        "amount_paid": doc.amount_paid,
                        "total_amount": doc.total_amount,
                    },
                )
            refresh_payment_status(doc)
            payment = Payment(
                direction=direction.value,
                source_type=document_type.value,
                source_id=doc.id,
                customer_id=partner_id if partner_type == PartnerType.CUSTOMER else None,
                supplier_id=partner_id if partner_type == PartnerType.SUPPLIER else None,
                amount=allocation.amount,
                method=method.value,
                note=note,
                status=PaymentRecordStatus.ACTIVE.value,
                allocation_ref=allocation_ref,
                created_by=created_by,
                created_at=now,
            )
            db.session.add(payment)
            payments.append(payment)

        db.session.flush()
        return AllocationResult(
            total_allocated=plan.total_allocated,
            invoices_paid=plan.invoices_paid,
            remaining=plan.remaining,
            allocation_ref=allocation_ref,
            payments=payments,
        )

    result = run_in_transaction(_op)
    logger = current_app.logger
    for payment in result.payments:
        logger.info(
            "Payment %s allocated %s to %s %s (%s)",
            payment.id, payment.amount, payment.source_type, payment.source_id, result.allocation_ref,
        )
    logger.info(
        "Allocation for %s %s: allocated %s, %s paid in full, remaining %s",
        partner_type.value, partner_id, result.total_allocated, result.invoices_paid, result.remaining,
    )
    return result


# =============================================================================
# VOID
# =============================================================================

def void_locked_payment(payment: Payment, document, reason: str, voided_by: str | None) -> Payment:
    """
    Void ``payment`` against its already-locked source ``document``.

    Runs inside the caller's transaction; never commits.
    """
    amount = payment.amount
    result = db.session.execute(
        update(Payment)
        .where(Payment.id == payment.id, Payment.status == PaymentRecordStatus.ACTIVE.value)
        .values(
            status=PaymentRecordStatus.VOIDED.value,
            void_reason=reason,
            voided_at=utcnow(),
            voided_by=voided_by,
            version_id=Payment.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AlreadyVoided(
            f"Payment {payment.id} is already voided",
            details={"payment_id": payment.id},
        )
    db.session.refresh(payment)

    document.amount_paid -= amount
    if document.amount_paid < 0:
        raise InvariantViolation(
            f"Voiding payment {payment.id} would make amount_paid negative",
            details={"payment_id": payment.id, "document_id": document.id, "amount_paid": document.amount_paid},
        )
    refresh_payment_status(document)
    return payment


def void_payment(payment_id, reason, voided_by: str | None = None) -> Payment:
    """Void one payment and give its amount back to the source document's balance."""
    payment_id = parse_id(payment_id, "payment_id")
    reason = str(reason or "").strip()
    if not reason:
        raise ValidationError("A void reason is required", details={"field": "reason"})
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255", details={"field": "reason"})

    def _op():
        payment = db.session.get(Payment, payment_id)
        if payment is None:
            raise NotFound(f"Payment {payment_id} not found", details={"payment_id": payment_id})
        if not payment.is_active:
            raise AlreadyVoided(
                f"Payment {payment_id} is already voided",
                details={"payment_id": payment_id, "voided_at": payment.voided_at and payment.voided_at.isoformat()},
            )
        # Document before payment, the same order cancel_sale locks in
        document_type = parse_enum(DocumentType, payment.source_type, "source_type")
        document = lock_document(DOCUMENT_MODELS[document_type], payment.source_id)
        payment = lock_for_update(db.session.query(Payment).filter_by(id=payment_id)).populate_existing().first()
        return void_locked_payment(payment, document, reason, voided_by)

    payment = run_in_transaction(_op)
    current_app.logger.info(
        "Payment %s voided (%s %s, amount %s): %s",
        payment.id, payment.source_type, payment.source_id, payment.amount, reason,
    )
    return payment


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise NotFound(f"Payment {payment_id} not found", details={"payment_id": payment_id})
    return payment


def list_payments(
    direction=None,
    method=None,
    status=None,
    allocation_ref: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Payment]:
    """Newest first, optionally filtered."""
    query = db.session.query(Payment)
    if direction:
        query = query.filter(Payment.direction == parse_enum(PaymentDirection, direction, "direction").value)
    if method:
        query = query.filter(Payment.method == parse_enum(PaymentMethod, method, "method").value)
    if status:
        query = query.filter(Payment.status == parse_enum(PaymentRecordStatus, status, "status").value)
    if allocation_ref:
        query = query.filter(Payment.allocation_ref == allocation_ref)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit).offset(offset).all()


def get_document_payments(document_type, document_id: int) -> list[Payment]:
    document_type = parse_enum(DocumentType, document_type, "document_type")
    if db.session.get(DOCUMENT_MODELS[document_type], document_id) is None:
        raise NotFound(
            f"{document_type.value} {document_id} not found",
            details={"document_type": document_type.value, "document_id": document_id},
        )
    return (
        db.session.query(Payment)
        .filter_by(source_type=document_type.value, source_id=document_id)
        .order_by(Payment.created_at, Payment.id)
        .all()
    )
