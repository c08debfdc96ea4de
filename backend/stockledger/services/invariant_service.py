# Overview: Read-only consistency audit of batches, documents and payments.

"""
Ledger audit

Re-derives every stored aggregate from the rows it summarizes and reports
each disagreement. Nothing is repaired here; a non-empty result means a
bug got past the transaction boundary.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import InventoryBatch, Payment, Sale, StockIn
from ..primitives import DocumentStatus, DocumentType, PaymentRecordStatus, derive_payment_status


def _batch_problems() -> list[dict]:
    problems = []
    rows = db.session.query(InventoryBatch).filter(
        (InventoryBatch.quantity_remaining < 0)
        | (InventoryBatch.quantity_remaining > InventoryBatch.quantity_received)
    )
    for batch in rows:
        problems.append({
            "check": "batch_quantity_range",
            "batch_id": batch.id,
            "quantity_received": batch.quantity_received,
            "quantity_remaining": batch.quantity_remaining,
        })
    return problems


def _active_payment_sums(document_type: DocumentType) -> dict[int, int]:
    rows = (
        db.session.query(Payment.source_id, func.coalesce(func.sum(Payment.amount), 0))
        .filter(
            Payment.source_type == document_type.value,
            Payment.status == PaymentRecordStatus.ACTIVE.value,
        )
        .group_by(Payment.source_id)
        .all()
    )
    return {source_id: int(total) for source_id, total in rows}


def _document_problems(model) -> list[dict]:
    problems = []
    paid = _active_payment_sums(model.document_type)
    for doc in db.session.query(model).order_by(model.id):
        ref = {"document_type": model.document_type.value, "document_id": doc.id}
        line_total = sum(item.line_total for item in doc.items)
        if doc.status == DocumentStatus.ACTIVE and line_total != doc.total_amount:
            problems.append(dict(ref, check="total_matches_lines", total_amount=doc.total_amount, lines=line_total))
        if doc.amount_paid != paid.get(doc.id, 0):
            problems.append(dict(ref, check="amount_paid_matches_payments",
                                 amount_paid=doc.amount_paid, active_payments=paid.get(doc.id, 0)))
        if doc.amount_paid > doc.total_amount:
            problems.append(dict(ref, check="not_overpaid", amount_paid=doc.amount_paid, total_amount=doc.total_amount))
        expected = derive_payment_status(doc.amount_paid, doc.total_amount).value
        if doc.payment_status != expected:
            problems.append(dict(ref, check="payment_status_derived", payment_status=doc.payment_status, expected=expected))
        if doc.status == DocumentStatus.CANCELLED and model is StockIn:
            for item in doc.items:
                if item.batch.quantity_received != 0:
                    problems.append(dict(ref, check="cancelled_batches_zeroed", batch_id=item.batch_id))
    return problems


def check_invariants() -> list[dict]:
    """Return every violation found; an empty list means the ledger is consistent."""
    return _batch_problems() + _document_problems(Sale) + _document_problems(StockIn)
