# Overview: Document state machine rules shared by the sale and stock-in engines.

"""
Document Lifecycle

================================================================================
STATE MACHINE:
    ACTIVE --edit--> ACTIVE       only while amount_paid = 0
    ACTIVE --cancel--> CANCELLED  terminal; rows are kept, never deleted
    CANCELLED                     accepts no transition at all
================================================================================

payment_status is not part of the state machine: it is re-derived from
amount_paid and total_amount every time either changes.
"""

from __future__ import annotations

from ..errors import AlreadyCancelled, EditForbidden, NotFound, StaleDocument, ValidationError
from ..extensions import db
from ..primitives import DocumentStatus, derive_payment_status
from ..time_utils import utcnow
from .concurrency import lock_for_update


def _doc_details(doc, **extra) -> dict:
    details = {
        "document_type": doc.document_type.value,
        "document_id": doc.id,
        "status": doc.status,
        "amount_paid": doc.amount_paid,
    }
    details.update(extra)
    return details


def lock_document(model, document_id: int):
    doc = lock_for_update(db.session.query(model).filter_by(id=document_id)).first()
    if doc is None:
        raise NotFound(
            f"{model.document_type.value} {document_id} not found",
            details={"document_type": model.document_type.value, "document_id": document_id},
        )
    return doc


def get_document_or_404(model, document_id: int):
    doc = db.session.get(model, document_id)
    if doc is None:
        raise NotFound(
            f"{model.document_type.value} {document_id} not found",
            details={"document_type": model.document_type.value, "document_id": document_id},
        )
    return doc


def resolve_partner(model, partner_id):
    """Return the partner row, None when no partner is given; NotFound if it does not exist."""
    if partner_id is None:
        return None
    partner = db.session.get(model, partner_id)
    if partner is None:
        raise NotFound(
            f"{model.__name__} {partner_id} not found",
            details={"partner_type": model.__name__.upper(), "partner_id": partner_id},
        )
    return partner


def check_expected_version(doc, expected_version) -> None:
    """Optimistic check for callers that edit from a previously read copy."""
    if expected_version is not None and expected_version != doc.version_id:
        raise StaleDocument(
            "Document was changed by someone else; reload and retry",
            details=_doc_details(doc, expected_version=expected_version, current_version=doc.version_id),
        )


def ensure_editable(doc) -> None:
    if doc.status == DocumentStatus.CANCELLED:
        raise EditForbidden("Cannot edit: document is cancelled", details=_doc_details(doc))
    if doc.amount_paid > 0:
        raise EditForbidden("Cannot edit: document has payments", details=_doc_details(doc))


def ensure_not_cancelled(doc) -> None:
    if doc.status == DocumentStatus.CANCELLED:
        raise AlreadyCancelled(
            f"{doc.document_type.value} {doc.id} is already cancelled",
            details=_doc_details(doc),
        )


def mark_cancelled(doc, reason: str, cancelled_by: str | None) -> None:
    doc.status = DocumentStatus.CANCELLED.value
    doc.cancel_reason = reason
    doc.cancelled_at = utcnow()
    doc.cancelled_by = cancelled_by
    doc.updated_at = doc.cancelled_at


def refresh_payment_status(doc) -> None:
    doc.payment_status = derive_payment_status(doc.amount_paid, doc.total_amount).value


def normalize_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    return note or None


def normalize_reason(reason, default: str) -> str:
    """Blank means ``default``; anything longer than the 255-char column is refused."""
    reason = str(reason or "").strip() or default
    if len(reason) > 255:
        raise ValidationError("reason exceeds max length 255", details={"field": "reason"})
    return reason
