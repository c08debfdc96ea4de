# Overview: Append-only revision recorder for document edits.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import DocumentRevision
from ..primitives import DocumentType, parse_enum
from ..time_utils import utcnow


def next_revision_number(document_type: DocumentType, document_id: int) -> int:
    current = (
        db.session.query(func.max(DocumentRevision.revision_number))
        .filter_by(document_type=document_type.value, document_id=document_id)
        .scalar()
    )
    return (current or 0) + 1


def record_revision(
    *,
    document_type: DocumentType,
    document_id: int,
    reason: str | None,
    old_state: dict,
    new_state: dict,
    changed_by: str | None = None,
) -> DocumentRevision:
    """
    Append the next revision for a document.

    Runs inside the edit's transaction with the document row already
    locked, so max + 1 cannot race; the unique constraint backs that up.
    No update or delete path exists for revisions.
    """
    revision = DocumentRevision(
        document_type=document_type.value,
        document_id=document_id,
        revision_number=next_revision_number(document_type, document_id),
        reason=reason,
        old_data=old_state,
        new_data=new_state,
        changed_by=changed_by,
        changed_at=utcnow(),
    )
    db.session.add(revision)
    db.session.flush()
    return revision


def list_revisions(document_type, document_id: int) -> list[DocumentRevision]:
    """Revisions of one document, newest first."""
    document_type = parse_enum(DocumentType, document_type, "document_type")
    return (
        db.session.query(DocumentRevision)
        .filter_by(document_type=document_type.value, document_id=document_id)
        .order_by(DocumentRevision.revision_number.desc())
        .all()
    )
