# Overview: Human-readable document numbers from a per-type counter row.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from ..primitives import DocumentType

PREFIXES = {
    DocumentType.SALE: "SO",
    DocumentType.STOCK_IN: "SI",
}


def next_document_number(document_type: DocumentType, *, pad: int = 6) -> str:
    """
    Allocate the next number for a document type inside the caller's transaction.

    The counter is bumped with a single UPDATE so two writers cannot read the
    same value; the first call for a type inserts the row (a racing first
    insert fails on the unique constraint and the whole operation rolls back).
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type.value)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type.value)
            .scalar()
        )
        next_num = current - 1
    else:
        db.session.add(DocumentSequence(document_type=document_type.value, next_number=2))
        db.session.flush()
        next_num = 1

    return f"{PREFIXES[document_type]}-{next_num:0{pad}d}"
