# Overview: Type-generic entry points over the sale and stock-in engines.

"""
Document Service

Callers that only know a document type and id (the HTTP layer, the CLI)
go through here; each call is dispatched to the engine for that type.
"""

from __future__ import annotations

from ..primitives import DocumentType, parse_enum
from . import sale_service, stock_in_service


_ENGINES = {
    DocumentType.SALE: {
        "get": sale_service.get_sale,
        "create": sale_service.create_sale,
        "update": sale_service.update_sale,
        "cancel": sale_service.cancel_sale,
        "partner_field": "customer_id",
    },
    DocumentType.STOCK_IN: {
        "get": stock_in_service.get_stock_in,
        "create": stock_in_service.create_stock_in,
        "update": stock_in_service.update_stock_in,
        "cancel": stock_in_service.cancel_stock_in,
        "partner_field": "supplier_id",
    },
}


def _engine(document_type):
    return _ENGINES[parse_enum(DocumentType, document_type, "document_type")]


def partner_field(document_type) -> str:
    return _engine(document_type)["partner_field"]


def get_document(document_type, document_id: int):
    return _engine(document_type)["get"](document_id)


def create_document(document_type, items, partner_id=None, note=None, created_by=None):
    engine = _engine(document_type)
    return engine["create"](
        items, **{engine["partner_field"]: partner_id}, note=note, created_by=created_by
    )


def update_document(
    document_type,
    document_id: int,
    items,
    partner_id=None,
    note=None,
    reason=None,
    changed_by=None,
    expected_version=None,
):
    engine = _engine(document_type)
    return engine["update"](
        document_id,
        items,
        **{engine["partner_field"]: partner_id},
        note=note,
        reason=reason,
        changed_by=changed_by,
        expected_version=expected_version,
    )


def cancel_document(document_type, document_id: int, reason=None, cancelled_by=None):
    return _engine(document_type)["cancel"](document_id, reason=reason, cancelled_by=cancelled_by)
