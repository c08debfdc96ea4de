# Overview: Pytest coverage for document revision history and document numbering.

import pytest

from stockledger.errors import ValidationError
from stockledger.primitives import DocumentType
from stockledger.services import document_service, revision_service
from stockledger.services.sequence_service import next_document_number


def _item(batch, quantity):
    return {"product_id": batch.product_id, "batch_id": batch.id, "quantity": quantity, "sale_price": 100}


class TestRevisions:
    def test_numbers_run_one_to_n(self, db_session, batch):
        sale = document_service.create_document("SALE", [_item(batch, 1)])
        for qty in (2, 3, 4):
            document_service.update_document("SALE", sale.id, [_item(batch, qty)], changed_by="dave")

        revisions = revision_service.list_revisions("SALE", sale.id)

        assert [r.revision_number for r in revisions] == [3, 2, 1]
        assert revisions[0].old_data["items"][0]["quantity"] == 3
        assert revisions[0].new_data["items"][0]["quantity"] == 4
        assert revisions[-1].reason == "Sale updated"
        assert {r.changed_by for r in revisions} == {"dave"}

    def test_failed_edit_records_nothing(self, db_session, batch):
        sale = document_service.create_document("SALE", [_item(batch, 1)])
        with pytest.raises(ValidationError):
            document_service.update_document("SALE", sale.id, [_item(batch, 41)])
        assert revision_service.list_revisions("SALE", sale.id) == []

    def test_histories_are_per_document(self, db_session, batch):
        a = document_service.create_document("SALE", [_item(batch, 1)])
        b = document_service.create_document("SALE", [_item(batch, 1)])
        document_service.update_document("SALE", a.id, [_item(batch, 2)])
        document_service.update_document("SALE", b.id, [_item(batch, 2)])

        assert revision_service.next_revision_number(DocumentType.SALE, a.id) == 2
        assert revision_service.next_revision_number(DocumentType.SALE, b.id) == 2
        assert revision_service.next_revision_number(DocumentType.STOCK_IN, a.id) == 1

    def test_unknown_document_type(self, db_session):
        with pytest.raises(ValidationError):
            revision_service.list_revisions("INVOICE", 1)


class TestDocumentNumbers:
    def test_counters_are_per_type(self, db_session):
        assert next_document_number(DocumentType.SALE) == "SO-000001"
        assert next_document_number(DocumentType.SALE) == "SO-000002"
        assert next_document_number(DocumentType.STOCK_IN) == "SI-000001"
        db_session.commit()
        assert next_document_number(DocumentType.SALE) == "SO-000003"
