# Overview: Pytest coverage for the sale document engine.

"""
Sale Service Tests

Batch B holds 40 units at cost 1000. The edit tests follow one sale that
takes 10 of them: 30 stay free, so the sale may grow to at most 40.
"""

import pytest

from stockledger.errors import (
    AlreadyCancelled,
    EditForbidden,
    NotFound,
    StaleDocument,
    ValidationError,
)
from stockledger.extensions import db
from stockledger.models import DocumentRevision, Payment, Sale
from stockledger.services import payment_service, sale_service
from stockledger.services.invariant_service import check_invariants


def _item(batch, quantity, sale_price=1500):
    return {"product_id": batch.product_id, "batch_id": batch.id, "quantity": quantity, "sale_price": sale_price}


class TestCreateSale:
    def test_create_reserves_stock_and_snapshots_cost(self, db_session, batch, customer):
        sale = sale_service.create_sale([_item(batch, 10)], customer_id=customer.id, created_by="alice")

        assert batch.quantity_remaining == 30
        assert sale.status == "ACTIVE"
        assert sale.payment_status == "UNPAID"
        assert sale.total_amount == 15000
        assert sale.total_cost == 10000
        assert sale.amount_paid == 0
        assert sale.document_number == "SO-000001"
        assert sale.items[0].cost_price == 1000
        assert sale.created_by == "alice"

    def test_document_numbers_increase(self, db_session, batch):
        first = sale_service.create_sale([_item(batch, 1)])
        second = sale_service.create_sale([_item(batch, 1)])
        assert (first.document_number, second.document_number) == ("SO-000001", "SO-000002")

    def test_over_remaining_fails_without_side_effects(self, db_session, batch):
        with pytest.raises(ValidationError) as exc:
            sale_service.create_sale([_item(batch, 41)])

        assert exc.value.details["items"][0]["max_allowed"] == 40
        assert batch.quantity_remaining == 40
        assert db_session.query(Sale).count() == 0

    def test_one_bad_line_rolls_back_every_line(self, db_session, product, make_batch):
        b1 = make_batch(product, quantity=10)
        b2 = make_batch(product, quantity=2)

        with pytest.raises(ValidationError):
            sale_service.create_sale([_item(b1, 5), _item(b2, 3)])

        assert (b1.quantity_remaining, b2.quantity_remaining) == (10, 2)

    def test_batch_must_hold_the_product(self, db_session, batch, other_product):
        item = _item(batch, 1)
        item["product_id"] = other_product.id
        with pytest.raises(ValidationError, match="belongs to product"):
            sale_service.create_sale([item])

    def test_unknown_batch(self, db_session, product):
        with pytest.raises(NotFound):
            sale_service.create_sale([{"product_id": product.id, "batch_id": 999, "quantity": 1, "sale_price": 1}])

    def test_unknown_customer(self, db_session, batch):
        with pytest.raises(NotFound):
            sale_service.create_sale([_item(batch, 1)], customer_id=999)
        assert batch.quantity_remaining == 40


class TestUpdateSale:
    def test_edit_within_max_allowed(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])
        assert batch.quantity_remaining == 30

        sale = sale_service.update_sale(sale.id, [_item(batch, 25)], reason="Customer wants more")

        assert batch.quantity_remaining == 15
        assert sale.items[0].quantity == 25
        assert sale.total_amount == 25 * 1500
        assert sale.version_id == 2

        revision = db_session.query(DocumentRevision).one()
        assert revision.revision_number == 1
        assert revision.reason == "Customer wants more"
        assert revision.old_data["items"][0]["quantity"] == 10
        assert revision.new_data["items"][0]["quantity"] == 25

    def test_edit_past_max_allowed_fails(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])

        with pytest.raises(ValidationError) as exc:
            sale_service.update_sale(sale.id, [_item(batch, 45)])

        assert exc.value.details["items"][0]["max_allowed"] == 40
        assert batch.quantity_remaining == 30
        assert db_session.query(DocumentRevision).count() == 0

    def test_edit_cannot_take_stock_held_by_another_sale(self, db_session, batch):
        mine = sale_service.create_sale([_item(batch, 10)])
        sale_service.create_sale([_item(batch, 30)])
        assert batch.quantity_remaining == 0

        sale_service.update_sale(mine.id, [_item(batch, 10)], note="same quantity")
        with pytest.raises(ValidationError):
            sale_service.update_sale(mine.id, [_item(batch, 11)])
        assert batch.quantity_remaining == 0

    def test_removed_line_is_released_and_new_line_reserved(self, db_session, product, make_batch):
        b1 = make_batch(product, quantity=10, cost_price=1000)
        b2 = make_batch(product, quantity=10, cost_price=1000)
        b3 = make_batch(product, quantity=10, cost_price=1200)
        sale = sale_service.create_sale([_item(b1, 5), _item(b2, 3)])

        sale = sale_service.update_sale(sale.id, [_item(b1, 5), _item(b3, 4)])

        assert (b1.quantity_remaining, b2.quantity_remaining, b3.quantity_remaining) == (5, 10, 6)
        assert sorted(item.batch_id for item in sale.items) == sorted([b1.id, b3.id])
        assert sale.total_cost == 5 * 1000 + 4 * 1200

    def test_kept_line_keeps_its_cost_snapshot(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])
        batch.cost_price = 2000
        db_session.commit()

        sale = sale_service.update_sale(sale.id, [_item(batch, 12)])

        assert sale.items[0].cost_price == 1000
        assert sale.total_cost == 12 * 1000

    def test_paid_sale_cannot_be_edited(self, db_session, batch, customer):
        sale = sale_service.create_sale([_item(batch, 10)], customer_id=customer.id)
        payment_service.allocate_payment("CUSTOMER", customer.id, 1, "CASH")

        with pytest.raises(EditForbidden, match="has payments"):
            sale_service.update_sale(sale.id, [_item(batch, 5)], customer_id=customer.id)
        assert batch.quantity_remaining == 30

    def test_cancelled_sale_cannot_be_edited(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])
        sale_service.cancel_sale(sale.id)

        with pytest.raises(EditForbidden, match="cancelled"):
            sale_service.update_sale(sale.id, [_item(batch, 5)])

    def test_stale_expected_version(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])
        sale_service.update_sale(sale.id, [_item(batch, 11)], expected_version=1)

        with pytest.raises(StaleDocument):
            sale_service.update_sale(sale.id, [_item(batch, 12)], expected_version=1)
        assert batch.quantity_remaining == 29

    def test_missing_sale(self, db_session, batch):
        with pytest.raises(NotFound):
            sale_service.update_sale(12345, [_item(batch, 1)])


class TestCancelSale:
    def test_cancel_round_trip_restores_stock(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])
        sale_service.update_sale(sale.id, [_item(batch, 25)])

        sale = sale_service.cancel_sale(sale.id, cancelled_by="bob")

        assert batch.quantity_remaining == 40
        assert sale.status == "CANCELLED"
        assert sale.cancel_reason == "Sale cancelled"
        assert sale.cancelled_by == "bob"
        assert sale.cancelled_at is not None
        assert check_invariants() == []

    def test_second_cancel_fails(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 10)])
        sale_service.cancel_sale(sale.id, reason="Duplicate order")

        with pytest.raises(AlreadyCancelled):
            sale_service.cancel_sale(sale.id)
        assert batch.quantity_remaining == 40

    def test_cancel_voids_active_payments(self, db_session, batch, customer):
        sale = sale_service.create_sale([_item(batch, 10)], customer_id=customer.id)
        payment_service.allocate_payment("CUSTOMER", customer.id, 5000, "BANK")
        assert sale.payment_status == "PARTIAL"

        sale = sale_service.cancel_sale(sale.id, reason="Returned")

        payment = db.session.query(Payment).one()
        assert payment.status == "VOIDED"
        assert payment.void_reason == "Returned"
        assert sale.amount_paid == 0
        assert sale.payment_status == "UNPAID"
        assert check_invariants() == []

    def test_get_sale(self, db_session, batch):
        sale = sale_service.create_sale([_item(batch, 1)])
        assert sale_service.get_sale(sale.id).id == sale.id
        with pytest.raises(NotFound):
            sale_service.get_sale(sale.id + 100)
