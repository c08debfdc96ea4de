# Overview: Pytest coverage for the inventory batch tracker.

import pytest

from stockledger.errors import CancelForbidden, InsufficientStock, InvariantViolation, NotFound, ValidationError
from stockledger.services import batch_service


class TestBatchMovements:
    def test_reserve_and_release(self, db_session, batch):
        batch_service.reserve(batch, 15)
        assert batch.quantity_remaining == 25
        batch_service.release(batch, 5)
        assert batch.quantity_remaining == 30
        assert batch.quantity_sold == 10

    def test_reserve_more_than_remaining(self, db_session, batch):
        with pytest.raises(InsufficientStock) as exc:
            batch_service.reserve(batch, 41)
        assert exc.value.details["batch_id"] == batch.id
        assert exc.value.details["requested_quantity"] == 41
        assert batch.quantity_remaining == 40

    def test_release_past_received_is_an_invariant_violation(self, db_session, batch):
        with pytest.raises(InvariantViolation):
            batch_service.release(batch, 1)

    def test_receive_and_unreceive(self, db_session, batch):
        batch_service.receive(batch, 10)
        assert (batch.quantity_received, batch.quantity_remaining) == (50, 50)
        batch_service.unreceive(batch, 50)
        assert (batch.quantity_received, batch.quantity_remaining) == (0, 0)

    def test_unreceive_sold_stock_refused(self, db_session, batch):
        batch_service.reserve(batch, 1)
        with pytest.raises(CancelForbidden):
            batch_service.unreceive(batch, 40)
        with pytest.raises(ValidationError):
            batch_service.unreceive(batch, 40, error_cls=ValidationError)
        assert (batch.quantity_received, batch.quantity_remaining) == (40, 39)

    @pytest.mark.parametrize("qty", [0, -1, 2.0])
    def test_quantity_must_be_positive_int(self, db_session, batch, qty):
        with pytest.raises(ValidationError):
            batch_service.reserve(batch, qty)


class TestBatchLookup:
    def test_lock_batches_reports_missing_ids(self, db_session, batch):
        with pytest.raises(NotFound) as exc:
            batch_service.lock_batches([batch.id, 9999, 9998])
        assert exc.value.details["batch_ids"] == [9998, 9999]

    def test_lock_batches_returns_by_id(self, db_session, batch):
        assert batch_service.lock_batches([batch.id]) == {batch.id: batch}

    def test_find_by_code(self, db_session, product, batch):
        assert batch_service.find_batch_by_code(product.id, "B") is batch
        assert batch_service.find_batch_by_code(product.id, "nope") is None
