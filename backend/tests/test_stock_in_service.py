# Overview: Pytest coverage for the stock-in engine and landed costs.

from datetime import date

import pytest

from stockledger.errors import CancelForbidden, EditForbidden, NotFound, ValidationError
from stockledger.models import InventoryBatch, LandedCost, StockIn
from stockledger.services import payment_service, sale_service, stock_in_service
from stockledger.services.batch_service import find_batch_by_code
from stockledger.services.invariant_service import check_invariants
from stockledger.services.revision_service import list_revisions


def _item(product, code, quantity, cost_price=1000, **extra):
    item = {"product_id": product.id, "batch_code": code, "quantity": quantity, "cost_price": cost_price}
    item.update(extra)
    return item


def _sell(batch, quantity):
    return sale_service.create_sale([{
        "product_id": batch.product_id, "batch_id": batch.id, "quantity": quantity, "sale_price": 5000,
    }])


class TestCreateStockIn:
    def test_each_line_opens_a_batch(self, db_session, product, other_product, supplier):
        stock_in = stock_in_service.create_stock_in(
            [
                _item(product, "LOT-1", 10, 1000, expiry_date="2027-01-31"),
                _item(other_product, "LOT-1", 5, 3000),
            ],
            supplier_id=supplier.id,
        )

        assert stock_in.document_number == "SI-000001"
        assert stock_in.total_amount == 10 * 1000 + 5 * 3000
        assert stock_in.payment_status == "UNPAID"

        batch = find_batch_by_code(product.id, "LOT-1")
        assert batch.stock_in_id == stock_in.id
        assert (batch.quantity_received, batch.quantity_remaining) == (10, 10)
        assert batch.cost_price == 1000
        assert batch.expiry_date == date(2027, 1, 31)
        assert find_batch_by_code(other_product.id, "LOT-1").quantity_remaining == 5

    def test_existing_code_for_product_is_rejected(self, db_session, product, batch):
        with pytest.raises(ValidationError, match="already exists"):
            stock_in_service.create_stock_in([_item(product, "B", 5)])
        assert db_session.query(StockIn).count() == 0
        assert batch.quantity_received == 40

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFound) as exc:
            stock_in_service.create_stock_in([{"product_id": 77, "batch_code": "X", "quantity": 1, "cost_price": 1}])
        assert exc.value.details["product_ids"] == [77]

    def test_unknown_supplier(self, db_session, product):
        with pytest.raises(NotFound):
            stock_in_service.create_stock_in([_item(product, "X", 1)], supplier_id=404)
        assert db_session.query(InventoryBatch).count() == 0


class TestUpdateStockIn:
    def test_quantity_up_and_down(self, db_session, product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)])
        batch = find_batch_by_code(product.id, "L1")

        stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 15)])
        assert (batch.quantity_received, batch.quantity_remaining) == (15, 15)

        stock_in = stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 8, 1200)])
        assert (batch.quantity_received, batch.quantity_remaining) == (8, 8)
        assert batch.cost_price == 1200
        assert stock_in.total_amount == 8 * 1200
        assert [r.revision_number for r in list_revisions("STOCK_IN", stock_in.id)] == [2, 1]

    def test_decrease_keeps_sold_stock(self, db_session, product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)])
        batch = find_batch_by_code(product.id, "L1")
        _sell(batch, 5)

        stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 6)])
        assert (batch.quantity_received, batch.quantity_remaining) == (6, 1)

        with pytest.raises(ValidationError, match="already consumed"):
            stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 4)])
        assert (batch.quantity_received, batch.quantity_remaining) == (6, 1)

    def test_removed_line_zeroes_batch_and_can_come_back(self, db_session, product, other_product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10), _item(other_product, "L2", 4)])
        l2 = find_batch_by_code(other_product.id, "L2")

        stock_in = stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 10)])
        assert (l2.quantity_received, l2.quantity_remaining) == (0, 0)
        assert len(stock_in.items) == 1

        stock_in = stock_in_service.update_stock_in(
            stock_in.id, [_item(product, "L1", 10), _item(other_product, "L2", 7)]
        )
        assert find_batch_by_code(other_product.id, "L2").id == l2.id
        assert (l2.quantity_received, l2.quantity_remaining) == (7, 7)
        assert check_invariants() == []

    def test_cannot_claim_another_documents_batch(self, db_session, product):
        stock_in_service.create_stock_in([_item(product, "L1", 10)])
        other = stock_in_service.create_stock_in([_item(product, "L2", 1)])

        with pytest.raises(ValidationError, match="already exists"):
            stock_in_service.update_stock_in(other.id, [_item(product, "L1", 3)])

    def test_paid_stock_in_cannot_be_edited(self, db_session, product, supplier):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)], supplier_id=supplier.id)
        payment_service.allocate_payment("SUPPLIER", supplier.id, 500, "BANK")

        with pytest.raises(EditForbidden, match="has payments"):
            stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 11)], supplier_id=supplier.id)


class TestCancelStockIn:
    def test_cancel_zeroes_batches(self, db_session, product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)])
        batch = find_batch_by_code(product.id, "L1")

        stock_in = stock_in_service.cancel_stock_in(stock_in.id)

        assert stock_in.status == "CANCELLED"
        assert stock_in.cancel_reason == "Stock-in cancelled"
        assert (batch.quantity_received, batch.quantity_remaining) == (0, 0)
        assert check_invariants() == []

    def test_cancel_refused_once_stock_sold(self, db_session, product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10), _item(product, "L2", 10)])
        sold = find_batch_by_code(product.id, "L2")
        untouched = find_batch_by_code(product.id, "L1")
        _sell(sold, 1)

        with pytest.raises(CancelForbidden, match="already consumed"):
            stock_in_service.cancel_stock_in(stock_in.id)

        assert stock_in_service.get_stock_in(stock_in.id).status == "ACTIVE"
        assert untouched.quantity_remaining == 10
        assert sold.quantity_remaining == 9

    def test_cancel_refused_with_payments(self, db_session, product, supplier):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)], supplier_id=supplier.id)
        payment_service.allocate_payment("SUPPLIER", supplier.id, 500, "CASH")

        with pytest.raises(CancelForbidden, match="has payments"):
            stock_in_service.cancel_stock_in(stock_in.id)


class TestLandedCost:
    def test_by_quantity(self, db_session, product, other_product):
        stock_in = stock_in_service.create_stock_in([
            _item(product, "L1", 10, 1000),
            _item(other_product, "L2", 30, 2000),
        ])

        landed = stock_in_service.add_landed_cost(stock_in.id, "FREIGHT", 4000, "BY_QUANTITY")

        assert landed.allocation_method == "BY_QUANTITY"
        assert [item.landed_cost for item in stock_in.items] == [1000, 3000]
        assert find_batch_by_code(product.id, "L1").cost_price == 1100
        assert find_batch_by_code(other_product.id, "L2").cost_price == 2100

    def test_by_value_and_new_sales_snapshot_it(self, db_session, product, other_product):
        stock_in = stock_in_service.create_stock_in([
            _item(product, "L1", 10, 1000),
            _item(other_product, "L2", 30, 2000),
        ])

        stock_in_service.add_landed_cost(stock_in.id, "Customs", 7000)

        assert [item.landed_cost for item in stock_in.items] == [1000, 6000]
        l2 = find_batch_by_code(other_product.id, "L2")
        assert l2.cost_price == 2200
        sale = _sell(l2, 2)
        assert sale.items[0].cost_price == 2200
        assert stock_in.total_amount == 70000

    def test_refused_after_sale(self, db_session, product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)])
        _sell(find_batch_by_code(product.id, "L1"), 1)

        with pytest.raises(EditForbidden, match="already sold"):
            stock_in_service.add_landed_cost(stock_in.id, "FREIGHT", 100)
        assert db_session.query(LandedCost).count() == 0

    def test_landed_cost_locks_the_lines(self, db_session, product):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)])
        stock_in_service.add_landed_cost(stock_in.id, "FREIGHT", 100)

        with pytest.raises(EditForbidden, match="landed costs"):
            stock_in_service.update_stock_in(stock_in.id, [_item(product, "L1", 12)])

    @pytest.mark.parametrize("cost_type,amount,method", [
        ("", 100, "BY_VALUE"),
        ("FREIGHT", 0, "BY_VALUE"),
        ("FREIGHT", 100, "BY_WEIGHT"),
    ])
    def test_invalid_input(self, db_session, product, cost_type, amount, method):
        stock_in = stock_in_service.create_stock_in([_item(product, "L1", 10)])
        with pytest.raises(ValidationError):
            stock_in_service.add_landed_cost(stock_in.id, cost_type, amount, method)

