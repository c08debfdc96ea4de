# Overview: Pytest coverage for the oldest-first allocation planner.

from datetime import datetime, timedelta

import pytest

from stockledger.errors import ValidationError
from stockledger.services.allocation import OpenDocument, plan_allocation

T0 = datetime(2026, 1, 1, 9, 0, 0)


def _doc(doc_id, total, paid=0, minutes=0):
    return OpenDocument(id=doc_id, created_at=T0 + timedelta(minutes=minutes), total=total, amount_paid=paid)


class TestPlanAllocation:
    def test_oldest_first_partial_tail(self):
        """150 over [100, 200]: first fully paid, second gets 50."""
        plan = plan_allocation([_doc(1, 100, minutes=0), _doc(2, 200, minutes=5)], 150)

        assert [(a.document_id, a.amount, a.fully_paid) for a in plan.allocations] == [
            (1, 100, True),
            (2, 50, False),
        ]
        assert plan.total_allocated == 150
        assert plan.invoices_paid == 1
        assert plan.remaining == 0

    def test_surplus_is_reported_not_allocated(self):
        """500 over [100, 200]: 300 allocated, both paid, 200 left over."""
        plan = plan_allocation([_doc(1, 100), _doc(2, 200, minutes=1)], 500)

        assert plan.total_allocated == 300
        assert plan.invoices_paid == 2
        assert plan.remaining == 200

    def test_input_order_does_not_matter(self):
        docs = [_doc(1, 100, minutes=0), _doc(2, 200, minutes=5), _doc(3, 50, minutes=2)]
        forward = plan_allocation(docs, 175)
        backward = plan_allocation(list(reversed(docs)), 175)

        assert forward.allocations == backward.allocations
        assert [a.document_id for a in forward.allocations] == [1, 3, 2]

    def test_identical_timestamps_tie_break_on_id(self):
        plan = plan_allocation([_doc(9, 100), _doc(4, 100)], 100)
        assert [a.document_id for a in plan.allocations] == [4]

    def test_partially_paid_documents_use_outstanding(self):
        plan = plan_allocation([_doc(1, 100, paid=70), _doc(2, 100, minutes=1)], 50)
        assert [(a.document_id, a.amount) for a in plan.allocations] == [(1, 30), (2, 20)]

    def test_nothing_outstanding(self):
        plan = plan_allocation([_doc(1, 100, paid=100)], 80)
        assert plan.allocations == []
        assert plan.remaining == 80

    @pytest.mark.parametrize("amount", [0, -10])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValidationError):
            plan_allocation([_doc(1, 100)], amount)
