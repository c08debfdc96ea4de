# Overview: Pure oldest-first allocation planner used by the payment service.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..errors import ValidationError


@dataclass(frozen=True)
class OpenDocument:
    """What the planner needs to know about one candidate document."""
    id: int
    created_at: datetime
    total: int
    amount_paid: int

    @property
    def outstanding(self) -> int:
        return self.total - self.amount_paid


@dataclass(frozen=True)
class Allocation:
    document_id: int
    amount: int
    fully_paid: bool


@dataclass
class AllocationPlan:
    allocations: list[Allocation] = field(default_factory=list)
    total_allocated: int = 0
    remaining: int = 0

    @property
    def invoices_paid(self) -> int:
        return sum(1 for a in self.allocations if a.fully_paid)


def allocation_order(doc: OpenDocument):
    # Oldest debt first; identical timestamps fall back to id
    return (doc.created_at, doc.id)


def plan_allocation(documents, amount: int) -> AllocationPlan:
    """
    Distribute ``amount`` over ``documents`` oldest first.

    Deterministic for identical input: documents are re-sorted by
    (created_at, id) whatever order they arrive in. Documents with nothing
    outstanding are skipped. The walk stops as soon as the cash runs out;
    whatever is left over is reported as ``remaining``, never stored.
    """
    if amount <= 0:
        raise ValidationError("Payment amount must be > 0", details={"amount": amount})

    plan = AllocationPlan(remaining=amount)
    for doc in sorted(documents, key=allocation_order):
        if plan.remaining == 0:
            break
        outstanding = doc.outstanding
        if outstanding <= 0:
            continue
        allocated = min(plan.remaining, outstanding)
        plan.allocations.append(
            Allocation(document_id=doc.id, amount=allocated, fully_paid=allocated == outstanding)
        )
        plan.total_allocated += allocated
        plan.remaining -= allocated
    return plan
