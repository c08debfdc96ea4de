# Overview: Inventory batch tracker; the only code path that writes batch quantities.

"""
Inventory Batch Tracker

INVARIANTS (authoritative):
- 0 <= quantity_remaining <= quantity_received for every batch, always.
- Quantities move only through reserve / release / receive / unreceive.
- These helpers never commit: they run inside the document operation that
  called them (see concurrency.run_in_transaction), on rows that operation
  has already locked.

    reserve(b, q)    remaining -= q            (sale create / edit up)
    release(b, q)    remaining += q            (sale cancel / edit down)
    receive(b, q)    received += q, remaining += q   (stock-in create / edit up)
    unreceive(b, q)  received -= q, remaining -= q   (stock-in cancel / edit down)
"""

from __future__ import annotations

from ..errors import CancelForbidden, InsufficientStock, InvariantViolation, NotFound, ValidationError
from ..extensions import db
from ..models import InventoryBatch
from .concurrency import lock_for_update, lock_rows


def _require_positive(qty: int) -> None:
    if not isinstance(qty, int) or isinstance(qty, bool) or qty <= 0:
        raise ValidationError("Batch quantity change must be a positive integer", details={"quantity": qty})


def _batch_details(batch: InventoryBatch, **extra) -> dict:
    details = {
        "batch_id": batch.id,
        "batch_code": batch.batch_code,
        "product_id": batch.product_id,
        "quantity_remaining": batch.quantity_remaining,
        "quantity_received": batch.quantity_received,
    }
    details.update(extra)
    return details


def reserve(batch: InventoryBatch, qty: int) -> InventoryBatch:
    _require_positive(qty)
    if qty > batch.quantity_remaining:
        raise InsufficientStock(
            f"Insufficient stock in batch {batch.batch_code}: requested {qty}, remaining {batch.quantity_remaining}",
            details=_batch_details(batch, requested_quantity=qty),
        )
    batch.quantity_remaining -= qty
    return batch


def release(batch: InventoryBatch, qty: int) -> InventoryBatch:
    _require_positive(qty)
    if batch.quantity_remaining + qty > batch.quantity_received:
        raise InvariantViolation(
            f"Release of {qty} would exceed received quantity of batch {batch.batch_code}",
            details=_batch_details(batch, release_quantity=qty),
        )
    batch.quantity_remaining += qty
    return batch


def receive(batch: InventoryBatch, qty: int) -> InventoryBatch:
    _require_positive(qty)
    batch.quantity_received += qty
    batch.quantity_remaining += qty
    return batch


def unreceive(batch: InventoryBatch, qty: int, *, error_cls=CancelForbidden) -> InventoryBatch:
    """
    Take back ``qty`` previously received.

    Refused when part of it has already been sold: the remaining quantity
    would otherwise go negative and the sales that consumed it would point
    at stock that no longer exists.
    """
    _require_positive(qty)
    if qty > batch.quantity_received:
        raise InvariantViolation(
            f"Cannot unreceive {qty} from batch {batch.batch_code}: only {batch.quantity_received} received",
            details=_batch_details(batch, unreceive_quantity=qty),
        )
    if qty > batch.quantity_remaining:
        raise error_cls(
            f"Stock already consumed from batch {batch.batch_code}",
            details=_batch_details(batch, unreceive_quantity=qty, quantity_sold=batch.quantity_sold),
        )
    batch.quantity_received -= qty
    batch.quantity_remaining -= qty
    return batch


def lock_batches(batch_ids) -> dict[int, InventoryBatch]:
    """Lock batches (ascending id) and fail with NotFound listing any missing id."""
    batches = lock_rows(InventoryBatch, batch_ids)
    missing = sorted(set(batch_ids) - set(batches))
    if missing:
        raise NotFound("Inventory batch not found", details={"batch_ids": missing})
    return batches


def find_batch_by_code(product_id: int, batch_code: str, *, lock: bool = False) -> InventoryBatch | None:
    query = db.session.query(InventoryBatch).filter_by(product_id=product_id, batch_code=batch_code)
    if lock:
        query = lock_for_update(query)
    return query.first()
