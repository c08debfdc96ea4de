# Overview: Stock-in document engine; receive goods into batches, edit, cancel, landed costs.

"""
Stock-In Service

One line = one InventoryBatch, keyed by (product_id, batch_code). A batch
created by a stock-in belongs to it (InventoryBatch.stock_in_id); a code
already used by a different document for the same product is rejected.

EDIT (ACTIVE, amount_paid = 0, no landed costs):
- per-key delta = new_qty - old_qty
- positive: receive more into the batch
- negative or removed line: take stock back; refused with ValidationError
  if that stock has already been sold
- a line's batch follows the edited cost and dates

CANCEL:
- refused once the document has payments
- refused when any of its batches has been sold from
- otherwise every batch is zeroed and the document becomes CANCELLED

LANDED COSTS:
- split over the lines by quantity or by line value (largest remainder, so
  the shares always sum to the amount)
- each batch's unit cost rises by its share / quantity, so sales made
  afterwards snapshot the landed cost
"""

from __future__ import annotations

from flask import current_app

from ..errors import CancelForbidden, EditForbidden, NotFound, ValidationError
from ..extensions import db
from ..models import InventoryBatch, LandedCost, Product, StockIn, StockInItem, Supplier
from ..primitives import AllocationMethod, DocumentStatus, DocumentType, Money, parse_enum, parse_optional_id
from ..time_utils import utcnow
from .batch_service import find_batch_by_code, lock_batches, receive, unreceive
from .concurrency import run_in_transaction
from .lifecycle_service import (
    check_expected_version,
    ensure_editable,
    ensure_not_cancelled,
    get_document_or_404,
    lock_document,
    mark_cancelled,
    normalize_note,
    normalize_reason,
    refresh_payment_status,
    resolve_partner,
)
from .reconcile import (
    parse_stock_in_items,
    round_half_up_div,
    split_proportionally,
    stock_in_quantity_deltas,
)
from .revision_service import record_revision
from .sequence_service import next_document_number


DEFAULT_CANCEL_REASON = "Stock-in cancelled"
DEFAULT_EDIT_REASON = "Stock-in updated"


# =============================================================================
# HELPERS
# =============================================================================

def _check_products(lines) -> None:
    product_ids = {line.product_id for line in lines}
    found = {
        pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(product_ids)).all()
    }
    missing = sorted(product_ids - found)
    if missing:
        raise NotFound("Product not found", details={"product_ids": missing})


def _claim_batch(stock_in: StockIn, line, index: int) -> InventoryBatch:
    """
    Batch for a line that is new to this document.

    A batch this document already owns (left at 0/0 by an earlier edit that
    removed the line) is reused; a code owned by anything else is refused.
    """
    batch = find_batch_by_code(line.product_id, line.batch_code, lock=True)
    if batch is None:
        batch = InventoryBatch(
            product_id=line.product_id,
            stock_in_id=stock_in.id,
            batch_code=line.batch_code,
            quantity_received=0,
            quantity_remaining=0,
            cost_price=line.cost_price,
            manufacture_date=line.manufacture_date,
            expiry_date=line.expiry_date,
        )
        db.session.add(batch)
        return batch
    if batch.stock_in_id != stock_in.id:
        raise ValidationError(
            f"Invalid item at position {index}: batch code {line.batch_code} already exists for this product",
            details={"items": [{
                "index": index,
                "product_id": line.product_id,
                "batch_code": line.batch_code,
                "batch_id": batch.id,
                "error": "batch code already exists for this product",
            }]},
        )
    return batch


def _apply_line(item: StockInItem, line) -> None:
    item.quantity = line.quantity
    item.cost_price = line.cost_price
    item.manufacture_date = line.manufacture_date
    item.expiry_date = line.expiry_date
    item.line_total = line.line_total

    batch = item.batch
    batch.cost_price = line.cost_price
    batch.manufacture_date = line.manufacture_date
    batch.expiry_date = line.expiry_date


def _new_item(batch: InventoryBatch, line) -> StockInItem:
    item = StockInItem(
        product_id=line.product_id,
        batch=batch,
        batch_code=line.batch_code,
        landed_cost=0,
    )
    _apply_line(item, line)
    return item


def _recompute_totals(stock_in: StockIn) -> None:
    stock_in.total_amount = sum(item.line_total for item in stock_in.items)
    refresh_payment_status(stock_in)


# =============================================================================
# OPERATIONS
# =============================================================================

def create_stock_in(
    items,
    supplier_id: int | None = None,
    note: str | None = None,
    created_by: str | None = None,
) -> StockIn:
    """Create an ACTIVE stock-in; each line opens a new batch holding its quantity."""
    lines = parse_stock_in_items(items)
    supplier_id = parse_optional_id(supplier_id, "supplier_id")

    def _op():
        resolve_partner(Supplier, supplier_id)
        _check_products(lines)

        stock_in = StockIn(
            document_number=next_document_number(DocumentType.STOCK_IN),
            supplier_id=supplier_id,
            note=normalize_note(note),
            created_by=created_by,
            created_at=utcnow(),
            amount_paid=0,
        )
        db.session.add(stock_in)
        db.session.flush()

        for index, line in enumerate(lines):
            batch = _claim_batch(stock_in, line, index)
            receive(batch, line.quantity)
            stock_in.items.append(_new_item(batch, line))

        _recompute_totals(stock_in)
        db.session.flush()
        return stock_in

    stock_in = run_in_transaction(_op)
    current_app.logger.info(
        "Stock-in %s created: %s batches, total %s",
        stock_in.document_number, len(lines), stock_in.total_amount,
    )
    return stock_in


def update_stock_in(
    stock_in_id: int,
    items,
    supplier_id: int | None = None,
    note: str | None = None,
    reason: str | None = None,
    changed_by: str | None = None,
    expected_version: int | None = None,
) -> StockIn:
    """Replace a stock-in's lines and header, adjusting its batches by the per-line delta."""
    lines = parse_stock_in_items(items)
    supplier_id = parse_optional_id(supplier_id, "supplier_id")
    expected_version = parse_optional_id(expected_version, "expected_version")
    reason = normalize_reason(reason, DEFAULT_EDIT_REASON)

    def _op():
        stock_in = lock_document(StockIn, stock_in_id)
        check_expected_version(stock_in, expected_version)
        ensure_editable(stock_in)
        if stock_in.landed_costs:
            raise EditForbidden(
                "Cannot edit: document has landed costs",
                details={"document_type": DocumentType.STOCK_IN.value, "document_id": stock_in.id},
            )
        resolve_partner(Supplier, supplier_id)
        _check_products(lines)

        old_state = stock_in.to_snapshot()
        existing = {(item.product_id, item.batch_code): item for item in stock_in.items}
        lock_batches([item.batch_id for item in existing.values()])

        deltas = stock_in_quantity_deltas(
            {key: item.quantity for key, item in existing.items()}, lines
        )

        # Take back first so a rejected decrease fails before anything is received
        for key, item in existing.items():
            delta = deltas.get(key, 0)
            if delta < 0:
                unreceive(item.batch, -delta, error_cls=ValidationError)

        wanted = {line.key for line in lines}
        for key, item in existing.items():
            if key not in wanted:
                stock_in.items.remove(item)

        for index, line in enumerate(lines):
            item = existing.get(line.key)
            if item is None:
                batch = _claim_batch(stock_in, line, index)
                receive(batch, line.quantity)
                stock_in.items.append(_new_item(batch, line))
                continue
            delta = deltas.get(line.key, 0)
            if delta > 0:
                receive(item.batch, delta)
            _apply_line(item, line)

        stock_in.supplier_id = supplier_id
        stock_in.note = normalize_note(note)
        stock_in.updated_at = utcnow()
        _recompute_totals(stock_in)
        db.session.flush()

        record_revision(
            document_type=DocumentType.STOCK_IN,
            document_id=stock_in.id,
            reason=reason,
            old_state=old_state,
            new_state=stock_in.to_snapshot(),
            changed_by=changed_by,
        )
        return stock_in

    stock_in = run_in_transaction(_op)
    current_app.logger.info(
        "Stock-in %s updated to version %s", stock_in.document_number, stock_in.version_id
    )
    return stock_in


def cancel_stock_in(stock_in_id: int, reason: str | None = None, cancelled_by: str | None = None) -> StockIn:
    """Cancel a stock-in and zero its batches. Nothing changes unless every batch is untouched."""
    reason = normalize_reason(reason, DEFAULT_CANCEL_REASON)

    def _op():
        stock_in = lock_document(StockIn, stock_in_id)
        ensure_not_cancelled(stock_in)
        if stock_in.amount_paid > 0:
            raise CancelForbidden(
                "Cannot cancel: document has payments; void them first",
                details={
                    "document_type": DocumentType.STOCK_IN.value,
                    "document_id": stock_in.id,
                    "amount_paid": stock_in.amount_paid,
                },
            )

        lock_batches([item.batch_id for item in stock_in.items])
        for item in stock_in.items:
            unreceive(item.batch, item.quantity, error_cls=CancelForbidden)

        mark_cancelled(stock_in, reason, cancelled_by)
        db.session.flush()
        return stock_in

    stock_in = run_in_transaction(_op)
    current_app.logger.info("Stock-in %s cancelled: %s", stock_in.document_number, reason)
    return stock_in


def add_landed_cost(
    stock_in_id: int,
    cost_type,
    amount,
    allocation_method=AllocationMethod.BY_VALUE,
    created_by: str | None = None,
) -> LandedCost:
    """
    Spread an extra cost over a stock-in's batches.

    Allowed only while none of the batches has been sold from; afterwards
    the sales' cost snapshots would disagree with the batch cost.
    """
    cost_type = str(cost_type or "").strip()
    if not cost_type:
        raise ValidationError("cost_type is required", details={"field": "cost_type"})
    if len(cost_type) > 64:
        raise ValidationError("cost_type exceeds max length 64", details={"field": "cost_type"})
    amount = Money.of(amount, "amount", positive=True).amount
    method = parse_enum(AllocationMethod, allocation_method, "allocation_method")

    def _op():
        stock_in = lock_document(StockIn, stock_in_id)
        details = {"document_type": DocumentType.STOCK_IN.value, "document_id": stock_in.id}
        if stock_in.status == DocumentStatus.CANCELLED:
            raise EditForbidden("Cannot add landed cost: document is cancelled", details=details)
        if stock_in.amount_paid > 0:
            raise EditForbidden("Cannot add landed cost: document has payments", details=details)

        items = list(stock_in.items)
        lock_batches([item.batch_id for item in items])
        sold = [item.batch_id for item in items if item.batch.quantity_sold > 0]
        if sold:
            raise EditForbidden(
                "Cannot add landed cost: stock already sold from this document",
                details=dict(details, batch_ids=sold),
            )

        if method == AllocationMethod.BY_QUANTITY:
            weights = [item.quantity for item in items]
        else:
            weights = [item.line_total for item in items]
        shares = split_proportionally(amount, weights)

        for item, share in zip(items, shares):
            item.landed_cost += share
            item.batch.cost_price += round_half_up_div(share, item.quantity)

        landed_cost = LandedCost(
            stock_in_id=stock_in.id,
            cost_type=cost_type,
            amount=amount,
            allocation_method=method.value,
            created_by=created_by,
            created_at=utcnow(),
        )
        db.session.add(landed_cost)
        stock_in.updated_at = utcnow()
        db.session.flush()
        return landed_cost

    landed_cost = run_in_transaction(_op)
    current_app.logger.info(
        "Landed cost %s of %s added to stock-in %s (%s)",
        landed_cost.cost_type, landed_cost.amount, stock_in_id, landed_cost.allocation_method,
    )
    return landed_cost


def get_stock_in(stock_in_id: int) -> StockIn:
    return get_document_or_404(StockIn, stock_in_id)
