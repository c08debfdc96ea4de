# Overview: Sale document engine; create, edit with delta reconciliation, cancel.

"""
Sale Service

Every operation runs as one transaction through run_in_transaction: the
sale row and every batch it touches are locked (batches in ascending id
order), quantities move through the batch tracker, and a failure anywhere
rolls all of it back.

EDIT:
- allowed only while the sale is ACTIVE and amount_paid = 0
- per-batch delta = new_qty - old_qty; positive reserves, negative releases
- a line kept across the edit keeps its original cost snapshot; a new line
  snapshots the batch's current cost_price
- every successful edit appends one DocumentRevision

CANCEL:
- releases every line back to its batch
- voids the sale's ACTIVE payments, so amount_paid returns to 0
"""

from __future__ import annotations

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Customer, Payment, Sale, SaleItem
from ..primitives import DocumentType, PaymentRecordStatus, parse_optional_id
from ..time_utils import utcnow
from .batch_service import lock_batches, release, reserve
from .concurrency import lock_for_update, run_in_transaction
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
from .payment_service import void_locked_payment
from .reconcile import parse_sale_items, sale_quantity_deltas
from .revision_service import record_revision
from .sequence_service import next_document_number


DEFAULT_CANCEL_REASON = "Sale cancelled"
DEFAULT_EDIT_REASON = "Sale updated"


# =============================================================================
# HELPERS
# =============================================================================

def _check_batch_products(lines, batches) -> None:
    """Each line's batch must hold the product the line claims to sell."""
    errors = []
    for index, line in enumerate(lines):
        batch = batches[line.batch_id]
        if batch.product_id != line.product_id:
            errors.append({
                "index": index,
                "product_id": line.product_id,
                "batch_id": line.batch_id,
                "error": f"batch {batch.batch_code} belongs to product {batch.product_id}",
            })
    if errors:
        raise ValidationError(
            f"Invalid item at position {errors[0]['index']}: {errors[0]['error']}",
            details={"items": errors},
        )


def _apply_deltas(deltas: dict[int, int], batches) -> None:
    # Ascending id, the same order the batches were locked in
    for batch_id in sorted(deltas):
        delta = deltas[batch_id]
        if delta > 0:
            reserve(batches[batch_id], delta)
        else:
            release(batches[batch_id], -delta)


def _recompute_totals(sale: Sale) -> None:
    sale.total_amount = sum(item.line_total for item in sale.items)
    sale.total_cost = sum(item.quantity * item.cost_price for item in sale.items)
    refresh_payment_status(sale)


# =============================================================================
# OPERATIONS
# =============================================================================

def create_sale(
    items,
    customer_id: int | None = None,
    note: str | None = None,
    created_by: str | None = None,
) -> Sale:
    """Create an ACTIVE sale and reserve its stock."""
    lines = parse_sale_items(items)
    customer_id = parse_optional_id(customer_id, "customer_id")

    def _op():
        resolve_partner(Customer, customer_id)
        batches = lock_batches([line.batch_id for line in lines])
        _check_batch_products(lines, batches)

        remaining = {batch_id: b.quantity_remaining for batch_id, b in batches.items()}
        _apply_deltas(sale_quantity_deltas({}, lines, remaining), batches)

        sale = Sale(
            document_number=next_document_number(DocumentType.SALE),
            customer_id=customer_id,
            note=normalize_note(note),
            created_by=created_by,
            created_at=utcnow(),
        )
        for line in lines:
            sale.items.append(SaleItem(
                product_id=line.product_id,
                batch_id=line.batch_id,
                quantity=line.quantity,
                sale_price=line.sale_price,
                cost_price=batches[line.batch_id].cost_price,
                line_total=line.quantity * line.sale_price,
            ))
        sale.amount_paid = 0
        _recompute_totals(sale)
        db.session.add(sale)
        db.session.flush()
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info(
        "Sale %s created: %s lines, total %s", sale.document_number, len(lines), sale.total_amount
    )
    return sale


def update_sale(
    sale_id: int,
    items,
    customer_id: int | None = None,
    note: str | None = None,
    reason: str | None = None,
    changed_by: str | None = None,
    expected_version: int | None = None,
) -> Sale:
    """
    Replace a sale's lines and header.

    The stock check is against what the batch has left plus what this sale
    already holds on it, so shrinking or keeping a line never fails on
    stock that other documents have since taken.
    """
    lines = parse_sale_items(items)
    customer_id = parse_optional_id(customer_id, "customer_id")
    expected_version = parse_optional_id(expected_version, "expected_version")
    reason = normalize_reason(reason, DEFAULT_EDIT_REASON)

    def _op():
        sale = lock_document(Sale, sale_id)
        check_expected_version(sale, expected_version)
        ensure_editable(sale)
        resolve_partner(Customer, customer_id)

        old_state = sale.to_snapshot()
        existing = {item.batch_id: item for item in sale.items}
        old_quantities = {batch_id: item.quantity for batch_id, item in existing.items()}

        batches = lock_batches(set(old_quantities) | {line.batch_id for line in lines})
        _check_batch_products(lines, batches)

        remaining = {batch_id: b.quantity_remaining for batch_id, b in batches.items()}
        _apply_deltas(sale_quantity_deltas(old_quantities, lines, remaining), batches)

        wanted = {line.batch_id for line in lines}
        for batch_id, item in existing.items():
            if batch_id not in wanted:
                sale.items.remove(item)

        for line in lines:
            item = existing.get(line.batch_id)
            if item is None:
                sale.items.append(SaleItem(
                    product_id=line.product_id,
                    batch_id=line.batch_id,
                    quantity=line.quantity,
                    sale_price=line.sale_price,
                    cost_price=batches[line.batch_id].cost_price,
                    line_total=line.quantity * line.sale_price,
                ))
            else:
                item.quantity = line.quantity
                item.sale_price = line.sale_price
                item.line_total = line.quantity * line.sale_price

        sale.customer_id = customer_id
        sale.note = normalize_note(note)
        sale.updated_at = utcnow()
        _recompute_totals(sale)
        db.session.flush()

        record_revision(
            document_type=DocumentType.SALE,
            document_id=sale.id,
            reason=reason,
            old_state=old_state,
            new_state=sale.to_snapshot(),
            changed_by=changed_by,
        )
        return sale

    sale = run_in_transaction(_op)
    current_app.logger.info("Sale %s updated to version %s", sale.document_number, sale.version_id)
    return sale


def cancel_sale(sale_id: int, reason: str | None = None, cancelled_by: str | None = None) -> Sale:
    """Cancel a sale: stock goes back to its batches and its payments are voided."""
    reason = normalize_reason(reason, DEFAULT_CANCEL_REASON)

    def _op():
        sale = lock_document(Sale, sale_id)
        ensure_not_cancelled(sale)

        batches = lock_batches([item.batch_id for item in sale.items])
        for item in sale.items:
            release(batches[item.batch_id], item.quantity)

        payments = lock_for_update(
            db.session.query(Payment)
            .filter_by(
                source_type=DocumentType.SALE.value,
                source_id=sale.id,
                status=PaymentRecordStatus.ACTIVE.value,
            )
            .order_by(Payment.id)
        ).all()
        for payment in payments:
            void_locked_payment(payment, sale, reason, cancelled_by)

        mark_cancelled(sale, reason, cancelled_by)
        db.session.flush()
        return sale, len(payments)

    sale, voided = run_in_transaction(_op)
    current_app.logger.info(
        "Sale %s cancelled (%s payments voided): %s", sale.document_number, voided, reason
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    return get_document_or_404(Sale, sale_id)
