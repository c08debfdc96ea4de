# Overview: Pure line-item validation and delta reconciliation for document create/edit.

"""
Delta reconciliation

No database access here: callers pass in what they read under lock and get
back the per-batch changes to apply. Keeping this pure makes the edit rules
testable on plain values.

SALE EDIT RULE:
    max_allowed(batch) = current_remaining(batch) + old_qty_on_this_document(batch)
A document may take back what it already holds plus whatever is still free,
never stock committed to other documents.

STOCK-IN EDIT RULE:
Lines are keyed by (product_id, batch_code). A positive delta receives more,
a negative delta (or a removed line) takes back stock, which the batch
tracker refuses if that stock was already sold.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..errors import ValidationError
from ..primitives import Money, Quantity, parse_id
from ..time_utils import parse_iso_date


@dataclass(frozen=True)
class SaleLineInput:
    product_id: int
    batch_id: int
    quantity: int
    sale_price: int


@dataclass(frozen=True)
class StockInLineInput:
    product_id: int
    batch_code: str
    quantity: int
    cost_price: int
    manufacture_date: Optional[date] = None
    expiry_date: Optional[date] = None

    @property
    def key(self) -> tuple[int, str]:
        return (self.product_id, self.batch_code)

    @property
    def line_total(self) -> int:
        return self.quantity * self.cost_price


def _pick(raw: dict, *names):
    for name in names:
        if name in raw and raw[name] is not None:
            return raw[name]
    return None


def _raise_item_errors(errors: list[dict]) -> None:
    if errors:
        first = errors[0]
        raise ValidationError(
            f"Invalid item at position {first['index']}: {first['error']}",
            details={"items": errors},
        )


def _require_items(raw_items) -> list:
    if not isinstance(raw_items, (list, tuple)):
        raise ValidationError("items must be a list")
    if not raw_items:
        raise ValidationError("At least one item is required")
    return list(raw_items)


def parse_sale_items(raw_items) -> list[SaleLineInput]:
    """
    Normalize sale items.

    Accepts ``batch_id`` (or ``batch_ref``) and ``sale_price`` (or ``price``).
    Every bad item is reported, not only the first.
    """
    lines: list[SaleLineInput] = []
    errors: list[dict] = []
    seen_batches: set[int] = set()

    for index, raw in enumerate(_require_items(raw_items)):
        if not isinstance(raw, dict):
            errors.append({"index": index, "error": "item must be an object"})
            continue
        try:
            product_id = parse_id(_pick(raw, "product_id"), "product_id")
            batch_id = parse_id(_pick(raw, "batch_id", "batch_ref"), "batch_id")
            quantity = Quantity.of(_pick(raw, "quantity")).value
            sale_price = Money.of(_pick(raw, "sale_price", "price"), "sale_price").amount
        except ValidationError as exc:
            errors.append({"index": index, "product_id": raw.get("product_id"), "error": exc.message})
            continue

        if batch_id in seen_batches:
            errors.append({
                "index": index,
                "product_id": product_id,
                "batch_id": batch_id,
                "error": "batch appears more than once",
            })
            continue
        seen_batches.add(batch_id)
        lines.append(SaleLineInput(product_id, batch_id, quantity, sale_price))

    _raise_item_errors(errors)
    return lines


def parse_stock_in_items(raw_items) -> list[StockInLineInput]:
    """
    Normalize stock-in items.

    Accepts ``batch_code`` (or ``batch_ref``), ``cost_price`` (or
    ``price``) and ``expiry_date`` (or the legacy ``expired_date``).
    """
    lines: list[StockInLineInput] = []
    errors: list[dict] = []
    seen_keys: set[tuple[int, str]] = set()

    for index, raw in enumerate(_require_items(raw_items)):
        if not isinstance(raw, dict):
            errors.append({"index": index, "error": "item must be an object"})
            continue
        try:
            product_id = parse_id(_pick(raw, "product_id"), "product_id")
            batch_code = str(_pick(raw, "batch_code", "batch_ref") or "").strip()
            if not batch_code:
                raise ValidationError("batch_code cannot be blank")
            if len(batch_code) > 64:
                raise ValidationError("batch_code exceeds max length 64")
            quantity = Quantity.of(_pick(raw, "quantity")).value
            cost_price = Money.of(_pick(raw, "cost_price", "price"), "cost_price").amount
            try:
                manufacture_date = parse_iso_date(_pick(raw, "manufacture_date"))
                expiry_date = parse_iso_date(_pick(raw, "expiry_date", "expired_date"))
            except ValueError:
                raise ValidationError("dates must be ISO-8601 (YYYY-MM-DD)")
        except ValidationError as exc:
            errors.append({"index": index, "product_id": raw.get("product_id"), "error": exc.message})
            continue

        key = (product_id, batch_code)
        if key in seen_keys:
            errors.append({
                "index": index,
                "product_id": product_id,
                "batch_code": batch_code,
                "error": "batch code appears more than once for this product",
            })
            continue
        seen_keys.add(key)
        lines.append(StockInLineInput(product_id, batch_code, quantity, cost_price, manufacture_date, expiry_date))

    _raise_item_errors(errors)
    return lines


def sale_quantity_deltas(
    old_quantities: dict[int, int],
    new_lines: list[SaleLineInput],
    remaining: dict[int, int],
) -> dict[int, int]:
    """
    Net per-batch change for a sale create (old_quantities empty) or edit.

    Returns {batch_id: new_qty - old_qty} for every batch whose quantity
    changes; positive means reserve, negative means release. Raises
    ValidationError listing every line above its maximum allowed quantity.
    """
    new_quantities = {line.batch_id: line.quantity for line in new_lines}
    errors = []
    for index, line in enumerate(new_lines):
        old_qty = old_quantities.get(line.batch_id, 0)
        max_allowed = remaining.get(line.batch_id, 0) + old_qty
        if line.quantity > max_allowed:
            errors.append({
                "index": index,
                "product_id": line.product_id,
                "batch_id": line.batch_id,
                "requested_quantity": line.quantity,
                "max_allowed": max_allowed,
                "error": f"quantity exceeds available stock (max {max_allowed})",
            })
    _raise_item_errors(errors)

    deltas = {}
    for batch_id in set(old_quantities) | set(new_quantities):
        delta = new_quantities.get(batch_id, 0) - old_quantities.get(batch_id, 0)
        if delta:
            deltas[batch_id] = delta
    return deltas


def stock_in_quantity_deltas(
    old_quantities: dict[tuple[int, str], int],
    new_lines: list[StockInLineInput],
) -> dict[tuple[int, str], int]:
    """
    Net per-(product, batch_code) change for a stock-in edit.

    Positive means receive more, negative means take back. Keys present only
    in ``old_quantities`` come back as their full negative quantity.
    """
    new_quantities = {line.key: line.quantity for line in new_lines}
    deltas = {}
    for key in set(old_quantities) | set(new_quantities):
        delta = new_quantities.get(key, 0) - old_quantities.get(key, 0)
        if delta:
            deltas[key] = delta
    return deltas


def split_proportionally(amount: int, weights: list[int]) -> list[int]:
    """
    Split ``amount`` into integer shares proportional to ``weights``.

    Largest-remainder method: shares always sum to exactly ``amount``; ties
    on the remainder go to the earlier position.
    """
    total_weight = sum(weights)
    if amount < 0:
        raise ValidationError("amount must be >= 0")
    if total_weight <= 0:
        raise ValidationError("Cannot split an amount over zero total weight")

    shares = [amount * w // total_weight for w in weights]
    leftover = amount - sum(shares)
    order = sorted(
        range(len(weights)),
        key=lambda i: (-(amount * weights[i] % total_weight), i),
    )
    for i in order[:leftover]:
        shares[i] += 1
    return shares


def round_half_up_div(numerator: int, denominator: int) -> int:
    """Integer division rounded half up (non-negative operands)."""
    return (2 * numerator + denominator) // (2 * denominator)
