# Overview: Ledger value types and status enums shared by every service.

"""
Ledger Primitives

Statuses are str-valued enums so they compare equal to the strings stored
in the database and serialize to JSON unchanged. Money and Quantity are
immutable integer wrappers: money is held in minor units (VND has no
subunit), quantities are whole units.

PAYMENT STATUS (always derived, never set by hand):
- UNPAID:  amount_paid = 0
- PARTIAL: 0 < amount_paid < total
- PAID:    amount_paid >= total
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import ValidationError


class DocumentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class PaymentRecordStatus(str, Enum):
    ACTIVE = "ACTIVE"
    VOIDED = "VOIDED"


class PaymentDirection(str, Enum):
    IN = "IN"    # receivable collection (customer pays a sale)
    OUT = "OUT"  # payable settlement (we pay a supplier's stock-in)


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    MOMO = "MOMO"
    ZALOPAY = "ZALOPAY"
    OTHER = "OTHER"


class DocumentType(str, Enum):
    SALE = "SALE"
    STOCK_IN = "STOCK_IN"


class PartnerType(str, Enum):
    CUSTOMER = "CUSTOMER"
    SUPPLIER = "SUPPLIER"


class AllocationMethod(str, Enum):
    BY_QUANTITY = "BY_QUANTITY"
    BY_VALUE = "BY_VALUE"


def parse_enum(enum_cls, value, field: str):
    """Coerce a raw value into ``enum_cls`` or raise ValidationError."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(
        f"Invalid {field}: {value!r}. Must be one of: {allowed}",
        details={"field": field, "value": value},
    )


def _coerce_int(value, field: str) -> int:
    # Strict: reject bools, floats with fractions, scientific notation
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={"field": field})
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field} must be a whole number", details={"field": field})
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer", details={"field": field})


@dataclass(frozen=True, order=True)
class Money:
    """Amount of money in minor units."""
    amount: int

    @classmethod
    def of(cls, value, field: str = "amount", *, positive: bool = False) -> "Money":
        amount = _coerce_int(value, field)
        if positive and amount <= 0:
            raise ValidationError(f"{field} must be > 0", details={"field": field, "value": amount})
        if amount < 0:
            raise ValidationError(f"{field} must be >= 0", details={"field": field, "value": amount})
        return cls(amount)


@dataclass(frozen=True, order=True)
class Quantity:
    """Whole-unit quantity of a product; always > 0 when constructed via of()."""
    value: int

    @classmethod
    def of(cls, value, field: str = "quantity") -> "Quantity":
        qty = _coerce_int(value, field)
        if qty <= 0:
            raise ValidationError(f"{field} must be > 0", details={"field": field, "value": qty})
        return cls(qty)


def parse_id(value, field: str) -> int:
    """Positive integer reference to another row."""
    if value is None:
        raise ValidationError(f"{field} is required", details={"field": field})
    ident = _coerce_int(value, field)
    if ident <= 0:
        raise ValidationError(f"{field} must be a positive id", details={"field": field, "value": ident})
    return ident


def parse_optional_id(value, field: str) -> int | None:
    """Like parse_id, but None (or a blank string) means "no reference"."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_id(value, field)


def derive_payment_status(amount_paid: int, total: int) -> PaymentStatus:
    """Single source of truth for a document's payment_status."""
    if amount_paid <= 0:
        return PaymentStatus.UNPAID
    if amount_paid >= total:
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL


# Partner type -> (document type, payment direction)
PARTNER_FLOW = {
    PartnerType.CUSTOMER: (DocumentType.SALE, PaymentDirection.IN),
    PartnerType.SUPPLIER: (DocumentType.STOCK_IN, PaymentDirection.OUT),
}
