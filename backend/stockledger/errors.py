# Overview: Domain error taxonomy shared by services and routes.

"""
Ledger errors.

Every service-layer failure is a LedgerError subclass. Routes map them to
JSON responses through ``http_status``; ``details`` carries the offending
entity ids so the caller can render a specific message.

- 400: input shape / business-rule problems caught before any mutation
- 404: referenced row does not exist
- 409: state-machine violations and stock races (never retried automatically)
- 500: InvariantViolation, an internal consistency bug
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger operation errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError):
    """Bad input or business-rule violation detected before mutation."""
    http_status = 400


class NotFound(LedgerError):
    http_status = 404


class InsufficientStock(LedgerError):
    """Reservation exceeds a batch's remaining quantity at commit time."""
    http_status = 409


class EditForbidden(LedgerError):
    http_status = 409


class CancelForbidden(LedgerError):
    http_status = 409


class AlreadyCancelled(LedgerError):
    http_status = 409


class AlreadyVoided(LedgerError):
    http_status = 409


class StaleDocument(LedgerError):
    """Caller edited from a version that is no longer current."""
    http_status = 409


class InvariantViolation(LedgerError):
    """Internal consistency check failed. Treated as a bug signal."""
    http_status = 500
