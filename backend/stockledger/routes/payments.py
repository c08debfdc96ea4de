# Overview: Flask API routes for payment allocation and voids; parses input and returns JSON responses.

# backend/stockledger/routes/payments.py
"""
Payment API Routes

- POST /api/payments/allocate     spread one lump sum over a partner's open documents
- POST /api/payments/<id>/void    void one payment
- GET  /api/payments              list (filters: direction, method, status, allocation_ref)
- GET  /api/payments/<id>         one payment
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..services import payment_service


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _actor(data: dict):
    return data.get("actor") or request.headers.get("X-Actor")


# =============================================================================
# ALLOCATION / VOID
# =============================================================================

@payments_bp.post("/allocate")
def allocate_payment_route():
    """
    Allocate a payment oldest-debt-first.

    Request body:
    {
        "partner_type": "CUSTOMER",   (CUSTOMER pays sales, SUPPLIER is paid for stock-ins)
        "partner_id": 1,
        "amount": 150000,
        "method": "CASH",             (CASH, BANK, MOMO, ZALOPAY, OTHER)
        "note": "..."                 (optional)
    }

    Returns:
        201: {"total_allocated", "invoices_paid", "remaining", "allocation_ref", "payments"}
        400: invalid input
        404: partner not found
    """
    try:
        data = _json_body()
        result = payment_service.allocate_payment(
            partner_type=data.get("partner_type"),
            partner_id=data.get("partner_id"),
            amount=data.get("amount"),
            method=data.get("method"),
            note=data.get("note"),
            created_by=_actor(data),
        )
        return jsonify(result.to_dict()), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to allocate payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/void")
def void_payment_route(payment_id: int):
    """
    Void a payment. A second void of the same payment returns 409.

    Request body: {"reason": "Wrong customer"}
    """
    try:
        data = _json_body()
        payment = payment_service.void_payment(
            payment_id,
            reason=data.get("reason"),
            voided_by=_actor(data),
        )
        return jsonify({"payment": payment.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to void payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@payments_bp.get("")
def list_payments_route():
    try:
        limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
        offset = max(request.args.get("offset", 0, type=int), 0)
        payments = payment_service.list_payments(
            direction=request.args.get("direction"),
            method=request.args.get("method"),
            status=request.args.get("status"),
            allocation_ref=request.args.get("allocation_ref"),
            limit=limit,
            offset=offset,
        )
        return jsonify({"payments": [p.to_dict() for p in payments], "count": len(payments)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<int:payment_id>")
def get_payment_route(payment_id: int):
    try:
        payment = payment_service.get_payment(payment_id)
        return jsonify({"payment": payment.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to get payment %s", payment_id)
        return jsonify({"error": "Internal server error"}), 500
