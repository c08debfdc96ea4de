# Overview: Flask API routes for sales and stock-in documents; parses input and returns JSON responses.

# backend/stockledger/routes/documents.py
"""
Document API Routes

Sales and stock-ins expose the same surface, so both blueprints are built
by one function:

    POST   /api/<docs>                     create (ACTIVE)
    GET    /api/<docs>/<id>                document with items
    PUT    /api/<docs>/<id>                edit (ACTIVE, unpaid only)
    POST   /api/<docs>/<id>/cancel         cancel
    GET    /api/<docs>/<id>/revisions      edit history, newest first
    GET    /api/<docs>/<id>/payments       payments allocated to it

Stock-ins additionally accept POST /api/stock-ins/<id>/landed-costs.

The acting user is read from the ``actor`` field of the body (or the
X-Actor header); there is no authentication layer here.
"""

from flask import Blueprint, current_app, jsonify, request

from ..errors import LedgerError
from ..primitives import DocumentType
from ..services import document_service, payment_service, revision_service, stock_in_service


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _actor(data: dict):
    return data.get("actor") or request.headers.get("X-Actor")


def _error(e: LedgerError):
    return jsonify(e.to_dict()), e.http_status


def _register_document_routes(bp: Blueprint, document_type: DocumentType, label: str) -> None:
    partner_field = document_service.partner_field(document_type)

    @bp.post("")
    def create_document_route():
        """
        Create a document.

        Request body:
        {
            "<customer_id|supplier_id>": 1,   (optional)
            "note": "...",                    (optional)
            "items": [...],
            "actor": "alice"                  (optional)
        }
        """
        try:
            data = _json_body()
            doc = document_service.create_document(
                document_type,
                data.get("items"),
                partner_id=data.get(partner_field),
                note=data.get("note"),
                created_by=_actor(data),
            )
            return jsonify({label: doc.to_dict(include_items=True)}), 201
        except LedgerError as e:
            return _error(e)
        except Exception:
            current_app.logger.exception("Failed to create %s", document_type.value)
            return jsonify({"error": "Internal server error"}), 500

    @bp.get("/<int:document_id>")
    def get_document_route(document_id: int):
        try:
            doc = document_service.get_document(document_type, document_id)
            return jsonify({label: doc.to_dict(include_items=True)}), 200
        except LedgerError as e:
            return _error(e)
        except Exception:
            current_app.logger.exception("Failed to get %s %s", document_type.value, document_id)
            return jsonify({"error": "Internal server error"}), 500

    @bp.put("/<int:document_id>")
    def update_document_route(document_id: int):
        """
        Edit a document in place.

        Request body: same as create, plus optional "reason" and
        "expected_version" (the version_id the client last read).

        Returns:
            200: updated document
            400: invalid items
            404: document / partner / batch not found
            409: document paid or cancelled, insufficient stock, stale version
        """
        try:
            data = _json_body()
            doc = document_service.update_document(
                document_type,
                document_id,
                data.get("items"),
                partner_id=data.get(partner_field),
                note=data.get("note"),
                reason=data.get("reason"),
                changed_by=_actor(data),
                expected_version=data.get("expected_version"),
            )
            return jsonify({label: doc.to_dict(include_items=True)}), 200
        except LedgerError as e:
            return _error(e)
        except Exception:
            current_app.logger.exception("Failed to update %s %s", document_type.value, document_id)
            return jsonify({"error": "Internal server error"}), 500

    @bp.post("/<int:document_id>/cancel")
    def cancel_document_route(document_id: int):
        try:
            data = _json_body()
            doc = document_service.cancel_document(
                document_type,
                document_id,
                reason=data.get("reason"),
                cancelled_by=_actor(data),
            )
            return jsonify({label: doc.to_dict(include_items=True)}), 200
        except LedgerError as e:
            return _error(e)
        except Exception:
            current_app.logger.exception("Failed to cancel %s %s", document_type.value, document_id)
            return jsonify({"error": "Internal server error"}), 500

    @bp.get("/<int:document_id>/revisions")
    def list_revisions_route(document_id: int):
        try:
            document_service.get_document(document_type, document_id)
            revisions = revision_service.list_revisions(document_type, document_id)
            return jsonify({"revisions": [r.to_dict() for r in revisions]}), 200
        except LedgerError as e:
            return _error(e)
        except Exception:
            current_app.logger.exception("Failed to list revisions for %s %s", document_type.value, document_id)
            return jsonify({"error": "Internal server error"}), 500

    @bp.get("/<int:document_id>/payments")
    def list_document_payments_route(document_id: int):
        try:
            payments = payment_service.get_document_payments(document_type, document_id)
            return jsonify({"payments": [p.to_dict() for p in payments]}), 200
        except LedgerError as e:
            return _error(e)
        except Exception:
            current_app.logger.exception("Failed to list payments for %s %s", document_type.value, document_id)
            return jsonify({"error": "Internal server error"}), 500


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")
_register_document_routes(sales_bp, DocumentType.SALE, "sale")

stock_ins_bp = Blueprint("stock_ins", __name__, url_prefix="/api/stock-ins")
_register_document_routes(stock_ins_bp, DocumentType.STOCK_IN, "stock_in")


@stock_ins_bp.post("/<int:stock_in_id>/landed-costs")
def add_landed_cost_route(stock_in_id: int):
    """
    Spread an extra cost over a stock-in's batches.

    Request body:
    {
        "cost_type": "FREIGHT",
        "amount": 50000,
        "allocation_method": "BY_VALUE"   (or BY_QUANTITY; default BY_VALUE)
    }
    """
    try:
        data = _json_body()
        landed_cost = stock_in_service.add_landed_cost(
            stock_in_id,
            cost_type=data.get("cost_type"),
            amount=data.get("amount"),
            allocation_method=data.get("allocation_method") or "BY_VALUE",
            created_by=_actor(data),
        )
        stock_in = stock_in_service.get_stock_in(stock_in_id)
        return jsonify({
            "landed_cost": landed_cost.to_dict(),
            "stock_in": stock_in.to_dict(include_items=True),
        }), 201
    except LedgerError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to add landed cost to stock-in %s", stock_in_id)
        return jsonify({"error": "Internal server error"}), 500
