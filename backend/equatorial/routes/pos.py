# Overview: Flask API routes for POS operations; parses input and returns JSON responses.

# backend/equatorial/routes/pos.py
"""
POS API routes

Sales and refunds are always attributed to the authenticated user; the
request body cannot choose the staff member.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..services import pos_service, refund_service
from ..validation import pagination_meta, parse_pagination


pos_bp = Blueprint("pos", __name__, url_prefix="/api/admin/pos")


@pos_bp.get("/products")
@require_auth
def list_pos_products_route():
    try:
        products = pos_service.list_pos_products(request.args.get("search"))
        return jsonify({"products": [p.to_dict() for p in products]}), 200
    except Exception:
        current_app.logger.exception("Failed to list POS products")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/transactions")
@require_auth
def create_transaction_route():
    """Ring up a sale. 201 with the transaction and its items."""
    try:
        req = pos_service.SaleRequest.from_payload(request.get_json(silent=True))
        txn = pos_service.create_transaction(req, staff_id=g.current_user.id)
        return jsonify({
            "transaction": txn.to_dict(),
            "items": [item.to_dict() for item in txn.items],
        }), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create POS transaction")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/transactions")
@require_auth
def list_transactions_route():
    try:
        page, limit = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        rows, total = pos_service.list_transactions(
            status=request.args.get("status"),
            payment_method=request.args.get("payment_method"),
            transaction_type=request.args.get("type"),
            date_from=request.args.get("date_from"),
            date_to=request.args.get("date_to"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "transactions": [t.to_dict() for t in rows],
            "pagination": pagination_meta(page=page, limit=limit, total=total),
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list POS transactions")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/transactions/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    try:
        txn = pos_service.get_transaction(transaction_id)
        return jsonify({"transaction": pos_service.transaction_detail(txn)}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load POS transaction")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.post("/transactions/<int:transaction_id>/refund")
@require_auth
@require_role("admin", "manager")
def refund_transaction_route(transaction_id: int):
    try:
        req = refund_service.RefundRequest.from_payload(request.get_json(silent=True))
        refund = refund_service.refund_transaction(transaction_id, req, staff_id=g.current_user.id)
        return jsonify({
            "refund": refund.to_dict(),
            "items": [item.to_dict() for item in refund.items],
            "message": "Refund processed successfully",
        }), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to refund POS transaction")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.get("/receipt/<int:transaction_id>")
@require_auth
def get_receipt_route(transaction_id: int):
    try:
        return jsonify({"receipt": pos_service.build_receipt(transaction_id)}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build receipt")
        return jsonify({"error": "Internal server error"}), 500


@pos_bp.put("/receipt/<int:transaction_id>")
@require_auth
def mark_receipt_printed_route(transaction_id: int):
    try:
        txn = pos_service.mark_receipt_printed(transaction_id, user_id=g.current_user.id)
        return jsonify({"transaction": txn.to_dict(), "message": "Receipt marked as printed"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to mark receipt printed")
        return jsonify({"error": "Internal server error"}), 500
