# Overview: Flask API route for the unified invoice lookup; returns JSON responses.

"""
Invoice Routes

One invoice view over storefront orders and POS transactions.
"""

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import ServiceError, error_response
from ..services.document_service import get_invoice


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/admin/invoice")


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    """Optional ?type=order|pos picks the source table."""
    try:
        invoice = get_invoice(invoice_id, request.args.get("type") or None)
        return jsonify({"invoice": invoice}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load invoice")
        return jsonify({"error": "Internal server error"}), 500
