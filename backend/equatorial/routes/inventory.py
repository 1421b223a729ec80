# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/equatorial/routes/inventory.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..services import inventory_service
from ..validation import pagination_meta, parse_pagination


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/admin/inventory")


@inventory_bp.get("")
@require_auth
def list_inventory_route():
    try:
        page, limit = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        rows, total, summary = inventory_service.list_inventory(
            search=request.args.get("search"),
            status=request.args.get("status"),
            product_type=request.args.get("type"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "products": rows,
            "summary": summary,
            "pagination": pagination_meta(page=page, limit=limit, total=total),
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/adjust")
@require_auth
@require_role("admin", "manager")
def adjust_stock_route():
    """
    Manual stock adjustment.

    Body: {product_id, type: increase|decrease|set, quantity, reason, notes?}
    """
    try:
        req = inventory_service.AdjustmentRequest.from_payload(request.get_json(silent=True))
        product, txn = inventory_service.adjust_stock(req, user_id=g.current_user.id)
        return jsonify({
            "product": product.to_dict(),
            "transaction": txn.to_dict(),
            "message": "Stock adjusted successfully",
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:product_id>/movements")
@require_auth
def list_movements_route(product_id: int):
    try:
        limit = min(int(request.args.get("limit", 50)), current_app.config["MAX_PAGE_SIZE"])
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    try:
        movements = inventory_service.list_movements(product_id, limit=limit)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except ServiceError as e:
        return error_response(e)
