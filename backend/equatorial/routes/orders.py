# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/equatorial/routes/orders.py
from flask import Blueprint, current_app, g, jsonify, request, session

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..services import order_service
from ..services.cart_service import ClearCart, cart_reducer, load_cart, save_cart
from ..validation import pagination_meta, parse_pagination


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")
admin_orders_bp = Blueprint("admin_orders", __name__, url_prefix="/api/admin/orders")


@orders_bp.post("")
def create_order_route():
    """
    Storefront checkout.

    On success the shopper's cart is cleared.
    """
    try:
        req = order_service.CheckoutRequest.from_payload(request.get_json(silent=True))
        order = order_service.create_order(req)
        save_cart(session, cart_reducer(load_cart(session), ClearCart()))
        return jsonify({
            "order": order.to_dict(include_items=True),
            "message": "Order created successfully",
        }), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        page, limit = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        orders, total = order_service.list_orders(
            search=request.args.get("search"),
            status=request.args.get("status"),
            payment_status=request.args.get("payment_status"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "orders": [o.to_dict() for o in orders],
            "pagination": pagination_meta(page=page, limit=limit, total=total),
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except ServiceError as e:
        return error_response(e)


@admin_orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    try:
        order = order_service.update_order(order_id, request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@admin_orders_bp.delete("/<int:order_id>")
@require_auth
@require_role("admin", "manager")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id, user_id=g.current_user.id)
        return jsonify({"message": "Order deleted successfully"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500
