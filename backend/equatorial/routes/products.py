# Overview: Flask API routes for product operations; parses input and returns JSON responses.

# backend/equatorial/routes/products.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..services import products_service
from ..validation import pagination_meta, parse_pagination


products_bp = Blueprint("products", __name__, url_prefix="/api/products")
admin_products_bp = Blueprint("admin_products", __name__, url_prefix="/api/admin/products")


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


# =============================================================================
# STOREFRONT (public)
# =============================================================================

@products_bp.get("")
def list_public_products():
    try:
        products, _ = products_service.list_products(
            search=request.args.get("search"),
            product_type=request.args.get("type"),
            in_stock_only=_truthy(request.args.get("in_stock")),
        )
        return jsonify({"products": [p.to_public_dict() for p in products]}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_public_product(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_public_dict()}), 200
    except ServiceError as e:
        return error_response(e)


# =============================================================================
# ADMIN
# =============================================================================

@admin_products_bp.get("")
@require_auth
def list_admin_products():
    try:
        page, limit = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        products, total = products_service.list_products(
            search=request.args.get("search"),
            product_type=request.args.get("type"),
            page=page,
            limit=limit,
        )
        return jsonify({
            "products": [p.to_dict() for p in products],
            "pagination": pagination_meta(page=page, limit=limit, total=total),
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@admin_products_bp.post("")
@require_auth
@require_role("admin", "manager")
def create_product_route():
    try:
        product = products_service.create_product(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"product": product.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@admin_products_bp.get("/<int:product_id>")
@require_auth
def get_admin_product(product_id: int):
    try:
        product = products_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)


@admin_products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin", "manager")
def update_product_route(product_id: int):
    try:
        product = products_service.update_product(
            product_id, request.get_json(silent=True), user_id=g.current_user.id
        )
        return jsonify({"product": product.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@admin_products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id, user_id=g.current_user.id)
        return jsonify({"message": "Product deleted"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500
