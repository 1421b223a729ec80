# Overview: Flask API routes for customer operations; parses input and returns JSON responses.

# backend/equatorial/routes/customers.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..services import customer_service
from ..validation import pagination_meta, parse_pagination


customers_bp = Blueprint("customers", __name__, url_prefix="/api/admin/customers")


@customers_bp.get("")
@require_auth
def list_customers_route():
    try:
        page, limit = parse_pagination(
            request.args,
            default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
            max_limit=current_app.config["MAX_PAGE_SIZE"],
        )
        customers, total = customer_service.list_customers(
            search=request.args.get("search"),
            customer_group=request.args.get("group"),
            page=page,
            limit=limit,
        )
        rows = []
        for c in customers:
            row = c.to_dict()
            row.update(customer_service.spending_summary(c.id))
            rows.append(row)
        return jsonify({
            "customers": rows,
            "pagination": pagination_meta(page=page, limit=limit, total=total),
        }), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list customers")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("")
@require_auth
def create_customer_route():
    try:
        customer = customer_service.create_customer(request.get_json(silent=True), user_id=g.current_user.id)
        return jsonify({"customer": customer.to_dict()}), 201
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        data = customer.to_dict()
        data.update(customer_service.spending_summary(customer.id))
        data["orders"] = [o.to_dict() for o in sorted(customer.orders, key=lambda o: o.id, reverse=True)]
        data["pos_transactions"] = [
            t.to_dict() for t in sorted(customer.pos_transactions, key=lambda t: t.id, reverse=True)
        ]
        return jsonify({"customer": data}), 200
    except ServiceError as e:
        return error_response(e)


@customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(
            customer_id, request.get_json(silent=True), user_id=g.current_user.id
        )
        return jsonify({"customer": customer.to_dict()}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role("admin", "manager")
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id, user_id=g.current_user.id)
        return jsonify({"message": "Customer deleted successfully"}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500
