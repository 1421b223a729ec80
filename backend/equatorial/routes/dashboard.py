# Overview: Flask API routes for dashboard reads; parses input and returns JSON responses.

# backend/equatorial/routes/dashboard.py
from flask import Blueprint, current_app, jsonify

from ..decorators import require_auth
from ..services import dashboard_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/admin/dashboard")


@dashboard_bp.get("/stats")
@require_auth
def stats_route():
    try:
        return jsonify({"stats": dashboard_service.get_stats()}), 200
    except Exception:
        current_app.logger.exception("Failed to load dashboard stats")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/top-products")
@require_auth
def top_products_route():
    try:
        return jsonify({"products": dashboard_service.top_products()}), 200
    except Exception:
        current_app.logger.exception("Failed to load top products")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/recent-orders")
@require_auth
def recent_orders_route():
    try:
        return jsonify({"orders": dashboard_service.recent_orders()}), 200
    except Exception:
        current_app.logger.exception("Failed to load recent orders")
        return jsonify({"error": "Internal server error"}), 500
