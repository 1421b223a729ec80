# Overview: Flask API routes for analytics and exports; parses input and returns JSON responses.

# backend/equatorial/routes/analytics.py
from flask import Blueprint, Response, current_app, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..services import analytics_service


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/admin/analytics")


@analytics_bp.get("")
@require_auth
@require_role("admin", "manager")
def analytics_route():
    try:
        return jsonify({"analytics": analytics_service.get_analytics(request.args.get("range"))}), 200
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load analytics")
        return jsonify({"error": "Internal server error"}), 500


@analytics_bp.get("/export")
@require_auth
@require_role("admin", "manager")
def export_route():
    """Download orders and POS transactions of a range as CSV or XLSX."""
    try:
        content, mimetype, filename = analytics_service.export(
            request.args.get("range"), request.args.get("format")
        )
        return Response(
            content,
            mimetype=mimetype,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to export analytics")
        return jsonify({"error": "Internal server error"}), 500
