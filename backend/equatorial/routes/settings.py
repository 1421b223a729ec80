# Overview: Flask API routes for store settings; parses input and returns JSON responses.

# backend/equatorial/routes/settings.py
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import ServiceError, error_response
from ..extensions import db
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/admin/settings")
currency_rates_bp = Blueprint("currency_rates", __name__, url_prefix="/api/admin/currency-rates")


@settings_bp.get("")
@require_auth
def get_settings_route():
    try:
        return jsonify({
            "settings": [s.to_dict() for s in settings_service.get_all_settings()],
            "values": settings_service.get_settings_map(),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to load settings")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.post("")
@require_auth
@require_role("admin")
def update_settings_route():
    """Bulk upsert. Body: {"settings": {"key": "value", ...}}"""
    try:
        data = request.get_json(silent=True) or {}
        rows = settings_service.upsert_settings(data.get("settings"), user_id=g.current_user.id)
        db.session.commit()
        return jsonify({
            "settings": [s.to_dict() for s in rows],
            "message": "Settings updated successfully",
        }), 200
    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# CURRENCY RATES
# =============================================================================

@currency_rates_bp.get("")
@require_auth
def list_currency_rates_route():
    try:
        return jsonify({"rates": [r.to_dict() for r in settings_service.list_currency_rates()]}), 200
    except Exception:
        current_app.logger.exception("Failed to load currency rates")
        return jsonify({"error": "Internal server error"}), 500


@currency_rates_bp.post("")
@require_auth
@require_role("admin")
def upsert_currency_rate_route():
    """Body: {"base_currency": "SCR", "target_currency": "USD", "rate": "0.0735"}"""
    try:
        row = settings_service.upsert_currency_rate(request.get_json(silent=True), user_id=g.current_user.id)
        db.session.commit()
        return jsonify({"rate": row.to_dict(), "message": "Currency rate saved"}), 200
    except ServiceError as e:
        db.session.rollback()
        return error_response(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to save currency rate")
        return jsonify({"error": "Internal server error"}), 500
