# Overview: Flask API routes for the storefront cart; reduces one action per request.

# backend/equatorial/routes/cart.py
"""
Storefront cart API

Each request loads the cart from the signed session cookie, applies one
reducer action and stores the result back. The product snapshot added to
the cart always comes from the catalog, never from the request body.
"""

from flask import Blueprint, current_app, jsonify, request, session

from ..errors import ServiceError, error_response
from ..services import products_service
from ..services.cart_service import (
    AddItem,
    CartError,
    ClearCart,
    Hydrate,
    RemoveItem,
    UpdateQuantity,
    cart_reducer,
    deserialize_cart,
    load_cart,
    save_cart,
    serialize_cart,
)
from ..validation import ValidationError, require_int


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _dispatch(action):
    state = cart_reducer(load_cart(session), action)
    session.permanent = True
    save_cart(session, state)
    return jsonify({"cart": serialize_cart(state)}), 200


@cart_bp.get("")
def get_cart():
    return jsonify({"cart": serialize_cart(load_cart(session))}), 200


@cart_bp.put("")
def hydrate_cart():
    """Replace the cart with client-held state; totals are recomputed."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return error_response(ValidationError("Invalid JSON payload"))
    return _dispatch(Hydrate(deserialize_cart(data)))


@cart_bp.delete("")
def clear_cart():
    return _dispatch(ClearCart())


@cart_bp.post("/items")
def add_item():
    try:
        data = request.get_json(silent=True) or {}
        product_id = require_int(data, "product_id", minimum=1)
        quantity = require_int(data, "quantity", minimum=1, required=False) or 1
        product = products_service.get_product(product_id)
        return _dispatch(AddItem(product.to_public_dict(), quantity))
    except CartError as e:
        return jsonify({"error": str(e)}), 400
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.patch("/items/<int:product_id>")
def update_item(product_id: int):
    try:
        data = request.get_json(silent=True) or {}
        quantity = require_int(data, "quantity")
        return _dispatch(UpdateQuantity(product_id, quantity))
    except ServiceError as e:
        return error_response(e)


@cart_bp.delete("/items/<int:product_id>")
def remove_item(product_id: int):
    return _dispatch(RemoveItem(product_id))
