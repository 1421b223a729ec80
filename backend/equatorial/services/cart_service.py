# Overview: Storefront cart state reducer and its client-side persistence.

"""
Cart Engine

The cart is a pure state machine: cart_reducer(state, action) -> new state.
No database, no request context; routes load the persisted state, reduce one
action and persist the result.

STATE:
    CartState(items=(CartItem(product, quantity), ...), total, item_count)

Totals are never trusted from outside: every transition, including HYDRATE,
recomputes total = sum(price * quantity) and item_count = sum(quantity).

PERSISTENCE:
The serialized state {"items": [...], "total": ..., "itemCount": ...} lives
under CART_STORAGE_KEY in the client's signed session cookie, so it survives
page reloads and browser restarts without any server-side storage.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping, MutableMapping, Union

CART_STORAGE_KEY = "equatorial-imports-cart"

PRODUCT_SNAPSHOT_FIELDS = ("id", "name", "brand", "price_cents", "image", "in_stock", "product_type")


# =============================================================================
# STATE
# =============================================================================

@dataclass(frozen=True)
class CartItem:
    product: Mapping[str, Any]
    quantity: int

    @property
    def product_id(self) -> int:
        return self.product["id"]

    @property
    def line_total_cents(self) -> int:
        return self.product["price_cents"] * self.quantity


@dataclass(frozen=True)
class CartState:
    items: tuple[CartItem, ...] = ()
    total: int = 0
    item_count: int = 0


EMPTY_CART = CartState()


def _with_totals(items) -> CartState:
    items = tuple(items)
    return CartState(
        items=items,
        total=sum(item.line_total_cents for item in items),
        item_count=sum(item.quantity for item in items),
    )


# =============================================================================
# ACTIONS
# =============================================================================

@dataclass(frozen=True)
class AddItem:
    product: Mapping[str, Any]
    quantity: int = 1


@dataclass(frozen=True)
class RemoveItem:
    product_id: int


@dataclass(frozen=True)
class UpdateQuantity:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class Hydrate:
    state: CartState


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ClearCart, Hydrate]


class CartError(ValueError):
    """Raised when an action cannot be applied (e.g. product out of stock)."""


def snapshot_product(product: Mapping[str, Any]) -> dict:
    """Keep only what the cart needs to render and price a line."""
    return {key: product.get(key) for key in PRODUCT_SNAPSHOT_FIELDS}


# =============================================================================
# REDUCER
# =============================================================================

def cart_reducer(state: CartState, action: CartAction) -> CartState:
    if isinstance(action, AddItem):
        if not action.product.get("in_stock", False):
            raise CartError(f"{action.product.get('name', 'Product')} is out of stock")
        if action.quantity <= 0:
            return state
        items = list(state.items)
        for index, item in enumerate(items):
            if item.product_id == action.product["id"]:
                items[index] = replace(item, quantity=item.quantity + action.quantity)
                break
        else:
            items.append(CartItem(product=snapshot_product(action.product), quantity=action.quantity))
        return _with_totals(items)

    if isinstance(action, RemoveItem):
        return _with_totals(item for item in state.items if item.product_id != action.product_id)

    if isinstance(action, UpdateQuantity):
        if action.quantity <= 0:
            return cart_reducer(state, RemoveItem(action.product_id))
        return _with_totals(
            replace(item, quantity=action.quantity) if item.product_id == action.product_id else item
            for item in state.items
        )

    if isinstance(action, ClearCart):
        return EMPTY_CART

    if isinstance(action, Hydrate):
        return _with_totals(action.state.items)

    raise TypeError(f"Unknown cart action: {action!r}")


# =============================================================================
# SERIALIZATION / PERSISTENCE
# =============================================================================

def serialize_cart(state: CartState) -> dict:
    return {
        "items": [{"product": dict(item.product), "quantity": item.quantity} for item in state.items],
        "total": state.total,
        "itemCount": state.item_count,
    }


def _parse_item(raw: Any) -> CartItem | None:
    if not isinstance(raw, Mapping):
        return None
    product = raw.get("product")
    quantity = raw.get("quantity")
    if not isinstance(product, Mapping):
        return None
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        return None
    product_id = product.get("id")
    price = product.get("price_cents")
    if not isinstance(product_id, int) or not isinstance(price, int) or price < 0:
        return None
    return CartItem(product=snapshot_product(product), quantity=quantity)


def deserialize_cart(raw: Any) -> CartState:
    """
    Rebuild state from persisted data.

    Malformed entries are dropped; the stored total and itemCount are ignored
    and recomputed from the surviving items. Duplicate product lines merge.
    """
    if not isinstance(raw, Mapping):
        return EMPTY_CART
    raw_items = raw.get("items")
    if not isinstance(raw_items, list):
        return EMPTY_CART

    merged: dict[int, CartItem] = {}
    for raw_item in raw_items:
        item = _parse_item(raw_item)
        if item is None:
            continue
        existing = merged.get(item.product_id)
        merged[item.product_id] = (
            replace(existing, quantity=existing.quantity + item.quantity) if existing else item
        )
    return cart_reducer(EMPTY_CART, Hydrate(CartState(items=tuple(merged.values()))))


def load_cart(storage: Mapping[str, Any]) -> CartState:
    return deserialize_cart(storage.get(CART_STORAGE_KEY))


def save_cart(storage: MutableMapping[str, Any], state: CartState) -> None:
    if state.items:
        storage[CART_STORAGE_KEY] = serialize_cart(state)
    else:
        storage.pop(CART_STORAGE_KEY, None)
