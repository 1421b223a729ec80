"""Cart reducer and its persisted form. No database or request context."""

import pytest

from equatorial.services.cart_service import (
    CART_STORAGE_KEY,
    EMPTY_CART,
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


pytestmark = pytest.mark.cart


RISTRETTO = {"id": 1, "name": "Ristretto", "brand": "Equatorial", "price_cents": 999, "in_stock": True}
BEANS = {"id": 2, "name": "Estate Beans", "brand": "Equatorial", "price_cents": 2500, "in_stock": True}


def reduce_all(*actions, state=EMPTY_CART):
    for action in actions:
        state = cart_reducer(state, action)
    return state


class TestReducer:

    def test_adding_same_product_merges_lines(self):
        state = reduce_all(AddItem(RISTRETTO, 2), AddItem(RISTRETTO, 3))

        assert len(state.items) == 1
        assert state.items[0].quantity == 5
        assert state.total == 5 * 999
        assert state.item_count == 5

    def test_totals_cover_every_line(self):
        state = reduce_all(AddItem(RISTRETTO), AddItem(BEANS, 2))

        assert state.total == 999 + 2 * 2500
        assert state.item_count == 3

    def test_out_of_stock_product_refused(self):
        with pytest.raises(CartError):
            cart_reducer(EMPTY_CART, AddItem(dict(RISTRETTO, in_stock=False)))

    def test_update_quantity(self):
        state = reduce_all(AddItem(RISTRETTO), UpdateQuantity(1, 4))

        assert state.items[0].quantity == 4
        assert state.total == 4 * 999

    def test_update_to_zero_removes_line(self):
        state = reduce_all(AddItem(RISTRETTO), AddItem(BEANS), UpdateQuantity(1, 0))

        assert [item.product_id for item in state.items] == [2]
        assert state.total == 2500

    def test_remove_and_clear(self):
        state = reduce_all(AddItem(RISTRETTO), AddItem(BEANS), RemoveItem(2))
        assert state.item_count == 1

        assert cart_reducer(state, ClearCart()) == EMPTY_CART

    def test_snapshot_keeps_only_cart_fields(self):
        state = cart_reducer(EMPTY_CART, AddItem(dict(RISTRETTO, cost_price_cents=400)))

        assert "cost_price_cents" not in state.items[0].product

    def test_unknown_action(self):
        with pytest.raises(TypeError):
            cart_reducer(EMPTY_CART, object())


class TestPersistence:

    def test_hydrate_with_stale_total_recomputes(self):
        stale = {
            "items": [{"product": RISTRETTO, "quantity": 2}],
            "total": 1,
            "itemCount": 99,
        }
        state = cart_reducer(EMPTY_CART, Hydrate(deserialize_cart(stale)))

        assert state.total == 1998
        assert state.item_count == 2

    def test_malformed_entries_dropped(self):
        raw = {
            "items": [
                {"product": RISTRETTO, "quantity": 1},
                {"product": {"id": "x", "price_cents": 10}, "quantity": 1},
                {"product": BEANS, "quantity": -3},
                "garbage",
                {"product": RISTRETTO, "quantity": 2},
            ]
        }
        state = deserialize_cart(raw)

        assert len(state.items) == 1
        assert state.items[0].quantity == 3
        assert state.total == 3 * 999

    def test_non_mapping_is_empty_cart(self):
        assert deserialize_cart(None) == EMPTY_CART
        assert deserialize_cart({"items": "nope"}) == EMPTY_CART

    def test_save_and_load_under_storage_key(self):
        storage = {}
        state = reduce_all(AddItem(RISTRETTO, 2))
        save_cart(storage, state)

        assert storage[CART_STORAGE_KEY] == {
            "items": [{"product": state.items[0].product, "quantity": 2}],
            "total": 1998,
            "itemCount": 2,
        }
        assert load_cart(storage) == state

    def test_saving_empty_cart_clears_key(self):
        storage = {CART_STORAGE_KEY: serialize_cart(reduce_all(AddItem(RISTRETTO)))}
        save_cart(storage, EMPTY_CART)

        assert CART_STORAGE_KEY not in storage
