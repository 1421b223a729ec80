"""
Storefront: public catalog, cookie-backed cart and checkout.
"""

import pytest

from equatorial.models import Order, Product

from conftest import make_product


pytestmark = pytest.mark.cart


CHECKOUT = {
    "customer_name": "Jean-Paul Hoareau",
    "customer_email": "jp@example.sc",
    "customer_phone": "+248 2 700 700",
    "delivery_address": "Anse Royale, Mahé",
}


def add(client, product, quantity=1):
    return client.post("/api/cart/items", json={"product_id": product.id, "quantity": quantity})


# =============================================================================
# CATALOG
# =============================================================================

class TestCatalog:

    def test_public_listing_hides_costs(self, client, product, beans):
        resp = client.get("/api/products")

        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["products"]] == ["Ristretto Intenso", "Seychelles Estate Beans"]
        assert "cost_price_cents" not in resp.json["products"][0]
        assert "current_stock" not in resp.json["products"][0]

    def test_filters(self, client, db_session, product, beans):
        make_product(db_session, name="Decaf Lungo", current_stock=0)

        by_type = client.get("/api/products?type=beans").json["products"]
        assert [p["id"] for p in by_type] == [beans.id]

        available = client.get("/api/products?in_stock=true").json["products"]
        assert "Decaf Lungo" not in [p["name"] for p in available]

        found = client.get("/api/products?search=ristretto").json["products"]
        assert [p["id"] for p in found] == [product.id]

    def test_single_product(self, client, product):
        assert client.get(f"/api/products/{product.id}").json["product"]["price_cents"] == 999
        assert client.get("/api/products/9999").status_code == 404


# =============================================================================
# CART
# =============================================================================

class TestCartApi:

    def test_add_merges_and_persists(self, client, product):
        add(client, product, 2)
        resp = add(client, product, 3)

        assert resp.status_code == 200
        assert resp.json["cart"]["itemCount"] == 5
        assert resp.json["cart"]["total"] == 4995
        assert len(resp.json["cart"]["items"]) == 1

        again = client.get("/api/cart")
        assert again.json["cart"]["itemCount"] == 5

    def test_update_and_remove(self, client, product, beans):
        add(client, product)
        add(client, beans)

        resp = client.patch(f"/api/cart/items/{product.id}", json={"quantity": 4})
        assert resp.json["cart"]["total"] == 4 * 999 + 2500

        resp = client.patch(f"/api/cart/items/{beans.id}", json={"quantity": 0})
        assert [i["product"]["id"] for i in resp.json["cart"]["items"]] == [product.id]

        resp = client.delete(f"/api/cart/items/{product.id}")
        assert resp.json["cart"] == {"items": [], "total": 0, "itemCount": 0}

    def test_out_of_stock(self, client, db_session):
        empty = make_product(db_session, name="Decaf Lungo", current_stock=0)

        resp = add(client, empty)
        assert resp.status_code == 400
        assert "out of stock" in resp.json["error"]

    def test_unknown_product(self, client, db_session):
        resp = client.post("/api/cart/items", json={"product_id": 9999})
        assert resp.status_code == 404

    def test_price_comes_from_catalog(self, client, product):
        resp = client.post("/api/cart/items", json={"product_id": product.id, "price_cents": 1})
        assert resp.json["cart"]["items"][0]["product"]["price_cents"] == 999

    def test_hydrate_recomputes_totals(self, client, product):
        stale = {
            "items": [{"product": {"id": product.id, "name": product.name, "price_cents": 999}, "quantity": 3}],
            "total": 1,
            "itemCount": 99,
        }
        resp = client.put("/api/cart", json=stale)

        assert resp.json["cart"]["total"] == 2997
        assert resp.json["cart"]["itemCount"] == 3

    def test_hydrate_requires_object(self, client, db_session):
        assert client.put("/api/cart", json=["nope"]).status_code == 400

    def test_clear(self, client, product):
        add(client, product)

        assert client.delete("/api/cart").json["cart"]["itemCount"] == 0
        assert client.get("/api/cart").json["cart"]["items"] == []


# =============================================================================
# CHECKOUT
# =============================================================================

class TestCheckoutApi:

    def test_checkout_clears_cart(self, client, db_session, product):
        add(client, product, 2)

        payload = dict(CHECKOUT, items=[{"product_id": product.id, "quantity": 2}], total_cents=1998)
        resp = client.post("/api/orders", json=payload)

        assert resp.status_code == 201
        assert resp.json["order"]["total_cents"] == 1998
        assert resp.json["order"]["items"][0]["quantity"] == 2
        assert client.get("/api/cart").json["cart"]["itemCount"] == 0

        db_session.expire_all()
        assert db_session.get(Product, product.id).current_stock == 8

    def test_failed_checkout_keeps_cart(self, client, db_session, product):
        add(client, product, 2)

        payload = dict(CHECKOUT, items=[{"product_id": product.id, "quantity": 20}])
        resp = client.post("/api/orders", json=payload)

        assert resp.status_code == 400
        assert client.get("/api/cart").json["cart"]["itemCount"] == 2
        assert db_session.query(Order).count() == 0

    def test_missing_customer_info(self, client, db_session, product):
        resp = client.post("/api/orders", json={"items": [{"product_id": product.id, "quantity": 1}]})
        assert resp.status_code == 400
        assert resp.json["error"] == "Customer information is required"
