"""
POS endpoints: ringing up sales, refunds and receipts over HTTP.
"""

import pytest

from equatorial.models import POSTransaction, Product
from equatorial.services import pos_service


pytestmark = pytest.mark.pos


def ring_up(client, headers, product, quantity=1, **payload):
    payload.setdefault("payment_method", "card")
    payload["items"] = [{"product_id": product.id, "quantity": quantity}]
    return client.post("/api/admin/pos/transactions", json=payload, headers=headers)


class TestSaleEndpoint:

    def test_staff_can_sell(self, client, db_session, staff_user, staff_headers, product):
        resp = ring_up(
            client, staff_headers, product,
            payment_method="cash", cash_received_cents=1500, total_cents=1149,
        )

        assert resp.status_code == 201
        txn = resp.json["transaction"]
        assert txn["total_cents"] == 1149
        assert txn["change_given_cents"] == 351
        assert txn["staff_id"] == staff_user.id
        assert resp.json["items"][0]["tax_cents"] == 150

    def test_staff_comes_from_token(self, client, db_session, staff_user, staff_headers, admin_user, product):
        resp = ring_up(client, staff_headers, product, staff_id=admin_user.id)

        assert resp.status_code == 201
        assert resp.json["transaction"]["staff_id"] == staff_user.id

    def test_insufficient_stock(self, client, db_session, staff_headers, product):
        resp = ring_up(client, staff_headers, product, quantity=11)

        assert resp.status_code == 400
        assert resp.json["details"] == {"product_id": product.id, "available": 10, "requested": 11}
        db_session.expire_all()
        assert db_session.get(Product, product.id).current_stock == 10

    def test_unknown_product(self, client, db_session, staff_headers):
        resp = client.post(
            "/api/admin/pos/transactions",
            json={"payment_method": "card", "items": [{"product_id": 9999, "quantity": 1}]},
            headers=staff_headers,
        )
        assert resp.status_code == 404

    @pytest.mark.parametrize("payload", [
        None,
        {"payment_method": "card"},
        {"payment_method": "card", "items": [{"product_id": 1, "quantity": "two"}]},
        {"payment_method": "cheque", "items": [{"product_id": 1, "quantity": 1}]},
    ])
    def test_invalid_payloads(self, client, db_session, staff_headers, payload):
        resp = client.post("/api/admin/pos/transactions", json=payload, headers=staff_headers)
        assert resp.status_code == 400

    def test_list_and_detail(self, client, db_session, staff_headers, product, customer):
        ring_up(client, staff_headers, product, customer_id=customer.id)
        ring_up(client, staff_headers, product, payment_method="cash", cash_received_cents=5000)

        listing = client.get("/api/admin/pos/transactions?payment_method=cash", headers=staff_headers)
        assert listing.status_code == 200
        assert listing.json["pagination"]["total_count"] == 1

        txn_id = db_session.query(POSTransaction).filter_by(payment_method="card").one().id
        detail = client.get(f"/api/admin/pos/transactions/{txn_id}", headers=staff_headers)
        assert detail.status_code == 200
        assert detail.json["transaction"]["customer"]["name"] == "Marie Laporte"
        assert len(detail.json["transaction"]["items"]) == 1
        assert detail.json["transaction"]["refunds"] == []

    def test_bad_date_filter(self, client, db_session, staff_headers):
        resp = client.get("/api/admin/pos/transactions?date_from=yesterday", headers=staff_headers)
        assert resp.status_code == 400


class TestRefundEndpoint:

    def test_manager_refund(self, client, db_session, staff_headers, admin_headers, product):
        sale = ring_up(client, staff_headers, product, quantity=2).json["transaction"]

        resp = client.post(
            f"/api/admin/pos/transactions/{sale['id']}/refund",
            json={"amount_cents": 2298, "reason": "Damaged capsules", "refund_type": "full"},
            headers=admin_headers,
        )

        assert resp.status_code == 201
        assert resp.json["refund"]["total_cents"] == -2298
        assert resp.json["refund"]["tax_cents"] == -300
        assert resp.json["items"][0]["quantity"] == -2

        again = client.post(
            f"/api/admin/pos/transactions/{sale['id']}/refund",
            json={"amount_cents": 2298, "reason": "Damaged capsules", "refund_type": "full"},
            headers=admin_headers,
        )
        assert again.status_code == 400

        detail = client.get(f"/api/admin/pos/transactions/{sale['id']}", headers=admin_headers)
        assert detail.json["transaction"]["status"] == "refunded"
        assert len(detail.json["transaction"]["refunds"]) == 1

    def test_over_amount(self, client, db_session, staff_headers, admin_headers, product):
        sale = ring_up(client, staff_headers, product).json["transaction"]

        resp = client.post(
            f"/api/admin/pos/transactions/{sale['id']}/refund",
            json={"amount_cents": 5000, "reason": "x", "refund_type": "partial"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["details"]["refundable_cents"] == 1149

    def test_missing_transaction(self, client, db_session, admin_headers):
        resp = client.post(
            "/api/admin/pos/transactions/9999/refund",
            json={"amount_cents": 100, "reason": "x", "refund_type": "partial"},
            headers=admin_headers,
        )
        assert resp.status_code == 404


class TestReceiptEndpoint:

    def test_receipt_and_print_flag(self, client, db_session, staff_headers, product):
        sale = ring_up(client, staff_headers, product).json["transaction"]
        assert sale["receipt_printed"] is False

        receipt = client.get(f"/api/admin/pos/receipt/{sale['id']}", headers=staff_headers)
        assert receipt.status_code == 200
        assert receipt.json["receipt"]["store"]["currency"] == "SCR"
        assert receipt.json["receipt"]["items"][0]["quantity"] == 1

        printed = client.put(f"/api/admin/pos/receipt/{sale['id']}", headers=staff_headers)
        assert printed.status_code == 200
        assert printed.json["transaction"]["receipt_printed"] is True

    def test_unknown_receipt(self, client, db_session, staff_headers):
        assert client.get("/api/admin/pos/receipt/9999", headers=staff_headers).status_code == 404

    @pytest.mark.parametrize("target, path", [
        ("build_receipt", "/api/admin/pos/receipt/1"),
        ("get_transaction", "/api/admin/pos/transactions/1"),
    ])
    def test_unexpected_errors_return_500(self, client, db_session, staff_headers, monkeypatch, target, path):
        def boom(*args, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(pos_service, target, boom)

        resp = client.get(path, headers=staff_headers)

        assert resp.status_code == 500
        assert resp.json == {"error": "Internal server error"}

    def test_pos_product_search(self, client, db_session, staff_headers, product, beans):
        resp = client.get("/api/admin/pos/products?search=4006381333931", headers=staff_headers)
        assert resp.status_code == 200
        assert [p["id"] for p in resp.json["products"]] == [beans.id]
