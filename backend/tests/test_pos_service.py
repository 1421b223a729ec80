"""
POS transaction processor: stock, ledger, loyalty and atomicity.
"""

import pytest

from equatorial.errors import CustomerNotFound, InsufficientStock, InvalidRequest, ProductNotFound
from equatorial.models import ActivityLog, InventoryTransaction, POSTransaction, POSTransactionItem, Product
from equatorial.services import pos_service
from equatorial.services.pos_service import SaleRequest
from equatorial.validation import ValidationError

from conftest import make_product


pytestmark = pytest.mark.pos


def sale(staff_user, items, **payload):
    payload.setdefault("payment_method", "cash")
    payload["items"] = items
    return pos_service.create_transaction(SaleRequest.from_payload(payload), staff_id=staff_user.id)


# =============================================================================
# HAPPY PATH
# =============================================================================

class TestCreateTransaction:

    def test_cash_sale_totals_and_change(self, db_session, staff_user, product):
        txn = sale(
            staff_user,
            [{"product_id": product.id, "quantity": 1}],
            cash_received_cents=1500,
            total_cents=1149,
        )

        assert txn.transaction_type == "sale"
        assert txn.status == "completed"
        assert txn.subtotal_cents == 999
        assert txn.tax_cents == 150
        assert txn.total_cents == 1149
        assert txn.change_given_cents == 351
        assert txn.staff_id == staff_user.id
        assert txn.transaction_number.startswith("POS-")
        assert txn.transaction_number.endswith("-000001")

    def test_items_sum_to_subtotal_and_stock_decrements(self, db_session, staff_user, product, beans):
        txn = sale(
            staff_user,
            [
                {"product_id": product.id, "quantity": 2},
                {"product_id": beans.id, "quantity": 3},
            ],
            payment_method="card",
        )

        items = db_session.query(POSTransactionItem).filter_by(transaction_id=txn.id).all()
        assert sum(i.line_total_cents for i in items) == txn.subtotal_cents
        assert {i.product_id: i.tax_rate_bps for i in items} == {product.id: 1500, beans.id: 1500}

        assert db_session.get(Product, product.id).current_stock == 8
        sold_out = db_session.get(Product, beans.id)
        assert sold_out.current_stock == 0
        assert sold_out.in_stock is False

        assert txn.card_amount_cents == txn.total_cents

    def test_ledger_rows_written(self, db_session, staff_user, product):
        txn = sale(staff_user, [{"product_id": product.id, "quantity": 2}], payment_method="card")

        rows = db_session.query(InventoryTransaction).filter_by(product_id=product.id).all()
        assert len(rows) == 1
        row = rows[0]
        assert row.type == "sale"
        assert row.quantity_delta == -2
        assert (row.stock_before, row.stock_after) == (10, 8)
        assert row.reference_type == "pos_transaction"
        assert row.reference_id == txn.id
        assert row.cost_cents == 1000
        assert row.performed_by_user_id == staff_user.id

    def test_loyalty_points_awarded(self, db_session, staff_user, product, customer):
        sale(
            staff_user,
            [{"product_id": product.id, "quantity": 2}],
            payment_method="card",
            customer_id=customer.id,
        )

        # total 2298 cents -> 22 points
        db_session.refresh(customer)
        assert customer.loyalty_points == 22

    def test_activity_logged(self, db_session, staff_user, product):
        txn = sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card")

        log = db_session.query(ActivityLog).filter_by(entity="pos_transaction", entity_id=txn.id).one()
        assert log.action == "created"
        assert log.user_id == staff_user.id

    def test_numbers_are_sequential(self, db_session, staff_user, product):
        first = sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card")
        second = sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card")

        assert first.transaction_number.endswith("-000001")
        assert second.transaction_number.endswith("-000002")

    def test_mixed_payment(self, db_session, staff_user, product):
        txn = sale(
            staff_user,
            [{"product_id": product.id, "quantity": 2}],
            payment_method="mixed",
            card_amount_cents=2000,
            cash_received_cents=500,
        )

        assert txn.total_cents == 2298
        assert txn.card_amount_cents == 2000
        assert txn.change_given_cents == 202


# =============================================================================
# FAILURES LEAVE NOTHING BEHIND
# =============================================================================

class TestRejectedSales:

    def _assert_untouched(self, db_session, product, stock=10):
        db_session.expire_all()
        assert db_session.get(Product, product.id).current_stock == stock
        assert db_session.query(POSTransaction).count() == 0
        assert db_session.query(InventoryTransaction).count() == 0

    def test_insufficient_stock(self, db_session, staff_user, product):
        with pytest.raises(InsufficientStock):
            sale(staff_user, [{"product_id": product.id, "quantity": 11}], payment_method="card")

        self._assert_untouched(db_session, product)

    def test_insufficient_stock_across_duplicate_lines(self, db_session, staff_user, product):
        with pytest.raises(InsufficientStock):
            sale(
                staff_user,
                [
                    {"product_id": product.id, "quantity": 6},
                    {"product_id": product.id, "quantity": 5},
                ],
                payment_method="card",
            )

        self._assert_untouched(db_session, product)

    def test_one_bad_line_rolls_back_the_others(self, db_session, staff_user, product, beans):
        with pytest.raises(InsufficientStock):
            sale(
                staff_user,
                [
                    {"product_id": product.id, "quantity": 1},
                    {"product_id": beans.id, "quantity": 4},
                ],
                payment_method="card",
            )

        self._assert_untouched(db_session, product)
        assert db_session.get(Product, beans.id).current_stock == 3

    def test_total_mismatch(self, db_session, staff_user, product):
        with pytest.raises(InvalidRequest):
            sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card", total_cents=999)

        self._assert_untouched(db_session, product)

    def test_unit_price_mismatch(self, db_session, staff_user, product):
        with pytest.raises(InvalidRequest):
            sale(
                staff_user,
                [{"product_id": product.id, "quantity": 1, "unit_price_cents": 1}],
                payment_method="card",
            )

    def test_line_total_mismatch(self, db_session, staff_user, product):
        with pytest.raises(InvalidRequest):
            sale(
                staff_user,
                [{"product_id": product.id, "quantity": 2, "line_total_cents": 999}],
                payment_method="card",
            )

        self._assert_untouched(db_session, product)

    def test_short_cash(self, db_session, staff_user, product):
        with pytest.raises(InvalidRequest):
            sale(staff_user, [{"product_id": product.id, "quantity": 1}], cash_received_cents=1000)

        self._assert_untouched(db_session, product)

    def test_unknown_product(self, db_session, staff_user, product):
        with pytest.raises(ProductNotFound):
            sale(staff_user, [{"product_id": 9999, "quantity": 1}], payment_method="card")

    def test_unknown_customer(self, db_session, staff_user, product):
        with pytest.raises(CustomerNotFound):
            sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card", customer_id=9999)

        self._assert_untouched(db_session, product)


class TestSaleRequestParsing:

    def test_items_required(self):
        with pytest.raises(ValidationError):
            SaleRequest.from_payload({"payment_method": "cash", "items": []})

    def test_payment_method_checked(self):
        with pytest.raises(ValidationError):
            SaleRequest.from_payload({"payment_method": "cheque", "items": [{"product_id": 1, "quantity": 1}]})

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            SaleRequest.from_payload({"payment_method": "cash", "items": [{"product_id": 1, "quantity": 0}]})

    def test_total_must_be_positive(self):
        with pytest.raises(ValidationError):
            SaleRequest.from_payload({
                "payment_method": "cash",
                "items": [{"product_id": 1, "quantity": 1}],
                "total_cents": 0,
            })


class TestReads:

    def test_list_and_filter(self, db_session, staff_user, product):
        sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card")
        sale(staff_user, [{"product_id": product.id, "quantity": 1}], cash_received_cents=2000)

        rows, total = pos_service.list_transactions(payment_method="cash")
        assert total == 1
        assert rows[0].payment_method == "cash"

        rows, total = pos_service.list_transactions(page=1, limit=1)
        assert total == 2
        assert len(rows) == 1

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            pos_service.list_transactions(status="lost")

    def test_receipt(self, db_session, staff_user, product):
        txn = sale(staff_user, [{"product_id": product.id, "quantity": 1}], payment_method="card")

        receipt = pos_service.build_receipt(txn.id)
        assert receipt["transaction"]["transaction_number"] == txn.transaction_number
        assert receipt["items"][0]["product_name"] == product.name
        assert receipt["store"]["company_name"] == "Equatorial Imports"

        assert pos_service.mark_receipt_printed(txn.id, user_id=staff_user.id).receipt_printed is True

    def test_pos_products_hide_sold_out(self, db_session, product):
        make_product(db_session, name="Empty Tin", current_stock=0)

        names = [p.name for p in pos_service.list_pos_products()]
        assert names == [product.name]
