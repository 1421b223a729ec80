"""
Inventory adjustments and the stock change primitive.
"""

import json

import pytest

from equatorial.errors import InsufficientStock, ProductNotFound
from equatorial.models import ActivityLog, InventoryTransaction, Product
from equatorial.services import inventory_service
from equatorial.services.inventory_service import (
    AdjustmentRequest,
    adjust_stock,
    apply_stock_change,
    compute_adjustment,
    movement_type_for_reason,
)
from equatorial.validation import ValidationError

from conftest import make_product


pytestmark = pytest.mark.inventory


def adjustment(product, adjustment_type, quantity, reason="correction", **extra):
    payload = {"product_id": product.id, "type": adjustment_type, "quantity": quantity, "reason": reason}
    payload.update(extra)
    return AdjustmentRequest.from_payload(payload)


# =============================================================================
# PURE RULES
# =============================================================================

class TestComputeAdjustment:

    def test_increase(self):
        assert compute_adjustment(10, "increase", 5) == (15, 5)

    def test_decrease(self):
        assert compute_adjustment(10, "decrease", 4) == (6, -4)

    def test_decrease_floors_at_zero(self):
        assert compute_adjustment(3, "decrease", 10) == (0, -3)

    def test_set(self):
        assert compute_adjustment(10, "set", 4) == (4, -6)
        assert compute_adjustment(2, "set", 7) == (7, 5)

    def test_negative_quantity(self):
        with pytest.raises(ValidationError):
            compute_adjustment(10, "increase", -1)

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            compute_adjustment(10, "double", 1)


class TestReasonMapping:

    @pytest.mark.parametrize("reason,movement", [
        ("restocking", "purchase"),
        ("Restocking", "purchase"),
        ("damage", "damage"),
        ("expired", "damage"),
        ("return", "return"),
        ("sale", "sale"),
        ("correction", "adjustment"),
        ("stocktake", "adjustment"),
    ])
    def test_movement_type(self, reason, movement):
        assert movement_type_for_reason(reason) == movement


# =============================================================================
# ADJUST STOCK
# =============================================================================

class TestAdjustStock:

    def test_decrease_beyond_stock_sells_out(self, db_session, admin_user, product):
        updated, txn = adjust_stock(adjustment(product, "decrease", 15, reason="damage"), user_id=admin_user.id)

        assert updated.current_stock == 0
        assert updated.in_stock is False
        assert txn.quantity_delta == -10
        assert txn.type == "damage"
        assert (txn.stock_before, txn.stock_after) == (10, 0)
        assert txn.reference_type == "manual_adjustment"
        assert txn.performed_by_user_id == admin_user.id

    def test_restock_from_zero(self, db_session, admin_user):
        empty = make_product(db_session, name="Decaf Lungo", current_stock=0)

        updated, txn = adjust_stock(adjustment(empty, "increase", 24, reason="restocking"), user_id=admin_user.id)

        assert updated.current_stock == 24
        assert updated.in_stock is True
        assert txn.type == "purchase"
        assert txn.cost_cents == 24 * 500

    def test_set_records_delta(self, db_session, admin_user, product):
        _, txn = adjust_stock(adjustment(product, "set", 4, notes="shelf count"), user_id=admin_user.id)

        assert txn.quantity_delta == -6
        assert txn.type == "adjustment"
        assert txn.reason == "correction: shelf count"

    def test_activity_logged(self, db_session, admin_user, product):
        adjust_stock(adjustment(product, "increase", 2), user_id=admin_user.id)

        log = db_session.query(ActivityLog).filter_by(entity="inventory", entity_id=product.id).one()
        assert log.action == "adjusted"
        details = json.loads(log.details)
        assert details["old_stock"] == 10
        assert details["new_stock"] == 12
        assert details["delta"] == 2

    def test_unknown_product(self, db_session, admin_user):
        req = AdjustmentRequest.from_payload({"product_id": 9999, "type": "increase", "quantity": 1, "reason": "x"})
        with pytest.raises(ProductNotFound):
            adjust_stock(req, user_id=admin_user.id)

        assert db_session.query(InventoryTransaction).count() == 0


class TestAdjustmentRequest:

    def test_missing_fields(self):
        with pytest.raises(ValidationError) as exc:
            AdjustmentRequest.from_payload({"product_id": 1, "type": "increase"})
        assert "quantity" in exc.value.message
        assert "reason" in exc.value.message

    def test_zero_quantity_allowed(self):
        req = AdjustmentRequest.from_payload({"product_id": 1, "type": "set", "quantity": 0, "reason": "stocktake"})
        assert req.quantity == 0

    def test_non_integer_quantity(self):
        with pytest.raises(ValidationError):
            AdjustmentRequest.from_payload({"product_id": 1, "type": "increase", "quantity": "2.5", "reason": "x"})

    def test_invalid_type(self):
        with pytest.raises(ValidationError):
            AdjustmentRequest.from_payload({"product_id": 1, "type": "halve", "quantity": 2, "reason": "x"})


# =============================================================================
# STOCK CHANGE PRIMITIVE
# =============================================================================

class TestApplyStockChange:

    def test_refuses_negative_stock(self, db_session, product):
        with pytest.raises(InsufficientStock) as exc:
            apply_stock_change(product, -11, movement_type="sale")
        assert exc.value.details == {"product_id": product.id, "available": 10, "requested": 11}

        db_session.rollback()
        assert db_session.get(Product, product.id).current_stock == 10

    def test_unknown_movement_type(self, db_session, product):
        with pytest.raises(ValueError):
            apply_stock_change(product, 1, movement_type="teleport")

    def test_ledger_matches_aggregate(self, db_session, product):
        apply_stock_change(product, -3, movement_type="sale")
        apply_stock_change(product, 5, movement_type="purchase")
        db_session.commit()

        deltas = [row.quantity_delta for row in db_session.query(InventoryTransaction).filter_by(product_id=product.id)]
        assert 10 + sum(deltas) == db_session.get(Product, product.id).current_stock == 12


# =============================================================================
# READ MODELS
# =============================================================================

class TestInventoryListing:

    def test_summary_and_statuses(self, db_session, product, beans):
        make_product(db_session, name="Decaf Lungo", current_stock=0)

        rows, total, summary = inventory_service.list_inventory()

        assert total == 3
        assert {row["name"]: row["stock_status"] for row in rows} == {
            "Ristretto Intenso": "in_stock",
            "Seychelles Estate Beans": "low_stock",
            "Decaf Lungo": "out_of_stock",
        }
        assert summary == {
            "total_products": 3,
            "in_stock": 1,
            "low_stock": 1,
            "out_of_stock": 1,
            "total_stock_value_cents": 10 * 500 + 3 * 1400,
        }

    def test_status_filter(self, db_session, product, beans):
        rows, total, _ = inventory_service.list_inventory(status="low_stock")
        assert total == 1
        assert rows[0]["id"] == beans.id

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.list_inventory(status="missing")

    def test_movements_newest_first(self, db_session, admin_user, product):
        adjust_stock(adjustment(product, "increase", 1), user_id=admin_user.id)
        adjust_stock(adjustment(product, "decrease", 2), user_id=admin_user.id)

        movements = inventory_service.list_movements(product.id)
        assert [m.quantity_delta for m in movements] == [-2, 1]

    def test_movements_unknown_product(self, db_session):
        with pytest.raises(ProductNotFound):
            inventory_service.list_movements(9999)
