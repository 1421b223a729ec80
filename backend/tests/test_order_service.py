"""
Storefront checkout and the order delivery workflow.
"""

import pytest

from equatorial.errors import InsufficientStock, InvalidRequest, InvalidTransition, OrderNotFound
from equatorial.models import ActivityLog, Customer, InventoryTransaction, Order, OrderItem, Product
from equatorial.services import order_service, settings_service
from equatorial.services.order_service import CheckoutRequest, can_transition
from equatorial.validation import ValidationError


pytestmark = pytest.mark.orders


def checkout_payload(product, quantity=2, **overrides):
    payload = {
        "customer_name": "Jean-Paul Hoareau",
        "customer_email": "JP.Hoareau@example.sc",
        "customer_phone": "+248 2 700 700",
        "delivery_address": "Anse Royale, Mahé",
        "delivery_city": "Anse Royale",
        "time_preference": "Morning",
        "items": [{"product_id": product.id, "quantity": quantity}],
    }
    payload.update(overrides)
    return payload


def place(product, quantity=2, **overrides):
    return order_service.create_order(CheckoutRequest.from_payload(checkout_payload(product, quantity, **overrides)))


# =============================================================================
# WORKFLOW TABLE
# =============================================================================

class TestTransitions:

    @pytest.mark.parametrize("current,target", [
        ("pending", "confirmed"),
        ("pending", "cancelled"),
        ("confirmed", "on_the_way"),
        ("confirmed", "cancelled"),
        ("on_the_way", "delivered"),
    ])
    def test_allowed(self, current, target):
        assert can_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("pending", "delivered"),
        ("pending", "on_the_way"),
        ("on_the_way", "cancelled"),
        ("delivered", "cancelled"),
        ("cancelled", "pending"),
        ("delivered", "pending"),
    ])
    def test_rejected(self, current, target):
        assert not can_transition(current, target)


# =============================================================================
# CHECKOUT
# =============================================================================

class TestCheckout:

    def test_creates_order_items_and_customer(self, db_session, product):
        order = place(product)

        assert order.order_number.startswith("ORD-")
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.payment_method == "cash_on_delivery"
        assert order.subtotal_cents == 1998
        assert order.tax_cents == 0
        assert order.total_cents == 1998

        item = db_session.query(OrderItem).filter_by(order_id=order.id).one()
        assert (item.product_name, item.quantity, item.line_total_cents) == ("Ristretto Intenso", 2, 1998)

        customer = db_session.get(Customer, order.customer_id)
        assert customer.email == "jp.hoareau@example.sc"
        assert customer.loyalty_points == 19

    def test_decrements_stock_with_ledger(self, db_session, product):
        order = place(product, quantity=3)

        db_session.expire_all()
        assert db_session.get(Product, product.id).current_stock == 7
        movement = db_session.query(InventoryTransaction).filter_by(reference_type="order").one()
        assert movement.reference_id == order.id
        assert movement.quantity_delta == -3
        assert movement.type == "sale"

    def test_duplicate_lines_merge(self, db_session, product):
        order = place(product, items=[
            {"product_id": product.id, "quantity": 1},
            {"product_id": product.id, "quantity": 2},
        ])

        assert db_session.query(OrderItem).filter_by(order_id=order.id).count() == 1
        assert order.subtotal_cents == 2997

    def test_delivery_fee_setting(self, db_session, product):
        settings_service.upsert_settings({"delivery_fee_cents": "250"})
        db_session.commit()

        order = place(product, total_cents=2248)

        assert order.delivery_fee_cents == 250
        assert order.total_cents == 2248

    def test_total_mismatch(self, db_session, product):
        with pytest.raises(InvalidRequest):
            place(product, total_cents=1)

        db_session.expire_all()
        assert db_session.query(Order).count() == 0
        assert db_session.get(Product, product.id).current_stock == 10

    def test_insufficient_stock_leaves_nothing(self, db_session, product):
        with pytest.raises(InsufficientStock):
            place(product, quantity=11)

        db_session.expire_all()
        assert db_session.query(Order).count() == 0
        assert db_session.query(Customer).count() == 0
        assert db_session.get(Product, product.id).current_stock == 10

    def test_existing_customer_matched_by_phone(self, db_session, product, customer):
        order = place(
            product,
            customer_name="Marie Laporte",
            customer_email="marie.laporte@example.sc",
            customer_phone=customer.phone,
        )

        assert order.customer_id == customer.id
        assert db_session.query(Customer).count() == 1
        db_session.refresh(customer)
        assert customer.email == "marie.laporte@example.sc"
        assert customer.address == "Anse Royale, Mahé"


class TestCheckoutRequest:

    def test_customer_fields_required(self, db_session, product):
        with pytest.raises(ValidationError):
            CheckoutRequest.from_payload(checkout_payload(product, customer_phone=""))

    def test_items_required(self, db_session, product):
        with pytest.raises(ValidationError):
            CheckoutRequest.from_payload(checkout_payload(product, items=[]))

    def test_address_required(self, db_session, product):
        with pytest.raises(ValidationError):
            CheckoutRequest.from_payload(checkout_payload(product, delivery_address=None))

    def test_email_checked(self, db_session, product):
        with pytest.raises(ValidationError):
            CheckoutRequest.from_payload(checkout_payload(product, customer_email="not-an-email"))

    def test_payment_method_checked(self, db_session, product):
        with pytest.raises(ValidationError):
            CheckoutRequest.from_payload(checkout_payload(product, payment_method="crypto"))


# =============================================================================
# ADMIN UPDATES
# =============================================================================

class TestUpdateOrder:

    def test_skipping_steps_rejected(self, db_session, admin_user, product):
        order = place(product)

        with pytest.raises(InvalidTransition):
            order_service.update_order(order.id, {"status": "delivered"}, user_id=admin_user.id)

        db_session.expire_all()
        assert db_session.get(Order, order.id).status == "pending"

    def test_full_delivery_path(self, db_session, admin_user, product):
        order = place(product)

        for status in ("confirmed", "on_the_way", "delivered"):
            order = order_service.update_order(order.id, {"status": status}, user_id=admin_user.id)
            assert order.status == status

        with pytest.raises(InvalidTransition):
            order_service.update_order(order.id, {"status": "cancelled"}, user_id=admin_user.id)

    def test_cancel_restocks(self, db_session, admin_user, product):
        order = place(product, quantity=4)
        order_service.update_order(order.id, {"status": "confirmed"}, user_id=admin_user.id)

        order_service.update_order(order.id, {"status": "cancelled"}, user_id=admin_user.id)

        db_session.expire_all()
        assert db_session.get(Product, product.id).current_stock == 10
        returned = db_session.query(InventoryTransaction).filter_by(type="return").one()
        assert returned.quantity_delta == 4
        assert returned.reference_id == order.id

    def test_same_status_is_a_no_op(self, db_session, admin_user, product):
        order = place(product)

        order_service.update_order(order.id, {"status": "pending"}, user_id=admin_user.id)

        assert db_session.query(ActivityLog).filter_by(entity="order", action="updated").count() == 0

    def test_payment_status_independent(self, db_session, admin_user, product):
        order = place(product)

        order = order_service.update_order(order.id, {"payment_status": "paid"}, user_id=admin_user.id)

        assert order.payment_status == "paid"
        assert order.status == "pending"
        log = db_session.query(ActivityLog).filter_by(entity="order", action="updated").one()
        assert "payment_status pending → paid" in log.description

    def test_unknown_status(self, db_session, admin_user, product):
        order = place(product)
        with pytest.raises(InvalidRequest):
            order_service.update_order(order.id, {"status": "shipped"}, user_id=admin_user.id)

    def test_invalid_payment_status(self, db_session, admin_user, product):
        order = place(product)
        with pytest.raises(InvalidRequest):
            order_service.update_order(order.id, {"payment_status": "refunded"}, user_id=admin_user.id)

    def test_field_not_allowed(self, db_session, admin_user, product):
        order = place(product)
        with pytest.raises(ValidationError):
            order_service.update_order(order.id, {"total_cents": 1}, user_id=admin_user.id)

    def test_delivery_notes(self, db_session, admin_user, product):
        order = place(product)
        order = order_service.update_order(order.id, {"delivery_notes": "Gate code 42"}, user_id=admin_user.id)
        assert order.delivery_notes == "Gate code 42"

    def test_unknown_order(self, db_session, admin_user):
        with pytest.raises(OrderNotFound):
            order_service.update_order(9999, {"status": "confirmed"}, user_id=admin_user.id)


class TestDeleteOrder:

    def test_delete_pending_restocks(self, db_session, admin_user, product):
        order = place(product, quantity=2)

        order_service.delete_order(order.id, user_id=admin_user.id)

        db_session.expire_all()
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert db_session.get(Product, product.id).current_stock == 10

    def test_delete_delivered_keeps_stock(self, db_session, admin_user, product):
        order = place(product, quantity=2)
        for status in ("confirmed", "on_the_way", "delivered"):
            order_service.update_order(order.id, {"status": status}, user_id=admin_user.id)

        order_service.delete_order(order.id, user_id=admin_user.id)

        db_session.expire_all()
        assert db_session.get(Product, product.id).current_stock == 8


class TestListOrders:

    def test_filters(self, db_session, admin_user, product):
        first = place(product, quantity=1)
        place(product, quantity=1, customer_name="Priya Naidoo", customer_email="priya@example.sc",
              customer_phone="+248 2 800 800")
        order_service.update_order(first.id, {"status": "confirmed"}, user_id=admin_user.id)

        rows, total = order_service.list_orders(status="confirmed")
        assert total == 1
        assert rows[0].id == first.id

        rows, total = order_service.list_orders(search="priya")
        assert total == 1
        assert rows[0].customer_name == "Priya Naidoo"

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(ValidationError):
            order_service.list_orders(status="lost")
