# Overview: Service-layer operations for storefront orders; encapsulates business logic and database work.

"""
Order Service

WHY: Storefront orders move through a small delivery workflow that admins
drive from the back-office. The transition table is the single authority on
which moves are legal; routes never compare status strings themselves.

ORDER WORKFLOW:
    pending    -> confirmed | cancelled
    confirmed  -> on_the_way | cancelled
    on_the_way -> delivered
    delivered, cancelled: terminal

Payment status is independent: any member of PAYMENT_STATUSES may be set at
any time.

STOCK:
Checkout decrements stock through inventory_service.apply_stock_change()
("sale" movements referencing the order). Cancelling an order returns its
items to stock with "return" movements, so cancelled orders do not leak
inventory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_

from ..extensions import db
from ..errors import InvalidRequest, InvalidTransition, OrderNotFound
from ..models import Customer, Order, OrderItem
from ..validation import ValidationError, require_int, require_str, MAX_LINE_QUANTITY
from . import settings_service
from .activity_service import log_activity
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_document_number
from .inventory_service import apply_stock_change, get_product_for_update

logger = logging.getLogger(__name__)


# =============================================================================
# WORKFLOW
# =============================================================================

ORDER_STATUSES = ("pending", "confirmed", "on_the_way", "delivered", "cancelled")

PAYMENT_STATUSES = ("pending", "paid", "partially_paid", "failed")

ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"on_the_way", "cancelled"}),
    "on_the_way": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}

PAYMENT_METHODS = ("cash_on_delivery", "card", "bank_transfer")


def can_transition(current: str, target: str) -> bool:
    return target in ORDER_TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, target: str) -> None:
    if target not in ORDER_STATUSES:
        raise InvalidRequest(
            f"Invalid status: {target}", {"allowed": list(ORDER_STATUSES)}
        )
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Invalid status transition from {current} to {target}",
            {"current": current, "requested": target},
        )


def validate_payment_status(value: str) -> None:
    if value not in PAYMENT_STATUSES:
        raise InvalidRequest(
            f"Invalid payment status: {value}", {"allowed": list(PAYMENT_STATUSES)}
        )


# =============================================================================
# ADMIN UPDATES
# =============================================================================

UPDATABLE_TEXT_FIELDS = ("delivery_notes", "time_preference")


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise OrderNotFound("Order not found", {"order_id": order_id})
    return order


def _restock_order(order: Order, *, user_id: int | None) -> None:
    for item in sorted(order.items, key=lambda i: i.product_id):
        product = get_product_for_update(item.product_id)
        apply_stock_change(
            product,
            item.quantity,
            movement_type="return",
            reason=f"Order {order.order_number} cancelled",
            user_id=user_id,
            reference_type="order",
            reference_id=order.id,
            cost_cents=(product.cost_price_cents or 0) * item.quantity,
        )


def update_order(order_id: int, payload: dict, *, user_id: int | None) -> Order:
    """
    Apply an admin patch: status (workflow-checked), payment_status and
    delivery details. Setting a status to its current value is a no-op.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = {"status", "payment_status", *UPDATABLE_TEXT_FIELDS}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    def _op() -> Order:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise OrderNotFound("Order not found", {"order_id": order_id})

        changes: dict[str, dict] = {}

        status = payload.get("status")
        if status is not None and status != order.status:
            validate_transition(order.status, status)
            changes["status"] = {"from": order.status, "to": status}
            order.status = status
            if status == "cancelled":
                _restock_order(order, user_id=user_id)

        payment_status = payload.get("payment_status")
        if payment_status is not None and payment_status != order.payment_status:
            validate_payment_status(payment_status)
            changes["payment_status"] = {"from": order.payment_status, "to": payment_status}
            order.payment_status = payment_status

        for field in UPDATABLE_TEXT_FIELDS:
            if field in payload:
                value = require_str(payload, field, required=False)
                if value != getattr(order, field):
                    changes[field] = {"from": getattr(order, field), "to": value}
                    setattr(order, field, value)

        if changes:
            summary = ", ".join(
                f"{name} {c['from']} → {c['to']}" if name in ("status", "payment_status") else f"{name} updated"
                for name, c in changes.items()
            )
            log_activity(
                action="updated",
                entity="order",
                entity_id=order.id,
                user_id=user_id,
                description=f"Updated order {order.order_number}: {summary}",
                details={"changes": changes},
            )
        return order

    order = run_in_transaction(_op)
    logger.info("Order %s updated status=%s payment=%s", order.order_number, order.status, order.payment_status)
    return order


def delete_order(order_id: int, *, user_id: int | None) -> None:
    """
    Delete an order and its items.

    Stock is returned for orders that still hold it (anything not cancelled
    or delivered).
    """
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise OrderNotFound("Order not found", {"order_id": order_id})
        if order.status not in ("cancelled", "delivered"):
            _restock_order(order, user_id=user_id)
        log_activity(
            action="deleted",
            entity="order",
            entity_id=order.id,
            user_id=user_id,
            description=f"Deleted order {order.order_number}",
            details={"order_number": order.order_number, "status": order.status, "total_cents": order.total_cents},
        )
        db.session.delete(order)

    run_in_transaction(_op)


# =============================================================================
# STOREFRONT CHECKOUT
# =============================================================================

@dataclass(frozen=True)
class CheckoutItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class CheckoutRequest:
    customer_name: str
    customer_email: str
    customer_phone: str
    delivery_address: str
    items: tuple[CheckoutItem, ...]
    delivery_city: str | None = None
    delivery_district: str | None = None
    delivery_notes: str | None = None
    time_preference: str | None = None
    payment_method: str = "cash_on_delivery"
    expected_total_cents: int | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "CheckoutRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        if not all(payload.get(k) for k in ("customer_name", "customer_email", "customer_phone")):
            raise ValidationError("Customer information is required")

        raw_items = payload.get("items")
        if not raw_items or not isinstance(raw_items, list):
            raise ValidationError("Order must contain at least one item")
        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationError(f"items[{index}] must be an object")
            qty = require_int(raw, "quantity", minimum=1)
            if qty > MAX_LINE_QUANTITY:
                raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")
            items.append(CheckoutItem(product_id=require_int(raw, "product_id", minimum=1), quantity=qty))

        if not payload.get("delivery_address"):
            raise ValidationError("Delivery address is required")

        email = require_str(payload, "customer_email", max_length=255)
        if "@" not in email:
            raise ValidationError("customer_email must be a valid email address")

        payment_method = payload.get("payment_method") or "cash_on_delivery"
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {payment_method}", {"allowed": list(PAYMENT_METHODS)})

        return cls(
            customer_name=require_str(payload, "customer_name", max_length=255),
            customer_email=email.lower(),
            customer_phone=require_str(payload, "customer_phone", max_length=32),
            delivery_address=require_str(payload, "delivery_address"),
            items=tuple(items),
            delivery_city=require_str(payload, "delivery_city", required=False, max_length=128),
            delivery_district=require_str(payload, "delivery_district", required=False, max_length=128),
            delivery_notes=require_str(payload, "delivery_notes", required=False),
            time_preference=require_str(payload, "time_preference", required=False, max_length=64),
            payment_method=payment_method,
            expected_total_cents=require_int(payload, "total_cents", required=False),
        )


def _upsert_customer(req: CheckoutRequest) -> Customer:
    customer = (
        db.session.query(Customer)
        .filter(or_(Customer.email == req.customer_email, Customer.phone == req.customer_phone))
        .order_by(Customer.id.asc())
        .first()
    )
    if customer is None:
        customer = Customer(
            name=req.customer_name,
            email=req.customer_email,
            phone=req.customer_phone,
            address=req.delivery_address,
            customer_group="regular",
            loyalty_points=0,
        )
        db.session.add(customer)
    else:
        customer.name = req.customer_name
        customer.phone = req.customer_phone
        customer.address = req.delivery_address
        # Only claim the email if no other customer holds it
        if customer.email != req.customer_email:
            taken = db.session.query(Customer.id).filter(
                Customer.email == req.customer_email, Customer.id != customer.id
            ).first()
            if not taken:
                customer.email = req.customer_email
    db.session.flush()
    return customer


def create_order(req: CheckoutRequest) -> Order:
    """
    Create a storefront order from checkout.

    Storefront prices are tax-inclusive, so the order carries no separate
    tax. total = subtotal + delivery fee (store setting delivery_fee_cents).
    """
    def _op() -> Order:
        customer = _upsert_customer(req)

        quantities: dict[int, int] = {}
        for item in req.items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity
        products = {pid: get_product_for_update(pid) for pid in sorted(quantities)}

        subtotal = sum(products[pid].price_cents * qty for pid, qty in quantities.items())
        delivery_fee = settings_service.get_int_setting("delivery_fee_cents", 0)
        total = subtotal + delivery_fee
        if req.expected_total_cents is not None and req.expected_total_cents != total:
            raise InvalidRequest(
                "Total does not match computed amount",
                {"expected": total, "received": req.expected_total_cents},
            )

        order = Order(
            order_number=next_document_number(document_type="order", prefix="ORD"),
            customer_id=customer.id,
            customer_name=req.customer_name,
            customer_email=req.customer_email,
            customer_phone=req.customer_phone,
            delivery_address=req.delivery_address,
            delivery_city=req.delivery_city,
            delivery_district=req.delivery_district,
            delivery_notes=req.delivery_notes,
            time_preference=req.time_preference,
            status="pending",
            payment_status="pending",
            payment_method=req.payment_method,
            subtotal_cents=subtotal,
            tax_cents=0,
            delivery_fee_cents=delivery_fee,
            discount_cents=0,
            total_cents=total,
        )
        db.session.add(order)
        db.session.flush()

        for pid, qty in quantities.items():
            product = products[pid]
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price_cents=product.price_cents,
                line_total_cents=product.price_cents * qty,
            ))
            apply_stock_change(
                product,
                -qty,
                movement_type="sale",
                reason="Online Order",
                reference_type="order",
                reference_id=order.id,
                cost_cents=(product.cost_price_cents or 0) * qty,
            )

        customer.loyalty_points = (customer.loyalty_points or 0) + total // 100

        log_activity(
            action="created",
            entity="order",
            entity_id=order.id,
            description=f"Online order {order.order_number} placed by {req.customer_name}",
            details={"order_number": order.order_number, "total_cents": total, "customer_id": customer.id},
        )
        db.session.flush()
        return order

    order = run_in_transaction(_op)
    logger.info("Online order %s created total=%s", order.order_number, order.total_cents)
    return order


# =============================================================================
# LISTING
# =============================================================================

def list_orders(
    *,
    search: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Order], int]:
    q = db.session.query(Order)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Order.order_number.ilike(like),
            Order.customer_name.ilike(like),
            Order.customer_email.ilike(like),
            Order.customer_phone.ilike(like),
        ))
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        q = q.filter(Order.status == status)
    if payment_status:
        validate_payment_status(payment_status)
        q = q.filter(Order.payment_status == payment_status)

    total = q.count()
    rows = (
        q.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total
