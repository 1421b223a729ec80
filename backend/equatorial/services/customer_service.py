# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..errors import ConflictError, CustomerNotFound
from ..models import Customer, Order, POSTransaction
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_customer, validate_payload
from .activity_service import log_activity


CUSTOMER_GROUPS = ("regular", "vip", "wholesale")

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "email",
        "phone",
        "address",
        "date_of_birth",
        "loyalty_points",
        "credit_limit_cents",
        "customer_group",
    },
    required_on_create={"name"},
)


def _check_group(patch: dict) -> None:
    group = patch.get("customer_group")
    if group is not None and group not in CUSTOMER_GROUPS:
        raise ValidationError(f"Invalid customer group: {group}", {"allowed": list(CUSTOMER_GROUPS)})


def _check_email_unique(email: str | None, *, exclude_id: int | None = None) -> None:
    if not email:
        return
    q = db.session.query(Customer.id).filter(func.lower(Customer.email) == email.lower())
    if exclude_id is not None:
        q = q.filter(Customer.id != exclude_id)
    if q.first():
        raise ConflictError("A customer with this email already exists", {"email": email})


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise CustomerNotFound("Customer not found", {"customer_id": customer_id})
    return customer


def spending_summary(customer_id: int) -> dict:
    order_total = (
        db.session.query(func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.customer_id == customer_id, Order.payment_status == "paid")
        .scalar()
    )
    order_count = db.session.query(func.count(Order.id)).filter(Order.customer_id == customer_id).scalar()
    pos_total = (
        db.session.query(func.coalesce(func.sum(POSTransaction.total_cents), 0))
        .filter(POSTransaction.customer_id == customer_id, POSTransaction.status != "cancelled")
        .scalar()
    )
    pos_count = (
        db.session.query(func.count(POSTransaction.id))
        .filter(POSTransaction.customer_id == customer_id, POSTransaction.transaction_type == "sale")
        .scalar()
    )
    return {
        "total_spent_cents": int(order_total or 0) + int(pos_total or 0),
        "order_count": int(order_count or 0),
        "pos_transaction_count": int(pos_count or 0),
    }


def list_customers(
    *,
    search: str | None = None,
    customer_group: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Customer], int]:
    q = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(like), Customer.email.ilike(like), Customer.phone.ilike(like)))
    if customer_group:
        q = q.filter(Customer.customer_group == customer_group)
    total = q.count()
    rows = q.order_by(Customer.created_at.desc(), Customer.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return rows, total


def create_customer(payload: dict, *, user_id: int | None) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)
    _check_group(patch)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
    _check_email_unique(patch.get("email"))

    customer = Customer(**patch)
    customer.customer_group = customer.customer_group or "regular"
    db.session.add(customer)
    db.session.flush()
    log_activity(
        action="created",
        entity="customer",
        entity_id=customer.id,
        user_id=user_id,
        description=f"Created customer {customer.name}",
    )
    db.session.commit()
    return customer


def update_customer(customer_id: int, payload: dict, *, user_id: int | None) -> Customer:
    customer = get_customer(customer_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)
    _check_group(patch)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
        _check_email_unique(patch["email"], exclude_id=customer.id)

    for key, value in patch.items():
        setattr(customer, key, value)

    log_activity(
        action="updated",
        entity="customer",
        entity_id=customer.id,
        user_id=user_id,
        description=f"Updated customer {customer.name}",
        details={"fields": sorted(patch.keys())},
    )
    db.session.commit()
    return customer


def delete_customer(customer_id: int, *, user_id: int | None) -> None:
    """Customers with purchase history are kept for the audit trail."""
    customer = get_customer(customer_id)
    has_orders = db.session.query(Order.id).filter_by(customer_id=customer.id).first()
    has_pos = db.session.query(POSTransaction.id).filter_by(customer_id=customer.id).first()
    if has_orders or has_pos:
        raise ConflictError(
            "Cannot delete a customer with order or transaction history",
            {"customer_id": customer.id},
        )
    log_activity(
        action="deleted",
        entity="customer",
        entity_id=customer.id,
        user_id=user_id,
        description=f"Deleted customer {customer.name}",
    )
    db.session.delete(customer)
    db.session.commit()
