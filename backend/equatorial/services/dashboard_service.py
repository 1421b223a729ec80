# Overview: Read-only aggregations for the admin dashboard.

"""
Dashboard Aggregators

Revenue combines two channels:
- storefront orders with payment_status == "paid"
- POS transactions that were not cancelled. Refund rows carry negative
  totals, so a refunded sale and its refund net out to zero.

All windows are UTC calendar days / rolling day counts ending at `now`.
Callers may pass `now` explicitly (tests do); otherwise utcnow() is used.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, or_, select

from ..extensions import db
from ..models import Customer, Order, OrderItem, POSTransaction, POSTransactionItem, Product
from equatorial.time_utils import day_bounds, time_ago, to_utc_z, utcnow


def percent_change(current: int | float, previous: int | float) -> float:
    """Period-over-period change; a rise from zero reports +100%."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


def _order_revenue(start: datetime, end: datetime) -> int:
    value = (
        db.session.query(func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.created_at >= start, Order.created_at < end, Order.payment_status == "paid")
        .scalar()
    )
    return int(value or 0)


def _pos_revenue(start: datetime, end: datetime) -> int:
    value = (
        db.session.query(func.coalesce(func.sum(POSTransaction.total_cents), 0))
        .filter(
            POSTransaction.created_at >= start,
            POSTransaction.created_at < end,
            POSTransaction.status != "cancelled",
        )
        .scalar()
    )
    return int(value or 0)


def revenue_between(start: datetime, end: datetime) -> int:
    return _order_revenue(start, end) + _pos_revenue(start, end)


def _order_count(start: datetime, end: datetime) -> int:
    return int(
        db.session.query(func.count(Order.id))
        .filter(Order.created_at >= start, Order.created_at < end)
        .scalar()
        or 0
    )


def _active_customers(start: datetime, end: datetime) -> int:
    ordered = select(Order.customer_id).where(
        Order.customer_id.isnot(None), Order.created_at >= start, Order.created_at < end
    )
    bought = select(POSTransaction.customer_id).where(
        POSTransaction.customer_id.isnot(None),
        POSTransaction.created_at >= start,
        POSTransaction.created_at < end,
    )
    return int(
        db.session.query(func.count(Customer.id))
        .filter(or_(Customer.id.in_(ordered), Customer.id.in_(bought)))
        .scalar()
        or 0
    )


def low_stock_count() -> int:
    return int(
        db.session.query(func.count(Product.id))
        .filter(Product.current_stock <= Product.min_stock_level)
        .scalar()
        or 0
    )


def get_stats(now: datetime | None = None) -> dict:
    now = now or utcnow()
    today_start, today_end = day_bounds(now)
    yesterday_start = today_start - timedelta(days=1)

    today_revenue = revenue_between(today_start, today_end)
    yesterday_revenue = revenue_between(yesterday_start, today_start)

    today_orders = _order_count(today_start, today_end)
    yesterday_orders = _order_count(yesterday_start, today_start)

    thirty_days_ago = now - timedelta(days=30)
    sixty_days_ago = now - timedelta(days=60)
    active = _active_customers(thirty_days_ago, now + timedelta(seconds=1))
    previous_active = _active_customers(sixty_days_ago, thirty_days_ago)

    return {
        "today_revenue": {
            "value_cents": today_revenue,
            "previous_cents": yesterday_revenue,
            "change_percent": percent_change(today_revenue, yesterday_revenue),
        },
        "total_orders": {
            "value": today_orders,
            "previous": yesterday_orders,
            "change_percent": percent_change(today_orders, yesterday_orders),
        },
        "active_customers": {
            "value": active,
            "previous": previous_active,
            "change_percent": percent_change(active, previous_active),
        },
        "low_stock_items": {
            "value": low_stock_count(),
        },
    }


def top_products(now: datetime | None = None, *, days: int = 30, limit: int = 4) -> list[dict]:
    """
    Best sellers by units over the window, merging paid storefront orders
    and POS sales (net of refunds).
    """
    now = now or utcnow()
    since = now - timedelta(days=days)

    totals: dict[int, dict] = {}

    order_rows = (
        db.session.query(OrderItem.product_id, func.sum(OrderItem.quantity), func.sum(OrderItem.line_total_cents))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.created_at >= since, Order.payment_status == "paid")
        .group_by(OrderItem.product_id)
        .all()
    )
    pos_rows = (
        db.session.query(
            POSTransactionItem.product_id,
            func.sum(POSTransactionItem.quantity),
            func.sum(POSTransactionItem.line_total_cents),
        )
        .join(POSTransaction, POSTransaction.id == POSTransactionItem.transaction_id)
        .filter(POSTransaction.created_at >= since, POSTransaction.status != "cancelled")
        .group_by(POSTransactionItem.product_id)
        .all()
    )

    for product_id, qty, revenue in list(order_rows) + list(pos_rows):
        entry = totals.setdefault(product_id, {"quantity": 0, "revenue_cents": 0})
        entry["quantity"] += int(qty or 0)
        entry["revenue_cents"] += int(revenue or 0)

    ranked = sorted(
        ((pid, t) for pid, t in totals.items() if t["quantity"] > 0),
        key=lambda pair: (-pair[1]["quantity"], pair[0]),
    )[:limit]
    if not ranked:
        return []

    products = {p.id: p for p in db.session.query(Product).filter(Product.id.in_([pid for pid, _ in ranked])).all()}
    best = ranked[0][1]["quantity"]

    result = []
    for pid, t in ranked:
        product = products.get(pid)
        if product is None:
            continue
        result.append({
            "id": product.id,
            "name": product.name,
            "brand": product.brand,
            "price_cents": product.price_cents,
            "image": product.image,
            "sales": t["quantity"],
            "revenue_cents": t["revenue_cents"],
            "progress_percent": round(t["quantity"] / best * 100),
        })
    return result


def recent_orders(now: datetime | None = None, *, limit: int = 5) -> list[dict]:
    now = now or utcnow()
    orders = db.session.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
    return [
        {
            "id": o.id,
            "order_number": o.order_number,
            "customer": o.customer_name,
            "email": o.customer_email,
            "total_cents": o.total_cents,
            "status": o.status,
            "payment_status": o.payment_status,
            "time_ago": time_ago(o.created_at, now),
            "created_at": to_utc_z(o.created_at),
        }
        for o in orders
    ]
