# Overview: Period analytics and spreadsheet exports for the back-office.

"""
Analytics Service

Ranges are rolling windows ending now ("7d", "30d", "90d", "1y"); each is
compared with the window of equal length immediately before it.

Exports flatten storefront orders and POS transactions of the range into one
sheet, as CSV (stdlib csv) or XLSX (openpyxl).
"""

from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta

from openpyxl import Workbook
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Order, POSTransaction
from ..validation import ValidationError
from equatorial.time_utils import to_utc_z, utcnow
from .dashboard_service import percent_change, revenue_between, top_products


RANGES = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}

EXPORT_FORMATS = ("csv", "xlsx")

EXPORT_COLUMNS = [
    "channel",
    "number",
    "created_at",
    "customer",
    "status",
    "payment_status",
    "payment_method",
    "subtotal",
    "tax",
    "discount",
    "delivery_fee",
    "total",
]


def resolve_range(range_key: str | None) -> tuple[str, int]:
    key = range_key or "30d"
    if key not in RANGES:
        raise ValidationError(f"Invalid range: {key}", {"allowed": list(RANGES)})
    return key, RANGES[key]


def _cents(value: int | None) -> str:
    return f"{(value or 0) / 100:.2f}"


def daily_revenue(start: datetime, end: datetime) -> list[dict]:
    """Revenue per UTC day, zero-filled, bucketed in Python so it stays dialect-neutral."""
    buckets: dict[str, int] = {}
    cursor = start.replace(hour=0, minute=0, second=0, microsecond=0)
    while cursor < end:
        buckets[cursor.date().isoformat()] = 0
        cursor += timedelta(days=1)

    order_rows = (
        db.session.query(Order.created_at, Order.total_cents)
        .filter(Order.created_at >= start, Order.created_at < end, Order.payment_status == "paid")
        .all()
    )
    pos_rows = (
        db.session.query(POSTransaction.created_at, POSTransaction.total_cents)
        .filter(
            POSTransaction.created_at >= start,
            POSTransaction.created_at < end,
            POSTransaction.status != "cancelled",
        )
        .all()
    )
    for created_at, total in list(order_rows) + list(pos_rows):
        key = created_at.date().isoformat()
        if key in buckets:
            buckets[key] += total or 0

    return [{"date": day, "revenue_cents": amount} for day, amount in buckets.items()]


def payment_method_breakdown(start: datetime, end: datetime) -> dict[str, int]:
    rows = (
        db.session.query(POSTransaction.payment_method, func.coalesce(func.sum(POSTransaction.total_cents), 0))
        .filter(
            POSTransaction.created_at >= start,
            POSTransaction.created_at < end,
            POSTransaction.status != "cancelled",
        )
        .group_by(POSTransaction.payment_method)
        .all()
    )
    breakdown = {method: int(total or 0) for method, total in rows}

    order_rows = (
        db.session.query(Order.payment_method, func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.created_at >= start, Order.created_at < end, Order.payment_status == "paid")
        .group_by(Order.payment_method)
        .all()
    )
    for method, total in order_rows:
        breakdown[method] = breakdown.get(method, 0) + int(total or 0)
    return breakdown


def get_analytics(range_key: str | None, now: datetime | None = None) -> dict:
    key, days = resolve_range(range_key)
    now = now or utcnow()
    start = now - timedelta(days=days)
    previous_start = start - timedelta(days=days)
    end = now + timedelta(seconds=1)

    revenue = revenue_between(start, end)
    previous_revenue = revenue_between(previous_start, start)

    orders = db.session.query(func.count(Order.id)).filter(Order.created_at >= start).scalar() or 0
    previous_orders = (
        db.session.query(func.count(Order.id))
        .filter(Order.created_at >= previous_start, Order.created_at < start)
        .scalar()
        or 0
    )
    sales = (
        db.session.query(func.count(POSTransaction.id))
        .filter(
            POSTransaction.created_at >= start,
            POSTransaction.transaction_type == "sale",
            POSTransaction.status != "cancelled",
        )
        .scalar()
        or 0
    )
    status_rows = (
        db.session.query(Order.status, func.count(Order.id))
        .filter(Order.created_at >= start)
        .group_by(Order.status)
        .all()
    )
    new_customers = db.session.query(func.count(Customer.id)).filter(Customer.created_at >= start).scalar() or 0

    transactions = orders + sales
    return {
        "range": key,
        "revenue": {
            "total_cents": revenue,
            "previous_cents": previous_revenue,
            "change_percent": percent_change(revenue, previous_revenue),
            "daily": daily_revenue(start, end),
        },
        "orders": {
            "total": orders,
            "previous": previous_orders,
            "change_percent": percent_change(orders, previous_orders),
            "by_status": {status: count for status, count in status_rows},
        },
        "pos_sales": sales,
        "average_order_value_cents": revenue // transactions if transactions else 0,
        "payment_methods": payment_method_breakdown(start, end),
        "customers": {
            "total": db.session.query(func.count(Customer.id)).scalar() or 0,
            "new": new_customers,
        },
        "top_products": top_products(now, days=days, limit=10),
    }


def export_rows(range_key: str | None, now: datetime | None = None) -> list[dict]:
    _, days = resolve_range(range_key)
    now = now or utcnow()
    start = now - timedelta(days=days)

    rows = []
    for o in db.session.query(Order).filter(Order.created_at >= start).order_by(Order.created_at.desc()).all():
        rows.append({
            "channel": "online",
            "number": o.order_number,
            "created_at": to_utc_z(o.created_at),
            "customer": o.customer_name,
            "status": o.status,
            "payment_status": o.payment_status,
            "payment_method": o.payment_method,
            "subtotal": _cents(o.subtotal_cents),
            "tax": _cents(o.tax_cents),
            "discount": _cents(o.discount_cents),
            "delivery_fee": _cents(o.delivery_fee_cents),
            "total": _cents(o.total_cents),
        })
    txns = (
        db.session.query(POSTransaction)
        .filter(POSTransaction.created_at >= start)
        .order_by(POSTransaction.created_at.desc())
        .all()
    )
    for t in txns:
        rows.append({
            "channel": "pos" if t.transaction_type == "sale" else "pos_refund",
            "number": t.transaction_number,
            "created_at": to_utc_z(t.created_at),
            "customer": t.customer.name if t.customer else "",
            "status": t.status,
            "payment_status": "paid",
            "payment_method": t.payment_method,
            "subtotal": _cents(t.subtotal_cents),
            "tax": _cents(t.tax_cents),
            "discount": _cents(t.discount_cents),
            "delivery_fee": _cents(0),
            "total": _cents(t.total_cents),
        })
    return rows


def export_csv(rows: list[dict]) -> bytes:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def export_xlsx(rows: list[dict]) -> bytes:
    wb = Workbook()
    sheet = wb.active
    sheet.title = "Transactions"
    sheet.append(EXPORT_COLUMNS)
    for row in rows:
        sheet.append([row.get(col) for col in EXPORT_COLUMNS])
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export(range_key: str | None, fmt: str | None, now: datetime | None = None) -> tuple[bytes, str, str]:
    """Return (content, mimetype, filename)."""
    key, _ = resolve_range(range_key)
    fmt = fmt or "csv"
    if fmt not in EXPORT_FORMATS:
        raise ValidationError(f"Invalid format: {fmt}", {"allowed": list(EXPORT_FORMATS)})
    rows = export_rows(key, now)
    stamp = (now or utcnow()).strftime("%Y%m%d")
    if fmt == "xlsx":
        return (
            export_xlsx(rows),
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            f"equatorial-analytics-{key}-{stamp}.xlsx",
        )
    return export_csv(rows), "text/csv", f"equatorial-analytics-{key}-{stamp}.csv"
