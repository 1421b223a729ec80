# Overview: Service-layer operations for document numbers; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import InvoiceNotFound
from ..extensions import db
from ..models import DocumentSequence, Order, POSTransaction
from ..validation import ValidationError
from equatorial.time_utils import to_utc_z, utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(document_type: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        return current - 1

    # First number for this type. A savepoint keeps the caller's unit of work
    # intact if a concurrent request created the row first.
    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, next_number=2))
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise DocumentSequenceError(f"Could not allocate number for {document_type}")
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        return current - 1


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    pad: int = 6,
    now: datetime | None = None,
) -> str:
    """
    Allocate the next number for a document type, e.g. POS-20261018-000042.

    The date part makes numbers time-derived and human-readable; the counter
    is global per type so numbers stay unique and monotonic across days.
    Must be called inside the caller's unit of work: the counter increment
    commits or rolls back with the document it numbers.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    number = _allocate(document_type)
    stamp = (now or utcnow()).strftime("%Y%m%d")
    return f"{prefix}-{stamp}-{str(number).zfill(pad)}"


# =============================================================================
# INVOICES
# =============================================================================

INVOICE_TYPES = ("order", "pos")

WALK_IN_CUSTOMER = "Walk-in Customer"


def _order_invoice(order: Order) -> dict:
    return {
        "id": order.id,
        "type": "order",
        "number": order.order_number,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "delivery_address": order.delivery_address,
        "items": [
            {
                "id": item.id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in order.items
        ],
        "subtotal_cents": order.subtotal_cents,
        "tax_cents": order.tax_cents,
        "discount_cents": order.discount_cents,
        "delivery_fee_cents": order.delivery_fee_cents,
        "total_cents": order.total_cents,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "status": order.status,
        "created_at": to_utc_z(order.created_at),
        "updated_at": to_utc_z(order.updated_at),
    }


def _pos_invoice(txn: POSTransaction) -> dict:
    customer = txn.customer
    return {
        "id": txn.id,
        "type": "pos",
        "number": txn.transaction_number,
        "customer_name": customer.name if customer else WALK_IN_CUSTOMER,
        "customer_email": customer.email if customer else None,
        "customer_phone": customer.phone if customer else None,
        "delivery_address": None,
        "staff_name": txn.staff.name if txn.staff else None,
        "items": [
            {
                "id": item.id,
                "product_name": item.product.name if item.product else "Unknown Product",
                "quantity": item.quantity,
                "unit_price_cents": item.unit_price_cents,
                "line_total_cents": item.line_total_cents,
            }
            for item in txn.items
        ],
        "subtotal_cents": txn.subtotal_cents,
        "tax_cents": txn.tax_cents,
        "discount_cents": txn.discount_cents,
        "delivery_fee_cents": 0,
        "total_cents": txn.total_cents,
        "payment_method": txn.payment_method,
        "payment_status": "paid" if txn.status == "completed" else "pending",
        "status": txn.status,
        "created_at": to_utc_z(txn.created_at),
        "updated_at": to_utc_z(txn.updated_at),
    }


def get_invoice(invoice_id: int, invoice_type: str | None = None) -> dict:
    """
    One invoice shape for storefront orders and POS transactions.

    Without a type the order table is searched first, then POS transactions.
    Orders and POS rows have separate id sequences, so pass invoice_type
    when the id is ambiguous.
    """
    if invoice_type is not None and invoice_type not in INVOICE_TYPES:
        raise ValidationError(f"Invalid invoice type: {invoice_type}", {"allowed": list(INVOICE_TYPES)})

    if invoice_type in (None, "order"):
        order = db.session.get(Order, invoice_id)
        if order is not None:
            return _order_invoice(order)

    if invoice_type in (None, "pos"):
        txn = db.session.get(POSTransaction, invoice_id)
        if txn is not None:
            return _pos_invoice(txn)

    raise InvoiceNotFound("Invoice not found", {"invoice_id": invoice_id, "type": invoice_type})
