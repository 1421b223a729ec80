# Overview: Service-layer operations for POS sales; encapsulates business logic and database work.

"""
POS Transaction Processor

WHY: A counter sale touches five things at once: the transaction header, its
item rows, product stock, the inventory ledger and the customer's loyalty
balance. They are written in one unit of work so a failure anywhere (unknown
product, short stock, bad tender) leaves the database exactly as it was.

DESIGN PRINCIPLES:
- The server prices the cart. Client-computed line totals and totals are
  only cross-checked; a mismatch is rejected, never silently trusted.
- Unit prices come from the catalog. A client-supplied unit price must match.
- The staff member is the authenticated user; there is no anonymous sale.
- Stock is checked and decremented in the same transaction via
  inventory_service.apply_stock_change().
- Loyalty: one point per whole currency unit of the total.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import or_

from ..extensions import db
from ..errors import CustomerNotFound, InsufficientStock, InvalidRequest, TransactionNotFound
from ..models import Customer, POSTransaction, POSTransactionItem, Product
from ..validation import ValidationError, require_int, require_str, MAX_LINE_QUANTITY
from equatorial.time_utils import parse_iso_datetime
from . import settings_service
from .activity_service import log_activity
from .concurrency import run_in_transaction
from .document_service import next_document_number
from .inventory_service import apply_stock_change, get_product_for_update
from .pricing import PAYMENT_METHODS, LineInput, price_lines, settle_payment

logger = logging.getLogger(__name__)


TRANSACTION_STATUSES = ("completed", "refunded", "cancelled")


# =============================================================================
# REQUEST PARSING
# =============================================================================

@dataclass(frozen=True)
class SaleItemRequest:
    product_id: int
    quantity: int
    unit_price_cents: int | None = None
    line_total_cents: int | None = None
    discount_cents: int = 0


@dataclass(frozen=True)
class SaleRequest:
    items: tuple[SaleItemRequest, ...]
    payment_method: str
    cash_received_cents: int | None = None
    card_amount_cents: int | None = None
    customer_id: int | None = None
    discount_cents: int = 0
    notes: str | None = None
    expected_total_cents: int | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "SaleRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        raw_items = payload.get("items")
        if not raw_items or not isinstance(raw_items, list):
            raise ValidationError("Items are required")

        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationError(f"items[{index}] must be an object")
            items.append(SaleItemRequest(
                product_id=require_int(raw, "product_id", minimum=1),
                quantity=require_int(raw, "quantity", minimum=1),
                unit_price_cents=require_int(raw, "unit_price_cents", minimum=0, required=False),
                line_total_cents=require_int(raw, "line_total_cents", minimum=0, required=False),
                discount_cents=require_int(raw, "discount_cents", minimum=0, required=False) or 0,
            ))
            if items[-1].quantity > MAX_LINE_QUANTITY:
                raise ValidationError(f"items[{index}].quantity cannot exceed {MAX_LINE_QUANTITY}")

        payment_method = payload.get("payment_method")
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(
                "Invalid payment method",
                {"allowed": list(PAYMENT_METHODS), "received": payment_method},
            )

        expected_total = require_int(payload, "total_cents", required=False)
        if expected_total is not None and expected_total <= 0:
            raise ValidationError("Total amount must be greater than 0")

        return cls(
            items=tuple(items),
            payment_method=payment_method,
            cash_received_cents=require_int(payload, "cash_received_cents", minimum=0, required=False),
            card_amount_cents=require_int(payload, "card_amount_cents", minimum=0, required=False),
            customer_id=require_int(payload, "customer_id", minimum=1, required=False),
            discount_cents=require_int(payload, "discount_cents", minimum=0, required=False) or 0,
            notes=require_str(payload, "notes", required=False),
            expected_total_cents=expected_total,
        )


# =============================================================================
# SALE
# =============================================================================

def _lock_products(items) -> dict[int, Product]:
    """Lock every product once, in id order, to keep lock acquisition deterministic."""
    products = {}
    for product_id in sorted({item.product_id for item in items}):
        products[product_id] = get_product_for_update(product_id)
    return products


def _check_stock(items, products: dict[int, Product]) -> None:
    requested: "OrderedDict[int, int]" = OrderedDict()
    for item in items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
    for product_id, qty in requested.items():
        product = products[product_id]
        if product.current_stock < qty:
            raise InsufficientStock(
                f"Insufficient stock for {product.name}. Available: {product.current_stock}, Requested: {qty}",
                {"product_id": product_id, "available": product.current_stock, "requested": qty},
            )


def _line_inputs(req: SaleRequest, products: dict[int, Product]) -> list[LineInput]:
    lines = []
    for item in req.items:
        product = products[item.product_id]
        if item.unit_price_cents is not None and item.unit_price_cents != product.price_cents:
            raise InvalidRequest(
                f"Price mismatch for {product.name}",
                {"product_id": product.id, "expected": product.price_cents, "received": item.unit_price_cents},
            )
        lines.append(LineInput(
            product_id=product.id,
            quantity=item.quantity,
            unit_price_cents=product.price_cents,
            tax_rate_bps=product.tax_rate_bps,
            discount_cents=item.discount_cents,
        ))
    return lines


def create_transaction(req: SaleRequest, *, staff_id: int) -> POSTransaction:
    """
    Record a completed POS sale.

    Raises:
        ProductNotFound, CustomerNotFound: unknown references (404)
        InsufficientStock: any line exceeds available stock (400)
        InvalidRequest: mismatched client totals, non-positive total, short tender (400)
    """
    if not staff_id:
        raise InvalidRequest("Staff member is required")

    def _op() -> POSTransaction:
        customer = None
        if req.customer_id is not None:
            customer = db.session.query(Customer).filter_by(id=req.customer_id).first()
            if not customer:
                raise CustomerNotFound("Customer not found", {"customer_id": req.customer_id})

        products = _lock_products(req.items)
        _check_stock(req.items, products)

        cart = price_lines(_line_inputs(req, products), discount_cents=req.discount_cents)

        for requested, priced in zip(req.items, cart.lines):
            if requested.line_total_cents is not None and requested.line_total_cents != priced.line_total_cents:
                raise InvalidRequest(
                    "Line total does not match computed amount",
                    {
                        "product_id": priced.product_id,
                        "expected": priced.line_total_cents,
                        "received": requested.line_total_cents,
                    },
                )

        if cart.total_cents <= 0:
            raise InvalidRequest("Total amount must be greater than 0", {"total_cents": cart.total_cents})
        if req.expected_total_cents is not None and req.expected_total_cents != cart.total_cents:
            raise InvalidRequest(
                "Total does not match computed amount",
                {"expected": cart.total_cents, "received": req.expected_total_cents},
            )

        settlement = settle_payment(
            req.payment_method,
            cart.total_cents,
            cash_received_cents=req.cash_received_cents,
            card_amount_cents=req.card_amount_cents,
        )

        txn = POSTransaction(
            transaction_number=next_document_number(document_type="pos_sale", prefix="POS"),
            transaction_type="sale",
            customer_id=customer.id if customer else None,
            staff_id=staff_id,
            subtotal_cents=cart.subtotal_cents,
            tax_cents=cart.tax_cents,
            discount_cents=cart.discount_cents,
            total_cents=cart.total_cents,
            payment_method=req.payment_method,
            cash_received_cents=settlement.cash_received_cents,
            change_given_cents=settlement.change_given_cents,
            card_amount_cents=settlement.card_amount_cents,
            status="completed",
            notes=req.notes,
            receipt_printed=False,
        )
        db.session.add(txn)
        db.session.flush()

        for priced in cart.lines:
            product = products[priced.product_id]
            db.session.add(POSTransactionItem(
                transaction_id=txn.id,
                product_id=product.id,
                quantity=priced.quantity,
                unit_price_cents=priced.unit_price_cents,
                discount_cents=priced.discount_cents,
                line_total_cents=priced.line_total_cents,
                tax_rate_bps=priced.tax_rate_bps,
                tax_cents=priced.tax_cents,
            ))
            apply_stock_change(
                product,
                -priced.quantity,
                movement_type="sale",
                reason="POS Sale",
                user_id=staff_id,
                reference_type="pos_transaction",
                reference_id=txn.id,
                cost_cents=(product.cost_price_cents or 0) * priced.quantity,
            )

        if customer is not None:
            customer.loyalty_points = (customer.loyalty_points or 0) + cart.total_cents // 100

        log_activity(
            action="created",
            entity="pos_transaction",
            entity_id=txn.id,
            user_id=staff_id,
            description=f"POS transaction {txn.transaction_number} created",
            details={
                "transaction_number": txn.transaction_number,
                "total_cents": txn.total_cents,
                "payment_method": txn.payment_method,
                "item_count": sum(p.quantity for p in cart.lines),
                "customer_id": txn.customer_id,
            },
        )
        db.session.flush()
        return txn

    txn = run_in_transaction(_op)
    logger.info(
        "POS sale %s recorded total=%s method=%s staff=%s",
        txn.transaction_number, txn.total_cents, txn.payment_method, staff_id,
    )
    return txn


# =============================================================================
# READS
# =============================================================================

def get_transaction(transaction_id: int) -> POSTransaction:
    txn = db.session.get(POSTransaction, transaction_id)
    if not txn:
        raise TransactionNotFound("Transaction not found", {"transaction_id": transaction_id})
    return txn


def transaction_detail(txn: POSTransaction) -> dict:
    data = txn.to_dict()
    data["items"] = [item.to_dict() for item in txn.items]
    data["customer"] = (
        {"id": txn.customer.id, "name": txn.customer.name, "email": txn.customer.email, "phone": txn.customer.phone}
        if txn.customer else None
    )
    data["staff"] = {"id": txn.staff.id, "name": txn.staff.name, "email": txn.staff.email} if txn.staff else None
    data["refunds"] = [r.to_dict() for r in txn.refunds]
    return data


def list_transactions(
    *,
    status: str | None = None,
    payment_method: str | None = None,
    transaction_type: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[POSTransaction], int]:
    q = db.session.query(POSTransaction)
    if status:
        if status not in TRANSACTION_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        q = q.filter(POSTransaction.status == status)
    if payment_method:
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method: {payment_method}")
        q = q.filter(POSTransaction.payment_method == payment_method)
    if transaction_type:
        q = q.filter(POSTransaction.transaction_type == transaction_type)

    try:
        start = parse_iso_datetime(date_from)
        end = parse_iso_datetime(date_to)
    except ValueError:
        raise ValidationError("date_from and date_to must be ISO-8601 dates")
    if start:
        q = q.filter(POSTransaction.created_at >= start)
    if end:
        # A bare date includes the whole day
        if date_to and len(date_to.strip()) == 10:
            end = end + timedelta(days=1)
            q = q.filter(POSTransaction.created_at < end)
        else:
            q = q.filter(POSTransaction.created_at <= end)

    total = q.count()
    rows = (
        q.order_by(POSTransaction.created_at.desc(), POSTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def list_pos_products(search: str | None = None) -> list[Product]:
    """Products that can be rung up right now."""
    q = db.session.query(Product).filter(Product.in_stock.is_(True), Product.current_stock > 0)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.brand.ilike(like), Product.barcode == search.strip()))
    return q.order_by(Product.name.asc()).all()


# =============================================================================
# RECEIPTS
# =============================================================================

def build_receipt(transaction_id: int) -> dict:
    txn = get_transaction(transaction_id)
    return {
        "transaction": txn.to_dict(),
        "items": [item.to_dict() for item in txn.items],
        "customer": txn.customer.to_dict() if txn.customer else None,
        "staff": {"id": txn.staff.id, "name": txn.staff.name} if txn.staff else None,
        "store": settings_service.receipt_header(),
    }


def mark_receipt_printed(transaction_id: int, *, user_id: int | None = None) -> POSTransaction:
    def _op():
        txn = get_transaction(transaction_id)
        txn.receipt_printed = True
        log_activity(
            action="printed",
            entity="pos_transaction",
            entity_id=txn.id,
            user_id=user_id,
            description=f"Receipt printed for {txn.transaction_number}",
        )
        return txn

    return run_in_transaction(_op)
