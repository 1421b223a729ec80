# Overview: Service-layer operations for POS refunds; encapsulates business logic and database work.

"""
POS Refund Processor

WHY: Refunds must reverse money, stock and loyalty without rewriting history.
The original sale is never edited beyond its status flag; instead a new
POSTransaction (transaction_type="refund") is recorded with negated amounts
and negative-quantity items that point back at the sale rows they reverse.

DESIGN PRINCIPLES:
- Cumulative limits: the refunded amount across all refunds of a sale never
  exceeds its total, and the refunded quantity of an item never exceeds what
  was purchased.
- Tax is reversed from the item-level snapshot taken at sale time. Only an
  amount-only refund (no item detail) falls back to estimating the tax
  portion at the standard rate (store setting "tax_rate").
- Stock comes back through inventory_service.apply_stock_change() with a
  "refund" movement, so the ledger matches the aggregate.
- Loyalty points are clawed back (one per whole currency unit), never below zero.
- Everything runs in one unit of work; any failure restores nothing.

LIFECYCLE:
completed --(full refund, or refunds reach the total)--> refunded
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..errors import (
    AlreadyRefunded,
    AmountExceedsOriginal,
    InvalidRequest,
    InvalidState,
    OverRefund,
    TransactionNotFound,
)
from ..models import POSTransaction, POSTransactionItem
from ..validation import ValidationError, require_choice, require_int, require_str
from . import settings_service
from .activity_service import log_activity
from .concurrency import lock_for_update, run_in_transaction
from .document_service import next_document_number
from .inventory_service import apply_stock_change, get_product_for_update
from .pricing import round_half_up_div, tax_inclusive_portion

logger = logging.getLogger(__name__)


REFUND_TYPES = ("full", "partial")


# =============================================================================
# REQUEST PARSING
# =============================================================================

@dataclass(frozen=True)
class RefundItemRequest:
    item_id: int
    quantity: int


@dataclass(frozen=True)
class RefundRequest:
    amount_cents: int
    reason: str
    refund_type: str
    items: tuple[RefundItemRequest, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict) -> "RefundRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        amount = require_int(payload, "amount_cents")
        if amount <= 0:
            raise ValidationError("Valid refund amount is required")
        reason = require_str(payload, "reason", required=False, max_length=255)
        if not reason:
            raise ValidationError("Refund reason is required")
        refund_type = require_choice(payload, "refund_type", REFUND_TYPES)

        raw_items = payload.get("items") or []
        if not isinstance(raw_items, list):
            raise ValidationError("items must be a list")
        items = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                raise ValidationError(f"items[{index}] must be an object")
            items.append(RefundItemRequest(
                item_id=require_int(raw, "item_id", minimum=1),
                quantity=require_int(raw, "quantity", minimum=1),
            ))

        return cls(amount_cents=amount, reason=reason, refund_type=refund_type, items=tuple(items))


# =============================================================================
# HELPERS
# =============================================================================

def refunded_amount_cents(original_id: int) -> int:
    """Positive sum already refunded against a sale."""
    total = (
        db.session.query(func.coalesce(func.sum(POSTransaction.total_cents), 0))
        .filter(
            POSTransaction.original_transaction_id == original_id,
            POSTransaction.transaction_type == "refund",
        )
        .scalar()
    )
    return -int(total or 0)


def refunded_quantities(original_id: int) -> dict[int, int]:
    """Map of sale item id -> quantity already refunded."""
    rows = (
        db.session.query(POSTransactionItem.refunded_item_id, func.sum(POSTransactionItem.quantity))
        .join(POSTransaction, POSTransaction.id == POSTransactionItem.transaction_id)
        .filter(
            POSTransaction.original_transaction_id == original_id,
            POSTransaction.transaction_type == "refund",
            POSTransactionItem.refunded_item_id.isnot(None),
        )
        .group_by(POSTransactionItem.refunded_item_id)
        .all()
    )
    return {item_id: -int(qty) for item_id, qty in rows}


def _resolve_refund_lines(original: POSTransaction, req: RefundRequest) -> list[tuple[POSTransactionItem, int]]:
    already = refunded_quantities(original.id)
    by_id = {item.id: item for item in original.items}

    if req.refund_type == "full":
        lines = []
        for item in original.items:
            remaining = item.quantity - already.get(item.id, 0)
            if remaining > 0:
                lines.append((item, remaining))
        return lines

    requested: dict[int, int] = {}
    for line in req.items:
        if line.item_id not in by_id:
            raise InvalidRequest(
                f"Item {line.item_id} not found in original transaction",
                {"item_id": line.item_id, "transaction_id": original.id},
            )
        requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity

    lines = []
    for item_id, qty in requested.items():
        item = by_id[item_id]
        remaining = item.quantity - already.get(item_id, 0)
        if qty > remaining:
            raise OverRefund(
                "Cannot refund more items than originally purchased",
                {
                    "item_id": item_id,
                    "purchased": item.quantity,
                    "already_refunded": already.get(item_id, 0),
                    "requested": qty,
                },
            )
        lines.append((item, qty))
    return lines


def _item_tax_share(item: POSTransactionItem, quantity: int) -> int:
    return round_half_up_div(item.tax_cents * quantity, item.quantity)


def _item_total_share(item: POSTransactionItem, quantity: int) -> int:
    """Discounted line amount for `quantity` of the units sold on `item`."""
    return round_half_up_div(item.line_total_cents * quantity, item.quantity)


def compute_refund_tax(amount_cents: int, lines, standard_rate_bps: int) -> int:
    """
    Tax portion of a refund.

    With item detail: the snapshot tax of the refunded quantities, capped at
    the refund amount. Without: the tax contained in the amount at the
    standard rate.
    """
    if lines:
        return min(amount_cents, sum(_item_tax_share(item, qty) for item, qty in lines))
    return tax_inclusive_portion(amount_cents, standard_rate_bps)


def _split_tender(original: POSTransaction, amount: int) -> tuple[int, int]:
    """(cash, card) paid back, as positive cents."""
    if original.payment_method == "cash":
        return amount, 0
    if original.payment_method == "card":
        return 0, amount
    # mixed: cash actually kept by the store is paid back first
    cash_kept = max(0, original.cash_received_cents - original.change_given_cents)
    cash = min(amount, cash_kept)
    return cash, amount - cash


# =============================================================================
# REFUND
# =============================================================================

def refund_transaction(transaction_id: int, req: RefundRequest, *, staff_id: int) -> POSTransaction:
    """
    Refund a POS sale fully or partially.

    Loyalty points drop by one per whole currency unit refunded and never go below 0.

    Raises:
        TransactionNotFound (404)
        AlreadyRefunded, InvalidState: original not refundable (400)
        AmountExceedsOriginal: amount beyond what remains refundable (400)
        OverRefund: item quantity beyond what remains refundable (400)
        InvalidRequest: item not part of the original (400)
    """
    def _op() -> POSTransaction:
        original = lock_for_update(
            db.session.query(POSTransaction).filter_by(id=transaction_id)
        ).first()
        if not original:
            raise TransactionNotFound("Transaction not found", {"transaction_id": transaction_id})
        if original.transaction_type == "refund":
            raise InvalidState("Cannot refund a refund transaction", {"transaction_id": transaction_id})
        if original.status == "refunded":
            raise AlreadyRefunded(
                "Transaction has already been fully refunded", {"transaction_id": transaction_id}
            )
        if original.status == "cancelled":
            raise InvalidState("Cannot refund a cancelled transaction", {"transaction_id": transaction_id})

        previously_refunded = refunded_amount_cents(original.id)
        refundable = original.total_cents - previously_refunded
        if req.amount_cents > refundable:
            raise AmountExceedsOriginal(
                "Refund amount cannot exceed the remaining transaction total",
                {
                    "amount_cents": req.amount_cents,
                    "original_total_cents": original.total_cents,
                    "already_refunded_cents": previously_refunded,
                    "refundable_cents": refundable,
                },
            )

        lines = _resolve_refund_lines(original, req)
        tax = compute_refund_tax(req.amount_cents, lines, settings_service.get_tax_rate_bps())
        cash_back, card_back = _split_tender(original, req.amount_cents)

        refund = POSTransaction(
            transaction_number=next_document_number(document_type="pos_refund", prefix="REF"),
            transaction_type="refund",
            original_transaction_id=original.id,
            customer_id=original.customer_id,
            staff_id=staff_id,
            subtotal_cents=-(req.amount_cents - tax),
            tax_cents=-tax,
            discount_cents=0,
            total_cents=-req.amount_cents,
            payment_method=original.payment_method,
            cash_received_cents=-cash_back,
            change_given_cents=0,
            card_amount_cents=-card_back,
            status="completed",
            notes=f"Refund for transaction {original.transaction_number}. Reason: {req.reason}",
        )
        db.session.add(refund)
        db.session.flush()

        for item, qty in sorted(lines, key=lambda pair: pair[0].product_id):
            product = get_product_for_update(item.product_id)
            line_total = _item_total_share(item, qty)
            db.session.add(POSTransactionItem(
                transaction_id=refund.id,
                product_id=item.product_id,
                refunded_item_id=item.id,
                quantity=-qty,
                unit_price_cents=item.unit_price_cents,
                discount_cents=-(item.unit_price_cents * qty - line_total),
                line_total_cents=-line_total,
                tax_rate_bps=item.tax_rate_bps,
                tax_cents=-_item_tax_share(item, qty),
            ))
            apply_stock_change(
                product,
                qty,
                movement_type="refund",
                reason=f"Refund: {req.reason}",
                user_id=staff_id,
                reference_type="pos_refund",
                reference_id=refund.id,
                cost_cents=(product.cost_price_cents or 0) * qty,
            )

        if req.refund_type == "full" or previously_refunded + req.amount_cents >= original.total_cents:
            original.status = "refunded"

        customer = original.customer
        if customer is not None:
            customer.loyalty_points = max(0, (customer.loyalty_points or 0) - req.amount_cents // 100)

        log_activity(
            action="refunded",
            entity="pos_refund",
            entity_id=refund.id,
            user_id=staff_id,
            description=(
                f"Refund {refund.transaction_number} for transaction "
                f"{original.transaction_number}: {req.reason}"
            ),
            details={
                "original_transaction_id": original.id,
                "refund_type": req.refund_type,
                "amount_cents": req.amount_cents,
                "tax_cents": tax,
                "items": [{"item_id": item.id, "quantity": qty} for item, qty in lines],
            },
        )
        db.session.flush()
        return refund

    refund = run_in_transaction(_op)
    logger.info(
        "POS refund %s recorded for transaction=%s amount=%s",
        refund.transaction_number, transaction_id, -refund.total_cents,
    )
    return refund
