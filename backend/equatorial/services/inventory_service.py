# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Service

WHY: Product.current_stock is shared by POS sales, refunds, storefront orders
and manual adjustments. Every one of them goes through apply_stock_change()
so the aggregate and the append-only InventoryTransaction ledger can never
disagree.

STOCK CHANGE CONTRACT (apply_stock_change):
- Caller has loaded the product with lock_for_update() inside its unit of work.
- new_stock = current_stock + delta; negative results raise InsufficientStock.
- in_stock is recomputed as new_stock > 0.
- Exactly one ledger row is appended with stock_before / stock_after.
- Nothing is committed here; the caller's run_in_transaction() commits or
  rolls back everything together.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, or_

from ..extensions import db
from ..errors import InsufficientStock, ProductNotFound
from ..models import InventoryTransaction, Product
from ..validation import ValidationError, require_choice, require_int, require_str
from .activity_service import log_activity
from .concurrency import lock_for_update, run_in_transaction

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MOVEMENT_TYPES = ("sale", "purchase", "adjustment", "return", "damage", "refund")

ADJUSTMENT_TYPES = ("increase", "decrease", "set")

# Operator-facing adjustment reasons and the ledger movement type they post as
REASON_MOVEMENT_TYPES = {
    "restocking": "purchase",
    "sale": "sale",
    "damage": "damage",
    "return": "return",
    "correction": "adjustment",
    "expired": "damage",
}

STOCK_STATUSES = ("in_stock", "low_stock", "out_of_stock")


def movement_type_for_reason(reason: str) -> str:
    return REASON_MOVEMENT_TYPES.get((reason or "").strip().lower(), "adjustment")


# =============================================================================
# STOCK CHANGE PRIMITIVE
# =============================================================================

def get_product_for_update(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if not product:
        raise ProductNotFound(f"Product not found: {product_id}", {"product_id": product_id})
    return product


def apply_stock_change(
    product: Product,
    delta: int,
    *,
    movement_type: str,
    reason: str | None = None,
    user_id: int | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    cost_cents: int | None = None,
) -> InventoryTransaction:
    """
    Change a product's stock by delta and append the matching ledger row.

    Raises InsufficientStock if the change would take stock below zero.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"Unknown movement type: {movement_type}")

    before = product.current_stock
    after = before + delta
    if after < 0:
        raise InsufficientStock(
            f"Insufficient stock for {product.name}. Available: {before}, Requested: {-delta}",
            {"product_id": product.id, "available": before, "requested": -delta},
        )

    product.current_stock = after
    product.in_stock = after > 0

    txn = InventoryTransaction(
        product_id=product.id,
        type=movement_type,
        quantity_delta=delta,
        stock_before=before,
        stock_after=after,
        reason=reason,
        cost_cents=cost_cents,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by_user_id=user_id,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


# =============================================================================
# MANUAL ADJUSTMENTS
# =============================================================================

@dataclass(frozen=True)
class AdjustmentRequest:
    product_id: int
    adjustment_type: str
    quantity: int
    reason: str
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "AdjustmentRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        missing = [k for k in ("product_id", "type", "quantity", "reason") if payload.get(k) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        return cls(
            product_id=require_int(payload, "product_id", minimum=1),
            adjustment_type=require_choice(payload, "type", ADJUSTMENT_TYPES),
            quantity=require_int(payload, "quantity", minimum=0),
            reason=require_str(payload, "reason", max_length=255),
            notes=require_str(payload, "notes", required=False, max_length=255),
        )


def compute_adjustment(current: int, adjustment_type: str, quantity: int) -> tuple[int, int]:
    """
    Return (new_stock, delta) for an adjustment.

    decrease floors at zero; its delta is only what was actually removed.
    """
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative")
    if adjustment_type == "increase":
        return current + quantity, quantity
    if adjustment_type == "decrease":
        removed = min(quantity, current)
        return current - removed, -removed
    if adjustment_type == "set":
        return quantity, quantity - current
    raise ValidationError(f"Invalid adjustment type: {adjustment_type}")


def adjust_stock(req: AdjustmentRequest, *, user_id: int | None) -> tuple[Product, InventoryTransaction]:
    """
    Apply a manual stock adjustment atomically.

    Writes the stock change, one InventoryTransaction and one ActivityLog row.
    """
    def _op():
        product = get_product_for_update(req.product_id)
        old_stock = product.current_stock
        new_stock, delta = compute_adjustment(old_stock, req.adjustment_type, req.quantity)

        reason_text = req.reason if not req.notes else f"{req.reason}: {req.notes}"
        txn = apply_stock_change(
            product,
            delta,
            movement_type=movement_type_for_reason(req.reason),
            reason=reason_text,
            user_id=user_id,
            reference_type="manual_adjustment",
            cost_cents=(product.cost_price_cents or 0) * abs(delta),
        )

        log_activity(
            action="adjusted",
            entity="inventory",
            entity_id=product.id,
            user_id=user_id,
            description=f"Adjusted stock for {product.name}: {old_stock} → {new_stock} ({delta:+d})",
            details={
                "product_id": product.id,
                "type": req.adjustment_type,
                "quantity": req.quantity,
                "old_stock": old_stock,
                "new_stock": new_stock,
                "delta": delta,
                "reason": req.reason,
                "inventory_transaction_id": txn.id,
            },
        )
        return product, txn

    product, txn = run_in_transaction(_op)
    logger.info(
        "Stock adjusted product=%s type=%s delta=%s stock=%s",
        product.id, req.adjustment_type, txn.quantity_delta, product.current_stock,
    )
    return product, txn


# =============================================================================
# READ MODELS
# =============================================================================

def stock_status(product: Product) -> str:
    if product.current_stock <= 0:
        return "out_of_stock"
    if product.current_stock <= product.min_stock_level:
        return "low_stock"
    return "in_stock"


def _status_filter(q, status: str):
    if status == "out_of_stock":
        return q.filter(Product.current_stock <= 0)
    if status == "low_stock":
        return q.filter(Product.current_stock > 0, Product.current_stock <= Product.min_stock_level)
    return q.filter(Product.current_stock > Product.min_stock_level)


def list_inventory(
    *,
    search: str | None = None,
    status: str | None = None,
    product_type: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[dict], int, dict]:
    """
    Inventory listing with stock status and valuation.

    Returns (rows, total_count, summary); summary covers the whole catalog,
    not just the current page.
    """
    if status and status not in STOCK_STATUSES:
        raise ValidationError(f"Invalid stock status: {status}")

    q = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.brand.ilike(like), Product.barcode.ilike(like)))
    if product_type:
        q = q.filter(Product.product_type == product_type)
    if status:
        q = _status_filter(q, status)

    total = q.count()
    products = q.order_by(Product.name.asc()).offset((page - 1) * limit).limit(limit).all()

    rows = []
    for p in products:
        row = p.to_dict()
        row["stock_status"] = stock_status(p)
        row["stock_value_cents"] = p.current_stock * (p.cost_price_cents or 0)
        rows.append(row)

    return rows, total, inventory_summary()


def inventory_summary() -> dict:
    total_products = db.session.query(func.count(Product.id)).scalar() or 0
    out_of_stock = db.session.query(func.count(Product.id)).filter(Product.current_stock <= 0).scalar() or 0
    low_stock = (
        db.session.query(func.count(Product.id))
        .filter(Product.current_stock > 0, Product.current_stock <= Product.min_stock_level)
        .scalar()
        or 0
    )
    stock_value = (
        db.session.query(func.coalesce(func.sum(Product.current_stock * Product.cost_price_cents), 0)).scalar()
        or 0
    )
    return {
        "total_products": total_products,
        "in_stock": total_products - out_of_stock - low_stock,
        "low_stock": low_stock,
        "out_of_stock": out_of_stock,
        "total_stock_value_cents": int(stock_value),
    }


def list_movements(product_id: int, *, limit: int = 50) -> list[InventoryTransaction]:
    if not db.session.query(Product.id).filter_by(id=product_id).first():
        raise ProductNotFound(f"Product not found: {product_id}", {"product_id": product_id})
    return (
        db.session.query(InventoryTransaction)
        .filter_by(product_id=product_id)
        .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )
