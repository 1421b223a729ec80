# backend/equatorial/services/products_service.py
"""
Products Service

Catalog CRUD for the admin back-office plus the public storefront listing.

STOCK: current_stock may be set once at creation (posted to the inventory
ledger as an opening "purchase"). Afterwards stock is read-only here and
changes only through inventory adjustments, sales, refunds and orders.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, ProductNotFound
from ..models import InventoryTransaction, OrderItem, POSTransactionItem, Product
from ..validation import ModelValidationPolicy, ValidationError, enforce_rules_product, validate_payload
from . import settings_service
from .activity_service import log_activity
from .inventory_service import apply_stock_change

PRODUCT_TYPES = ("capsules", "beans")

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "brand",
    "product_type",
    "category",
    "description",
    "roast",
    "intensity",
    "weight",
    "barcode",
    "image",
    "price_cents",
    "cost_price_cents",
    "tax_rate_bps",
    "min_stock_level",
    "max_stock_level",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS | {"current_stock"},
    required_on_create={"name", "price_cents"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=set(PRODUCT_MUTABLE_FIELDS),
)


def _check_type(patch: dict) -> None:
    if "product_type" in patch and patch["product_type"] not in PRODUCT_TYPES:
        raise ValidationError(
            f"Invalid product_type: {patch['product_type']}", {"allowed": list(PRODUCT_TYPES)}
        )


def _check_barcode_unique(barcode: str | None, *, exclude_id: int | None = None) -> None:
    if not barcode:
        return
    q = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise ConflictError("Barcode already in use", {"barcode": barcode})


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound(f"Product not found: {product_id}", {"product_id": product_id})
    return product


def list_products(
    *,
    search: str | None = None,
    product_type: str | None = None,
    in_stock_only: bool = False,
    page: int | None = None,
    limit: int = 20,
) -> tuple[list[Product], int]:
    q = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Product.name.ilike(like), Product.brand.ilike(like), Product.category.ilike(like)))
    if product_type:
        q = q.filter(Product.product_type == product_type)
    if in_stock_only:
        q = q.filter(Product.in_stock.is_(True))
    total = q.count()
    q = q.order_by(Product.name.asc(), Product.id.asc())
    if page is not None:
        q = q.offset((page - 1) * limit).limit(limit)
    return q.all(), total


def create_product(payload: dict, *, user_id: int | None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    _check_type(patch)
    _check_barcode_unique(patch.get("barcode"))

    opening_stock = patch.pop("current_stock", None) or 0

    product = Product(current_stock=0, in_stock=False)
    apply_product_patch(product, patch)
    if product.tax_rate_bps is None:
        product.tax_rate_bps = settings_service.get_tax_rate_bps()
    if product.min_stock_level is None:
        product.min_stock_level = settings_service.get_int_setting("low_stock_threshold", 5)
    db.session.add(product)
    db.session.flush()

    if opening_stock:
        apply_stock_change(
            product,
            opening_stock,
            movement_type="purchase",
            reason="Opening stock",
            user_id=user_id,
            reference_type="product",
            reference_id=product.id,
            cost_cents=(product.cost_price_cents or 0) * opening_stock,
        )

    log_activity(
        action="created",
        entity="product",
        entity_id=product.id,
        user_id=user_id,
        description=f"Created product {product.name}",
        details={"price_cents": product.price_cents, "opening_stock": opening_stock},
    )
    db.session.commit()
    return product


def update_product(product_id: int, payload: dict, *, user_id: int | None) -> Product:
    product = get_product(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    _check_type(patch)
    if "barcode" in patch:
        _check_barcode_unique(patch["barcode"], exclude_id=product.id)

    apply_product_patch(product, patch)
    log_activity(
        action="updated",
        entity="product",
        entity_id=product.id,
        user_id=user_id,
        description=f"Updated product {product.name}",
        details={"fields": sorted(patch.keys())},
    )
    db.session.commit()
    return product


def delete_product(product_id: int, *, user_id: int | None) -> None:
    """Products referenced by sales, orders or stock history cannot be deleted."""
    product = get_product(product_id)
    referenced = (
        db.session.query(POSTransactionItem.id).filter_by(product_id=product.id).first()
        or db.session.query(OrderItem.id).filter_by(product_id=product.id).first()
        or db.session.query(InventoryTransaction.id).filter_by(product_id=product.id).first()
    )
    if referenced:
        raise ConflictError(
            "Cannot delete a product with sales or stock history",
            {"product_id": product.id},
        )
    log_activity(
        action="deleted",
        entity="product",
        entity_id=product.id,
        user_id=user_id,
        description=f"Deleted product {product.name}",
    )
    db.session.delete(product)
    db.session.commit()
