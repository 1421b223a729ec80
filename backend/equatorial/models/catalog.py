from __future__ import annotations

from ..extensions import db
from equatorial.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Coffee catalog entry (capsules or beans) plus its stock aggregate.

    STOCK INVARIANT:
    current_stock is the only mutable stock figure and is changed exclusively
    through inventory_service.apply_stock_change(), which appends an
    InventoryTransaction in the same unit of work. in_stock mirrors
    current_stock > 0 after every mutation.

    version_id enables optimistic locking so two concurrent sales of the same
    product cannot both commit against a stale stock figure.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_type_name", "product_type", "name"),
        db.CheckConstraint("current_stock >= 0", name="current_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(128), nullable=True)
    product_type = db.Column(db.String(32), nullable=False, default="capsules", index=True)
    category = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)
    roast = db.Column(db.String(64), nullable=True)
    intensity = db.Column(db.Integer, nullable=True)
    weight = db.Column(db.String(32), nullable=True)
    barcode = db.Column(db.String(64), nullable=True, unique=True)
    image = db.Column(db.String(512), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=1500)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=5)
    max_stock_level = db.Column(db.Integer, nullable=True)
    in_stock = db.Column(db.Boolean, nullable=False, default=False, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.current_stock}>"

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "product_type": self.product_type,
            "category": self.category,
            "description": self.description,
            "roast": self.roast,
            "intensity": self.intensity,
            "weight": self.weight,
            "barcode": self.barcode,
            "image": self.image,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "current_stock": self.current_stock,
            "min_stock_level": self.min_stock_level,
            "max_stock_level": self.max_stock_level,
            "in_stock": self.in_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        """Storefront view: no cost price or stock levels."""
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "product_type": self.product_type,
            "category": self.category,
            "description": self.description,
            "roast": self.roast,
            "intensity": self.intensity,
            "weight": self.weight,
            "image": self.image,
            "price_cents": self.price_cents,
            "in_stock": self.in_stock,
        }
