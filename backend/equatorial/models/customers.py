from __future__ import annotations

from ..extensions import db
from equatorial.time_utils import to_utc_z, utcnow


class Customer(db.Model):
    """
    Customer master data for tracking purchases and loyalty.

    Customers are created by admins or upserted by storefront checkout
    (matched on email, then phone). Loyalty points accrue one point per whole
    currency unit spent at the POS and are clawed back on refund.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    phone = db.Column(db.String(32), nullable=True, index=True)
    address = db.Column(db.Text, nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)

    loyalty_points = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    customer_group = db.Column(db.String(32), nullable=False, default="regular")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "loyalty_points": self.loyalty_points,
            "credit_limit_cents": self.credit_limit_cents,
            "customer_group": self.customer_group,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
