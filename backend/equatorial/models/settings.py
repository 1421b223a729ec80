from __future__ import annotations

from ..extensions import db
from equatorial.time_utils import to_utc_z, utcnow


class StoreSetting(db.Model):
    """
    Key-value store settings (company details, receipt footer, tax rate...).

    Values are stored as text; settings_service owns parsing.
    """
    __tablename__ = "store_settings"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True)
    value = db.Column(db.Text, nullable=True)
    description = db.Column(db.String(255), nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class DocumentSequence(db.Model):
    """Monotonic counters behind POS, refund and order numbers."""
    __tablename__ = "document_sequences"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)


class CurrencyRate(db.Model):
    """Exchange rate from base_currency to target_currency (ISO 4217 codes)."""
    __tablename__ = "currency_rates"
    __table_args__ = (
        db.UniqueConstraint("base_currency", "target_currency", name="uq_currency_rates_pair"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    base_currency = db.Column(db.String(3), nullable=False)
    target_currency = db.Column(db.String(3), nullable=False)
    rate = db.Column(db.Numeric(18, 6), nullable=False)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "base_currency": self.base_currency,
            "target_currency": self.target_currency,
            "rate": str(self.rate),
            "updated_at": to_utc_z(self.updated_at),
        }
