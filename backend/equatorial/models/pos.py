from __future__ import annotations

from ..extensions import db
from equatorial.time_utils import to_utc_z, utcnow


class POSTransaction(db.Model):
    """
    Point-of-sale transaction header.

    LIFECYCLE:
    - A sale is created "completed" together with its items, its stock
      decrements and its inventory ledger rows in one unit of work.
    - A refund is a NEW row (transaction_type="refund") pointing at the
      original through original_transaction_id. Its money columns and item
      quantities are negated; the original is only ever flipped to "refunded".
    - Rows are never deleted.

    All money columns are integer cents. For sales: total = subtotal + tax - discount.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.Index("ix_pos_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_number = db.Column(db.String(64), nullable=False, unique=True)
    transaction_type = db.Column(db.String(16), nullable=False, default="sale", index=True)
    original_transaction_id = db.Column(
        db.Integer, db.ForeignKey("pos_transactions.id"), nullable=True, index=True
    )

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    cash_received_cents = db.Column(db.Integer, nullable=False, default=0)
    change_given_cents = db.Column(db.Integer, nullable=False, default=0)
    card_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    notes = db.Column(db.Text, nullable=True)
    receipt_printed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship("Customer", backref=db.backref("pos_transactions", lazy=True))
    staff = db.relationship("User")
    original_transaction = db.relationship(
        "POSTransaction",
        remote_side=[id],
        backref=db.backref("refunds", lazy=True),
    )
    items = db.relationship(
        "POSTransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="POSTransactionItem.id",
    )

    def __repr__(self) -> str:
        return f"<POSTransaction {self.transaction_number} {self.transaction_type} total={self.total_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "transaction_type": self.transaction_type,
            "original_transaction_id": self.original_transaction_id,
            "customer_id": self.customer_id,
            "staff_id": self.staff_id,
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "cash_received_cents": self.cash_received_cents,
            "change_given_cents": self.change_given_cents,
            "card_amount_cents": self.card_amount_cents,
            "status": self.status,
            "notes": self.notes,
            "receipt_printed": self.receipt_printed,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class POSTransactionItem(db.Model):
    """
    One line of a POS transaction.

    tax_rate_bps is a snapshot of the product's rate at sale time so refunds
    can reverse exactly the tax that was charged. Refund rows carry negative
    quantity / line_total / tax and point at the sale row via refunded_item_id.
    """
    __tablename__ = "pos_transaction_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("pos_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    refunded_item_id = db.Column(
        db.Integer, db.ForeignKey("pos_transaction_items.id"), nullable=True, index=True
    )

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    transaction = db.relationship("POSTransaction", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "refunded_item_id": self.refunded_item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
        }
