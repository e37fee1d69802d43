from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


RETURN_STATUS_PENDING = "pending"
RETURN_STATUS_APPROVED = "approved"
RETURN_STATUS_PROCESSED = "processed"
RETURN_STATUS_CANCELLED = "cancelled"

RETURN_TYPES = ("full_refund", "partial_refund", "exchange", "store_credit")
RETURN_REASONS = ("defective", "expired", "damaged", "wrong_item", "unwanted", "size_issue", "color_issue", "other")
ITEM_CONDITIONS = ("new", "opened", "damaged", "defective")


class ReturnTransaction(db.Model):
    """
    Record of a single return event.

    LIFECYCLE:
    - pending: settled but waiting for manager sign-off (threshold, window override)
    - approved: settled, no further action needed
    - processed / cancelled: back-office states outside the settlement call

    Immutable after creation except for status promotion.
    Unit prices on lines are copied from the sale, never from the request.
    """
    __tablename__ = "return_transactions"
    __table_args__ = (
        db.Index("ix_return_transactions_customer_created", "customer_id", "created_at"),
        db.Index("ix_return_transactions_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_no = db.Column(db.String(32), nullable=False, unique=True)

    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    policy_id = db.Column(db.Integer, db.ForeignKey("return_policies.id"), nullable=True)

    return_type = db.Column(db.String(24), nullable=False, index=True)
    refund_method = db.Column(db.String(24), nullable=False)
    refund_details = db.Column(db.JSON, nullable=False, default=dict)

    total_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Settlement artifacts
    exchange_slip_id = db.Column(db.Integer, db.ForeignKey("exchange_slips.id"), nullable=True)
    overpayment_id = db.Column(db.Integer, db.ForeignKey("customer_overpayments.id"), nullable=True)

    # Manager approval
    approval_required = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_user_id = db.Column(db.Integer, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approval_reason = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=RETURN_STATUS_PENDING)
    notes = db.Column(db.Text, nullable=True)

    # Client-supplied key that makes a retried settlement a no-op
    idempotency_key = db.Column(db.String(128), nullable=True, unique=True)

    returned_by_user_id = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    original_sale = db.relationship("Sale", backref=db.backref("return_transactions", lazy=True))
    customer = db.relationship("Customer")
    policy = db.relationship("ReturnPolicy")
    exchange_slip = db.relationship("ExchangeSlip", foreign_keys=[exchange_slip_id])
    overpayment = db.relationship("CustomerOverpayment", foreign_keys=[overpayment_id])
    lines = db.relationship("ReturnTransactionLine", back_populates="return_transaction", order_by="ReturnTransactionLine.id", lazy=True)

    def __repr__(self) -> str:
        return f"<ReturnTransaction id={self.id} return_no={self.return_no!r} status={self.status}>"

    @property
    def returned_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_no": self.return_no,
            "original_sale_id": self.original_sale_id,
            "invoice_no": self.original_sale.invoice_no if self.original_sale else None,
            "customer_id": self.customer_id,
            "policy_id": self.policy_id,
            "return_type": self.return_type,
            "refund_method": self.refund_method,
            "refund_details": self.refund_details or {},
            "total_cents": self.total_cents,
            "discount_cents": self.discount_cents,
            "exchange_slip_id": self.exchange_slip_id,
            "overpayment_id": self.overpayment_id,
            "manager_approval": {
                "required": self.approval_required,
                "approved_by_user_id": self.approved_by_user_id,
                "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
                "reason": self.approval_reason,
            },
            "status": self.status,
            "notes": self.notes,
            "idempotency_key": self.idempotency_key,
            "returned_by_user_id": self.returned_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [line.to_dict() for line in self.lines],
        }


class ReturnTransactionLine(db.Model):
    """One returned product on a return transaction."""
    __tablename__ = "return_transaction_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_lines_quantity_positive"),
        db.Index("ix_return_lines_reason", "reason"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_transaction_id = db.Column(db.Integer, db.ForeignKey("return_transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=False)  # per unit, from the sale
    return_amount_cents = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(24), nullable=False)
    condition = db.Column(db.String(16), nullable=False, default="new")
    disposition = db.Column(db.String(24), nullable=False)

    return_transaction = db.relationship("ReturnTransaction", back_populates="lines")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "original_price_cents": self.original_price_cents,
            "return_amount_cents": self.return_amount_cents,
            "reason": self.reason,
            "condition": self.condition,
            "disposition": self.disposition,
        }
