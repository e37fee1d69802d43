from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SLIP_STATUS_ACTIVE = "active"
SLIP_STATUS_REDEEMED = "redeemed"
SLIP_STATUS_EXPIRED = "expired"
SLIP_STATUS_CANCELLED = "cancelled"

CREDIT_STATUS_ACTIVE = "active"
CREDIT_STATUS_FULLY_USED = "fully_used"
CREDIT_STATUS_EXPIRED = "expired"
CREDIT_STATUS_CANCELLED = "cancelled"

CREDIT_SOURCES = ("refund", "overpayment", "store_credit", "gift_card")


class ExchangeSlip(db.Model):
    """
    Redeemable voucher issued instead of a cash refund.

    LIFECYCLE:
    active -> redeemed   (exactly once)
    active -> cancelled  (exactly once)
    active -> expired    (maintenance sweep)

    Terminal states never transition again. Status changes are applied as a
    conditional UPDATE ... WHERE status = 'active' so two racing redeemers
    cannot both win.
    """
    __tablename__ = "exchange_slips"
    __table_args__ = (
        db.Index("ix_exchange_slips_customer_created", "customer_id", "created_at"),
        db.Index("ix_exchange_slips_status_expiry", "status", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    slip_no = db.Column(db.String(32), nullable=False, unique=True)

    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    total_value_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SLIP_STATUS_ACTIVE)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=False)

    issued_by_user_id = db.Column(db.Integer, nullable=False)
    redeemed_by_user_id = db.Column(db.Integer, nullable=True)
    redeemed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    redemption_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    cancelled_by_user_id = db.Column(db.Integer, nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    original_sale = db.relationship(
        "Sale", foreign_keys=[original_sale_id], backref=db.backref("exchange_slips_issued", lazy=True)
    )
    redemption_sale = db.relationship("Sale", foreign_keys=[redemption_sale_id])
    customer = db.relationship("Customer")
    items = db.relationship("ExchangeSlipItem", back_populates="slip", order_by="ExchangeSlipItem.id", lazy=True)

    def __repr__(self) -> str:
        return f"<ExchangeSlip id={self.id} slip_no={self.slip_no!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slip_no": self.slip_no,
            "original_sale_id": self.original_sale_id,
            "invoice_no": self.original_sale.invoice_no if self.original_sale else None,
            "customer": self.customer.to_dict() if self.customer else None,
            "customer_id": self.customer_id,
            "total_value_cents": self.total_value_cents,
            "status": self.status,
            "expiry_date": to_utc_z(self.expiry_date),
            "issued_by_user_id": self.issued_by_user_id,
            "redeemed_by_user_id": self.redeemed_by_user_id,
            "redeemed_at": to_utc_z(self.redeemed_at) if self.redeemed_at else None,
            "redemption_sale_id": self.redemption_sale_id,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class ExchangeSlipItem(db.Model):
    __tablename__ = "exchange_slip_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    slip_id = db.Column(db.Integer, db.ForeignKey("exchange_slips.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=False)
    exchange_value_cents = db.Column(db.Integer, nullable=False)

    slip = db.relationship("ExchangeSlip", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "original_price_cents": self.original_price_cents,
            "exchange_value_cents": self.exchange_value_cents,
        }


class CustomerOverpayment(db.Model):
    """
    Store-credit ledger row.

    INVARIANTS:
    - 0 <= balance_cents <= amount_cents
    - balance only decreases after creation
    - sum(usage.used_amount_cents) == amount_cents - balance_cents

    Each return creates a new row; existing rows are never topped up.
    """
    __tablename__ = "customer_overpayments"
    __table_args__ = (
        db.CheckConstraint("balance_cents >= 0", name="ck_overpayments_balance_nonneg"),
        db.CheckConstraint("balance_cents <= amount_cents", name="ck_overpayments_balance_le_amount"),
        db.Index("ix_overpayments_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    balance_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="LKR")

    source = db.Column(db.String(16), nullable=False, default="refund")
    source_reference = db.Column(db.String(32), nullable=True)
    original_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=CREDIT_STATUS_ACTIVE)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("overpayments", lazy=True))
    original_sale = db.relationship("Sale", backref=db.backref("overpayments", lazy=True))
    usage_history = db.relationship(
        "OverpaymentUsage", back_populates="overpayment", order_by="OverpaymentUsage.id", lazy=True
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "amount_cents": self.amount_cents,
            "balance_cents": self.balance_cents,
            "currency": self.currency,
            "source": self.source,
            "source_reference": self.source_reference,
            "original_sale_id": self.original_sale_id,
            "status": self.status,
            "expiry_date": to_utc_z(self.expiry_date) if self.expiry_date else None,
            "created_by_user_id": self.created_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "usage_history": [usage.to_dict() for usage in self.usage_history],
        }


class OverpaymentUsage(db.Model):
    """Append-only consumption history of a credit row."""
    __tablename__ = "overpayment_usages"
    __table_args__ = (
        db.CheckConstraint("used_amount_cents > 0", name="ck_overpayment_usages_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    overpayment_id = db.Column(db.Integer, db.ForeignKey("customer_overpayments.id"), nullable=False, index=True)

    used_amount_cents = db.Column(db.Integer, nullable=False)
    remaining_balance_cents = db.Column(db.Integer, nullable=False)
    used_in_sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    used_by_user_id = db.Column(db.Integer, nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)

    overpayment = db.relationship("CustomerOverpayment", back_populates="usage_history")

    def to_dict(self) -> dict:
        return {
            "used_amount_cents": self.used_amount_cents,
            "remaining_balance_cents": self.remaining_balance_cents,
            "used_in_sale_id": self.used_in_sale_id,
            "used_by_user_id": self.used_by_user_id,
            "used_at": to_utc_z(self.used_at),
            "notes": self.notes,
        }
