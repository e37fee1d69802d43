from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..time_utils import to_utc_z


DISPOSITIONS = ("restock", "damage", "write_off", "return_to_supplier")


class RefundMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL = "digital"
    STORE_CREDIT = "store_credit"
    EXCHANGE_SLIP = "exchange_slip"
    OVERPAYMENT = "overpayment"


class RefundFlag(str, Enum):
    ALLOW_CASH = "allow_cash"
    ALLOW_CARD = "allow_card"
    ALLOW_BANK_TRANSFER = "allow_bank_transfer"
    ALLOW_DIGITAL = "allow_digital"
    ALLOW_STORE_CREDIT = "allow_store_credit"
    ALLOW_EXCHANGE = "allow_exchange"


return_policy_categories = db.Table(
    "return_policy_categories",
    db.Column("policy_id", db.Integer, db.ForeignKey("return_policies.id"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("categories.id"), primary_key=True),
)

return_policy_products = db.Table(
    "return_policy_products",
    db.Column("policy_id", db.Integer, db.ForeignKey("return_policies.id"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("products.id"), primary_key=True),
)

return_policy_excluded_categories = db.Table(
    "return_policy_excluded_categories",
    db.Column("policy_id", db.Integer, db.ForeignKey("return_policies.id"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("categories.id"), primary_key=True),
)

return_policy_excluded_products = db.Table(
    "return_policy_excluded_products",
    db.Column("policy_id", db.Integer, db.ForeignKey("return_policies.id"), primary_key=True),
    db.Column("product_id", db.Integer, db.ForeignKey("products.id"), primary_key=True),
)


class ReturnPolicy(db.Model):
    """
    Return policy configuration.

    Read-only at return time: the settlement engine never mutates policies.
    Several active policies may overlap; the lowest `priority` that applies
    to a sale wins (see policy_service.resolve_policy).
    """
    __tablename__ = "return_policies"
    __table_args__ = (
        db.Index("ix_return_policies_active_priority", "is_active", "priority"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    priority = db.Column(db.Integer, nullable=False, default=1)

    # Return window
    return_window_days = db.Column(db.Integer, nullable=False, default=30)
    extended_days = db.Column(db.Integer, nullable=False, default=0)

    # Refund methods
    allow_cash = db.Column(db.Boolean, nullable=False, default=True)
    allow_card = db.Column(db.Boolean, nullable=False, default=True)
    allow_bank_transfer = db.Column(db.Boolean, nullable=False, default=False)
    allow_digital = db.Column(db.Boolean, nullable=False, default=True)
    allow_store_credit = db.Column(db.Boolean, nullable=False, default=True)
    allow_exchange = db.Column(db.Boolean, nullable=False, default=True)

    # Approval requirements
    manager_approval_required = db.Column(db.Boolean, nullable=False, default=False)
    approval_threshold_cents = db.Column(db.Integer, nullable=False, default=0)
    receipt_required = db.Column(db.Boolean, nullable=False, default=True)
    allow_no_receipt_returns = db.Column(db.Boolean, nullable=False, default=False)

    # Restrictions
    max_returns_enabled = db.Column(db.Boolean, nullable=False, default=False)
    max_returns_count = db.Column(db.Integer, nullable=False, default=5)
    max_returns_period_days = db.Column(db.Integer, nullable=False, default=30)
    max_return_amount_enabled = db.Column(db.Boolean, nullable=False, default=False)
    max_return_amount_cents = db.Column(db.Integer, nullable=False, default=1_000_000)

    # Exchange slips
    exchange_slip_expiry_days = db.Column(db.Integer, nullable=True)

    # Stock handling
    auto_restock = db.Column(db.Boolean, nullable=False, default=True)
    require_condition_check = db.Column(db.Boolean, nullable=False, default=True)
    default_disposition = db.Column(db.String(24), nullable=False, default="restock")

    # Notifications
    notify_customer_email = db.Column(db.Boolean, nullable=False, default=False)
    notify_customer_sms = db.Column(db.Boolean, nullable=False, default=False)
    notify_manager = db.Column(db.Boolean, nullable=False, default=False)

    # Applicability
    applies_to_all_products = db.Column(db.Boolean, nullable=False, default=True)
    customer_types = db.Column(db.JSON, nullable=False, default=list)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    categories = db.relationship("Category", secondary=return_policy_categories, lazy="selectin")
    products = db.relationship("Product", secondary=return_policy_products, lazy="selectin")
    excluded_categories = db.relationship("Category", secondary=return_policy_excluded_categories, lazy="selectin")
    excluded_products = db.relationship("Product", secondary=return_policy_excluded_products, lazy="selectin")

    def __repr__(self) -> str:
        return f"<ReturnPolicy id={self.id} name={self.name!r} priority={self.priority}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "priority": self.priority,
            "return_window": {"days": self.return_window_days, "extended_days": self.extended_days},
            "refund_methods": {
                "allow_cash": self.allow_cash,
                "allow_card": self.allow_card,
                "allow_bank_transfer": self.allow_bank_transfer,
                "allow_digital": self.allow_digital,
                "allow_store_credit": self.allow_store_credit,
                "allow_exchange": self.allow_exchange,
            },
            "approval_requirements": {
                "manager_approval_required": self.manager_approval_required,
                "approval_threshold_cents": self.approval_threshold_cents,
                "receipt_required": self.receipt_required,
                "allow_no_receipt_returns": self.allow_no_receipt_returns,
            },
            "restrictions": {
                "max_returns_per_customer": {
                    "enabled": self.max_returns_enabled,
                    "count": self.max_returns_count,
                    "period_days": self.max_returns_period_days,
                },
                "max_return_amount": {
                    "enabled": self.max_return_amount_enabled,
                    "amount_cents": self.max_return_amount_cents,
                },
                "exclude_categories": [c.id for c in self.excluded_categories],
                "exclude_products": [p.id for p in self.excluded_products],
            },
            "exchange_slip_expiry_days": self.exchange_slip_expiry_days,
            "stock_handling": {
                "auto_restock": self.auto_restock,
                "require_condition_check": self.require_condition_check,
                "default_disposition": self.default_disposition,
            },
            "notifications": {
                "email_customer": self.notify_customer_email,
                "sms_customer": self.notify_customer_sms,
                "notify_manager": self.notify_manager,
            },
            "applicable_to": {
                "all_products": self.applies_to_all_products,
                "categories": [c.id for c in self.categories],
                "products": [p.id for p in self.products],
                "customer_types": list(self.customer_types or []),
            },
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
