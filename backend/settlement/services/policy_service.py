# Overview: Return policy resolution and the refund-method to policy-flag table.

from __future__ import annotations

from dataclasses import dataclass, field

from ..errors import ConfigurationError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, Product, ReturnPolicy, Sale
from ..models.customers import CUSTOMER_TYPES
from ..models.policies import DISPOSITIONS, RefundFlag, RefundMethod
from ..validation import coerce_bool, coerce_int


# Exhaustive: every RefundMethod has exactly one flag.
REFUND_METHOD_FLAGS: dict[RefundMethod, RefundFlag] = {
    RefundMethod.CASH: RefundFlag.ALLOW_CASH,
    RefundMethod.CARD: RefundFlag.ALLOW_CARD,
    RefundMethod.BANK_TRANSFER: RefundFlag.ALLOW_BANK_TRANSFER,
    RefundMethod.DIGITAL: RefundFlag.ALLOW_DIGITAL,
    RefundMethod.STORE_CREDIT: RefundFlag.ALLOW_STORE_CREDIT,
    RefundMethod.OVERPAYMENT: RefundFlag.ALLOW_STORE_CREDIT,
    RefundMethod.EXCHANGE_SLIP: RefundFlag.ALLOW_EXCHANGE,
}

CREDIT_METHODS = frozenset({RefundMethod.STORE_CREDIT, RefundMethod.OVERPAYMENT})


@dataclass(frozen=True)
class PolicyRules:
    """Immutable view of the policy applied to one return."""

    policy_id: int | None = None
    name: str = "Default return policy"
    priority: int | None = None

    return_window_days: int = 30

    allow_cash: bool = True
    allow_card: bool = True
    allow_bank_transfer: bool = False
    allow_digital: bool = True
    allow_store_credit: bool = True
    allow_exchange: bool = True

    manager_approval_required: bool = False
    approval_threshold_cents: int = 0
    receipt_required: bool = True
    allow_no_receipt_returns: bool = False

    max_returns_enabled: bool = False
    max_returns_count: int = 5
    max_returns_period_days: int = 30
    max_return_amount_enabled: bool = False
    max_return_amount_cents: int = 1_000_000

    excluded_category_ids: frozenset[int] = field(default_factory=frozenset)
    excluded_product_ids: frozenset[int] = field(default_factory=frozenset)

    exchange_slip_expiry_days: int | None = None

    auto_restock: bool = True
    default_disposition: str = "restock"

    notify_customer_email: bool = False
    notify_customer_sms: bool = False
    notify_manager: bool = False

    @property
    def is_default(self) -> bool:
        return self.policy_id is None

    def allows(self, method: RefundMethod) -> bool:
        return bool(getattr(self, REFUND_METHOD_FLAGS[method].value))

    @classmethod
    def from_model(cls, policy: ReturnPolicy) -> "PolicyRules":
        if policy.default_disposition not in DISPOSITIONS:
            raise ConfigurationError(
                f"Return policy {policy.id} has unknown default disposition {policy.default_disposition!r}"
            )
        if policy.return_window_days is None or policy.return_window_days < 0:
            raise ConfigurationError(f"Return policy {policy.id} has an invalid return window")
        if policy.max_returns_enabled and (policy.max_returns_count or 0) < 1:
            raise ConfigurationError(f"Return policy {policy.id} has an invalid per-customer return limit")

        return cls(
            policy_id=policy.id,
            name=policy.name,
            priority=policy.priority,
            return_window_days=policy.return_window_days,
            allow_cash=policy.allow_cash,
            allow_card=policy.allow_card,
            allow_bank_transfer=policy.allow_bank_transfer,
            allow_digital=policy.allow_digital,
            allow_store_credit=policy.allow_store_credit,
            allow_exchange=policy.allow_exchange,
            manager_approval_required=policy.manager_approval_required,
            approval_threshold_cents=policy.approval_threshold_cents or 0,
            receipt_required=policy.receipt_required,
            allow_no_receipt_returns=policy.allow_no_receipt_returns,
            max_returns_enabled=policy.max_returns_enabled,
            max_returns_count=policy.max_returns_count,
            max_returns_period_days=policy.max_returns_period_days or 30,
            max_return_amount_enabled=policy.max_return_amount_enabled,
            max_return_amount_cents=policy.max_return_amount_cents,
            excluded_category_ids=frozenset(c.id for c in policy.excluded_categories),
            excluded_product_ids=frozenset(p.id for p in policy.excluded_products),
            exchange_slip_expiry_days=policy.exchange_slip_expiry_days,
            auto_restock=policy.auto_restock,
            default_disposition=policy.default_disposition,
            notify_customer_email=policy.notify_customer_email,
            notify_customer_sms=policy.notify_customer_sms,
            notify_manager=policy.notify_manager,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.policy_id,
            "name": self.name,
            "priority": self.priority,
            "is_default": self.is_default,
            "return_window": {"days": self.return_window_days},
            "refund_methods": {flag.value: bool(getattr(self, flag.value)) for flag in RefundFlag},
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
                "exclude_categories": sorted(self.excluded_category_ids),
                "exclude_products": sorted(self.excluded_product_ids),
            },
            "exchange_slip_expiry_days": self.exchange_slip_expiry_days,
            "stock_handling": {
                "auto_restock": self.auto_restock,
                "default_disposition": self.default_disposition,
            },
        }


# Used when no active policy applies to a sale
DEFAULT_POLICY = PolicyRules()


def _applies_to_sale(policy: ReturnPolicy, product_ids: set[int], category_ids: set[int], customer_type: str | None) -> bool:
    if any(p.id in product_ids for p in policy.products):
        return True
    if any(c.id in category_ids for c in policy.categories):
        return True
    if customer_type and customer_type in (policy.customer_types or []):
        return True
    return False


def resolve_policy_for_sale(sale: Sale, session=None) -> PolicyRules:
    """
    Pick the single policy for a sale.

    Active policies are scanned in ascending priority; a policy that covers
    all products wins immediately, otherwise the first one listing any of the
    sale's products, categories or the customer's type. Falls back to
    DEFAULT_POLICY. Read-only.
    """
    session = session if session is not None else db.session
    policies = (
        session.query(ReturnPolicy)
        .filter(ReturnPolicy.is_active.is_(True))
        .order_by(ReturnPolicy.priority.asc(), ReturnPolicy.id.asc())
        .all()
    )
    if not policies:
        return DEFAULT_POLICY

    product_ids = {line.product_id for line in sale.lines}
    category_ids = {
        line.product.category_id
        for line in sale.lines
        if line.product is not None and line.product.category_id is not None
    }
    customer_type = sale.customer.customer_type if sale.customer else None

    for policy in policies:
        if policy.applies_to_all_products:
            return PolicyRules.from_model(policy)
        if _applies_to_sale(policy, product_ids, category_ids, customer_type):
            return PolicyRules.from_model(policy)

    return DEFAULT_POLICY


def resolve_policy(sale_id: int, session=None) -> PolicyRules:
    session = session if session is not None else db.session
    sale = session.get(Sale, sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {sale_id} not found")
    return resolve_policy_for_sale(sale, session)


def list_active_policies() -> list[ReturnPolicy]:
    return (
        db.session.query(ReturnPolicy)
        .filter(ReturnPolicy.is_active.is_(True))
        .order_by(ReturnPolicy.priority.asc(), ReturnPolicy.created_at.desc())
        .all()
    )


# =============================================================================
# POLICY ADMINISTRATION
# =============================================================================

POLICY_BOOL_FIELDS = (
    "is_active",
    "allow_cash", "allow_card", "allow_bank_transfer", "allow_digital", "allow_store_credit", "allow_exchange",
    "manager_approval_required", "receipt_required", "allow_no_receipt_returns",
    "max_returns_enabled", "max_return_amount_enabled",
    "auto_restock", "require_condition_check",
    "notify_customer_email", "notify_customer_sms", "notify_manager",
    "applies_to_all_products",
)

POLICY_INT_FIELDS = (
    ("priority", 1),
    ("return_window_days", 0),
    ("extended_days", 0),
    ("approval_threshold_cents", 0),
    ("max_returns_count", 1),
    ("max_returns_period_days", 1),
    ("max_return_amount_cents", 0),
    ("exchange_slip_expiry_days", 1),
)

POLICY_ID_LISTS = (
    ("category_ids", "categories", Category),
    ("product_ids", "products", Product),
    ("excluded_category_ids", "excluded_categories", Category),
    ("excluded_product_ids", "excluded_products", Product),
)


def _load_related(model, ids, name: str, errors: list[str]) -> list:
    if ids is None:
        return []
    if not isinstance(ids, list):
        errors.append(f"{name} must be a list of ids")
        return []
    wanted = []
    for raw in ids:
        value = coerce_int(raw, name, errors, minimum=1)
        if value is not None:
            wanted.append(value)
    rows = db.session.query(model).filter(model.id.in_(wanted)).all() if wanted else []
    missing = sorted(set(wanted) - {row.id for row in rows})
    if missing:
        errors.append(f"{name} references unknown ids: {missing}")
    return rows


def create_policy(data: dict, created_by_user_id: int | None = None) -> ReturnPolicy:
    """
    Create a return policy from a flat JSON payload.

    Column names are used as keys; applicability and exclusions are given as
    id lists (category_ids, product_ids, excluded_category_ids,
    excluded_product_ids).

    Raises:
        ValidationError: with every malformed field
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    errors: list[str] = []
    name = (data.get("name") or "").strip()
    if not name:
        errors.append("name is required")

    policy = ReturnPolicy(
        name=name,
        description=(data.get("description") or None),
        created_by_user_id=created_by_user_id,
    )

    for field_name in POLICY_BOOL_FIELDS:
        if field_name in data:
            setattr(policy, field_name, coerce_bool(data[field_name]))

    for field_name, minimum in POLICY_INT_FIELDS:
        if data.get(field_name) is not None:
            setattr(policy, field_name, coerce_int(data[field_name], field_name, errors, minimum=minimum))

    disposition = data.get("default_disposition")
    if disposition is not None:
        if disposition not in DISPOSITIONS:
            errors.append(f"default_disposition must be one of: {', '.join(DISPOSITIONS)}")
        else:
            policy.default_disposition = disposition

    customer_types = data.get("customer_types") or []
    if not isinstance(customer_types, list) or any(t not in CUSTOMER_TYPES for t in customer_types):
        errors.append(f"customer_types must be a list drawn from: {', '.join(CUSTOMER_TYPES)}")
    else:
        policy.customer_types = list(customer_types)

    for key, attr, model in POLICY_ID_LISTS:
        setattr(policy, attr, _load_related(model, data.get(key), key, errors))

    # A scoped policy is not a catch-all unless the caller says so
    if "applies_to_all_products" not in data:
        policy.applies_to_all_products = not (policy.categories or policy.products or policy.customer_types)

    if errors:
        raise ValidationError(errors)

    db.session.add(policy)
    db.session.commit()
    return policy


def seed_default_policy(created_by_user_id: int | None = None) -> ReturnPolicy:
    """Persist the built-in default as an editable catch-all policy (idempotent)."""
    existing = db.session.query(ReturnPolicy).filter_by(name=DEFAULT_POLICY.name).first()
    if existing is not None:
        return existing
    return create_policy(
        {
            "name": DEFAULT_POLICY.name,
            "description": "Catch-all policy applied when nothing more specific matches",
            "priority": 1000,
            "applies_to_all_products": True,
        },
        created_by_user_id=created_by_user_id,
    )
