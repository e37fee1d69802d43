# Overview: Read-only validation of a return request against the sale and its policy.

"""
Return validation

Produces the full verdict for a return request: every problem is collected
into one list instead of stopping at the first failure, so the till can show
all of them at once.

Hard errors make the request invalid. Warnings never block; some of them
(window override, approval threshold, no-receipt returns) flip
`requires_approval` so the return is created as pending.

The validator performs no writes. The processor calls it a second time inside
its unit of work, against the locked sale, to close the check-then-act gap.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..errors import NotFoundError
from ..extensions import db
from ..models import ReturnTransaction, Sale
from ..models.returns import RETURN_STATUS_APPROVED, RETURN_STATUS_PROCESSED
from ..time_utils import utcnow, whole_days_between
from ..validation import ReturnRequest
from .policy_service import CREDIT_METHODS, PolicyRules, resolve_policy_for_sale


@dataclass
class ReturnValidation:
    valid: bool
    errors: list[str]
    warnings: list[str]
    requires_approval: bool
    policy: PolicyRules
    sale: Sale | None = field(default=None, repr=False)
    total_cents: int = 0
    days_since_sale: int = 0

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "requires_approval": self.requires_approval,
            "policy": self.policy.to_dict(),
            "total_cents": self.total_cents,
            "days_since_sale": self.days_since_sale,
        }


def returned_quantities(sale: Sale) -> dict[int, int]:
    """Replay the sale's returns log into product_id -> quantity already returned."""
    returned: dict[int, int] = defaultdict(int)
    for record in sale.return_records:
        for item in record.items:
            returned[item.product_id] += item.quantity
    return dict(returned)


def _sold_lines(sale: Sale) -> tuple[dict[int, int], dict[int, int], dict[int, object]]:
    sold: dict[int, int] = defaultdict(int)
    unit_price: dict[int, int] = {}
    products: dict[int, object] = {}
    for line in sale.lines:
        sold[line.product_id] += line.quantity
        unit_price.setdefault(line.product_id, line.unit_price_cents)
        products.setdefault(line.product_id, line.product)
    return dict(sold), unit_price, products


def _count_recent_returns(session, customer_id: int, since: datetime) -> int:
    return (
        session.query(ReturnTransaction)
        .filter(
            ReturnTransaction.customer_id == customer_id,
            ReturnTransaction.status.in_((RETURN_STATUS_APPROVED, RETURN_STATUS_PROCESSED)),
            ReturnTransaction.created_at >= since,
        )
        .count()
    )


def validate_return(
    request: ReturnRequest,
    *,
    session=None,
    sale: Sale | None = None,
    now: datetime | None = None,
) -> ReturnValidation:
    """
    Validate a return request.

    Args:
        request: parsed return request
        session: session to read through (the unit of work's session when
            called from the processor)
        sale: already-loaded (and locked) sale; loaded by id when omitted
        now: evaluation time, defaults to utcnow()

    Returns:
        ReturnValidation; `valid` is True only when `errors` is empty.

    Raises:
        NotFoundError: sale does not exist
        ConfigurationError: the resolved policy is malformed
    """
    session = session if session is not None else db.session
    now = now or utcnow()

    if sale is None:
        sale = session.get(Sale, request.sale_id)
    if sale is None:
        raise NotFoundError(f"Sale {request.sale_id} not found")

    policy = resolve_policy_for_sale(sale, session)
    override = request.manager_override

    errors: list[str] = []
    warnings: list[str] = []
    requires_approval = policy.manager_approval_required

    # Return window
    days_since_sale = whole_days_between(sale.created_at, now)
    if days_since_sale > policy.return_window_days:
        if override:
            warnings.append(
                f"Return window of {policy.return_window_days} days exceeded "
                f"({days_since_sale} days since sale); manager override applied"
            )
            requires_approval = True
        else:
            errors.append(
                f"Return window of {policy.return_window_days} days has expired "
                f"({days_since_sale} days since sale)"
            )

    # Items
    sold, unit_price, products = _sold_lines(sale)
    already = returned_quantities(sale)
    requested: dict[int, int] = defaultdict(int)

    for item in request.items:
        if item.quantity <= 0:
            errors.append(f"Quantity for product {item.product_id} must be positive")
            continue
        if item.return_amount_cents < 0:
            errors.append(f"Return amount for product {item.product_id} cannot be negative")
            continue
        if item.product_id not in sold:
            errors.append(f"Product {item.product_id} is not part of sale {sale.invoice_no}")
            continue

        product = products.get(item.product_id)
        label = product.name if product is not None else f"product {item.product_id}"
        if item.product_id in policy.excluded_product_ids:
            errors.append(f"{label} is excluded from returns by policy")
        elif product is not None and product.category_id in policy.excluded_category_ids:
            errors.append(f"{label} belongs to a category excluded from returns by policy")

        requested[item.product_id] += item.quantity

        max_amount = unit_price[item.product_id] * item.quantity
        if item.return_amount_cents > max_amount:
            warnings.append(
                f"Return amount {item.return_amount_cents} for {label} exceeds "
                f"original price {max_amount}"
            )

    # Quantities are checked per product so split lines cannot over-return
    for product_id, quantity in requested.items():
        available = sold[product_id] - already.get(product_id, 0)
        if quantity > available:
            product = products.get(product_id)
            label = product.name if product is not None else f"product {product_id}"
            errors.append(
                f"Cannot return {quantity} of {label} (product {product_id}): "
                f"only {available} available for return"
            )

    # Amounts
    items_total = request.items_total_cents
    if request.discount_cents < 0:
        errors.append("Discount cannot be negative")
    elif request.discount_cents > items_total:
        errors.append(f"Discount {request.discount_cents} exceeds the item total {items_total}")
    total = items_total - request.discount_cents

    if sale.returned_total_cents + total > sale.total_cents:
        errors.append(
            f"Return total {total} plus previously returned {sale.returned_total_cents} "
            f"exceeds sale total {sale.total_cents}"
        )

    # Threshold applies to the item amounts before any return discount
    if policy.approval_threshold_cents and items_total > policy.approval_threshold_cents:
        requires_approval = True
        warnings.append(
            f"Return amount {items_total} exceeds approval threshold {policy.approval_threshold_cents}; "
            "manager approval required"
        )

    if policy.max_return_amount_enabled and total > policy.max_return_amount_cents:
        if override:
            requires_approval = True
            warnings.append(
                f"Return total {total} exceeds maximum {policy.max_return_amount_cents}; manager override applied"
            )
        else:
            errors.append(f"Return total {total} exceeds maximum return amount {policy.max_return_amount_cents}")

    # Receipt
    if policy.receipt_required and not request.has_receipt:
        if policy.allow_no_receipt_returns:
            requires_approval = True
            warnings.append("Return without receipt requires manager approval")
        else:
            errors.append("A receipt is required for returns under this policy")

    # Refund method
    method = request.refund_method
    if not policy.allows(method):
        if override:
            requires_approval = True
            warnings.append(f"Refund method {method.value} is not allowed by policy; manager override applied")
        else:
            errors.append(f"Refund method {method.value} is not allowed by policy")
    if method in CREDIT_METHODS and total <= 0:
        errors.append(f"Refund method {method.value} requires a positive return total")

    # Per-customer limit
    if policy.max_returns_enabled and sale.customer_id is not None:
        since = now - timedelta(days=policy.max_returns_period_days)
        recent = _count_recent_returns(session, sale.customer_id, since)
        if recent >= policy.max_returns_count:
            errors.append(
                f"Customer has reached the limit of {policy.max_returns_count} returns "
                f"in {policy.max_returns_period_days} days"
            )

    return ReturnValidation(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        requires_approval=requires_approval,
        policy=policy,
        sale=sale,
        total_cents=total,
        days_since_sale=days_since_sale,
    )
