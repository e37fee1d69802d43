# Overview: Exchange slip and store-credit settlement (issue, redeem, cancel, consume).

"""
Settlement strategies

Two independent issuers are chosen by refund method during a return:

- exchange slip: a voucher bound to the returned items, redeemable once
- customer credit: a new store-credit ledger row (never a top-up of an
  existing one)

The issuers take the caller's unit of work and never commit. Redeem, cancel,
expire and credit consumption run in their own unit of work.

SLIP STATE CHANGES are conditional updates (`WHERE status = 'active'`), so
two racing redeemers or a redeem racing a cancel cannot both succeed.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import or_, update

from ..errors import ConfigurationError, NotFoundError, ValidationError
from ..extensions import db, read_cache
from ..models import (
    Customer,
    CustomerOverpayment,
    ExchangeSlip,
    ExchangeSlipItem,
    OverpaymentUsage,
    Sale,
)
from ..models.settlements import (
    CREDIT_SOURCES,
    CREDIT_STATUS_ACTIVE,
    CREDIT_STATUS_FULLY_USED,
    SLIP_STATUS_ACTIVE,
    SLIP_STATUS_CANCELLED,
    SLIP_STATUS_EXPIRED,
    SLIP_STATUS_REDEEMED,
)
from ..time_utils import utcnow
from .concurrency import lock_for_update
from .notification_service import (
    EVENT_CREDIT_USED,
    EVENT_SLIP_CANCELLED,
    EVENT_SLIP_REDEEMED,
    notify_after_commit,
)
from .sequence_service import next_document_number
from .unit_of_work import UnitOfWork, run_in_unit_of_work

logger = logging.getLogger(__name__)

SALES_CACHE_PREFIX = "sales:"
SLIPS_CACHE_PREFIX = "slips:"
SLIP_SEARCH_DEFAULT_LIMIT = 20
SLIP_SEARCH_MAX_LIMIT = 50


def invalidate_read_caches(uow: UnitOfWork) -> None:
    """Drop cached sale lookups and slip searches once the mutation commits."""
    uow.add_after_commit(lambda: read_cache.invalidate_prefix(SALES_CACHE_PREFIX))
    uow.add_after_commit(lambda: read_cache.invalidate_prefix(SLIPS_CACHE_PREFIX))


def _digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


# =============================================================================
# EXCHANGE SLIPS
# =============================================================================

def allocate_exchange_values(amounts: list[int], discount_cents: int) -> list[int]:
    """
    Spread a return discount over the item amounts, first item first.

    The result always sums to sum(amounts) - discount_cents and no value goes
    below zero.
    """
    remaining = max(0, discount_cents)
    values = []
    for amount in amounts:
        taken = min(remaining, amount)
        values.append(amount - taken)
        remaining -= taken
    return values


def issue_exchange_slip(
    uow: UnitOfWork,
    *,
    sale: Sale,
    items,
    unit_prices: dict[int, int],
    discount_cents: int,
    issued_by_user_id: int,
    expiry_days: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> ExchangeSlip:
    """
    Create an active exchange slip for the returned items.

    Args:
        items: returned items (product_id, quantity, return_amount_cents)
        unit_prices: product_id -> unit price on the original sale
        expiry_days: policy override; falls back to EXCHANGE_SLIP_EXPIRY_DAYS

    Returns:
        The new slip, flushed so its id is available.
    """
    now = now or utcnow()
    if expiry_days is None:
        expiry_days = current_app.config.get("EXCHANGE_SLIP_EXPIRY_DAYS", 90)

    values = allocate_exchange_values([item.return_amount_cents for item in items], discount_cents)

    slip = ExchangeSlip(
        slip_no=next_document_number(uow, prefix=current_app.config.get("EXCHANGE_SLIP_PREFIX", "EXS"), on=now),
        original_sale_id=sale.id,
        customer_id=sale.customer_id,
        total_value_cents=sum(values),
        status=SLIP_STATUS_ACTIVE,
        expiry_date=now + timedelta(days=expiry_days),
        issued_by_user_id=issued_by_user_id,
        notes=notes,
        created_at=now,
    )
    for item, value in zip(items, values):
        slip.items.append(ExchangeSlipItem(
            product_id=item.product_id,
            quantity=item.quantity,
            original_price_cents=unit_prices.get(item.product_id, 0),
            exchange_value_cents=value,
        ))
    uow.session.add(slip)
    uow.flush()
    return slip


def get_exchange_slip(slip_no: str) -> ExchangeSlip:
    slip = db.session.query(ExchangeSlip).filter_by(slip_no=(slip_no or "").strip()).first()
    if slip is None:
        raise NotFoundError(f"Exchange slip {slip_no} not found")
    return slip


def _find_slip(session, identifier: str) -> ExchangeSlip | None:
    """Slip numbers win over ids when a digit-only value matches both."""
    identifier = (identifier or "").strip()
    if not identifier:
        raise ValidationError("Exchange slip identifier is required")
    slip = session.query(ExchangeSlip).filter(ExchangeSlip.slip_no == identifier).first()
    if slip is None and identifier.isdigit():
        slip = session.get(ExchangeSlip, int(identifier))
    return slip


def _transition_slip(session, slip: ExchangeSlip, new_status: str, **values) -> bool:
    result = session.execute(
        update(ExchangeSlip)
        .where(ExchangeSlip.id == slip.id, ExchangeSlip.status == SLIP_STATUS_ACTIVE)
        .values(status=new_status, **values)
        .execution_options(synchronize_session=False)
    )
    session.refresh(slip)
    return bool(result.rowcount)


def redeem_exchange_slip(slip_no: str, sale_id: int, redeemed_by_user_id: int, now: datetime | None = None) -> ExchangeSlip:
    """
    Redeem an active slip against a new sale. Exactly one caller wins.

    Raises:
        NotFoundError: slip or redemption sale does not exist
        ValidationError: slip is not active, or has passed its expiry date
    """
    now = now or utcnow()

    def _work(uow: UnitOfWork) -> ExchangeSlip:
        slip = _find_slip(uow.session, slip_no)
        if slip is None:
            raise NotFoundError(f"Exchange slip {slip_no} not found")
        if uow.session.get(Sale, sale_id) is None:
            raise NotFoundError(f"Sale {sale_id} not found")

        if slip.status != SLIP_STATUS_ACTIVE:
            raise ValidationError(f"Exchange slip {slip.slip_no} is not active (status: {slip.status})")
        if slip.expiry_date < now:
            raise ValidationError(f"Exchange slip {slip.slip_no} has expired")

        won = _transition_slip(
            uow.session,
            slip,
            SLIP_STATUS_REDEEMED,
            redeemed_by_user_id=redeemed_by_user_id,
            redeemed_at=now,
            redemption_sale_id=sale_id,
        )
        if not won:
            raise ValidationError(f"Exchange slip {slip.slip_no} is not active (status: {slip.status})")

        invalidate_read_caches(uow)
        notify_after_commit(uow, EVENT_SLIP_REDEEMED, {
            "slip_no": slip.slip_no,
            "sale_id": sale_id,
            "customer_id": slip.customer_id,
            "total_value_cents": slip.total_value_cents,
        })
        return slip

    slip = run_in_unit_of_work(_work)
    logger.info("Exchange slip %s redeemed on sale %s", slip.slip_no, sale_id)
    return slip


def cancel_exchange_slip(identifier: str, cancelled_by_user_id: int, reason: str | None = None) -> ExchangeSlip:
    """
    Cancel an active slip by slip number or id.

    Raises:
        NotFoundError: no such slip
        ValidationError: slip is not active
    """
    def _work(uow: UnitOfWork) -> ExchangeSlip:
        slip = _find_slip(uow.session, identifier)
        if slip is None:
            raise NotFoundError(f"Exchange slip {identifier} not found")
        if slip.status != SLIP_STATUS_ACTIVE:
            raise ValidationError(f"Only active exchange slips can be cancelled (status: {slip.status})")

        won = _transition_slip(
            uow.session,
            slip,
            SLIP_STATUS_CANCELLED,
            cancelled_by_user_id=cancelled_by_user_id,
            cancelled_at=utcnow(),
            cancellation_reason=reason or None,
        )
        if not won:
            raise ValidationError(f"Only active exchange slips can be cancelled (status: {slip.status})")

        invalidate_read_caches(uow)
        notify_after_commit(uow, EVENT_SLIP_CANCELLED, {
            "slip_no": slip.slip_no,
            "customer_id": slip.customer_id,
            "reason": reason,
        })
        return slip

    slip = run_in_unit_of_work(_work)
    logger.info("Exchange slip %s cancelled", slip.slip_no)
    return slip


def expire_exchange_slips(now: datetime | None = None) -> int:
    """Maintenance sweep: active slips past their expiry become expired."""
    now = now or utcnow()

    def _work(uow: UnitOfWork) -> int:
        result = uow.session.execute(
            update(ExchangeSlip)
            .where(ExchangeSlip.status == SLIP_STATUS_ACTIVE, ExchangeSlip.expiry_date < now)
            .values(status=SLIP_STATUS_EXPIRED)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            invalidate_read_caches(uow)
        return result.rowcount or 0

    expired = run_in_unit_of_work(_work)
    if expired:
        logger.info("Expired %d exchange slips", expired)
    return expired


def _customer_ids_for_phone(digits: str) -> list[int]:
    # Digits may be separated by formatting characters in storage
    pattern = "%" + "%".join(digits) + "%"
    candidates = db.session.query(Customer.id, Customer.phone).filter(Customer.phone.like(pattern)).all()
    return [cid for cid, phone in candidates if digits in _digits(phone)]


def search_exchange_slips(customer_id: int | None = None, phone: str | None = None,
                          limit: int = SLIP_SEARCH_DEFAULT_LIMIT) -> list[dict]:
    """
    Slips of one customer, newest first.

    A customer id or a phone number is required; without either, or when
    the phone has no digits or matches nobody, the result is empty.
    """
    limit = min(max(int(limit or SLIP_SEARCH_DEFAULT_LIMIT), 1), SLIP_SEARCH_MAX_LIMIT)
    digits = _digits(phone)
    if customer_id is None and not digits:
        return []
    if phone is not None and not digits:
        return []

    key = f"{SLIPS_CACHE_PREFIX}search:{customer_id or ''}:{digits}:{limit}"

    def _load() -> list[dict]:
        query = db.session.query(ExchangeSlip)
        if digits:
            ids = _customer_ids_for_phone(digits)
            if customer_id is not None:
                ids = [cid for cid in ids if cid == customer_id]
            if not ids:
                return []
            query = query.filter(ExchangeSlip.customer_id.in_(ids))
        else:
            query = query.filter(ExchangeSlip.customer_id == customer_id)
        slips = query.order_by(ExchangeSlip.created_at.desc(), ExchangeSlip.id.desc()).limit(limit).all()
        return [slip.to_dict() for slip in slips]

    return read_cache.get_or_set(key, _load)


# =============================================================================
# CUSTOMER CREDIT
# =============================================================================

def issue_customer_credit(
    uow: UnitOfWork,
    *,
    sale: Sale,
    amount_cents: int,
    created_by_user_id: int,
    source: str = "refund",
    source_reference: str | None = None,
    notes: str | None = None,
) -> CustomerOverpayment:
    """
    Create a new store-credit row with balance == amount.

    Raises:
        ConfigurationError: the sale has no customer to own the credit
    """
    if sale.customer_id is None:
        raise ConfigurationError(
            f"Sale {sale.invoice_no} has no customer; store credit requires one",
            details={"sale_id": sale.id},
        )
    if source not in CREDIT_SOURCES:
        raise ValueError(f"Unknown credit source: {source}")
    if amount_cents <= 0:
        raise ValidationError("Store credit amount must be positive")

    credit = CustomerOverpayment(
        customer_id=sale.customer_id,
        amount_cents=amount_cents,
        balance_cents=amount_cents,
        source=source,
        source_reference=source_reference,
        original_sale_id=sale.id,
        status=CREDIT_STATUS_ACTIVE,
        created_by_user_id=created_by_user_id,
        notes=notes,
    )
    uow.session.add(credit)
    uow.flush()
    return credit


def _spendable_credits_query(session, customer_id: int, now: datetime):
    return (
        session.query(CustomerOverpayment)
        .filter(
            CustomerOverpayment.customer_id == customer_id,
            CustomerOverpayment.status == CREDIT_STATUS_ACTIVE,
            CustomerOverpayment.balance_cents > 0,
            or_(CustomerOverpayment.expiry_date.is_(None), CustomerOverpayment.expiry_date > now),
        )
        .order_by(CustomerOverpayment.created_at.asc(), CustomerOverpayment.id.asc())
    )


def use_overpayment(customer_id: int, amount_cents: int, sale_id: int, used_by_user_id: int,
                    notes: str | None = None) -> dict:
    """
    Consume store credit, oldest row first, until `amount_cents` is covered.

    Balances only ever decrease and each deduction appends a usage row, so
    sum(usage) == amount - balance holds per row.

    Raises:
        NotFoundError: customer or sale does not exist
        ValidationError: non-positive amount or insufficient total balance
    """
    if amount_cents is None or amount_cents <= 0:
        raise ValidationError("Amount must be positive")

    def _work(uow: UnitOfWork) -> dict:
        if uow.session.get(Customer, customer_id) is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        if uow.session.get(Sale, sale_id) is None:
            raise NotFoundError(f"Sale {sale_id} not found")

        now = utcnow()
        credits = lock_for_update(_spendable_credits_query(uow.session, customer_id, now)).all()
        available = sum(c.balance_cents for c in credits)
        if available < amount_cents:
            raise ValidationError(
                "Insufficient store credit balance",
                details={"available_cents": available, "requested_cents": amount_cents},
            )

        remaining = amount_cents
        applied = []
        for credit in credits:
            if remaining <= 0:
                break
            taken = min(credit.balance_cents, remaining)
            credit.balance_cents -= taken
            if credit.balance_cents == 0:
                credit.status = CREDIT_STATUS_FULLY_USED
            credit.usage_history.append(OverpaymentUsage(
                used_amount_cents=taken,
                remaining_balance_cents=credit.balance_cents,
                used_in_sale_id=sale_id,
                used_by_user_id=used_by_user_id,
                used_at=now,
                notes=notes,
            ))
            applied.append({"overpayment_id": credit.id, "used_cents": taken, "remaining_cents": credit.balance_cents})
            remaining -= taken

        result = {
            "customer_id": customer_id,
            "sale_id": sale_id,
            "used_cents": amount_cents,
            "remaining_balance_cents": available - amount_cents,
            "applied": applied,
        }
        notify_after_commit(uow, EVENT_CREDIT_USED, dict(result))
        return result

    result = run_in_unit_of_work(_work)
    logger.info("Customer %s used %s cents of store credit on sale %s", customer_id, amount_cents, sale_id)
    return result


def get_customer_credits(customer_id: int) -> dict:
    if db.session.get(Customer, customer_id) is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    credits = _spendable_credits_query(db.session, customer_id, utcnow()).all()
    return {
        "customer_id": customer_id,
        "total_balance_cents": sum(c.balance_cents for c in credits),
        "credits": [c.to_dict() for c in credits],
    }
