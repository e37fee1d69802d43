"""
Return processing service

WHY: A return touches five aggregates at once: the return transaction, the
original sale's returns log, an exchange slip or store credit, stock, and
unit barcodes. Partial failure must never leave those ledgers disagreeing
with each other, so the whole settlement is one unit of work.

DESIGN PRINCIPLES:
- Validation runs twice: once read-only for the till, again inside the unit
  of work against the locked sale row (check-then-act race)
- Unit prices are copied from the sale, never from the request body
- Return and slip numbers come from an atomic day counter
- Stock is incremented in place, never read-then-written
- Unit barcode updates are best-effort under a savepoint
- Cache invalidation and notifications run only after commit

LIFECYCLE:
1. Settle (pending when approval is required, else approved)
2. Approve (pending -> approved, manager action)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import NotFoundError, SettlementError, ValidationError
from ..extensions import db
from ..models import CustomerOverpayment, ExchangeSlip, ReturnTransaction, ReturnTransactionLine, Sale
from ..models.returns import RETURN_STATUS_APPROVED, RETURN_STATUS_PENDING
from ..time_utils import utcnow
from ..validation import ReturnRequest
from .barcode_service import mark_units_returned
from .concurrency import lock_for_update
from .inventory_service import apply_return_disposition, effective_disposition, should_restock
from .notification_service import EVENT_RETURN_PROCESSED, notify_after_commit
from .policy_service import CREDIT_METHODS, RefundMethod
from .return_validation_service import ReturnValidation, validate_return
from .sale_ledger_service import record_return_on_sale
from .sequence_service import next_document_number
from .settlement_service import invalidate_read_caches, issue_customer_credit, issue_exchange_slip
from .unit_of_work import UnitOfWork, run_in_unit_of_work

logger = logging.getLogger(__name__)

LIST_DEFAULT_LIMIT = 20
LIST_MAX_LIMIT = 100


@dataclass
class SettlementResult:
    return_transaction: ReturnTransaction
    exchange_slip: ExchangeSlip | None = None
    overpayment: CustomerOverpayment | None = None
    warnings: tuple[str, ...] = ()
    replayed: bool = False

    def to_dict(self) -> dict:
        return {
            "return_transaction": self.return_transaction.to_dict(),
            "exchange_slip": self.exchange_slip.to_dict() if self.exchange_slip else None,
            "overpayment": self.overpayment.to_dict() if self.overpayment else None,
            "warnings": list(self.warnings),
            "replayed": self.replayed,
        }


# =============================================================================
# VALIDATION (READ-ONLY)
# =============================================================================

def check_return(request: ReturnRequest, now: datetime | None = None) -> ReturnValidation:
    """
    Read-only verdict for the till.

    Never writes and never raises for policy problems; those are in
    `errors`. Raises NotFoundError when the sale does not exist.
    """
    return validate_return(request, now=now)


# =============================================================================
# SETTLEMENT
# =============================================================================

def _existing_settlement(session, idempotency_key: str | None) -> SettlementResult | None:
    if not idempotency_key:
        return None
    existing = session.query(ReturnTransaction).filter_by(idempotency_key=idempotency_key).first()
    if existing is None:
        return None
    return SettlementResult(
        return_transaction=existing,
        exchange_slip=existing.exchange_slip,
        overpayment=existing.overpayment,
        replayed=True,
    )


def _settle(uow: UnitOfWork, request: ReturnRequest, processed_by_user_id: int, now: datetime) -> SettlementResult:
    replay = _existing_settlement(uow.session, request.idempotency_key)
    if replay is not None:
        return replay

    # Step 1: lock the sale and re-validate against what is committed now
    sale = lock_for_update(uow.session.query(Sale).filter(Sale.id == request.sale_id)).first()
    if sale is None:
        raise NotFoundError(f"Sale {request.sale_id} not found")

    validation = validate_return(request, session=uow.session, sale=sale, now=now)
    if not validation.valid:
        raise ValidationError(validation.errors, details={"warnings": validation.warnings})
    policy = validation.policy

    unit_prices: dict[int, int] = {}
    for line in sale.lines:
        unit_prices.setdefault(line.product_id, line.unit_price_cents)

    # Step 2: return transaction
    return_txn = ReturnTransaction(
        return_no=next_document_number(uow, prefix=current_app.config.get("RETURN_NUMBER_PREFIX", "RET"), on=now),
        original_sale_id=sale.id,
        customer_id=sale.customer_id,
        policy_id=policy.policy_id,
        return_type=request.return_type,
        refund_method=request.refund_method.value,
        refund_details=dict(request.refund_details),
        total_cents=request.total_cents,
        discount_cents=request.discount_cents,
        approval_required=validation.requires_approval,
        status=RETURN_STATUS_PENDING if validation.requires_approval else RETURN_STATUS_APPROVED,
        notes=request.notes,
        idempotency_key=request.idempotency_key,
        returned_by_user_id=processed_by_user_id,
        created_at=now,
    )
    for item in request.items:
        return_txn.lines.append(ReturnTransactionLine(
            product_id=item.product_id,
            quantity=item.quantity,
            original_price_cents=unit_prices[item.product_id],
            return_amount_cents=item.return_amount_cents,
            reason=item.reason,
            condition=item.condition or "new",
            disposition=effective_disposition(item.disposition, policy.default_disposition),
        ))
    uow.session.add(return_txn)
    uow.flush()

    # Step 3: settlement strategy
    exchange_slip = None
    overpayment = None
    if request.refund_method is RefundMethod.EXCHANGE_SLIP:
        exchange_slip = issue_exchange_slip(
            uow,
            sale=sale,
            items=request.items,
            unit_prices=unit_prices,
            discount_cents=request.discount_cents,
            issued_by_user_id=processed_by_user_id,
            expiry_days=policy.exchange_slip_expiry_days,
            notes=f"Issued for return {return_txn.return_no}",
            now=now,
        )
        return_txn.exchange_slip_id = exchange_slip.id
    elif request.refund_method in CREDIT_METHODS:
        overpayment = issue_customer_credit(
            uow,
            sale=sale,
            amount_cents=return_txn.total_cents,
            created_by_user_id=processed_by_user_id,
            source="refund",
            source_reference=return_txn.return_no,
            notes=f"Store credit for return {return_txn.return_no}",
        )
        return_txn.overpayment_id = overpayment.id

    # Step 4: sale ledger
    record_return_on_sale(uow, sale, return_txn)

    # Step 5: stock
    for item, line in zip(request.items, return_txn.lines):
        apply_return_disposition(
            uow,
            product_id=line.product_id,
            quantity=line.quantity,
            disposition=line.disposition,
            restock=should_restock(item.disposition, policy.default_disposition, policy.auto_restock),
            return_transaction_id=return_txn.id,
            performed_by_user_id=processed_by_user_id,
        )

    # Financial writes must reach the store before the savepoint below
    uow.flush()

    # Step 6: unit barcodes (non-fatal)
    mark_units_returned(uow, sale_id=sale.id, items=request.items, return_transaction_id=return_txn.id)

    invalidate_read_caches(uow)
    notify_after_commit(uow, EVENT_RETURN_PROCESSED, {
        "return_no": return_txn.return_no,
        "sale_id": sale.id,
        "customer_id": sale.customer_id,
        "total_cents": return_txn.total_cents,
        "refund_method": return_txn.refund_method,
        "status": return_txn.status,
        "notify_customer_email": policy.notify_customer_email,
        "notify_customer_sms": policy.notify_customer_sms,
        "notify_manager": policy.notify_manager,
    })

    return SettlementResult(
        return_transaction=return_txn,
        exchange_slip=exchange_slip,
        overpayment=overpayment,
        warnings=tuple(validation.warnings),
    )


def process_return(request: ReturnRequest, processed_by_user_id: int, now: datetime | None = None) -> SettlementResult:
    """
    Settle a return atomically.

    Args:
        request: parsed return request (may carry an idempotency_key)
        processed_by_user_id: acting user
        now: settlement time, defaults to utcnow()

    Returns:
        SettlementResult with the return transaction and the slip or credit
        it issued. A repeated idempotency key returns the original result
        with `replayed=True`.

    Raises:
        NotFoundError: sale does not exist
        ValidationError: re-validation failed (full error list)
        ConfigurationError: store credit without a sale customer, or bad policy data
        TransactionError: the unit of work could not commit after retries
    """
    now = now or utcnow()
    try:
        result = run_in_unit_of_work(lambda uow: _settle(uow, request, processed_by_user_id, now))
    except SettlementError as exc:
        logger.info("Return on sale %s aborted: %s", request.sale_id, exc.message)
        raise

    txn = result.return_transaction
    if result.replayed:
        logger.info("Return %s replayed for idempotency key %s", txn.return_no, request.idempotency_key)
    else:
        logger.info(
            "Return %s settled: sale=%s total=%s method=%s status=%s",
            txn.return_no, txn.original_sale_id, txn.total_cents, txn.refund_method, txn.status,
        )
    return result


# =============================================================================
# APPROVAL AND QUERIES
# =============================================================================

def approve_return(return_id: int, approved_by_user_id: int, notes: str | None = None) -> ReturnTransaction:
    """
    Manager sign-off: pending -> approved.

    Raises:
        NotFoundError: no such return
        ValidationError: return is not pending
    """
    def _work(uow: UnitOfWork) -> ReturnTransaction:
        txn = lock_for_update(
            uow.session.query(ReturnTransaction).filter(ReturnTransaction.id == return_id)
        ).first()
        if txn is None:
            raise NotFoundError(f"Return {return_id} not found")
        if txn.status != RETURN_STATUS_PENDING:
            raise ValidationError(f"Only pending returns can be approved (status: {txn.status})")

        txn.status = RETURN_STATUS_APPROVED
        txn.approved_by_user_id = approved_by_user_id
        txn.approved_at = utcnow()
        txn.approval_reason = notes
        return txn

    txn = run_in_unit_of_work(_work)
    logger.info("Return %s approved by user %s", txn.return_no, approved_by_user_id)
    return txn


def get_return(return_id: int) -> ReturnTransaction:
    txn = db.session.get(ReturnTransaction, return_id)
    if txn is None:
        raise NotFoundError(f"Return {return_id} not found")
    return txn


def list_returns(
    *,
    status: str | None = None,
    return_type: str | None = None,
    customer_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int = LIST_DEFAULT_LIMIT,
) -> dict:
    """Filtered, newest-first page of returns (limit capped at 100)."""
    query = db.session.query(ReturnTransaction)
    if status:
        query = query.filter(ReturnTransaction.status == status)
    if return_type:
        query = query.filter(ReturnTransaction.return_type == return_type)
    if customer_id is not None:
        query = query.filter(ReturnTransaction.customer_id == customer_id)
    if date_from is not None:
        query = query.filter(ReturnTransaction.created_at >= date_from)
    if date_to is not None:
        query = query.filter(ReturnTransaction.created_at <= date_to)

    limit = min(max(int(limit or LIST_DEFAULT_LIMIT), 1), LIST_MAX_LIMIT)
    page = max(int(page or 1), 1)

    total = query.count()
    total_pages = (total + limit - 1) // limit if total > 0 else 1
    rows = (
        query.order_by(ReturnTransaction.created_at.desc(), ReturnTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": [r.to_dict() for r in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
