# Overview: Read-only return reporting: customer history and analytics by type and reason.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, ReturnTransaction, ReturnTransactionLine
from ..models.returns import RETURN_STATUS_APPROVED, RETURN_STATUS_PROCESSED
from ..time_utils import to_utc_z

HISTORY_DEFAULT_LIMIT = 20
REPORTED_STATUSES = (RETURN_STATUS_APPROVED, RETURN_STATUS_PROCESSED)


def get_customer_return_history(customer_id: int, limit: int = HISTORY_DEFAULT_LIMIT) -> list[dict]:
    if db.session.get(Customer, customer_id) is None:
        raise NotFoundError(f"Customer {customer_id} not found")

    limit = max(1, int(limit or HISTORY_DEFAULT_LIMIT))
    rows = (
        db.session.query(ReturnTransaction)
        .filter(ReturnTransaction.customer_id == customer_id)
        .order_by(ReturnTransaction.created_at.desc(), ReturnTransaction.id.desc())
        .limit(limit)
        .all()
    )
    return [row.to_dict() for row in rows]


def get_return_analytics(date_from: datetime, date_to: datetime) -> dict:
    """
    Approved and processed returns created in [date_from, date_to].

    Type buckets count returns and sum their totals. Reason buckets work on
    lines: line count, units and line return amounts.
    """
    in_range = (
        ReturnTransaction.created_at >= date_from,
        ReturnTransaction.created_at <= date_to,
        ReturnTransaction.status.in_(REPORTED_STATUSES),
    )

    totals = db.session.query(
        func.count(ReturnTransaction.id).label("total_returns"),
        func.coalesce(func.sum(ReturnTransaction.total_cents), 0).label("total_cents"),
    ).filter(*in_range).one()

    by_type = (
        db.session.query(
            ReturnTransaction.return_type.label("return_type"),
            func.count(ReturnTransaction.id).label("count"),
            func.coalesce(func.sum(ReturnTransaction.total_cents), 0).label("amount_cents"),
        )
        .filter(*in_range)
        .group_by(ReturnTransaction.return_type)
        .order_by(ReturnTransaction.return_type)
        .all()
    )

    by_reason = (
        db.session.query(
            ReturnTransactionLine.reason.label("reason"),
            func.count(ReturnTransactionLine.id).label("lines"),
            func.coalesce(func.sum(ReturnTransactionLine.quantity), 0).label("quantity"),
            func.coalesce(func.sum(ReturnTransactionLine.return_amount_cents), 0).label("amount_cents"),
        )
        .join(ReturnTransaction, ReturnTransaction.id == ReturnTransactionLine.return_transaction_id)
        .filter(*in_range)
        .group_by(ReturnTransactionLine.reason)
        .order_by(ReturnTransactionLine.reason)
        .all()
    )

    total_returns = int(totals.total_returns or 0)
    total_cents = int(totals.total_cents or 0)
    return {
        "date_from": to_utc_z(date_from),
        "date_to": to_utc_z(date_to),
        "total_returns": total_returns,
        "total_cents": total_cents,
        # Integer cents, rounded half up
        "average_cents": (total_cents * 2 + total_returns) // (2 * total_returns) if total_returns else 0,
        "by_type": [
            {"return_type": row.return_type, "count": int(row.count), "amount_cents": int(row.amount_cents)}
            for row in by_type
        ],
        "by_reason": [
            {
                "reason": row.reason,
                "lines": int(row.lines),
                "quantity": int(row.quantity),
                "amount_cents": int(row.amount_cents),
            }
            for row in by_reason
        ],
    }
