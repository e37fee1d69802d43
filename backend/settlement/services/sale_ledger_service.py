# Overview: Appends settlement summaries to a sale and recomputes its return status.

from __future__ import annotations

from ..errors import ValidationError
from ..models import ReturnTransaction, Sale, SaleReturnRecord, SaleReturnRecordItem
from ..models.sales import (
    SALE_STATUS_PARTIALLY_REFUNDED,
    SALE_STATUS_RANK,
    SALE_STATUS_REFUNDED,
)
from ..time_utils import utcnow
from .unit_of_work import UnitOfWork


def next_sale_status(current: str, returned_total_cents: int, total_cents: int) -> str:
    """
    Status after a return.

    `refunded` once the returned total reaches the sale total, otherwise
    `partially_refunded`. Never moves back down the rank order.
    """
    target = SALE_STATUS_REFUNDED if returned_total_cents >= total_cents else SALE_STATUS_PARTIALLY_REFUNDED
    if SALE_STATUS_RANK.get(current, 0) > SALE_STATUS_RANK[target]:
        return current
    return target


def record_return_on_sale(uow: UnitOfWork, sale: Sale, return_txn: ReturnTransaction) -> SaleReturnRecord:
    """
    Append the return to the sale's returns log and bump the summary.

    The sale row is versioned, so a concurrent writer between our locked read
    and this update surfaces as StaleDataError at flush.

    Raises:
        ValidationError: the cumulative returned amount would exceed the sale total
    """
    new_total = (sale.returned_total_cents or 0) + return_txn.total_cents
    if new_total > sale.total_cents:
        raise ValidationError(
            f"Returned total {new_total} would exceed sale total {sale.total_cents}",
            details={"sale_id": sale.id},
        )

    record = SaleReturnRecord(
        sale=sale,
        return_transaction_id=return_txn.id,
        reference=return_txn.return_no,
        total_cents=return_txn.total_cents,
        method=return_txn.refund_method,
        processed_by_user_id=return_txn.returned_by_user_id,
    )
    for line in return_txn.lines:
        record.items.append(SaleReturnRecordItem(
            product_id=line.product_id,
            quantity=line.quantity,
            amount_cents=line.return_amount_cents,
            reason=line.reason,
            disposition=line.disposition,
        ))
    uow.session.add(record)

    sale.returned_total_cents = new_total
    sale.returned_items = (sale.returned_items or 0) + return_txn.returned_quantity
    sale.last_return_at = utcnow()
    sale.status = next_sale_status(sale.status, new_total, sale.total_cents)
    return record
