# Overview: Sold -> returned transitions for serialized unit barcodes.

from __future__ import annotations

import logging

from ..models import UnitBarcode
from ..models.barcodes import BARCODE_STATUS_RETURNED, BARCODE_STATUS_SOLD
from ..time_utils import utcnow
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _mark_units(uow: UnitOfWork, *, sale_id: int, product_id: int, quantity: int,
                return_transaction_id: int, reason: str) -> int:
    units = (
        uow.session.query(UnitBarcode)
        .filter(
            UnitBarcode.sale_id == sale_id,
            UnitBarcode.product_id == product_id,
            UnitBarcode.status == BARCODE_STATUS_SOLD,
        )
        .order_by(UnitBarcode.id.asc())
        .limit(quantity)
        .all()
    )
    now = utcnow()
    for unit in units:
        unit.status = BARCODE_STATUS_RETURNED
        unit.return_transaction_id = return_transaction_id
        unit.returned_at = now
        unit.return_reason = reason
    return len(units)


def mark_units_returned(uow: UnitOfWork, *, sale_id: int, items, return_transaction_id: int) -> int:
    """
    Move up to `quantity` sold units per returned item to `returned`.

    Runs under a savepoint of the settlement's unit of work. Any failure rolls
    back only the savepoint and is logged; the settlement still commits. There
    is no later reconciliation of units skipped this way.

    Args:
        items: iterable of objects with product_id, quantity and reason

    Returns:
        Number of units transitioned (0 when the step failed).
    """
    try:
        with uow.session.begin_nested():
            marked = 0
            for item in items:
                marked += _mark_units(
                    uow,
                    sale_id=sale_id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    return_transaction_id=return_transaction_id,
                    reason=item.reason,
                )
        return marked
    except Exception:
        logger.warning(
            "Unit barcode update failed for return transaction %s; settlement continues",
            return_transaction_id,
            exc_info=True,
        )
        return 0
