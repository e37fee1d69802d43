# Overview: Stock adjustments and movement ledger rows for returned items.

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import NotFoundError
from ..models import InventoryRecord, Product, StockMovement
from ..models.policies import DISPOSITIONS
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

MOVEMENT_RETURN = "return"

# Dispositions that keep the unit out of sellable stock
AUDIT_MOVEMENT_TYPES = {
    "restock": "return",
    "damage": "return_damage",
    "write_off": "return_write_off",
    "return_to_supplier": "return_to_supplier",
}


def effective_disposition(item_disposition: str | None, default_disposition: str) -> str:
    return item_disposition or default_disposition


def should_restock(item_disposition: str | None, default_disposition: str, auto_restock: bool) -> bool:
    """
    Restock when the effective disposition is "restock" and either the
    cashier picked it explicitly or the policy restocks automatically.
    """
    if effective_disposition(item_disposition, default_disposition) != "restock":
        return False
    return item_disposition == "restock" or auto_restock


def _increment_stock(uow: UnitOfWork, product_id: int, quantity: int) -> int:
    """In-place increment; returns the new product stock."""
    result = uow.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(current_stock=Product.current_stock + quantity)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise NotFoundError(f"Product {product_id} not found")

    uow.session.execute(
        update(InventoryRecord)
        .where(InventoryRecord.product_id == product_id)
        .values(
            current_stock=InventoryRecord.current_stock + quantity,
            available_stock=InventoryRecord.available_stock + quantity,
        )
        .execution_options(synchronize_session=False)
    )
    return _read_stock(uow, product_id)


def _read_stock(uow: UnitOfWork, product_id: int) -> int:
    stock = uow.session.query(Product.current_stock).filter(Product.id == product_id).scalar()
    if stock is None:
        raise NotFoundError(f"Product {product_id} not found")
    return stock


def apply_return_disposition(
    uow: UnitOfWork,
    *,
    product_id: int,
    quantity: int,
    disposition: str,
    restock: bool,
    return_transaction_id: int,
    performed_by_user_id: int | None,
) -> StockMovement:
    """
    Apply one returned line to stock.

    Restocked lines increase product and inventory-record counters in place
    and log a positive `return` movement. Every other disposition leaves stock
    untouched and logs a zero-quantity audit movement, so each returned line
    has exactly one movement row.

    Returns:
        The StockMovement written (not yet flushed).
    """
    if disposition not in DISPOSITIONS:
        raise ValueError(f"Unknown disposition: {disposition}")
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    if restock:
        new_stock = _increment_stock(uow, product_id, quantity)
        delta = quantity
        movement_type = MOVEMENT_RETURN
        reason = "customer_return_restock"
    else:
        new_stock = _read_stock(uow, product_id)
        delta = 0
        movement_type = AUDIT_MOVEMENT_TYPES[disposition]
        reason = f"customer_return_{disposition}"

    movement = StockMovement(
        product_id=product_id,
        movement_type=movement_type,
        quantity=delta,
        previous_stock=new_stock - delta,
        new_stock=new_stock,
        reference_type="ReturnTransaction",
        return_transaction_id=return_transaction_id,
        reason=reason,
        performed_by_user_id=performed_by_user_id,
    )
    uow.session.add(movement)
    logger.debug("Stock movement %s for product %s: %+d", movement_type, product_id, delta)
    return movement
