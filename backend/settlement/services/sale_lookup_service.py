# Overview: Sale lookup for the returns till, read through the app's read cache.

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db, read_cache
from ..models import Customer, Product, Sale, SaleLine
from ..time_utils import utcnow
from .return_validation_service import returned_quantities

SALES_LOOKUP_CACHE_PREFIX = "sales:lookup:"


@dataclass(frozen=True)
class SaleLookupCriteria:
    invoice_no: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_nic: str | None = None
    customer_email: str | None = None
    product_name: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    search_days: int | None = None

    def cache_key(self) -> str:
        data = {k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in asdict(self).items()}
        return SALES_LOOKUP_CACHE_PREFIX + json.dumps(data, sort_keys=True)


def _like(value: str) -> str:
    return f"%{value.strip().lower()}%"


def _matching_customer_ids(criteria: SaleLookupCriteria) -> list[int] | None:
    """None when no customer criterion was given; [] when nothing matched."""
    if not any((criteria.customer_name, criteria.customer_phone, criteria.customer_nic, criteria.customer_email)):
        return None

    query = db.session.query(Customer.id, Customer.phone)
    if criteria.customer_name:
        pattern = _like(criteria.customer_name)
        full_name = func.lower(Customer.first_name + " " + func.coalesce(Customer.last_name, ""))
        query = query.filter(or_(
            func.lower(Customer.first_name).like(pattern),
            func.lower(Customer.last_name).like(pattern),
            full_name.like(pattern),
        ))
    if criteria.customer_email:
        query = query.filter(func.lower(Customer.email).like(_like(criteria.customer_email)))
    if criteria.customer_nic:
        query = query.filter(func.lower(Customer.nic) == criteria.customer_nic.strip().lower())

    rows = query.all()
    if criteria.customer_phone:
        digits = re.sub(r"\D", "", criteria.customer_phone)
        if not digits:
            return []
        rows = [row for row in rows if digits in re.sub(r"\D", "", row.phone or "")]
    return [row.id for row in rows]


def _matching_product_ids(criteria: SaleLookupCriteria) -> list[int] | None:
    if not criteria.product_name:
        return None
    pattern = _like(criteria.product_name)
    rows = (
        db.session.query(Product.id)
        .filter(or_(func.lower(Product.name).like(pattern), func.lower(Product.sku).like(pattern)))
        .all()
    )
    return [row.id for row in rows]


def _sale_payload(sale: Sale) -> dict:
    data = sale.to_dict(include_lines=True)
    already = returned_quantities(sale)
    for line in data["lines"]:
        returned = already.get(line["product_id"], 0)
        line["returned_quantity"] = returned
        line["available_for_return"] = max(0, line["quantity"] - returned)
    return data


def _load(criteria: SaleLookupCriteria) -> list[dict]:
    config = current_app.config
    now = utcnow()
    search_days = criteria.search_days or config.get("SALE_LOOKUP_DEFAULT_DAYS", 30)
    date_from = criteria.date_from or (now - timedelta(days=search_days))
    date_to = criteria.date_to or now

    query = db.session.query(Sale).filter(Sale.created_at >= date_from, Sale.created_at <= date_to)

    if criteria.invoice_no:
        query = query.filter(func.lower(Sale.invoice_no).like(_like(criteria.invoice_no)))

    customer_ids = _matching_customer_ids(criteria)
    if customer_ids is not None:
        if not customer_ids:
            return []
        query = query.filter(Sale.customer_id.in_(customer_ids))

    product_ids = _matching_product_ids(criteria)
    if product_ids is not None:
        if not product_ids:
            return []
        query = query.filter(Sale.lines.any(SaleLine.product_id.in_(product_ids)))

    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(config.get("SALE_LOOKUP_LIMIT", 50))
        .all()
    )
    return [_sale_payload(sale) for sale in sales]


def lookup_sales(criteria: SaleLookupCriteria) -> list[dict]:
    """
    Find recent sales by invoice, customer or product, newest first.

    A customer or product criterion that matches nothing returns an empty
    list instead of widening the search. Results are cached under
    `sales:lookup:` until the next committed return.
    """
    return read_cache.get_or_set(criteria.cache_key(), lambda: _load(criteria))
