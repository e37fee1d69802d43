from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .models.policies import DISPOSITIONS, RefundMethod
from .models.returns import ITEM_CONDITIONS, RETURN_REASONS, RETURN_TYPES


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

REFUND_DETAIL_KEYS = (
    "card_type",
    "last4_digits",
    "transaction_id",
    "account_number",
    "bank_name",
    "digital_wallet",
    "reference",
)


@dataclass(frozen=True)
class ReturnItemRequest:
    product_id: int
    quantity: int
    return_amount_cents: int
    reason: str
    condition: str | None = None
    disposition: str | None = None


@dataclass(frozen=True)
class ReturnRequest:
    sale_id: int
    items: tuple[ReturnItemRequest, ...]
    return_type: str
    refund_method: RefundMethod
    discount_cents: int = 0
    manager_override: bool = False
    has_receipt: bool = True
    notes: str | None = None
    refund_details: dict = field(default_factory=dict)
    idempotency_key: str | None = None

    @property
    def items_total_cents(self) -> int:
        return sum(item.return_amount_cents for item in self.items)

    @property
    def total_cents(self) -> int:
        return self.items_total_cents - self.discount_cents


def coerce_int(value: Any, name: str, errors: list[str], *, minimum: int | None = None) -> int | None:
    """
    Strict integer coercion: accepts ints and plain digit strings, rejects
    bools, floats, decimals and scientific notation.
    """
    if value is None:
        errors.append(f"{name} is required")
        return None
    if isinstance(value, bool):
        errors.append(f"{name} must be an integer")
        return None
    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        errors.append(f"{name} must be an integer, not a decimal")
        return None
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            errors.append(f"{name} must be an integer")
            return None
        if "e" in stripped.lower():
            errors.append(f"{name} must be a plain integer (scientific notation not allowed)")
            return None
        if "." in stripped:
            errors.append(f"{name} must be an integer (no decimals)")
            return None
        try:
            result = int(stripped)
        except ValueError:
            errors.append(f"{name} must be an integer")
            return None
    else:
        errors.append(f"{name} must be an integer")
        return None

    if minimum is not None and result < minimum:
        errors.append(f"{name} must be at least {minimum}")
        return None
    if result > MAX_AMOUNT_CENTS:
        errors.append(f"{name} is too large")
        return None
    return result


def coerce_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _coerce_choice(value: Any, name: str, choices: tuple[str, ...], errors: list[str], *, required: bool) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.append(f"{name} is required")
        return None
    normalized = str(value).strip().lower()
    if normalized not in choices:
        errors.append(f"{name} must be one of: {', '.join(choices)}")
        return None
    return normalized


def _parse_item(raw: Any, index: int, errors: list[str]) -> ReturnItemRequest | None:
    label = f"items[{index}]"
    if not isinstance(raw, dict):
        errors.append(f"{label} must be an object")
        return None

    before = len(errors)
    product_id = coerce_int(raw.get("product_id"), f"{label}.product_id", errors, minimum=1)
    quantity = coerce_int(raw.get("quantity"), f"{label}.quantity", errors, minimum=1)
    amount = coerce_int(raw.get("return_amount_cents"), f"{label}.return_amount_cents", errors, minimum=0)
    reason = _coerce_choice(raw.get("reason"), f"{label}.reason", RETURN_REASONS, errors, required=True)
    condition = _coerce_choice(raw.get("condition"), f"{label}.condition", ITEM_CONDITIONS, errors, required=False)
    disposition = _coerce_choice(raw.get("disposition"), f"{label}.disposition", DISPOSITIONS, errors, required=False)
    if len(errors) != before:
        return None

    return ReturnItemRequest(
        product_id=product_id,
        quantity=quantity,
        return_amount_cents=amount,
        reason=reason,
        condition=condition,
        disposition=disposition,
    )


def parse_return_request(payload: Any) -> ReturnRequest:
    """
    Turn a JSON body into a ReturnRequest.

    Raises ValidationError listing every malformed field at once.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    errors: list[str] = []
    sale_id = coerce_int(payload.get("sale_id"), "sale_id", errors, minimum=1)

    raw_items = payload.get("items")
    items: list[ReturnItemRequest] = []
    if not isinstance(raw_items, list) or not raw_items:
        errors.append("items must be a non-empty list")
    else:
        for index, raw in enumerate(raw_items):
            item = _parse_item(raw, index, errors)
            if item is not None:
                items.append(item)

    return_type = _coerce_choice(payload.get("return_type"), "return_type", RETURN_TYPES, errors, required=True)

    refund_method = None
    raw_method = payload.get("refund_method")
    if not raw_method:
        errors.append("refund_method is required")
    else:
        try:
            refund_method = RefundMethod(str(raw_method).strip().lower())
        except ValueError:
            errors.append(f"refund_method must be one of: {', '.join(m.value for m in RefundMethod)}")

    discount = 0
    if payload.get("discount_cents") is not None:
        discount = coerce_int(payload.get("discount_cents"), "discount_cents", errors, minimum=0)

    refund_details = payload.get("refund_details") or {}
    if not isinstance(refund_details, dict):
        errors.append("refund_details must be an object")
        refund_details = {}
    else:
        refund_details = {k: str(v) for k, v in refund_details.items() if k in REFUND_DETAIL_KEYS and v is not None}

    idempotency_key = payload.get("idempotency_key")
    if idempotency_key is not None:
        idempotency_key = str(idempotency_key).strip() or None
        if idempotency_key and len(idempotency_key) > 128:
            errors.append("idempotency_key must be at most 128 characters")

    if errors:
        raise ValidationError(errors)

    notes = payload.get("notes")
    return ReturnRequest(
        sale_id=sale_id,
        items=tuple(items),
        return_type=return_type,
        refund_method=refund_method,
        discount_cents=discount,
        manager_override=coerce_bool(payload.get("manager_override")),
        has_receipt=coerce_bool(payload.get("has_receipt"), default=True),
        notes=str(notes).strip() if notes else None,
        refund_details=refund_details,
        idempotency_key=idempotency_key,
    )
