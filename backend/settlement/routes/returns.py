# Overview: Flask API routes for returns; parses input and returns JSON responses.

"""
Return Settlement API Routes

WHY: The till validates a return, shows every problem at once, then settles
it in one call. Managers approve pending returns and read analytics.

DESIGN:
- Lookup recent sales by invoice, customer or product
- Validate (read-only) and settle (atomic) share the same request body
- Settlement accepts an optional idempotency_key for safe client retries
- The acting user comes from the X-User-Id header

ERRORS:
- 400 validation (full `errors` list), 403 returns disabled, 404 not found,
  422 configuration, 503 transient store failure (nothing was written)
"""

from datetime import timedelta

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_user, require_returns_enabled
from ..errors import SettlementError, ValidationError
from ..services import return_service, return_reporting_service
from ..services.sale_lookup_service import SaleLookupCriteria, lookup_sales
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import parse_return_request


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


def _parse_date(value, name: str):
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an ISO-8601 date")


def _optional_int(value, name: str):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


# =============================================================================
# SALE LOOKUP
# =============================================================================

@returns_bp.post("/lookup")
@require_user
def lookup_sales_route():
    """
    Find sales eligible for return.

    Request body (all optional):
    {
        "invoice_no": "INV-0001",
        "customer_name": "Perera",
        "customer_phone": "077 123 4567",
        "customer_nic": "901234567V",
        "customer_email": "a@b.lk",
        "product_name": "kettle",
        "date_from": "2025-01-01", "date_to": "2025-01-31",
        "search_days": 30
    }

    Returns:
        200: {"sales": [...], "count": n}
    """
    try:
        data = request.get_json(silent=True) or {}
        criteria = SaleLookupCriteria(
            invoice_no=data.get("invoice_no") or None,
            customer_name=data.get("customer_name") or None,
            customer_phone=data.get("customer_phone") or None,
            customer_nic=data.get("customer_nic") or None,
            customer_email=data.get("customer_email") or None,
            product_name=data.get("product_name") or None,
            date_from=_parse_date(data.get("date_from"), "date_from"),
            date_to=_parse_date(data.get("date_to"), "date_to"),
            search_days=_optional_int(data.get("search_days"), "search_days"),
        )
        sales = lookup_sales(criteria)
        return jsonify({"sales": sales, "count": len(sales)}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to look up sales")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# VALIDATE AND SETTLE
# =============================================================================

@returns_bp.post("/validate")
@require_user
@require_returns_enabled
def validate_return_route():
    """
    Validate a return without writing anything.

    Returns:
        200: {"valid", "errors", "warnings", "requires_approval", "policy", ...}
        400: malformed request body
        404: sale not found
    """
    try:
        return_request = parse_return_request(request.get_json(silent=True))
        validation = return_service.check_return(return_request)
        return jsonify(validation.to_dict()), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to validate return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("")
@require_user
@require_returns_enabled
def process_return_route():
    """
    Settle a return atomically.

    Request body:
    {
        "sale_id": 1,
        "items": [{"product_id": 7, "quantity": 1, "return_amount_cents": 10000,
                   "reason": "defective", "condition": "opened", "disposition": "restock"}],
        "return_type": "partial_refund",
        "refund_method": "cash",
        "discount_cents": 0,
        "manager_override": false,
        "has_receipt": true,
        "refund_details": {"reference": "..."},
        "notes": "...",
        "idempotency_key": "till-3-000123"  (optional)
    }

    Returns:
        201: settlement created
        200: idempotent replay of an earlier settlement
    """
    try:
        return_request = parse_return_request(request.get_json(silent=True))
        result = return_service.process_return(return_request, processed_by_user_id=g.user_id)
        return jsonify(result.to_dict()), (200 if result.replayed else 201)

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES AND APPROVAL
# =============================================================================

@returns_bp.get("")
@require_user
def list_returns_route():
    """
    List returns, newest first.

    Query params: status, return_type, customer_id, date_from, date_to,
    page (default 1), limit (default 20, max 100)
    """
    try:
        args = request.args
        result = return_service.list_returns(
            status=args.get("status") or None,
            return_type=args.get("return_type") or None,
            customer_id=_optional_int(args.get("customer_id"), "customer_id"),
            date_from=_parse_date(args.get("date_from"), "date_from"),
            date_to=_parse_date(args.get("date_to"), "date_to"),
            page=_optional_int(args.get("page"), "page") or 1,
            limit=_optional_int(args.get("limit"), "limit") or return_service.LIST_DEFAULT_LIMIT,
        )
        return jsonify(result), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/analytics")
@require_user
def return_analytics_route():
    """
    Return analytics for a date range (defaults to the last 30 days).

    Query params: date_from, date_to (ISO-8601)
    """
    try:
        now = utcnow()
        date_to = _parse_date(request.args.get("date_to"), "date_to") or now
        date_from = _parse_date(request.args.get("date_from"), "date_from")
        if date_from is None:
            date_from = date_to - timedelta(days=30)
        if date_from > date_to:
            raise ValidationError("date_from must be before date_to")
        return jsonify(return_reporting_service.get_return_analytics(date_from, date_to)), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build return analytics")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/customers/<int:customer_id>/history")
@require_user
def customer_return_history_route(customer_id: int):
    try:
        limit = _optional_int(request.args.get("limit"), "limit") or return_reporting_service.HISTORY_DEFAULT_LIMIT
        history = return_reporting_service.get_customer_return_history(customer_id, limit=limit)
        return jsonify({"customer_id": customer_id, "returns": history, "count": len(history)}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer return history")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/<int:return_id>")
@require_user
def get_return_route(return_id: int):
    try:
        return jsonify({"return": return_service.get_return(return_id).to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/<int:return_id>/approve")
@require_user
def approve_return_route(return_id: int):
    """
    Approve a pending return (manager action).

    Request body: {"notes": "checked receipt copy"}  (optional)

    Returns:
        200: return approved
        400: return not pending
        404: return not found
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = return_service.approve_return(return_id, approved_by_user_id=g.user_id, notes=data.get("notes"))
        return jsonify({"return": txn.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to approve return")
        return jsonify({"error": "Internal server error"}), 500
