# Overview: Flask API routes for exchange slips; search, fetch, redeem and cancel.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_user
from ..errors import SettlementError, ValidationError
from ..services import settlement_service
from ..validation import coerce_int


exchange_slips_bp = Blueprint("exchange_slips", __name__, url_prefix="/api/exchange-slips")


@exchange_slips_bp.get("")
@require_user
def search_exchange_slips_route():
    """
    Search a customer's slips.

    Query params: customer_id or phone (one is required), limit (1..50, default 20)
    """
    try:
        args = request.args
        errors: list[str] = []
        customer_id = None
        if args.get("customer_id"):
            customer_id = coerce_int(args.get("customer_id"), "customer_id", errors, minimum=1)
        limit = settlement_service.SLIP_SEARCH_DEFAULT_LIMIT
        if args.get("limit"):
            limit = coerce_int(args.get("limit"), "limit", errors, minimum=1)
        if errors:
            raise ValidationError(errors)

        phone = args.get("phone") or None
        if customer_id is None and phone is None:
            raise ValidationError("customer_id or phone is required")

        slips = settlement_service.search_exchange_slips(customer_id=customer_id, phone=phone, limit=limit)
        return jsonify({"exchange_slips": slips, "count": len(slips)}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to search exchange slips")
        return jsonify({"error": "Internal server error"}), 500


@exchange_slips_bp.get("/<slip_no>")
@require_user
def get_exchange_slip_route(slip_no: str):
    try:
        slip = settlement_service.get_exchange_slip(slip_no)
        return jsonify({"exchange_slip": slip.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load exchange slip")
        return jsonify({"error": "Internal server error"}), 500


@exchange_slips_bp.post("/redeem")
@require_user
def redeem_exchange_slip_route():
    """
    Redeem an active slip on a new sale.

    Request body: {"slip_no": "EXS2501230001", "sale_id": 42}

    Returns:
        200: slip redeemed
        400: slip not active or expired
        404: slip or sale not found
    """
    try:
        data = request.get_json(silent=True) or {}
        errors: list[str] = []
        slip_no = (data.get("slip_no") or "").strip()
        if not slip_no:
            errors.append("slip_no is required")
        sale_id = coerce_int(data.get("sale_id"), "sale_id", errors, minimum=1)
        if errors:
            raise ValidationError(errors)

        slip = settlement_service.redeem_exchange_slip(slip_no, sale_id, redeemed_by_user_id=g.user_id)
        return jsonify({"exchange_slip": slip.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to redeem exchange slip")
        return jsonify({"error": "Internal server error"}), 500


@exchange_slips_bp.post("/<identifier>/cancel")
@require_user
def cancel_exchange_slip_route(identifier: str):
    """
    Cancel an active slip by slip number or id.

    Request body: {"reason": "issued in error"}  (optional)
    """
    try:
        data = request.get_json(silent=True) or {}
        slip = settlement_service.cancel_exchange_slip(
            identifier,
            cancelled_by_user_id=g.user_id,
            reason=(data.get("reason") or None),
        )
        return jsonify({"exchange_slip": slip.to_dict()}), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel exchange slip")
        return jsonify({"error": "Internal server error"}), 500
