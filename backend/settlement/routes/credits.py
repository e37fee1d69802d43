# Overview: Flask API routes for customer store credit balances and consumption.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_user
from ..errors import SettlementError, ValidationError
from ..services import settlement_service
from ..validation import coerce_int


credits_bp = Blueprint("credits", __name__, url_prefix="/api/credits")


@credits_bp.get("/customers/<int:customer_id>")
@require_user
def customer_credits_route(customer_id: int):
    try:
        return jsonify(settlement_service.get_customer_credits(customer_id)), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load customer credits")
        return jsonify({"error": "Internal server error"}), 500


@credits_bp.post("/use")
@require_user
def use_credit_route():
    """
    Spend store credit on a sale, oldest credit first.

    Request body: {"customer_id": 3, "amount_cents": 2500, "sale_id": 42, "notes": "..."}

    Returns:
        200: credit consumed
        400: insufficient balance or malformed body
        404: customer or sale not found
    """
    try:
        data = request.get_json(silent=True) or {}
        errors: list[str] = []
        customer_id = coerce_int(data.get("customer_id"), "customer_id", errors, minimum=1)
        amount_cents = coerce_int(data.get("amount_cents"), "amount_cents", errors, minimum=1)
        sale_id = coerce_int(data.get("sale_id"), "sale_id", errors, minimum=1)
        if errors:
            raise ValidationError(errors)

        result = settlement_service.use_overpayment(
            customer_id,
            amount_cents,
            sale_id,
            used_by_user_id=g.user_id,
            notes=data.get("notes") or None,
        )
        return jsonify(result), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to use store credit")
        return jsonify({"error": "Internal server error"}), 500
