# Overview: Flask API routes for return policy listing and creation.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_user
from ..errors import SettlementError
from ..services import policy_service


policies_bp = Blueprint("return_policies", __name__, url_prefix="/api/return-policies")


@policies_bp.get("")
@require_user
def list_policies_route():
    try:
        policies = policy_service.list_active_policies()
        return jsonify({
            "policies": [p.to_dict() for p in policies],
            "default_policy": policy_service.DEFAULT_POLICY.to_dict(),
        }), 200

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list return policies")
        return jsonify({"error": "Internal server error"}), 500


@policies_bp.post("")
@require_user
def create_policy_route():
    """
    Create a return policy.

    Request body: flat policy fields, e.g.
    {
        "name": "Electronics", "priority": 1, "return_window_days": 14,
        "allow_cash": false, "category_ids": [3], "approval_threshold_cents": 50000
    }

    Returns:
        201: policy created
        400: invalid fields (full `errors` list)
    """
    try:
        policy = policy_service.create_policy(request.get_json(silent=True), created_by_user_id=g.user_id)
        return jsonify({"policy": policy.to_dict()}), 201

    except SettlementError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create return policy")
        return jsonify({"error": "Internal server error"}), 500
