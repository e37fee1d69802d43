# Overview: Request decorators for acting-user identity and the returns switch.

from functools import wraps
from flask import request, jsonify, g, current_app

from .errors import ReturnsDisabledError


def require_user(f):
    """
    Resolve the acting user from the X-User-Id header.

    Authentication itself happens upstream; this layer only needs the user id
    for audit fields. Sets g.user_id; answers 401 when missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get("X-User-Id") or "").strip()
        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": "Authentication required"}), 401
        g.user_id = int(raw)
        return f(*args, **kwargs)

    return decorated_function


def require_returns_enabled(f):
    """Answer 403 when RETURNS_ENABLED is switched off for this deployment."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get("RETURNS_ENABLED", True):
            err = ReturnsDisabledError("Returns are disabled for this store")
            return jsonify(err.to_dict()), err.status_code
        return f(*args, **kwargs)

    return decorated_function
