# Overview: Request decorators for API routes: acting staff member and owner capability check.

from functools import wraps
from flask import request, jsonify, g

STAFF_ROLES = ("owner", "staff")


def require_staff(f):
    """
    Require an acting staff member.

    Authentication happens upstream; the auth layer forwards the verified
    identity as headers:
    - X-Staff-Id:   staff member id (required)
    - X-Staff-Role: owner | staff (defaults to staff)

    Sets g.staff_id and g.staff_role.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        staff_id = (request.headers.get("X-Staff-Id") or "").strip()
        if not staff_id:
            return jsonify({"error": "Staff identity required"}), 401
        if len(staff_id) > 64:
            return jsonify({"error": "Invalid staff identity"}), 401

        role = (request.headers.get("X-Staff-Role") or "staff").strip().lower()
        if role not in STAFF_ROLES:
            return jsonify({"error": "Invalid staff role"}), 401

        g.staff_id = staff_id
        g.staff_role = role
        return f(*args, **kwargs)

    return decorated_function


def is_owner() -> bool:
    return getattr(g, "staff_role", None) == "owner"


def require_owner(f):
    """Require the acting staff member to be an owner (use after @require_staff)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "staff_id"):
            return jsonify({"error": "Staff identity required"}), 401
        if not is_owner():
            return jsonify({
                "error": "Permission denied",
                "message": "Owner access required",
            }), 403
        return f(*args, **kwargs)

    return decorated_function
