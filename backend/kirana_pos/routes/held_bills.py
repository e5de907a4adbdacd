# Overview: Flask API routes for held bills; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify

from ..decorators import require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import held_bill_service

held_bills_bp = Blueprint("held_bills", __name__, url_prefix="/api/held-bills")


@held_bills_bp.get("")
@require_staff
def list_held_bills():
    """Pending bills, most recent first. Resume goes through /api/terminals/<id>/cart/resume/<bill>."""
    bills = held_bill_service.list_held_bills()
    return {"items": [b.to_dict() for b in bills], "count": len(bills)}


@held_bills_bp.get("/<int:held_bill_id>")
@require_staff
def get_held_bill(held_bill_id: int):
    try:
        return {"held_bill": held_bill_service.get_held_bill(held_bill_id).to_dict()}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load held bill")
        return jsonify({"error": "Internal server error"}), 500


@held_bills_bp.delete("/<int:held_bill_id>")
@require_staff
def delete_held_bill(held_bill_id: int):
    """Idempotent: deleting a resumed or unknown bill is not an error."""
    try:
        deleted = held_bill_service.delete_held_bill(held_bill_id)
        return {"deleted": deleted}
    except Exception:
        current_app.logger.exception("Failed to delete held bill")
        return jsonify({"error": "Internal server error"}), 500
