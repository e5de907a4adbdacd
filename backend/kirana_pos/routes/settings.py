# Overview: Flask API routes for shop settings and the invoice counter.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_owner, require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import invoice_service, settings_service
from ..time_utils import utcnow

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_staff
def get_settings():
    return {"settings": settings_service.get_settings().to_dict()}


@settings_bp.put("")
@require_staff
@require_owner
def update_settings():
    """Partial update; unknown fields are rejected."""
    try:
        data = request.get_json(silent=True) or {}
        settings = settings_service.update_settings(data)
        return {"settings": settings.to_dict()}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500


@settings_bp.get("/invoice-counter")
@require_staff
def invoice_counter():
    """The number the next finalized sale will take (informational; not reserved)."""
    settings = settings_service.get_settings()
    next_number = invoice_service.peek_next_number()
    return {
        "next_number": next_number,
        "prefix": settings.invoice_prefix,
        "preview": invoice_service.format_invoice_number(settings.invoice_prefix, utcnow().year, next_number),
    }
