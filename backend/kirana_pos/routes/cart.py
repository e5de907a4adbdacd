# Overview: Flask API routes for a terminal's cart and checkout; parses input and returns JSON responses.

# backend/kirana_pos/routes/cart.py
"""
Checkout terminal routes.

Every billing screen identifies itself with a terminal id in the URL and owns
one in-memory cart on the server. Checkout accepts an attempt_id from the
client: retrying a timed-out checkout with the same attempt_id never creates
a second sale.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import checkout_service

terminals_bp = Blueprint("terminals", __name__, url_prefix="/api/terminals")


@terminals_bp.get("/<terminal_id>/cart")
@require_staff
def get_cart(terminal_id: str):
    try:
        return {"cart": checkout_service.cart_summary(terminal_id)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load cart")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.post("/<terminal_id>/cart/items")
@require_staff
def add_item(terminal_id: str):
    """Body: {"product_id": int, "quantity": number (default 1)}"""
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            return jsonify({"error": "product_id (integer) required"}), 400
        cart = checkout_service.add_to_cart(terminal_id, product_id, data.get("quantity", 1))
        return {"cart": cart}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.post("/<terminal_id>/cart/scan")
@require_staff
def scan(terminal_id: str):
    """
    Body: {"barcode": str, "quantity": number (default 1)}

    lookup.status == "multiple" means nothing was added; the caller picks one
    of lookup.products and posts it to /cart/items.
    """
    try:
        data = request.get_json(silent=True) or {}
        return checkout_service.scan_barcode(terminal_id, data.get("barcode") or "", data.get("quantity", 1))
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to scan barcode")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.put("/<terminal_id>/cart/items/<int:product_id>")
@require_staff
def update_item(terminal_id: str, product_id: int):
    """Body: {"quantity": number}; 0 or less removes the line."""
    try:
        data = request.get_json(silent=True) or {}
        if "quantity" not in data:
            return jsonify({"error": "quantity required"}), 400
        cart = checkout_service.update_cart_quantity(terminal_id, product_id, data["quantity"])
        return {"cart": cart}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.delete("/<terminal_id>/cart/items/<int:product_id>")
@require_staff
def remove_item(terminal_id: str, product_id: int):
    try:
        return {"cart": checkout_service.remove_from_cart(terminal_id, product_id)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.delete("/<terminal_id>/cart")
@require_staff
def clear_cart(terminal_id: str):
    try:
        return {"cart": checkout_service.clear_cart(terminal_id)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.put("/<terminal_id>/cart/discount")
@require_staff
def set_discount(terminal_id: str):
    """Body: {"value": number, "type": "amount" | "percent"}"""
    try:
        data = request.get_json(silent=True) or {}
        cart = checkout_service.apply_discount(
            terminal_id,
            data.get("value", 0),
            data.get("type") or "amount",
        )
        return {"cart": cart}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to apply discount")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.post("/<terminal_id>/cart/hold")
@require_staff
def hold_cart(terminal_id: str):
    """Body: {"bill_name": str (optional)}"""
    try:
        data = request.get_json(silent=True) or {}
        bill = checkout_service.hold_current_cart(
            terminal_id,
            held_by=g.staff_id,
            bill_name=data.get("bill_name"),
        )
        return {"held_bill": bill}, 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to hold bill")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.post("/<terminal_id>/cart/resume/<int:held_bill_id>")
@require_staff
def resume_bill(terminal_id: str, held_bill_id: int):
    """Loads the held bill into this terminal's cart (replacing it); 404 if already taken."""
    try:
        return checkout_service.resume_held_bill(terminal_id, held_bill_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to resume held bill")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.post("/<terminal_id>/checkout")
@require_staff
def checkout(terminal_id: str):
    """
    Finalize the cart into a sale.

    Body: {"payment_mode": "cash"|"upi"|"card", "amount_received": number (cash),
           "attempt_id": str (recommended), "notes": str}

    201 on a new sale, 200 when the attempt had already committed.
    402 insufficient cash, 409 stock conflict, 503 retry with the same attempt_id.
    """
    try:
        data = request.get_json(silent=True) or {}
        result = checkout_service.finalize_current_sale(
            terminal_id,
            data.get("payment_mode") or "",
            data.get("amount_received"),
            created_by=g.staff_id,
            attempt_id=data.get("attempt_id"),
            notes=data.get("notes"),
        )
        return result, 200 if result["replayed"] else 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to finalize sale")
        return jsonify({"error": "Internal server error"}), 500
