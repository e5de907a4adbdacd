# Overview: Flask API routes for the stock ledger: movements, alerts and verification.

# backend/kirana_pos/routes/stock.py
"""
Stock routes.

All stock changes are ledger movements:
- stock_in:   goods received (supplier_name, purchase_price optional)
- stock_out:  damage, expiry, theft... (reason required)
- adjustment: physical count; quantity is the counted stock (owner only)

Sales book their own stock_out movements at checkout.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import is_owner, require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import checkout_service, stock_service
from ..services.settings_service import get_settings

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.post("/movements")
@require_staff
def create_movement():
    """
    Body: {"product_id": int, "movement_type": str, "quantity": number,
           "reason": str, "supplier_name": str, "purchase_price": number}
    """
    try:
        data = request.get_json(silent=True) or {}
        product_id = data.get("product_id")
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            return jsonify({"error": "product_id (integer) required"}), 400

        movement_type = data.get("movement_type") or ""
        if movement_type == "adjustment" and not is_owner():
            return jsonify({
                "error": "Permission denied",
                "message": "Owner access required for stock adjustments",
            }), 403

        movement = checkout_service.record_stock_movement(
            product_id,
            movement_type,
            data.get("quantity"),
            created_by=g.staff_id,
            reason=data.get("reason"),
            supplier_name=data.get("supplier_name"),
            purchase_price=data.get("purchase_price"),
        )
        return {"movement": movement}, 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/movements")
@require_staff
def list_movements():
    """Query params: product_id, movement_type, sale_id, limit (default 100)."""
    try:
        movements = stock_service.history(
            product_id=request.args.get("product_id", type=int),
            movement_type=request.args.get("movement_type") or None,
            limit=request.args.get("limit", 100, type=int) or 100,
            sale_id=request.args.get("sale_id", type=int),
        )
        return {"items": [m.to_dict() for m in movements], "count": len(movements)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return jsonify({"error": "Internal server error"}), 500


@stock_bp.get("/alerts")
@require_staff
def alerts():
    return stock_service.stock_alerts()


@stock_bp.get("/low")
@require_staff
def low_stock():
    products = stock_service.low_stock()
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@stock_bp.get("/expiring")
@require_staff
def expiring():
    """Query param days defaults to the shop's expiry_alert_days."""
    days = request.args.get("days", type=int)
    if days is None:
        days = get_settings().expiry_alert_days
    if days < 0:
        return jsonify({"error": "days must be >= 0"}), 400
    products = stock_service.expiring_within(days)
    return {"items": [p.to_dict() for p in products], "count": len(products), "days": days}


@stock_bp.get("/verify/<int:product_id>")
@require_staff
def verify(product_id: int):
    """Compare the cached stock with a replay of the product's ledger."""
    try:
        return stock_service.verify_stock(product_id)
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to verify stock")
        return jsonify({"error": "Internal server error"}), 500
