# Overview: Flask API routes for completed sales, receipts and reconciliation.

# backend/kirana_pos/routes/sales.py
"""
Sales routes.

Sales are created only through /api/terminals/<id>/checkout. These endpoints
read sales back, print receipts, flag returns/cancellations, and expose the
reconciliation report.
"""
from datetime import timedelta

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_owner, require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import sales_service
from ..time_utils import day_bounds, parse_iso_date
from ..validation import ValidationError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO date (YYYY-MM-DD)")


@sales_bp.get("")
@require_staff
def list_sales():
    """
    Query params:
    - start_date, end_date: YYYY-MM-DD (optional, inclusive)
    - status: completed (default) | returned | cancelled | all
    - payment_mode: cash | upi | card (optional)
    - limit: int (default 100, max 1000)
    """
    try:
        start = end = None
        start_date = _date_arg("start_date")
        end_date = _date_arg("end_date")
        if start_date:
            start, _ = day_bounds(start_date)
        if end_date:
            _, end = day_bounds(end_date)

        status = request.args.get("status", "completed")
        limit = min(request.args.get("limit", 100, type=int) or 100, 1000)
        sales = sales_service.list_sales(
            start,
            end,
            status=None if status == "all" else status,
            payment_mode=request.args.get("payment_mode") or None,
            limit=limit,
        )
        return {"items": [s.to_dict(include_items=False) for s in sales], "count": len(sales)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/today")
@require_staff
def todays_sales():
    sales = sales_service.todays_sales()
    return {"items": [s.to_dict(include_items=False) for s in sales], "count": len(sales)}


@sales_bp.get("/<int:sale_id>")
@require_staff
def get_sale(sale_id: int):
    try:
        return {"sale": sales_service.get_sale(sale_id).to_dict()}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/invoice/<path:invoice_number>")
@require_staff
def get_sale_by_invoice(invoice_number: str):
    try:
        return {"sale": sales_service.get_sale_by_invoice(invoice_number).to_dict()}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load sale by invoice")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>/receipt")
@require_staff
def receipt(sale_id: int):
    try:
        return sales_service.build_receipt(sales_service.get_sale(sale_id))
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build receipt")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:sale_id>/status")
@require_staff
@require_owner
def update_status(sale_id: int):
    """Body: {"status": "returned" | "cancelled"}. Does not restock."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.update_sale_status(sale_id, data.get("status") or "")
        return {"sale": sale.to_dict()}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale status")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/reconcile")
@require_staff
@require_owner
def reconcile():
    """
    Body: {"abort_stale": bool (default false), "minutes": int (default 15)}

    Reports sales with missing stock movements and finalize attempts that
    reserved a number but never committed; optionally aborts the stale ones.
    """
    try:
        data = request.get_json(silent=True) or {}
        minutes = data.get("minutes", 15)
        if not isinstance(minutes, int) or isinstance(minutes, bool) or minutes < 1:
            return jsonify({"error": "minutes must be a positive integer"}), 400
        older_than = timedelta(minutes=minutes)

        stale = [a.to_dict() for a in sales_service.find_stale_attempts(older_than)]
        aborted = sales_service.abort_stale_attempts(older_than) if data.get("abort_stale") else 0
        return {
            "incomplete_sales": sales_service.find_incomplete_sales(),
            "stale_attempts": stale,
            "aborted": aborted,
        }
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile sales")
        return jsonify({"error": "Internal server error"}), 500
