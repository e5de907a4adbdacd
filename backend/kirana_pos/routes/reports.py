# Overview: Flask API routes for sales and stock reports; parses date ranges and returns JSON.

# backend/kirana_pos/routes/reports.py
"""
Reports routes.

Date ranges are inclusive calendar days (YYYY-MM-DD, UTC). Only completed
sales count toward totals. Everything except the dashboard is owner-only.
"""
from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_owner, require_staff
from ..responses import SERVICE_ERRORS, error_response
from ..services import reporting_service
from ..time_utils import parse_iso_date, today
from ..validation import ValidationError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_range():
    """start_date/end_date query params; both default to today."""
    try:
        start = parse_iso_date(request.args.get("start_date")) or today()
        end = parse_iso_date(request.args.get("end_date")) or start
    except ValueError:
        raise ValidationError("Dates must be ISO dates (YYYY-MM-DD)")
    return start, end


@reports_bp.get("/sales-summary")
@require_staff
@require_owner
def sales_summary():
    try:
        start, end = _date_range()
        return reporting_service.sales_summary(start, end)
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build sales summary")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/daily")
@require_staff
@require_owner
def daily():
    try:
        start, end = _date_range()
        return {"days": reporting_service.daily_sales(start, end)}
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build daily sales report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/products")
@require_staff
@require_owner
def products():
    try:
        start, end = _date_range()
        limit = request.args.get("limit", 20, type=int) or 20
        return reporting_service.product_performance(start, end, limit=min(max(limit, 1), 100))
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build product report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/stock")
@require_staff
@require_owner
def stock():
    """Query params: category, filter (all|low|out|ok), search."""
    try:
        return reporting_service.stock_report(
            category=request.args.get("category") or None,
            stock_filter=request.args.get("filter", "all"),
            search=request.args.get("search") or None,
        )
    except SERVICE_ERRORS as e:
        return error_response(e)


@reports_bp.get("/dashboard")
@require_staff
def dashboard():
    try:
        return reporting_service.dashboard_stats()
    except Exception:
        current_app.logger.exception("Failed to build dashboard stats")
        return jsonify({"error": "Internal server error"}), 500
